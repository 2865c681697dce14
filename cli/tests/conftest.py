from __future__ import annotations

import pytest

from access_tokens_cli import config, console


@pytest.fixture(autouse=True)
def _isolated_config_dir(tmp_path, monkeypatch):
    default_dir = tmp_path / "default-config"

    def _config_dir(_: str) -> str:
        return str(default_dir)

    monkeypatch.setattr(config, "user_config_dir", _config_dir)
    console.set_level()
    yield default_dir
    console.set_level()


@pytest.fixture
def default_config_dir(_isolated_config_dir):
    return _isolated_config_dir
