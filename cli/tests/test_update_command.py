from __future__ import annotations

import pytest
from typer.testing import CliRunner

from access_tokens_cli import main
from access_tokens_cli.commands import tokens_cmd
from access_tokens_client import AuthenticationError, TokenRecord, ValidationError

ENDPOINT_FLAGS = ["--url", "https://tokens.example.test", "--admin-token", "adm"]


class _FakeClient:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.updates: list[tuple[str, dict]] = []
        self.closed = False

    def update(self, token_id: str, updates: dict) -> TokenRecord:
        self.updates.append((token_id, dict(updates)))
        if self.error:
            raise self.error
        return TokenRecord(
            token_id=token_id,
            owner=updates.get("owner", "bob"),
            is_admin=updates.get("is_admin", False),
            created_at=1700000000,
            expires_at=updates.get("expires_at"),
        )

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_client(monkeypatch):
    client = _FakeClient()
    made = []

    def _make_client(endpoint_cfg):
        made.append(endpoint_cfg)
        return client

    monkeypatch.setattr(tokens_cmd, "make_client", _make_client)
    client.made = made
    return client


def _invoke(args: list[str]):
    return CliRunner().invoke(main.app, args)


def test_update_sends_single_partial_update(fake_client) -> None:
    result = _invoke(["update", "--token-id", "t1", "--owner", "alice", *ENDPOINT_FLAGS])

    assert result.exit_code == 0, result.output
    assert fake_client.updates == [("t1", {"owner": "alice"})]
    assert "owner: alice" in result.output
    assert fake_client.closed is True
    assert fake_client.made[0].url == "https://tokens.example.test"
    assert fake_client.made[0].admin_token == "adm"


def test_update_without_fields_fails_before_config_or_network(fake_client, monkeypatch) -> None:
    def _no_resolution(*_args, **_kwargs):
        raise AssertionError("config resolved")

    monkeypatch.setattr(tokens_cmd, "resolve_endpoint_from_options", _no_resolution)

    result = _invoke(["update", "--token-id", "t1", *ENDPOINT_FLAGS])

    assert result.exit_code == 2
    assert "No updates specified" in result.output
    assert fake_client.made == []
    assert fake_client.updates == []


def test_update_without_endpoint_reports_missing_endpoint(fake_client) -> None:
    result = _invoke(["update", "--token-id", "t1", "--owner", "alice"])

    assert result.exit_code == 2
    assert "No endpoint URL" in result.output
    assert fake_client.made == []


def test_update_authentication_failure_is_not_retried(fake_client) -> None:
    fake_client.error = AuthenticationError(401, "Failed to authenticate: Invalid token")

    result = _invoke(["update", "--token-id", "t1", "--owner", "alice", *ENDPOINT_FLAGS])

    assert result.exit_code == 2
    assert "Authentication failed" in result.output
    assert len(fake_client.updates) == 1
    assert "Traceback" not in result.output


def test_update_clears_expiry_and_sets_admin_flag(fake_client) -> None:
    result = _invoke(
        ["update", "--token-id", "t1", "--expires-at", "null", "--no-admin", *ENDPOINT_FLAGS]
    )

    assert result.exit_code == 0, result.output
    assert fake_client.updates == [("t1", {"is_admin": False, "expires_at": None})]
    assert "expires_at: never" in result.output


def test_update_parses_expiry_date(fake_client) -> None:
    result = _invoke(
        ["update", "--token-id", "t1", "--expires-at", "2030-01-01T00:00:00Z", "--admin", *ENDPOINT_FLAGS]
    )

    assert result.exit_code == 0, result.output
    assert fake_client.updates == [("t1", {"is_admin": True, "expires_at": 1893456000})]


def test_update_rejects_bad_date_before_network(fake_client) -> None:
    result = _invoke(["update", "--token-id", "t1", "--expires-at", "someday", *ENDPOINT_FLAGS])

    assert result.exit_code == 2
    assert "Invalid date format" in result.output
    assert fake_client.made == []


def test_update_uses_named_endpoint_from_config_dir(fake_client, tmp_path) -> None:
    (tmp_path / "config.toml").write_text(
        '[endpoints.prod]\nurl = "https://prod.example.test"\nadmin_token = "prod-token"\n',
        encoding="utf-8",
    )
    (tmp_path / "config.toml").chmod(0o600)

    result = _invoke(
        ["update", "--token-id", "t1", "--secret-phc", "$scrypt$abc", "--endpoint", "prod",
         "--config-dir", str(tmp_path)]
    )

    assert result.exit_code == 0, result.output
    assert fake_client.made[0].url == "https://prod.example.test"
    assert fake_client.made[0].admin_token == "prod-token"
    assert fake_client.updates == [("t1", {"secret_phc": "$scrypt$abc"})]


def test_build_token_update_requires_a_field() -> None:
    with pytest.raises(ValidationError) as exc:
        tokens_cmd.build_token_update()
    assert str(exc.value).startswith("No updates specified")


def test_build_token_update_distinguishes_clear_from_untouched() -> None:
    assert tokens_cmd.build_token_update(owner="a") == {"owner": "a"}
    assert tokens_cmd.build_token_update(expires_at="null") == {"expires_at": None}


def test_update_rejects_non_ascii_digits_as_date(fake_client) -> None:
    result = _invoke(["update", "--token-id", "t1", "--expires-at", "\u00b2", *ENDPOINT_FLAGS])

    assert result.exit_code == 2
    assert "Invalid date format" in result.output
    assert fake_client.made == []
