from __future__ import annotations
from dataclasses import dataclass

DEFAULT_AUTH_PATH = "/auth"
DEFAULT_ADMIN_PATH = "/admin"


@dataclass(frozen=True)
class ClientConfig:
    endpoint: str
    api_key: str
    auth_path: str = DEFAULT_AUTH_PATH
    admin_path: str = DEFAULT_ADMIN_PATH
    timeout_s: float = 15.0
    client_version: str | None = None
