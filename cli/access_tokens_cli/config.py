from __future__ import annotations

import os
import stat
import tomllib
from dataclasses import dataclass, field, fields, replace
from typing import Any
from urllib.parse import urlsplit

import httpx
import tomli_w
import yaml
from platformdirs import user_config_dir

from access_tokens_client.config_types import DEFAULT_ADMIN_PATH, DEFAULT_AUTH_PATH

from . import console
from .dates import coerce_timestamp

APP_NAME = "access-tokens-cli"
CONFIG_FILENAME = "config.toml"


class ConfigurationError(ValueError):
    """Endpoint configuration could not be resolved."""


@dataclass
class EndpointSettings:
    url: str | None = None
    admin_token: str | None = None
    auth_path: str | None = None
    admin_path: str | None = None


@dataclass
class StoredConfig:
    defaults: EndpointSettings = field(default_factory=EndpointSettings)
    endpoints: dict[str, EndpointSettings] = field(default_factory=dict)
    default_endpoint: str | None = None
    path: str | None = None

    def has_admin_token(self) -> bool:
        if self.defaults.admin_token:
            return True
        return any(e.admin_token for e in self.endpoints.values())


@dataclass(frozen=True)
class EndpointConfig:
    url: str
    admin_token: str
    auth_path: str
    admin_path: str


@dataclass
class EndpointOptions:
    endpoint: str | None = None
    url: str | None = None
    admin_token: str | None = None
    auth_path: str | None = None
    admin_path: str | None = None
    config_dir: str | None = None

    def explicit_settings(self) -> EndpointSettings:
        return EndpointSettings(
            url=self.url,
            admin_token=self.admin_token,
            auth_path=self.auth_path,
            admin_path=self.admin_path,
        )


@dataclass
class TokenDefinition:
    token_id: str
    owner: str
    secret_phc: str | None = None
    is_admin: bool | None = None
    revoked: bool = False
    expires_at: int | None = None
    # False when the file leaves expiry alone; True with expires_at None clears it
    manages_expiry: bool = False


@dataclass
class SyncConfig:
    config: StoredConfig
    tokens: list[TokenDefinition]


BUILTIN_DEFAULTS = EndpointSettings(auth_path=DEFAULT_AUTH_PATH, admin_path=DEFAULT_ADMIN_PATH)

# stored key -> accepted aliases
_SETTINGS_KEYS = {
    "url": ("url",),
    "admin_token": ("admin_token", "adminToken"),
    "auth_path": ("auth_path", "authPath"),
    "admin_path": ("admin_path", "adminPath"),
}


def config_dir_path(config_dir: str | None = None) -> str:
    return config_dir or user_config_dir(APP_NAME)


def config_path(config_dir: str | None = None) -> str:
    return os.path.join(config_dir_path(config_dir), CONFIG_FILENAME)


def normalize_endpoint_url(raw: str | None) -> str:
    value = (raw or "").strip()
    if not value:
        return ""
    value = value.rstrip("/")
    if "://" in value:
        return value

    host = value.split("/", 1)[0]
    host = host.split(":", 1)[0].lower()
    if host in {"localhost", "127.0.0.1", "0.0.0.0"}:
        return f"http://{value}"
    return f"https://{value}"


def normalize_path(raw: str) -> str:
    value = raw.strip().rstrip("/")
    if not value.startswith("/"):
        value = "/" + value
    return value


def merge_settings(*sources: EndpointSettings | None) -> EndpointSettings:
    """Merge partial settings field by field; the last non-empty value wins."""
    merged = EndpointSettings()
    for source in sources:
        if source is None:
            continue
        for f in fields(EndpointSettings):
            value = getattr(source, f.name)
            if isinstance(value, str):
                value = value.strip()
            if value:
                setattr(merged, f.name, value)
    return merged


def _pick(raw: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def _settings_from_raw(raw: Any, where: str) -> EndpointSettings:
    if raw is None:
        return EndpointSettings()
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Invalid config at {where}: expected a table")
    values: dict[str, str | None] = {}
    for name, aliases in _SETTINGS_KEYS.items():
        value = _pick(raw, *aliases)
        if value is not None and not isinstance(value, str):
            raise ConfigurationError(f"Invalid config at {where}: '{name}' must be a string")
        values[name] = value
    return EndpointSettings(**values)


def _settings_to_raw(settings: EndpointSettings) -> dict[str, str]:
    return {f.name: getattr(settings, f.name) for f in fields(EndpointSettings) if getattr(settings, f.name)}


def from_mapping(data: dict[str, Any], *, path: str | None = None) -> StoredConfig:
    where = path or "<config>"
    defaults = _settings_from_raw(data.get("defaults"), f"{where} [defaults]")
    endpoints_raw = data.get("endpoints") or {}
    if not isinstance(endpoints_raw, dict):
        raise ConfigurationError(f"Invalid config at {where}: 'endpoints' must be a table")
    endpoints = {
        str(name): _settings_from_raw(value, f"{where} [endpoints.{name}]")
        for name, value in endpoints_raw.items()
    }
    default_endpoint = _pick(data, "default_endpoint", "defaultEndpoint")
    if default_endpoint is not None and not isinstance(default_endpoint, str):
        raise ConfigurationError(f"Invalid config at {where}: 'default_endpoint' must be a string")
    return StoredConfig(
        defaults=defaults,
        endpoints=endpoints,
        default_endpoint=default_endpoint or None,
        path=path,
    )


def to_toml(cfg: StoredConfig) -> dict[str, Any]:
    data: dict[str, Any] = {}
    if cfg.default_endpoint:
        data["default_endpoint"] = cfg.default_endpoint
    defaults = _settings_to_raw(cfg.defaults)
    if defaults:
        data["defaults"] = defaults
    if cfg.endpoints:
        data["endpoints"] = {name: _settings_to_raw(e) for name, e in cfg.endpoints.items()}
    return data


def load_stored_config(config_dir: str | None = None, *, missing_ok: bool = False) -> StoredConfig | None:
    """Read the stored config; a missing file is only an error when the directory was given explicitly."""
    path = config_path(config_dir)
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        if config_dir and not missing_ok:
            raise ConfigurationError(f"Config file not found: {path}") from None
        return None
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Invalid config at {path}: {e}") from e
    cfg = from_mapping(data, path=path)
    check_file_permissions(path, cfg.has_admin_token())
    return cfg


def save_stored_config(cfg: StoredConfig, config_dir: str | None = None) -> str:
    path = config_path(config_dir)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        f.write(tomli_w.dumps(to_toml(cfg)).encode("utf-8"))
    os.chmod(path, 0o600)
    return path


def load_sync_config(path: str) -> SyncConfig:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigurationError(f"Sync config file not found: {path}") from None
    except OSError as e:
        raise ConfigurationError(f"Cannot read sync config {path}: {e}") from e
    except (yaml.YAMLError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Invalid sync config at {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Invalid sync config at {path}: expected a mapping")

    cfg = from_mapping(data, path=path)
    tokens_raw = data.get("tokens") or []
    if not isinstance(tokens_raw, list):
        raise ConfigurationError(f"Invalid sync config at {path}: 'tokens' must be a list")
    tokens = [_token_definition(item, f"{path} tokens[{i}]") for i, item in enumerate(tokens_raw)]
    check_file_permissions(path, cfg.has_admin_token())
    return SyncConfig(config=cfg, tokens=tokens)


def _token_definition(raw: Any, where: str) -> TokenDefinition:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Invalid sync config at {where}: expected a mapping")
    token_id = _pick(raw, "token_id", "tokenId")
    owner = raw.get("owner")
    if not isinstance(token_id, str) or not token_id:
        raise ConfigurationError(f"Invalid sync config at {where}: 'token_id' is required")
    if not isinstance(owner, str) or not owner:
        raise ConfigurationError(f"Invalid sync config at {where}: 'owner' is required")
    secret_phc = _pick(raw, "secret_phc", "secretPhc")
    is_admin = _pick(raw, "is_admin", "isAdmin")
    revoked = raw.get("revoked", False)
    if is_admin is not None and not isinstance(is_admin, bool):
        raise ConfigurationError(f"Invalid sync config at {where}: 'is_admin' must be a boolean")
    if not isinstance(revoked, bool):
        raise ConfigurationError(f"Invalid sync config at {where}: 'revoked' must be a boolean")
    try:
        expires_at = coerce_timestamp(_pick(raw, "expires_at", "expiresAt"))
    except ValueError as e:
        raise ConfigurationError(f"Invalid sync config at {where}: {e}") from e
    return TokenDefinition(
        token_id=token_id,
        owner=owner,
        secret_phc=str(secret_phc) if secret_phc else None,
        is_admin=is_admin,
        revoked=revoked,
        expires_at=expires_at,
        manages_expiry="expires_at" in raw or "expiresAt" in raw,
    )


def merge_stored_configs(user: StoredConfig | None, sync: StoredConfig) -> StoredConfig:
    if user is None:
        return sync
    names = list(dict.fromkeys([*user.endpoints, *sync.endpoints]))
    return StoredConfig(
        defaults=merge_settings(user.defaults, sync.defaults),
        endpoints={
            name: merge_settings(user.endpoints.get(name), sync.endpoints.get(name))
            for name in names
        },
        default_endpoint=sync.default_endpoint or user.default_endpoint,
        path=sync.path,
    )


def check_file_permissions(path: str, contains_admin_token: bool) -> None:
    if not contains_admin_token or os.name != "posix":
        return
    try:
        mode = os.stat(path).st_mode
    except OSError:
        return
    if mode & stat.S_IROTH:
        console.warn(
            f"Config file {path} is world-readable and contains an admin token. "
            f"Consider running: chmod 600 {path}"
        )


def _finalize(merged: EndpointSettings, *, label: str, require_admin: bool, missing_token_hint: str) -> EndpointConfig:
    url = normalize_endpoint_url(merged.url)
    if not url:
        raise ConfigurationError(f"Endpoint {label} missing URL")
    try:
        parts = urlsplit(url)
        parts.port
        httpx.URL(url)
    except (ValueError, httpx.InvalidURL):
        raise ConfigurationError(f"Invalid endpoint URL for {label}: {merged.url}") from None
    if parts.scheme not in {"http", "https"} or not parts.hostname:
        raise ConfigurationError(f"Invalid endpoint URL for {label}: {merged.url}")
    admin_token = merged.admin_token or ""
    if require_admin and not admin_token:
        raise ConfigurationError(missing_token_hint)
    return EndpointConfig(
        url=url,
        admin_token=admin_token,
        auth_path=normalize_path(merged.auth_path or DEFAULT_AUTH_PATH),
        admin_path=normalize_path(merged.admin_path or DEFAULT_ADMIN_PATH),
    )


def resolve_named_endpoint(
        name: str,
        cfg: StoredConfig | None,
        *,
        overrides: EndpointSettings | None = None,
        require_admin: bool = True,
) -> EndpointConfig:
    endpoints = cfg.endpoints if cfg else {}
    if name not in endpoints:
        raise ConfigurationError(f"Endpoint '{name}' not found in configuration")
    merged = merge_settings(BUILTIN_DEFAULTS, cfg.defaults, endpoints[name], overrides)
    return _finalize(
        merged,
        label=f"'{name}'",
        require_admin=require_admin,
        missing_token_hint=f"No admin token for endpoint '{name}'",
    )


def resolve_direct_endpoint(
        settings: EndpointSettings,
        defaults: EndpointSettings | None = None,
        *,
        require_admin: bool = True,
) -> EndpointConfig:
    # stored credentials are never attached to an ad-hoc URL
    path_defaults = replace(defaults, url=None, admin_token=None) if defaults else None
    merged = merge_settings(BUILTIN_DEFAULTS, path_defaults, settings)
    return _finalize(
        merged,
        label=settings.url or "",
        require_admin=require_admin,
        missing_token_hint="--admin-token is required when using --url",
    )


def resolve_endpoint_from_options(options: EndpointOptions, *, require_admin: bool = True) -> EndpointConfig:
    """Resolve the single endpoint this invocation talks to.

    Precedence per field: explicit flags, then the named endpoint from the
    stored config, then its [defaults], then built-in path defaults.
    """
    stored = load_stored_config(options.config_dir)
    explicit = options.explicit_settings()

    if options.url:
        # --url wins over --endpoint; stored tokens never go to an ad-hoc URL
        return resolve_direct_endpoint(explicit, stored.defaults if stored else None, require_admin=require_admin)

    if options.endpoint:
        return resolve_named_endpoint(options.endpoint, stored, overrides=explicit, require_admin=require_admin)

    if stored and stored.default_endpoint:
        return resolve_named_endpoint(stored.default_endpoint, stored, overrides=explicit, require_admin=require_admin)

    merged = merge_settings(BUILTIN_DEFAULTS, stored.defaults if stored else None, explicit)
    if not merged.url:
        raise ConfigurationError(
            "No endpoint URL configured: use --endpoint <name> or --url <url>, "
            f"or set default_endpoint in {config_path(options.config_dir)}"
        )
    return _finalize(
        merged,
        label=merged.url,
        require_admin=require_admin,
        missing_token_hint="No admin token configured: use --admin-token or set admin_token in [defaults]",
    )
