from __future__ import annotations

import typer
from rich.markup import escape
from rich.table import Table

from . import options
from .. import console
from ..config import (
    EndpointSettings,
    StoredConfig,
    config_path,
    load_stored_config,
    merge_settings,
    normalize_endpoint_url,
    normalize_path,
    save_stored_config,
)
from ..errors import exit_on_error

app = typer.Typer(help="Manage stored endpoints (config.toml in the user config dir).")


def _secret_state(value: str | None) -> str:
    return "(set)" if (value or "").strip() else "(empty)"


def _load_or_empty(config_dir: str | None) -> StoredConfig:
    # a fresh --config-dir is allowed here, the file is created on save
    return load_stored_config(config_dir, missing_ok=True) or StoredConfig()


@app.command("path")
def show_path(config_dir: str | None = options.ConfigDir):
    console.console.print(config_path(config_dir), markup=False, highlight=False, soft_wrap=True)


@app.command("show")
def show_config(config_dir: str | None = options.ConfigDir):
    with exit_on_error():
        cfg = load_stored_config(config_dir)
    if cfg is None:
        console.info(f"No config at {config_path(config_dir)}")
        return

    d = cfg.defaults
    console.console.print(
        f"default_endpoint={cfg.default_endpoint or '-'} "
        f"auth_path={d.auth_path or '-'} admin_path={d.admin_path or '-'} "
        f"admin_token={_secret_state(d.admin_token)}",
        markup=False,
    )
    if not cfg.endpoints:
        return
    table = Table(title="Endpoints")
    table.add_column("name", style="bold")
    table.add_column("url")
    table.add_column("admin_token")
    table.add_column("auth_path")
    table.add_column("admin_path")
    for name, e in cfg.endpoints.items():
        marker = " *" if name == cfg.default_endpoint else ""
        table.add_row(
            escape(name) + marker,
            escape(e.url or "-"),
            _secret_state(e.admin_token),
            escape(e.auth_path or "-"),
            escape(e.admin_path or "-"),
        )
    console.console.print(table)


@app.command("set-endpoint")
def set_endpoint(
        name: str = typer.Argument(..., help="Endpoint name."),
        url: str | None = typer.Option(None, "--url", help="Endpoint URL."),
        admin_token: str | None = typer.Option(None, "--admin-token", help="Admin token."),
        auth_path: str | None = typer.Option(None, "--auth-path", help="Auth path."),
        admin_path: str | None = typer.Option(None, "--admin-path", help="Admin path."),
        make_default: bool = typer.Option(False, "--default", help="Use this endpoint when none is given."),
        config_dir: str | None = options.ConfigDir,
):
    """Create or update a stored endpoint; omitted fields keep their stored value."""
    with exit_on_error():
        cfg = _load_or_empty(config_dir)
        update = EndpointSettings(
            url=normalize_endpoint_url(url) if url is not None else None,
            admin_token=admin_token,
            auth_path=normalize_path(auth_path) if auth_path else None,
            admin_path=normalize_path(admin_path) if admin_path else None,
        )
        cfg.endpoints[name] = merge_settings(cfg.endpoints.get(name), update)
        if not cfg.endpoints[name].url:
            console.err("Endpoint URL cannot be empty.")
            raise typer.Exit(code=2)
        if make_default:
            cfg.default_endpoint = name
        saved = save_stored_config(cfg, config_dir)
    console.ok(f"Endpoint '{name}' saved: {saved}")


@app.command("use")
def use_endpoint(
        name: str = typer.Argument(..., help="Endpoint name."),
        config_dir: str | None = options.ConfigDir,
):
    """Set the endpoint used when neither --endpoint nor --url is given."""
    with exit_on_error():
        cfg = _load_or_empty(config_dir)
        if name not in cfg.endpoints:
            console.err(f"Endpoint '{name}' not found in configuration")
            raise typer.Exit(code=2)
        cfg.default_endpoint = name
        saved = save_stored_config(cfg, config_dir)
    console.ok(f"Default endpoint set to '{name}': {saved}")
