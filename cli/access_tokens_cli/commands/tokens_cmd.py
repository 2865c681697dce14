from __future__ import annotations

from typing import Any

import typer
from access_tokens_client import TokenRecord, ValidationError
from rich.markup import escape
from rich.table import Table

from . import options
from .. import console
from ..config import resolve_endpoint_from_options
from ..dates import format_date, parse_date
from ..errors import exit_on_error
from ..http import make_client
from ..tokengen import DEFAULT_TOKEN_PREFIX, generate

NO_UPDATES_MESSAGE = "No updates specified. Use --owner, --admin, --secret-phc, or --expires-at"


def split_and_trim(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def build_token_update(
        *,
        owner: str | None = None,
        is_admin: bool | None = None,
        secret_phc: str | None = None,
        expires_at: str | None = None,
) -> dict[str, Any]:
    """Collect only the fields the operator asked to change.

    ``expires_at="null"`` maps to an explicit None (clear); an omitted flag is left out.
    """
    updates: dict[str, Any] = {}
    if owner is not None:
        updates["owner"] = owner
    if is_admin is not None:
        updates["is_admin"] = is_admin
    if secret_phc is not None:
        updates["secret_phc"] = secret_phc
    if expires_at is not None:
        updates["expires_at"] = parse_date(expires_at)
    if not updates:
        raise ValidationError(None, NO_UPDATES_MESSAGE)
    return updates


def _optional_date(value: str | None) -> int | None:
    return parse_date(value) if value else None


def _field(name: str, value: object) -> None:
    console.print(f"  {name}: {value}", markup=False, highlight=False)


def _print_record(record: TokenRecord) -> None:
    _field("token_id", record.token_id)
    _field("owner", record.owner)
    _field("admin", str(record.is_admin).lower())
    if record.roles:
        _field("roles", ", ".join(record.roles))
    _field("created_at", format_date(record.created_at))
    if record.last_used_at is not None:
        _field("last_used_at", format_date(record.last_used_at))
    _field("expires_at", format_date(record.expires_at) if record.expires_at else "never")
    if record.revoked_at is not None:
        _field("revoked_at", format_date(record.revoked_at))
    if record.secret_phc:
        _field("secret_phc", record.secret_phc)


def generate_token(
        token_prefix: str = typer.Option(DEFAULT_TOKEN_PREFIX, "--token-prefix", help="Token prefix."),
        token_id: str | None = typer.Option(None, "--token-id", help="Pre-generate with a specific token ID."),
        json_out: bool = options.JsonOut,
        verbose: bool = options.Verbose,
        quiet: bool = options.Quiet,
):
    """Generate a token locally, without storing it on any endpoint."""
    options.configure_output(verbose, quiet)
    with exit_on_error():
        console.verbose("Generating new token...")
        generated = generate(token_id=token_id, token_prefix=token_prefix)

    if json_out:
        console.print_json(generated.to_api())
        return
    console.ok("Here is your new personal access token. Don't share it with anyone!")
    console.print("")
    console.print(generated.token, markup=False, highlight=False, soft_wrap=True)
    console.print("")
    console.print("Provide the following information to your administrator to register the token:")
    console.print("")
    console.print(f"Token ID: {generated.token_id}", markup=False, highlight=False)
    console.print(f"Secret hash: {generated.secret_phc}", markup=False, highlight=False, soft_wrap=True)


def list_tokens(
        include_revoked: bool = typer.Option(False, "--include-revoked", help="Include revoked tokens."),
        include_expired: bool = typer.Option(False, "--include-expired", help="Include expired tokens."),
        include_secret_phc: bool = typer.Option(False, "--include-secret-phc", help="Include secret PHC hashes."),
        has_role: str | None = typer.Option(None, "--has-role", help="Only tokens carrying this role."),
        endpoint: str | None = options.EndpointName,
        url: str | None = options.Url,
        admin_token: str | None = options.AdminToken,
        auth_path: str | None = options.AuthPath,
        admin_path: str | None = options.AdminPath,
        config_dir: str | None = options.ConfigDir,
        json_out: bool = options.JsonOut,
        verbose: bool = options.Verbose,
        quiet: bool = options.Quiet,
):
    """List tokens."""
    options.configure_output(verbose, quiet)
    with exit_on_error():
        endpoint_cfg = resolve_endpoint_from_options(
            options.endpoint_options(endpoint, url, admin_token, auth_path, admin_path, config_dir)
        )
        client = make_client(endpoint_cfg)
        try:
            console.verbose(f"Fetching tokens from {endpoint_cfg.url}...")
            records = client.list(
                include_revoked=include_revoked,
                include_expired=include_expired,
                include_secret_phc=include_secret_phc,
                has_role=has_role,
            )
        finally:
            client.close()

    if json_out:
        console.print_json([r.to_api() for r in records])
        return
    if not records:
        console.info("No tokens found")
        return

    table = Table(title=f"Tokens ({len(records)})")
    table.add_column("token_id", style="bold")
    table.add_column("owner")
    table.add_column("admin")
    table.add_column("roles")
    table.add_column("created_at")
    table.add_column("last_used_at")
    table.add_column("expires_at")
    table.add_column("revoked_at")
    if include_secret_phc:
        table.add_column("secret_phc")
    for r in records:
        row = [
            r.token_id,
            escape(r.owner),
            "yes" if r.is_admin else "no",
            escape(", ".join(r.roles)) or "-",
            format_date(r.created_at),
            format_date(r.last_used_at),
            format_date(r.expires_at),
            format_date(r.revoked_at),
        ]
        if include_secret_phc:
            row.append(r.secret_phc or "-")
        table.add_row(*row)
    console.print(table)


def get_token(
        token_id: str = options.TokenId,
        include_secret_phc: bool = typer.Option(False, "--include-secret-phc", help="Include secret PHC hash."),
        endpoint: str | None = options.EndpointName,
        url: str | None = options.Url,
        admin_token: str | None = options.AdminToken,
        auth_path: str | None = options.AuthPath,
        admin_path: str | None = options.AdminPath,
        config_dir: str | None = options.ConfigDir,
        json_out: bool = options.JsonOut,
        verbose: bool = options.Verbose,
        quiet: bool = options.Quiet,
):
    """Show one token."""
    options.configure_output(verbose, quiet)
    with exit_on_error():
        endpoint_cfg = resolve_endpoint_from_options(
            options.endpoint_options(endpoint, url, admin_token, auth_path, admin_path, config_dir)
        )
        client = make_client(endpoint_cfg)
        try:
            console.verbose(f"Fetching token {token_id}...")
            record = client.get(token_id, include_secret_phc=include_secret_phc)
        finally:
            client.close()

    if json_out:
        console.print_json(record.to_api())
        return
    console.ok(f"Token {token_id}:")
    _print_record(record)


def issue_token(
        owner: str = typer.Option(..., "--owner", help="Token owner (usually email)."),
        admin: bool = typer.Option(False, "--admin", help="Make token an admin token."),
        roles: str | None = typer.Option(None, "--roles", help="Comma-separated roles."),
        expires_at: str | None = typer.Option(
            None, "--expires-at", help="Expiration date (ISO 8601 or Unix timestamp)."
        ),
        endpoint: str | None = options.EndpointName,
        url: str | None = options.Url,
        admin_token: str | None = options.AdminToken,
        auth_path: str | None = options.AuthPath,
        admin_path: str | None = options.AdminPath,
        config_dir: str | None = options.ConfigDir,
        json_out: bool = options.JsonOut,
        verbose: bool = options.Verbose,
        quiet: bool = options.Quiet,
):
    """Issue a new token; the secret is shown once."""
    options.configure_output(verbose, quiet)
    with exit_on_error():
        expires = _optional_date(expires_at)
        endpoint_cfg = resolve_endpoint_from_options(
            options.endpoint_options(endpoint, url, admin_token, auth_path, admin_path, config_dir)
        )
        client = make_client(endpoint_cfg)
        try:
            console.verbose(f"Issuing token for {owner}...")
            result = client.issue(
                owner=owner,
                is_admin=admin,
                roles=split_and_trim(roles) if roles else None,
                expires_at=expires,
            )
        finally:
            client.close()

    if json_out:
        console.print_json(result.to_api())
        return
    if console.level() == console.QUIET:
        console.console.print(result.token, markup=False, highlight=False, soft_wrap=True)
        return
    console.ok("Token issued successfully!")
    console.print("")
    console.print("TOKEN (save this securely, it won't be shown again):")
    console.print(result.token, markup=False, highlight=False, soft_wrap=True)
    console.print("")
    _print_record(result.record)


def register_token(
        token_id: str = options.TokenId,
        secret_phc: str = typer.Option(..., "--secret-phc", help="Secret PHC hash."),
        owner: str = typer.Option(..., "--owner", help="Token owner (usually email)."),
        admin: bool = typer.Option(False, "--admin", help="Make token an admin token."),
        expires_at: str | None = typer.Option(
            None, "--expires-at", help="Expiration date (ISO 8601 or Unix timestamp)."
        ),
        endpoint: str | None = options.EndpointName,
        url: str | None = options.Url,
        admin_token: str | None = options.AdminToken,
        auth_path: str | None = options.AuthPath,
        admin_path: str | None = options.AdminPath,
        config_dir: str | None = options.ConfigDir,
        json_out: bool = options.JsonOut,
        verbose: bool = options.Verbose,
        quiet: bool = options.Quiet,
):
    """Register a token with a pre-generated ID and secret hash."""
    options.configure_output(verbose, quiet)
    with exit_on_error():
        expires = _optional_date(expires_at)
        endpoint_cfg = resolve_endpoint_from_options(
            options.endpoint_options(endpoint, url, admin_token, auth_path, admin_path, config_dir)
        )
        client = make_client(endpoint_cfg)
        try:
            console.verbose(f"Registering token {token_id}...")
            record = client.register(
                token_id=token_id,
                secret_phc=secret_phc,
                owner=owner,
                is_admin=admin,
                expires_at=expires,
            )
        finally:
            client.close()

    if json_out:
        console.print_json(record.to_api())
        return
    console.ok(f"Token {token_id} registered successfully!")
    _print_record(record)


def update_token(
        token_id: str = options.TokenId,
        owner: str | None = typer.Option(None, "--owner", help="Update owner."),
        admin: bool | None = typer.Option(None, "--admin/--no-admin", help="Update admin status."),
        secret_phc: str | None = typer.Option(None, "--secret-phc", help="Update secret PHC hash."),
        expires_at: str | None = typer.Option(
            None, "--expires-at", help="Update expiration (ISO 8601, Unix timestamp, or 'null' to clear)."
        ),
        endpoint: str | None = options.EndpointName,
        url: str | None = options.Url,
        admin_token: str | None = options.AdminToken,
        auth_path: str | None = options.AuthPath,
        admin_path: str | None = options.AdminPath,
        config_dir: str | None = options.ConfigDir,
        json_out: bool = options.JsonOut,
        verbose: bool = options.Verbose,
        quiet: bool = options.Quiet,
):
    """Update token properties."""
    options.configure_output(verbose, quiet)
    with exit_on_error():
        # validated before any config is read or request sent
        updates = build_token_update(
            owner=owner,
            is_admin=admin,
            secret_phc=secret_phc,
            expires_at=expires_at,
        )
        endpoint_cfg = resolve_endpoint_from_options(
            options.endpoint_options(endpoint, url, admin_token, auth_path, admin_path, config_dir)
        )
        client = make_client(endpoint_cfg)
        try:
            console.verbose(f"Updating token {token_id}...")
            record = client.update(token_id, updates)
        finally:
            client.close()

    if json_out:
        console.print_json(record.to_api())
        return
    console.ok(f"Token {token_id} updated successfully")
    _print_record(record)


def revoke_token(
        token_id: str = options.TokenId,
        expires_at: str | None = typer.Option(
            None, "--expires-at", help="Expiration date for revocation (ISO 8601 or Unix timestamp)."
        ),
        endpoint: str | None = options.EndpointName,
        url: str | None = options.Url,
        admin_token: str | None = options.AdminToken,
        auth_path: str | None = options.AuthPath,
        admin_path: str | None = options.AdminPath,
        config_dir: str | None = options.ConfigDir,
        verbose: bool = options.Verbose,
        quiet: bool = options.Quiet,
):
    """Revoke a token."""
    options.configure_output(verbose, quiet)
    with exit_on_error():
        expires = _optional_date(expires_at)
        endpoint_cfg = resolve_endpoint_from_options(
            options.endpoint_options(endpoint, url, admin_token, auth_path, admin_path, config_dir)
        )
        client = make_client(endpoint_cfg)
        try:
            console.verbose(f"Revoking token {token_id}...")
            client.revoke(token_id, expires_at=expires)
        finally:
            client.close()

    console.ok(f"Token {token_id} revoked successfully")


def restore_token(
        token_id: str = options.TokenId,
        endpoint: str | None = options.EndpointName,
        url: str | None = options.Url,
        admin_token: str | None = options.AdminToken,
        auth_path: str | None = options.AuthPath,
        admin_path: str | None = options.AdminPath,
        config_dir: str | None = options.ConfigDir,
        verbose: bool = options.Verbose,
        quiet: bool = options.Quiet,
):
    """Restore a revoked token."""
    options.configure_output(verbose, quiet)
    with exit_on_error():
        endpoint_cfg = resolve_endpoint_from_options(
            options.endpoint_options(endpoint, url, admin_token, auth_path, admin_path, config_dir)
        )
        client = make_client(endpoint_cfg)
        try:
            console.verbose(f"Restoring token {token_id}...")
            client.restore(token_id)
        finally:
            client.close()

    console.ok(f"Token {token_id} restored successfully")
