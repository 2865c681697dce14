from __future__ import annotations

import time
from dataclasses import dataclass

import typer

from . import options
from .. import console
from ..config import (
    ConfigurationError,
    EndpointConfig,
    EndpointSettings,
    StoredConfig,
    SyncConfig,
    TokenDefinition,
    load_stored_config,
    load_sync_config,
    merge_stored_configs,
    resolve_direct_endpoint,
    resolve_named_endpoint,
)
from ..dates import add_duration_to_now, format_date
from ..diff import TokenChange, compare_tokens
from ..errors import exit_on_error
from ..http import make_client

DEFAULT_ORPHAN_EXPIRES_IN = "P30D"


@dataclass
class SyncTarget:
    name: str | None
    config: EndpointConfig

    @property
    def label(self) -> str:
        return self.name or self.config.url


def resolve_targets(
        sync: SyncConfig,
        user: StoredConfig | None,
        *,
        endpoint: str | None,
        direct: EndpointSettings,
) -> list[SyncTarget]:
    """Pick the endpoints to sync: --url, then --endpoint a,b, then every endpoint in the sync file."""
    if direct.url:
        return [SyncTarget(None, resolve_direct_endpoint(direct, user.defaults if user else None))]

    merged = merge_stored_configs(user, sync.config)
    if endpoint:
        names = [n.strip() for n in endpoint.split(",") if n.strip()]
        return [SyncTarget(name, resolve_named_endpoint(name, merged)) for name in names]

    if not sync.config.endpoints:
        raise ConfigurationError(
            "No endpoints specified. Either provide --endpoint, --url, or define endpoints in sync config"
        )
    targets = []
    for name in sync.config.endpoints:
        try:
            targets.append(SyncTarget(name, resolve_named_endpoint(name, merged)))
        except ConfigurationError as e:
            console.warn(f"Skipping endpoint '{name}': {e}")
    if not targets:
        raise ConfigurationError("No valid endpoints found to sync to")
    return targets


def _describe_change(change: TokenChange) -> str:
    if change.field == "expires_at":
        old = format_date(change.old_value) if change.old_value is not None else "null"
        new = format_date(change.new_value) if change.new_value is not None else "null"
        return f"{change.field}: {old} -> {new}"
    return f"{change.field}: {change.old_value} -> {change.new_value}"


def sync_endpoint(
        client,
        tokens: list[TokenDefinition],
        *,
        dry_run: bool,
        orphan_expires_at: int,
        now: int | None = None,
) -> None:
    console.verbose("Fetching remote tokens...")
    remote_records = client.list(include_revoked=True, include_expired=True, include_secret_phc=True)
    remote = {r.token_id: r for r in remote_records}
    now = int(time.time()) if now is None else now

    for definition in tokens:
        token_id, owner = definition.token_id, definition.owner
        if definition.expires_at is not None and definition.expires_at < now:
            console.verbose(f"Token {token_id} is expired, skipping")
            continue

        diff = compare_tokens(definition, remote.get(token_id))
        if not diff.exists:
            if not definition.secret_phc:
                console.warn(f"Token {token_id} not found and no secret_phc provided - skipping")
            elif dry_run:
                console.dry_run(f"Would register token {token_id} for {owner}")
            else:
                console.verbose(f"Registering token {token_id} for {owner}...")
                client.register(
                    token_id=token_id,
                    secret_phc=definition.secret_phc,
                    owner=owner,
                    is_admin=definition.is_admin,
                    expires_at=definition.expires_at,
                )
                console.ok(f"Registered token {token_id} for {owner}")
            continue

        if diff.needs_revoke:
            if dry_run:
                console.dry_run(f"Would revoke token {token_id} for {owner}")
            else:
                client.revoke(token_id, expires_at=definition.expires_at)
                console.info(f"Revoked token {token_id} for {owner}")
        elif diff.needs_restore:
            if dry_run:
                console.dry_run(f"Would restore token {token_id} for {owner}")
            else:
                client.restore(token_id)
                console.info(f"Restored token {token_id} for {owner}")

        if diff.needs_update:
            if dry_run:
                changes = ", ".join(_describe_change(c) for c in diff.changes)
                console.dry_run(f"Would update token {token_id} for {owner}: {changes}")
            else:
                client.update(token_id, diff.updates(definition))
                console.info(f"Updated token {token_id} for {owner}: {', '.join(c.field for c in diff.changes)}")

    wanted = {t.token_id for t in tokens}
    for record in remote_records:
        if record.token_id in wanted or record.revoked:
            continue
        description = (
            f"orphaned token {record.token_id} for {record.owner}, expires {format_date(orphan_expires_at)}"
        )
        if dry_run:
            console.dry_run(f"Would revoke {description}")
        else:
            client.revoke(record.token_id, expires_at=orphan_expires_at)
            console.info(f"Revoked {description}")


def sync_tokens(
        config: str = typer.Option(..., "--config", help="Path to sync config YAML file."),
        endpoint: str | None = typer.Option(
            None, "--endpoint", help="Target endpoint(s), comma-separated."
        ),
        url: str | None = options.Url,
        admin_token: str | None = options.AdminToken,
        auth_path: str | None = options.AuthPath,
        admin_path: str | None = options.AdminPath,
        dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be done without making changes."),
        orphan_expires_in: str = typer.Option(
            DEFAULT_ORPHAN_EXPIRES_IN,
            "--orphan-expires-in",
            help="ISO 8601 duration after which revoked orphan tokens expire.",
        ),
        config_dir: str | None = options.ConfigDir,
        verbose: bool = options.Verbose,
        quiet: bool = options.Quiet,
):
    """Sync tokens from a YAML definition file to one or more endpoints."""
    options.configure_output(verbose, quiet)
    with exit_on_error():
        orphan_expires_at = add_duration_to_now(orphan_expires_in)
        user = load_stored_config(config_dir)
        sync = load_sync_config(config)
        if not sync.tokens:
            console.warn("No tokens defined in sync config")
            return

        direct = EndpointSettings(url=url, admin_token=admin_token, auth_path=auth_path, admin_path=admin_path)
        targets = resolve_targets(sync, user, endpoint=endpoint, direct=direct)
        console.info(f"Syncing {len(sync.tokens)} token(s) to {len(targets)} endpoint(s)...")

        for target in targets:
            console.rule(f"Endpoint: {target.label}")
            client = make_client(target.config)
            try:
                sync_endpoint(client, sync.tokens, dry_run=dry_run, orphan_expires_at=orphan_expires_at)
            finally:
                client.close()

    if dry_run:
        console.info("Dry run completed - no changes were made")
    else:
        console.ok("Sync completed successfully!")
