from __future__ import annotations

import typer

from ..config import EndpointOptions
from ..logging_ import setup_logging

EndpointName = typer.Option(None, "--endpoint", help="Named endpoint from config.")
Url = typer.Option(None, "--url", help="Direct endpoint URL.")
AdminToken = typer.Option(None, "--admin-token", help="Admin token (required with --url).")
AuthPath = typer.Option(None, "--auth-path", help="Auth path (default: /auth).")
AdminPath = typer.Option(None, "--admin-path", help="Admin path (default: /admin).")
ConfigDir = typer.Option(
    None,
    "--config-dir",
    help="Config directory (default: the user config dir for access-tokens-cli).",
)
Verbose = typer.Option(False, "--verbose", "-v", help="Verbose output.")
Quiet = typer.Option(False, "--quiet", "-q", help="Minimal output.")
JsonOut = typer.Option(False, "--json", help="Output as JSON.")
TokenId = typer.Option(..., "--token-id", help="Token ID.")


def configure_output(verbose: bool, quiet: bool) -> None:
    # the group callback already applied its own flags; only override when set here
    if verbose or quiet:
        setup_logging(verbose=verbose, quiet=quiet)


def endpoint_options(
        endpoint: str | None,
        url: str | None,
        admin_token: str | None,
        auth_path: str | None,
        admin_path: str | None,
        config_dir: str | None,
) -> EndpointOptions:
    return EndpointOptions(
        endpoint=endpoint,
        url=url,
        admin_token=admin_token,
        auth_path=auth_path,
        admin_path=admin_path,
        config_dir=config_dir,
    )
