from __future__ import annotations

import typer

from .commands import config_cmd, sync_cmd, tokens_cmd
from .logging_ import setup_logging


def _build_app() -> typer.Typer:
    app = typer.Typer(
        name="access-tokens",
        help="CLI for managing personal access tokens.",
        no_args_is_help=True,
    )

    app.command("generate")(tokens_cmd.generate_token)
    app.command("list")(tokens_cmd.list_tokens)
    app.command("get")(tokens_cmd.get_token)
    app.command("issue")(tokens_cmd.issue_token)
    app.command("register")(tokens_cmd.register_token)
    app.command("update")(tokens_cmd.update_token)
    app.command("revoke")(tokens_cmd.revoke_token)
    app.command("restore")(tokens_cmd.restore_token)
    app.command("sync")(sync_cmd.sync_tokens)
    app.add_typer(config_cmd.app, name="config")

    @app.callback()
    def _main(
            verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logs."),
            quiet: bool = typer.Option(False, "-q", "--quiet", help="Minimal output."),
    ):
        setup_logging(verbose, quiet)

    return app


app = _build_app()
