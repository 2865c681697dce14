from __future__ import annotations

import logging

from . import console


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    console.set_level(verbose=verbose, quiet=quiet)

    level = logging.DEBUG if verbose and not quiet else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    logging.getLogger().setLevel(level)

    # httpx/httpcore are noisy at DEBUG; keep them down unless asked
    logging.getLogger("httpx").setLevel(level)
    logging.getLogger("httpcore").setLevel(level)
