from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import typer
from access_tokens_client import (
    AccessTokensClientError,
    ApiError,
    AuthenticationError,
    NetworkError,
    NotFoundError,
    ValidationError,
)

from . import console
from .config import ConfigurationError

EXIT_FAILURE = 2


@contextmanager
def exit_on_error() -> Iterator[None]:
    """Print an expected failure as one line and exit non-zero; anything else propagates."""
    try:
        yield
    except ConfigurationError as e:
        console.err(f"Configuration error: {e}")
        raise typer.Exit(code=EXIT_FAILURE)
    except AuthenticationError as e:
        console.err(f"Authentication failed: {e}")
        raise typer.Exit(code=EXIT_FAILURE)
    except NotFoundError as e:
        console.err(f"Not found: {e}")
        raise typer.Exit(code=EXIT_FAILURE)
    except ValidationError as e:
        console.err(f"Invalid request: {e}")
        raise typer.Exit(code=EXIT_FAILURE)
    except NetworkError as e:
        console.err(f"Network error: {e}")
        raise typer.Exit(code=EXIT_FAILURE)
    except ApiError as e:
        status = f" (HTTP {e.status_code})" if e.status_code else ""
        console.err(f"{e}{status}")
        raise typer.Exit(code=EXIT_FAILURE)
    except AccessTokensClientError as e:
        console.err(str(e))
        raise typer.Exit(code=EXIT_FAILURE)
