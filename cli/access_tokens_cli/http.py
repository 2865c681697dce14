from __future__ import annotations

from access_tokens_client import AccessTokensClient
from access_tokens_client.config_types import ClientConfig

from . import __version__
from .config import EndpointConfig


def make_client(endpoint: EndpointConfig, *, timeout_s: float = 15.0) -> AccessTokensClient:
    return AccessTokensClient(
        ClientConfig(
            endpoint=endpoint.url,
            api_key=endpoint.admin_token,
            auth_path=endpoint.auth_path,
            admin_path=endpoint.admin_path,
            timeout_s=timeout_s,
            client_version=__version__,
        )
    )
