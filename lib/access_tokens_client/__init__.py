from .client import AccessTokensClient
from .errors import (
    AccessTokensClientError,
    ApiError,
    AuthenticationError,
    NetworkError,
    NotFoundError,
    ValidationError,
)
from .records import BatchLoadResult, IssueResult, TokenRecord

__all__ = [
    "AccessTokensClient",
    "AccessTokensClientError",
    "ApiError",
    "AuthenticationError",
    "NetworkError",
    "NotFoundError",
    "ValidationError",
    "BatchLoadResult",
    "IssueResult",
    "TokenRecord",
]
