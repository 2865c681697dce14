from __future__ import annotations


class AccessTokensClientError(Exception):
    """Base client error."""


class NetworkError(AccessTokensClientError):
    """Transport/network layer error."""


class ApiError(AccessTokensClientError):
    def __init__(self, status_code: int | None, message: str, details: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class AuthenticationError(ApiError):
    """Invalid or expired admin credential."""


class NotFoundError(ApiError):
    """Token does not exist."""


class ValidationError(ApiError):
    """Request rejected, either locally (status_code is None) or by the server."""


def error_for_status(status_code: int, message: str, details: str | None = None) -> ApiError:
    if status_code in (401, 403):
        return AuthenticationError(status_code, message, details)
    if status_code == 404:
        return NotFoundError(status_code, message, details)
    if status_code in (400, 422):
        return ValidationError(status_code, message, details)
    return ApiError(status_code, message, details)
