# cargo_tracker/core/errors.py
"""
HTTP-facing error taxonomy.

Services raise these; the handlers registered in main.py turn every one of
them into the uniform ``{"Error": "<message>"}`` body with the matching status.
"""
from __future__ import annotations


class ApiError(Exception):
    """Base class for errors that resolve to an HTTP response."""

    status_code: int = 500

    def __init__(self, message: str, *, headers: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.headers = headers or {}


class ValidationError(ApiError):
    status_code = 400


class Unauthenticated(ApiError):
    status_code = 401

    def __init__(self, message: str = "You must be logged in to use this endpoint.") -> None:
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(ApiError):
    status_code = 403


class Conflict(Forbidden):
    """Conflicting link state. Reported as 403 to match the public API."""


class NotFound(ApiError):
    status_code = 404


class MethodNotAllowed(ApiError):
    status_code = 405

    def __init__(self, allow: list[str]) -> None:
        allowed = ", ".join(allow)
        super().__init__(
            f"This method is not allowed on this endpoint. Allowed methods: {allowed}.",
            headers={"Allow": allowed},
        )


class NotAcceptable(ApiError):
    status_code = 406


class UnsupportedMediaType(ApiError):
    status_code = 415


class UpstreamError(ApiError):
    """The identity provider failed or returned something unusable."""

    status_code = 502


class ServiceUnavailable(ApiError):
    status_code = 503
