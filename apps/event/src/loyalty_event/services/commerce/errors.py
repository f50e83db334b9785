from __future__ import annotations


class CommerceError(RuntimeError):
    """Raised when a commerce platform request cannot be completed."""

    def __init__(self, message: str, *, status_code: int | None = None, url: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class ResourceNotFoundError(CommerceError):
    """Raised when the requested resource does not exist."""


class VersionConflictError(CommerceError):
    """Raised when an update carried a stale resource version."""


class CommerceAuthError(CommerceError):
    """Raised when an access token cannot be obtained."""


__all__ = [
    "CommerceAuthError",
    "CommerceError",
    "ResourceNotFoundError",
    "VersionConflictError",
]
