"""Structured error catalog for the release pipeline.

Every error has a stable code, a human message, and an optional suggested
fix. The CLI renders these and maps them to exit code 1; nothing below the
CLI swallows them.
"""

from __future__ import annotations

from typing import Any


class ReleaseError(RuntimeError):
    """Base error with structured code + suggestion."""

    code = "RELEASE_ERROR"

    def __init__(self, message: str, *, suggestion: str = "", detail: Any = None) -> None:
        self.message = message
        self.suggestion = suggestion
        self.detail = detail
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "error_code": self.code,
            "message": self.message,
        }
        if self.suggestion:
            d["suggestion"] = self.suggestion
        if self.detail:
            d["detail"] = self.detail
        return d


class RepositoryStateError(ReleaseError):
    """Not inside a git work tree, or the repository has no commits."""

    code = "REPOSITORY_STATE"


class ConfigurationError(ReleaseError):
    """Missing or placeholder credentials, or a malformed endpoint."""

    code = "CONFIGURATION"


class FileAccessError(ReleaseError):
    code = "FILE_ACCESS"


class ObjectExistsError(ReleaseError):
    """The destination key is occupied and overwriting was not requested."""

    code = "OBJECT_EXISTS"

    def __init__(self, bucket: str, key: str) -> None:
        super().__init__(
            f"Object already exists: s3://{bucket}/{key}",
            suggestion="Use --force-overwrite to replace the existing object.",
        )
        self.bucket = bucket
        self.key = key


class IntegrityError(ReleaseError):
    """Stored object metadata disagrees with the local file."""

    code = "INTEGRITY"


class TransportError(ReleaseError):
    """A network-level failure talking to the object store or the API.

    ``retryable`` is False for failures that cannot succeed on a repeat,
    such as a malformed request rejected by the object store.
    """

    code = "TRANSPORT"

    def __init__(self, message: str, *, retryable: bool = True, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.retryable = retryable


class AuthorizationError(ReleaseError):
    """Role assumption rejected, or the effective account is not the target."""

    code = "AUTHORIZATION"


class NoArtifactsError(ReleaseError):
    code = "NO_ARTIFACTS"


class OperationCancelledError(ReleaseError):
    """A caller interrupt was observed at a retry boundary."""

    code = "CANCELLED"


# ---------------------------------------------------------------------------
# Publish API response classes
# ---------------------------------------------------------------------------


class PublishApiError(ReleaseError):
    """An HTTP response the publish API classified as a failure."""

    code = "PUBLISH_API"

    def __init__(self, message: str, *, status_code: int, body: str = "", **kwargs: Any) -> None:
        super().__init__(message, detail=body[:500] if body else None, **kwargs)
        self.status_code = status_code
        self.body = body


class ValidationError(PublishApiError):
    code = "VALIDATION"


class AuthError(PublishApiError):
    code = "AUTH"


class ConflictError(PublishApiError):
    """The version is already published; repeating the request cannot help."""

    code = "CONFLICT"


class RateLimitExhaustedError(PublishApiError):
    code = "RATE_LIMITED"


class ServerError(PublishApiError):
    code = "SERVER"


class UnexpectedResponseError(PublishApiError):
    code = "UNEXPECTED_RESPONSE"
