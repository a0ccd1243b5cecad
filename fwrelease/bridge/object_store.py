"""Object store bridge — the subset of S3 the pipeline uses.

Only three operations are needed: ``head`` (existence + metadata),
``put`` (whole-object write with user metadata) and ``delete``. botocore's
own retry loop is disabled so that the pipeline's ``RetryPolicy`` is the
single, bounded source of retries.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Protocol

from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from fwrelease.errors import AuthorizationError, TransportError
from fwrelease.models.artifacts import ObjectHead

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/octet-stream"

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})
_DENIED_CODES = frozenset({"403", "AccessDenied", "Forbidden", "ExpiredToken", "InvalidAccessKeyId"})
_THROTTLE_CODES = frozenset({"SlowDown", "Throttling", "ThrottlingException", "RequestTimeout"})


class ObjectStore(Protocol):
    """Interface shared by the S3 implementation and test doubles."""

    bucket: str

    def head(self, key: str) -> ObjectHead | None: ...

    def put(self, key: str, source: Path, metadata: dict[str, str]) -> None: ...

    def delete(self, key: str) -> None: ...


def translate_client_error(exc: ClientError, action: str) -> Exception:
    """Map a botocore ``ClientError`` onto the pipeline error taxonomy."""
    error = exc.response.get("Error", {})
    code = str(error.get("Code", ""))
    status = int(exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0) or 0)
    message = f"{action} failed: {code or status} {error.get('Message', '')}".strip()
    if code in _DENIED_CODES or status == 403:
        return AuthorizationError(
            message,
            suggestion="Check the cross-account role permissions on the bucket.",
        )
    retryable = status >= 500 or code in _THROTTLE_CODES
    return TransportError(message, retryable=retryable)


class S3ObjectStore:
    """S3-backed ``ObjectStore``.

    Parameters
    ----------
    session:
        A boto3 ``Session`` carrying the credentials from the broker.
    bucket:
        Target bucket name.
    region:
        Bucket region.
    timeout:
        Read timeout in seconds; uploads of large images need more than
        the API default.
    """

    def __init__(
        self,
        session: Any,
        bucket: str,
        *,
        region: str | None = None,
        timeout: float = 300.0,
    ) -> None:
        self.bucket = bucket
        self._client = session.client(
            "s3",
            region_name=region,
            config=Config(
                connect_timeout=min(timeout, 60.0),
                read_timeout=timeout,
                retries={"max_attempts": 1, "mode": "standard"},
            ),
        )

    def head(self, key: str) -> ObjectHead | None:
        """Return stored metadata for ``key``, or None if it does not exist."""
        try:
            response = self._client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in _NOT_FOUND_CODES:
                return None
            raise translate_client_error(exc, f"head s3://{self.bucket}/{key}") from exc
        except BotoCoreError as exc:
            raise TransportError(f"head s3://{self.bucket}/{key} failed: {exc}") from exc
        return ObjectHead(
            key=key,
            content_length=int(response.get("ContentLength", 0)),
            metadata={k.lower(): str(v) for k, v in (response.get("Metadata") or {}).items()},
        )

    def put(self, key: str, source: Path, metadata: dict[str, str]) -> None:
        """Upload the whole file at ``source``; one call, no resumption."""
        try:
            with Path(source).open("rb") as body:
                self._client.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=body,
                    ContentType=CONTENT_TYPE,
                    Metadata=metadata,
                )
        except ClientError as exc:
            raise translate_client_error(exc, f"put s3://{self.bucket}/{key}") from exc
        except BotoCoreError as exc:
            raise TransportError(f"put s3://{self.bucket}/{key} failed: {exc}") from exc
        logger.debug("Wrote s3://%s/%s", self.bucket, key)

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            raise translate_client_error(exc, f"delete s3://{self.bucket}/{key}") from exc
        except BotoCoreError as exc:
            raise TransportError(f"delete s3://{self.bucket}/{key} failed: {exc}") from exc
        logger.debug("Deleted s3://%s/%s", self.bucket, key)
