"""Publish API client — httpx with status-specific retry.

Response classification
-----------------------
- ``2xx``: success, body parsed into ``PublishResponse``.
- ``400``: ``ValidationError`` (terminal).
- ``401`` / ``403``: ``AuthError`` (terminal).
- ``409``: ``ConflictError``, the version is already published (terminal).
- ``429``: ``RateLimitExhaustedError`` (retried, 5s x attempt).
- ``5xx``: ``ServerError`` (retried, 2s x attempt).
- no response: ``TransportError`` (retried, 2s x attempt).
- anything else: ``UnexpectedResponseError`` (terminal).
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from fwrelease.config import ReleaseSettings
from fwrelease.core.retry import RetryPolicy, publish_policy
from fwrelease.errors import (
    AuthError,
    ConflictError,
    RateLimitExhaustedError,
    ServerError,
    TransportError,
    UnexpectedResponseError,
    ValidationError,
)
from fwrelease.models.publish import PublishPayload, PublishResponse

logger = logging.getLogger(__name__)

CONNECT_CHECK_TIMEOUT = 10.0


def parse_success(response: httpx.Response) -> PublishResponse:
    """Parse a 2xx body; non-JSON bodies are kept verbatim in ``raw``."""
    text = response.text
    try:
        body: Any = response.json() if text else {}
    except ValueError:
        # JSONDecodeError and UnicodeDecodeError both land here.
        logger.warning("Response is not valid JSON, keeping raw body")
        return PublishResponse(status_code=response.status_code, raw=text)
    if not isinstance(body, dict):
        return PublishResponse(status_code=response.status_code, raw=text)
    binaries = body.get("binaries")
    return PublishResponse(
        status_code=response.status_code,
        version=body.get("version"),
        status=body.get("status"),
        binaries=binaries if isinstance(binaries, list) else [],
        raw=text,
    )


def classify_response(response: httpx.Response) -> PublishResponse:
    """Return the parsed success body or raise the matching error class."""
    status = response.status_code
    if 200 <= status < 300:
        return parse_success(response)

    body = response.text
    if status == 400:
        raise ValidationError(
            "Bad request (HTTP 400): invalid payload or parameters",
            status_code=status,
            body=body,
        )
    if status == 401:
        raise AuthError(
            "Unauthorized (HTTP 401): invalid API key",
            status_code=status,
            body=body,
            suggestion="Check your UPDATE_API_KEY environment variable.",
        )
    if status == 403:
        raise AuthError(
            "Forbidden (HTTP 403): API key lacks required permissions",
            status_code=status,
            body=body,
        )
    if status == 409:
        raise ConflictError(
            "Conflict (HTTP 409): version already exists",
            status_code=status,
            body=body,
        )
    if status == 429:
        raise RateLimitExhaustedError(
            "Rate limited (HTTP 429)", status_code=status, body=body
        )
    if 500 <= status < 600:
        raise ServerError(f"Server error (HTTP {status})", status_code=status, body=body)
    raise UnexpectedResponseError(
        f"Unexpected HTTP status code: {status}", status_code=status, body=body
    )


class PublishApiClient:
    """Submits publish payloads to the remote update API.

    Parameters
    ----------
    settings:
        Supplies the endpoint, API key, timeout and retry bound.
    policy:
        Retry policy; defaults to ``publish_policy(settings.max_retries)``.
    transport:
        Optional httpx transport (``httpx.MockTransport`` in tests).
    """

    def __init__(
        self,
        settings: ReleaseSettings,
        *,
        policy: RetryPolicy | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self.policy = policy or publish_policy(settings.max_retries)
        self._client = httpx.Client(
            timeout=settings.api_timeout,
            transport=transport,
            headers={
                "Content-Type": "application/json",
                "x-api-key": settings.update_api_key,
            },
        )

    @property
    def url(self) -> str:
        return self._settings.publish_url

    def check_connectivity(self) -> bool:
        """Probe the API host once; a failure is logged, never raised.

        Only the scheme and host of the configured URL are requested, with
        a short connect timeout. Any status below 400 counts as reachable.
        """
        api = httpx.URL(self._settings.update_api_url)
        origin = f"{api.scheme}://{api.netloc.decode('ascii')}"
        logger.info("Testing API connectivity to %s", origin)
        try:
            response = self._client.get(
                origin,
                timeout=httpx.Timeout(self._settings.api_timeout, connect=CONNECT_CHECK_TIMEOUT),
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "API connectivity test failed, but continuing (API may still work): %s", exc
            )
            return False
        if response.status_code >= 400:
            logger.warning(
                "API connectivity test got HTTP %d, but continuing (API may still work)",
                response.status_code,
            )
            return False
        logger.info("API connectivity verified")
        return True

    def submit(self, payload: PublishPayload, *, dry_run: bool = False) -> PublishResponse | None:
        """POST one payload under the retry policy.

        In dry-run mode the request is logged (API key masked) and nothing
        is sent; the return value is None.
        """
        body = payload.to_wire()
        if dry_run:
            logger.info("DRY-RUN: POST %s", self.url)
            logger.info("DRY-RUN: x-api-key: %s", self._settings.masked_api_key)
            logger.info("DRY-RUN: payload:\n%s", json.dumps(body, indent=2))
            return None

        logger.debug("Payload:\n%s", json.dumps(body, indent=2))

        def _attempt(attempt: int) -> PublishResponse:
            logger.info(
                "API request attempt %d of %d to %s",
                attempt,
                self.policy.max_attempts,
                self.url,
            )
            try:
                response = self._client.post(self.url, json=body)
            except httpx.TransportError as exc:
                raise TransportError(f"Request to {self.url} failed: {exc}") from exc
            return classify_response(response)

        return self.policy.run(_attempt, f"publish {payload.storage_key}")

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> PublishApiClient:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
