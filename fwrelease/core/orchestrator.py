"""Publish orchestrator: one state machine per controller type.

Each controller type moves through::

    idle -> resolving_artifact -> building_payload -> submitting -> succeeded
                                                                 \\-> failed

Types are independent: a failure in one never aborts another. Only types
whose artifact exists are attempted, and the aggregate status depends only
on how many of those succeeded. With ``max_workers > 1`` the types run on a
thread pool; each worker returns its own outcome and aggregation happens
after all of them complete.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor

from fwrelease.bridge.object_store import ObjectStore
from fwrelease.bridge.publish_api import PublishApiClient
from fwrelease.core.retry import RetryPolicy, upload_policy
from fwrelease.core.storage_keys import storage_key
from fwrelease.errors import IntegrityError, NoArtifactsError, OperationCancelledError, ReleaseError
from fwrelease.models.artifacts import SHA256_HEX_RE, ArtifactDescriptor, ControllerType
from fwrelease.models.publish import (
    VALID_TRANSITIONS,
    PipelineResult,
    PipelineStatus,
    PublishOutcome,
    PublishPayload,
    PublishResponse,
    PublishState,
)
from fwrelease.models.versioning import Version

logger = logging.getLogger(__name__)

# Placeholder descriptor values used when dry-run skips the store lookup.
DRY_RUN_CHECKSUM = "0" * 64
DRY_RUN_SIZE = 2097152


class InvalidTransitionError(RuntimeError):
    """Raised when a publish state transition is not valid."""


class PublishTracker:
    """Enforces the per-type state machine and records its history."""

    def __init__(self, controller_type: ControllerType) -> None:
        self.controller_type = controller_type
        self.state = PublishState.IDLE
        self.history: list[PublishState] = [PublishState.IDLE]

    def transition(self, target: PublishState) -> None:
        allowed = VALID_TRANSITIONS.get(self.state, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition {self.controller_type.value} from "
                f"{self.state.value} to {target.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )
        logger.debug(
            "%s: %s -> %s", self.controller_type.value, self.state.value, target.value
        )
        self.state = target
        self.history.append(target)


class PublishOrchestrator:
    """Publishes every available controller type for one version.

    Parameters
    ----------
    store:
        Object store used to look artifacts up; unused in dry-run.
    client:
        Publish API client.
    key_prefix:
        Fixed storage-key prefix (same formula as the uploader).
    release_notes:
        Returns the release-notes text for a version. Called once per run.
    verify_account:
        Re-checks the effective account before the store is queried.
    policy:
        Retry policy for object store lookups; defaults to 3 attempts, 2s linear.
    max_workers:
        Run controller types concurrently when greater than 1.
    """

    def __init__(
        self,
        store: ObjectStore | None,
        client: PublishApiClient,
        key_prefix: str,
        release_notes: Callable[[Version], str],
        *,
        verify_account: Callable[[], None] | None = None,
        policy: RetryPolicy | None = None,
        max_workers: int = 1,
    ) -> None:
        self._store = store
        self._client = client
        self._prefix = key_prefix
        self._release_notes = release_notes
        self._verify_account = verify_account
        self.policy = policy or upload_policy(3)
        self._max_workers = max(1, max_workers)

    # ------------------------------------------------------------------
    # Artifact resolution
    # ------------------------------------------------------------------

    def resolve_artifact(
        self, version: Version, controller_type: ControllerType, *, dry_run: bool = False
    ) -> ArtifactDescriptor:
        key = storage_key(self._prefix, version.short_form, controller_type)
        if dry_run:
            logger.info("DRY-RUN: assuming %s exists", key)
            return ArtifactDescriptor(
                controller_type=controller_type,
                storage_key=key,
                checksum=DRY_RUN_CHECKSUM,
                size_bytes=DRY_RUN_SIZE,
                exists=True,
            )
        if self._store is None:
            raise ReleaseError("No object store configured for a live publish")
        store = self._store
        head = self.policy.run(
            lambda attempt: store.head(key), f"look up s3://{store.bucket}/{key}"
        )
        if head is None or not head.checksum or head.content_length <= 0:
            logger.warning("Binary not found in object store: %s", key)
            return ArtifactDescriptor(controller_type=controller_type, storage_key=key)
        checksum = head.checksum.strip().lower()
        if not SHA256_HEX_RE.match(checksum):
            raise IntegrityError(
                f"Stored sha256 metadata for {key} is not a SHA-256 digest: {head.checksum!r}",
                suggestion="Re-upload the binary with --force-overwrite.",
            )
        return ArtifactDescriptor(
            controller_type=controller_type,
            storage_key=key,
            checksum=checksum,
            size_bytes=head.content_length,
            exists=True,
        )

    # ------------------------------------------------------------------
    # Publish
    # ------------------------------------------------------------------

    def publish_all(
        self,
        version: Version,
        artifact_types: Iterable[ControllerType] = tuple(ControllerType),
        dry_run: bool = False,
    ) -> PipelineResult:
        """Resolve, build and submit every existing artifact type.

        Raises ``NoArtifactsError`` before submitting anything if no
        artifact exists for the version.
        """
        types = sorted(set(artifact_types), key=list(ControllerType).index)
        if not dry_run and self._verify_account is not None:
            self._verify_account()

        trackers = {ct: PublishTracker(ct) for ct in types}
        descriptors: dict[ControllerType, ArtifactDescriptor] = {}
        outcomes: list[PublishOutcome] = []

        for ct in types:
            tracker = trackers[ct]
            tracker.transition(PublishState.RESOLVING_ARTIFACT)
            try:
                descriptors[ct] = self.resolve_artifact(version, ct, dry_run=dry_run)
            except OperationCancelledError:
                raise
            except ReleaseError as exc:
                logger.error("Failed to resolve %s artifact: %s", ct.value, exc)
                outcomes.append(self._failed(tracker, exc))

        available = [ct for ct, d in descriptors.items() if d.exists]
        if not available and not outcomes:
            raise NoArtifactsError(
                f"No binaries found for version {version.short_form}",
                suggestion="Upload the binaries before publishing.",
            )

        notes = self._release_notes(version) if available else ""
        logger.info(
            "Publishing %d binaries: %s", len(available), ", ".join(ct.value for ct in available)
        )

        def _run(ct: ControllerType) -> PublishOutcome:
            return self._publish_one(trackers[ct], version, descriptors[ct], notes, dry_run)

        if self._max_workers > 1 and len(available) > 1:
            with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
                futures = [pool.submit(_run, ct) for ct in available]
                outcomes.extend(future.result() for future in futures)
        else:
            outcomes.extend(_run(ct) for ct in available)

        result = PipelineResult.from_outcomes(outcomes)
        if result.status == PipelineStatus.PARTIAL_SUCCESS:
            logger.warning(
                "Partial success: %d/%d binaries published", result.succeeded, result.attempted
            )
        elif result.succeeded == 0:
            logger.error("No binaries were published successfully")
        return result

    def build_payload(
        self, version: Version, descriptor: ArtifactDescriptor, release_notes: str
    ) -> PublishPayload:
        return PublishPayload(
            version=version.short_form,
            storage_key=descriptor.storage_key,
            checksum=descriptor.checksum,
            size_bytes=descriptor.size_bytes,
            release_notes=release_notes,
        )

    def _publish_one(
        self,
        tracker: PublishTracker,
        version: Version,
        descriptor: ArtifactDescriptor,
        notes: str,
        dry_run: bool,
    ) -> PublishOutcome:
        payload: PublishPayload | None = None
        try:
            tracker.transition(PublishState.BUILDING_PAYLOAD)
            payload = self.build_payload(version, descriptor, notes)
            tracker.transition(PublishState.SUBMITTING)
            response: PublishResponse | None = self._client.submit(payload, dry_run=dry_run)
        except OperationCancelledError:
            raise
        except ReleaseError as exc:
            logger.error("Failed to publish %s binary: %s", tracker.controller_type.value, exc)
            return self._failed(tracker, exc, payload)

        tracker.transition(PublishState.SUCCEEDED)
        logger.info("Published %s binary (%s)", tracker.controller_type.value, payload.storage_key)
        return PublishOutcome(
            controller_type=tracker.controller_type,
            published=True,
            state=tracker.state,
            response=response,
            payload=payload,
        )

    @staticmethod
    def _failed(
        tracker: PublishTracker, exc: ReleaseError, payload: PublishPayload | None = None
    ) -> PublishOutcome:
        tracker.transition(PublishState.FAILED)
        return PublishOutcome(
            controller_type=tracker.controller_type,
            published=False,
            state=tracker.state,
            error=str(exc),
            error_code=exc.code,
            payload=payload,
        )
