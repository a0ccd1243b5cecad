"""Artifact uploader — checksum-verified, idempotent firmware upload.

Per controller type:

1. Validate the source file (exists, regular, readable, non-empty).
2. Compute the storage key from (prefix, short version, controller type).
3. Refuse to overwrite an existing object unless ``force_overwrite``.
4. Digest the file (SHA-256).
5. Upload the whole object with provenance metadata, retrying transient
   transport failures with linear backoff.
6. Read the stored metadata back and compare digest and size.
7. After a successful write, any failure (including an interrupt) deletes
   the object before the error propagates, so a key never holds an
   unverified artifact.
8. If the write itself fails on a key that was free, a write that reached
   the store anyway (a timeout after the object landed) is looked up and
   deleted. A pre-existing object being overwritten is never deleted.

Dry-run stops after step 2 and returns a placeholder descriptor.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from fwrelease.bridge.object_store import ObjectStore
from fwrelease.core.hasher import sha256_file
from fwrelease.core.retry import RetryPolicy, upload_policy
from fwrelease.core.storage_keys import storage_key
from fwrelease.errors import (
    FileAccessError,
    IntegrityError,
    ObjectExistsError,
    OperationCancelledError,
    ReleaseError,
    TransportError,
)
from fwrelease.models.artifacts import ArtifactDescriptor, ControllerType
from fwrelease.models.versioning import Version
from fwrelease.utils.logging import step_timer

logger = logging.getLogger(__name__)

# Stand-in digest for descriptors fabricated in dry-run mode.
DRY_RUN_CHECKSUM = "0" * 64


def format_bytes(size: int) -> str:
    if size < 1024:
        return f"{size}B"
    if size < 1024**2:
        return f"{size / 1024:.1f}KB"
    if size < 1024**3:
        return f"{size / 1024**2:.1f}MB"
    return f"{size / 1024**3:.1f}GB"


def validate_source(file_path: Path) -> int:
    """Check the source file and return its size in bytes."""
    path = Path(file_path)
    if not path.is_file():
        raise FileAccessError(
            f"File not found: {path}",
            suggestion="Build the firmware first or check the --file path.",
        )
    if not os.access(path, os.R_OK):
        raise FileAccessError(f"File not readable: {path}")
    size = path.stat().st_size
    if size == 0:
        raise FileAccessError(f"File is empty: {path}")
    return size


class ArtifactUploader:
    """Uploads firmware binaries to the object store.

    Parameters
    ----------
    store:
        Object store bound to the target bucket; may be None for dry-run.
    key_prefix:
        Fixed storage-key prefix.
    policy:
        Retry policy for the write; defaults to 3 attempts, 2s linear.
    verify_account:
        Called before any store access to re-check the effective account.
    clock:
        Returns the build timestamp recorded in object metadata.
    bucket:
        Bucket name for log output; defaults to the store's bucket.
    """

    def __init__(
        self,
        store: ObjectStore | None,
        key_prefix: str,
        *,
        policy: RetryPolicy | None = None,
        verify_account: Callable[[], None] | None = None,
        clock: Callable[[], datetime] | None = None,
        bucket: str | None = None,
    ) -> None:
        if store is None and bucket is None:
            raise ValueError("bucket is required when no store is given")
        self._store = store
        self.bucket = bucket or store.bucket
        self._prefix = key_prefix
        self.policy = policy or upload_policy(3)
        self._verify_account = verify_account
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def cancel_event(self) -> threading.Event:
        return self.policy.cancel_event

    def key_for(self, version: Version, controller_type: ControllerType) -> str:
        return storage_key(self._prefix, version.short_form, controller_type)

    def upload(
        self,
        file_path: Path,
        controller_type: ControllerType,
        version: Version,
        force_overwrite: bool = False,
        *,
        dry_run: bool = False,
    ) -> ArtifactDescriptor:
        """Upload one binary and return its verified descriptor."""
        size = validate_source(file_path)
        key = self.key_for(version, controller_type)
        logger.info("File: %s (%s)", file_path, format_bytes(size))
        logger.info("Destination: s3://%s/%s", self.bucket, key)

        if dry_run:
            logger.info("DRY-RUN: skipping existence check, upload and verification")
            return ArtifactDescriptor(
                controller_type=controller_type,
                storage_key=key,
                checksum=DRY_RUN_CHECKSUM,
                size_bytes=size,
                exists=True,
            )

        if self._store is None:
            raise ReleaseError("No object store configured for a live upload")
        if self._verify_account is not None:
            self._verify_account()

        existing = self.policy.run(
            lambda attempt: self._store.head(key), f"check s3://{self.bucket}/{key}"
        )
        if existing is not None:
            if not force_overwrite:
                raise ObjectExistsError(self.bucket, key)
            logger.warning("Object exists but --force-overwrite specified, will overwrite")

        with step_timer("checksum"):
            checksum = sha256_file(file_path)
        logger.info("SHA256: %s", checksum)

        metadata = {
            "git-commit": version.commit_hash,
            "git-branch": version.branch,
            "build-date": self._clock().strftime("%Y-%m-%dT%H:%M:%SZ"),
            "controller-type": controller_type.value,
            "version": version.short_form,
            "sha256": checksum,
            "file-size": str(size),
        }

        try:
            with step_timer(f"upload {key}"):
                self.policy.run(
                    lambda attempt: self._store.put(key, Path(file_path), metadata),
                    f"upload s3://{self.bucket}/{key}",
                )
        except (TransportError, OperationCancelledError):
            if existing is None:
                self._remove_partial_write(key)
            raise

        try:
            with step_timer(f"verify {key}"):
                self._verify(key, checksum, size)
        except BaseException:
            self._compensate(key)
            raise

        logger.info("Upload verified: s3://%s/%s", self.bucket, key)
        return ArtifactDescriptor(
            controller_type=controller_type,
            storage_key=key,
            checksum=checksum,
            size_bytes=size,
            exists=True,
        )

    def _verify(self, key: str, checksum: str, size: int) -> None:
        head = self.policy.run(
            lambda attempt: self._store.head(key),
            f"read back s3://{self.bucket}/{key}",
        )
        if head is None:
            raise IntegrityError(f"Uploaded object disappeared before verification: {key}")
        if head.checksum != checksum:
            raise IntegrityError(
                f"Checksum mismatch! Expected: {checksum}, Got: {head.checksum or '<missing>'}"
            )
        if head.content_length != size:
            raise IntegrityError(
                f"File size mismatch! Expected: {size}, Got: {head.content_length}"
            )

    def _remove_partial_write(self, key: str) -> None:
        """Delete an object a failed write may have left under a key that was free."""
        try:
            landed = self._store.head(key) is not None
        except ReleaseError:
            logger.exception("Could not check %s after a failed upload", key)
            return
        if landed:
            self._compensate(key)

    def _compensate(self, key: str) -> None:
        """Best-effort removal of an unverified object."""
        logger.warning("Cleaning up failed upload: s3://%s/%s", self.bucket, key)
        try:
            self._store.delete(key)
        except Exception:
            logger.exception("Compensating delete of %s failed", key)
