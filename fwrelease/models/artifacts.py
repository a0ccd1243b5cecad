"""Firmware artifact models (immutable once constructed)."""

from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, model_validator

SHA256_HEX_RE = re.compile(r"^[0-9a-f]{64}$")


class ControllerType(str, Enum):
    """Flight controller hardware targets."""

    V6C = "v6c"
    V6X = "v6x"

    @property
    def artifact_name(self) -> str:
        """File name of the firmware binary for this target."""
        return f"px4_fmu-{self.value}_default.px4"


class ArtifactDescriptor(BaseModel):
    """Where a firmware binary lives in the object store and what it is.

    Built by the uploader after a verified write, or reconstructed by the
    publish orchestrator from a metadata lookup on the same storage key.
    Re-resolution produces a new instance; descriptors are never mutated.
    """

    model_config = ConfigDict(frozen=True)

    controller_type: ControllerType
    storage_key: str
    checksum: str = ""  # lowercase hex SHA-256
    size_bytes: int = 0
    exists: bool = False

    @model_validator(mode="after")
    def _check_existing(self) -> ArtifactDescriptor:
        if self.exists:
            if not SHA256_HEX_RE.match(self.checksum):
                raise ValueError(
                    f"existing artifact needs a 64-char hex checksum, got {self.checksum!r}"
                )
            if self.size_bytes <= 0:
                raise ValueError("existing artifact needs a non-zero size")
        return self


class ObjectHead(BaseModel):
    """Metadata read back from the object store for one key."""

    model_config = ConfigDict(frozen=True)

    key: str
    content_length: int
    metadata: dict[str, str] = {}

    @property
    def checksum(self) -> str:
        return self.metadata.get("sha256", "")
