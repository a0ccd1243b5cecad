"""Publish payload, per-target state machine, and aggregate result models."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from fwrelease.models.artifacts import ControllerType


class PublishPayload(BaseModel):
    """Wire contract of the remote publish API (one per controller type).

    ``version`` is always the short form of the resolved version; the remote
    schema is defined over it, never over the raw identifier.
    """

    model_config = ConfigDict(frozen=True)

    version: str
    storage_key: str
    checksum: str
    size_bytes: int = Field(ge=0)
    release_notes: str
    mandatory: bool = False
    rollout_percentage: int = Field(default=100, ge=0, le=100)

    def to_wire(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "s3Key": self.storage_key,
            "sha256": self.checksum,
            "size": self.size_bytes,
            "releaseNotes": self.release_notes,
            "mandatory": self.mandatory,
            "rolloutPercentage": self.rollout_percentage,
        }


class PublishResponse(BaseModel):
    """Parsed 2xx response body from the publish API."""

    model_config = ConfigDict(frozen=True)

    status_code: int
    version: str | None = None
    status: str | None = None
    binaries: list[dict[str, Any]] = []
    raw: str = ""


class PublishState(str, Enum):
    """Lifecycle of one controller type within a publish run."""

    IDLE = "idle"
    RESOLVING_ARTIFACT = "resolving_artifact"
    BUILDING_PAYLOAD = "building_payload"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# Strictly ordered: resolve -> build -> submit. Terminal states have no exits.
VALID_TRANSITIONS: dict[PublishState, set[PublishState]] = {
    PublishState.IDLE: {PublishState.RESOLVING_ARTIFACT, PublishState.FAILED},
    PublishState.RESOLVING_ARTIFACT: {PublishState.BUILDING_PAYLOAD, PublishState.FAILED},
    PublishState.BUILDING_PAYLOAD: {PublishState.SUBMITTING, PublishState.FAILED},
    PublishState.SUBMITTING: {PublishState.SUCCEEDED, PublishState.FAILED},
    PublishState.SUCCEEDED: set(),  # terminal
    PublishState.FAILED: set(),  # terminal
}


class PublishOutcome(BaseModel):
    """Final result of one controller type's state machine."""

    model_config = ConfigDict(frozen=True)

    controller_type: ControllerType
    published: bool
    state: PublishState
    error: str | None = None
    error_code: str | None = None
    response: PublishResponse | None = None
    payload: PublishPayload | None = None


class PipelineStatus(str, Enum):
    ALL_SUCCEEDED = "all_succeeded"
    PARTIAL_SUCCESS = "partial_success"
    ALL_FAILED = "all_failed"


class PipelineResult(BaseModel):
    """Aggregate of per-controller-type outcomes.

    The status depends only on how many attempted types succeeded, so the
    result is the same whatever order the outcomes completed in.
    """

    model_config = ConfigDict(frozen=True)

    outcomes: tuple[PublishOutcome, ...]
    status: PipelineStatus

    @classmethod
    def from_outcomes(cls, outcomes: list[PublishOutcome]) -> PipelineResult:
        ordered = sorted(outcomes, key=lambda o: list(ControllerType).index(o.controller_type))
        succeeded = sum(1 for o in ordered if o.published)
        if ordered and succeeded == len(ordered):
            status = PipelineStatus.ALL_SUCCEEDED
        elif succeeded == 0:
            status = PipelineStatus.ALL_FAILED
        else:
            status = PipelineStatus.PARTIAL_SUCCESS
        return cls(outcomes=tuple(ordered), status=status)

    @property
    def attempted(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.published)

    @property
    def exit_code(self) -> int:
        """Only a complete success is a success; partial counts as failure."""
        return 0 if self.status == PipelineStatus.ALL_SUCCEEDED else 1
