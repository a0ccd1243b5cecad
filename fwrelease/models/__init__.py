"""fwrelease data models — all Pydantic v2, all frozen (immutable)."""

from fwrelease.models.artifacts import ArtifactDescriptor, ControllerType, ObjectHead
from fwrelease.models.notes import NoteCategory, ReleaseNotes
from fwrelease.models.publish import (
    VALID_TRANSITIONS,
    PipelineResult,
    PipelineStatus,
    PublishOutcome,
    PublishPayload,
    PublishResponse,
    PublishState,
)
from fwrelease.models.versioning import Version, VersionMetadata

__all__ = [
    # versioning
    "Version",
    "VersionMetadata",
    # notes
    "NoteCategory",
    "ReleaseNotes",
    # artifacts
    "ControllerType",
    "ArtifactDescriptor",
    "ObjectHead",
    # publish
    "PublishPayload",
    "PublishResponse",
    "PublishState",
    "PublishOutcome",
    "PipelineStatus",
    "PipelineResult",
    "VALID_TRANSITIONS",
]
