"""Storage key layout: ``{prefix}/{shortVersion}/{artifactName}``.

The publish orchestrator recomputes keys independently of the uploader, so
this function is the only place the layout is defined.
"""

from __future__ import annotations

from fwrelease.models.artifacts import ControllerType


def storage_key(prefix: str, short_version: str, controller_type: ControllerType) -> str:
    """Deterministic object key for one firmware binary."""
    return f"{prefix.strip('/')}/{short_version}/{controller_type.artifact_name}"
