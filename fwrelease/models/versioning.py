"""Resolved version model — one immutable value per pipeline invocation."""

from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

TAG_PREFIX = "v"
SHORT_HASH_LENGTH = 7

# v{digit+}.{digit+}.{digit+}, nothing before or after.
RELEASE_TAG_RE = re.compile(r"^v(\d+)\.(\d+)\.(\d+)$")


def is_release_tag(value: str) -> bool:
    return RELEASE_TAG_RE.match(value) is not None


def release_tag_key(tag: str) -> tuple[int, int, int]:
    """Numeric ordering key for a release tag (``v1.10.0`` > ``v1.9.3``)."""
    match = RELEASE_TAG_RE.match(tag)
    if match is None:
        raise ValueError(f"Not a release tag: {tag!r}")
    major, minor, patch = (int(part) for part in match.groups())
    return major, minor, patch


def strip_tag_prefix(value: str) -> str:
    return value[len(TAG_PREFIX):] if value.startswith(TAG_PREFIX) else value


class Version(BaseModel):
    """Canonical version identifier derived from repository state.

    ``raw`` is the full, human-oriented identifier (``v1.15.4+3.abc1234``);
    ``short_form`` is the canonical identifier used in storage keys and the
    publish payload (``1.15.4-dev``).
    """

    model_config = ConfigDict(frozen=True)

    raw: str = Field(min_length=1)
    short_form: str = Field(min_length=1)
    commit_hash: str
    branch: str
    is_tagged_release: bool = False
    commits_ahead: int = Field(default=0, ge=0)
    warnings: tuple[str, ...] = ()

    @model_validator(mode="after")
    def _check_invariants(self) -> Version:
        if self.short_form.startswith(TAG_PREFIX):
            raise ValueError(
                f"short_form must not carry the tag prefix: {self.short_form!r}"
            )
        if self.is_tagged_release and self.commits_ahead != 0:
            raise ValueError("a tagged release cannot be ahead of its tag")
        return self

    @property
    def short_commit(self) -> str:
        return self.commit_hash[:SHORT_HASH_LENGTH]

    def with_override(self, value: str) -> Version:
        """Return a copy whose ``raw`` is replaced by an external value.

        A canonical ``v{d}.{d}.{d}`` value yields a canonical short form.
        Anything else is accepted verbatim (minus a leading tag prefix) and
        the downgrade is recorded in ``warnings``.
        """
        warnings = self.warnings
        if not is_release_tag(value):
            warnings = warnings + (
                f"Override version {value!r} doesn't match expected format "
                "v{digit}.{digit}.{digit}",
            )
        return self.model_copy(
            update={
                "raw": value,
                "short_form": strip_tag_prefix(value),
                "warnings": warnings,
            }
        )


class VersionMetadata(BaseModel):
    """Machine-readable output of the version command."""

    model_config = ConfigDict(frozen=True)

    version: Version
    release_notes: str
    build_date: datetime

    def to_wire(self) -> dict[str, object]:
        return {
            "version": self.version.raw,
            "shortVersion": self.version.short_form,
            "buildDate": self.build_date.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "gitCommit": self.version.commit_hash,
            "gitBranch": self.version.branch,
            "releaseNotes": self.release_notes,
            "isTaggedRelease": self.version.is_tagged_release,
            "commitsAhead": self.version.commits_ahead,
        }
