"""Release notes compiled from commit history.

Commit subjects in the range implied by the resolved version are filtered
(merge commits dropped), classified by an ordered rule table, and rendered
as Markdown-ish sections followed by a contributor line. The rendered text
is hard-capped at ``max_length`` characters, ellipsis included.
"""

from __future__ import annotations

import logging
import re

from fwrelease.bridge.vcs import GitRepository
from fwrelease.core.version_resolver import nearest_release_tag
from fwrelease.errors import ConfigurationError
from fwrelease.models.notes import SECTION_TITLES, NoteCategory, ReleaseNotes
from fwrelease.models.versioning import Version

logger = logging.getLogger(__name__)

DEFAULT_MAX_LENGTH = 1000
FALLBACK_WINDOW = 10
DEFAULT_NOTES = "Updates and improvements"
ELLIPSIS = "..."
BULLET = "•"

MERGE_MARKERS: tuple[str, ...] = ("merge",)

# First matching rule wins; unmatched subjects fall through to Other.
CATEGORY_RULES: tuple[tuple[re.Pattern[str], NoteCategory], ...] = (
    (re.compile(r"^(feat|feature|add)(\([^)]*\))?!?:"), NoteCategory.FEATURES),
    (re.compile(r"^(fix|bug)(\([^)]*\))?!?:"), NoteCategory.FIXES),
    (re.compile(r"^Fix\b"), NoteCategory.FIXES),
)


def categorize(subject: str) -> NoteCategory:
    text = subject.strip()
    for pattern, category in CATEGORY_RULES:
        if pattern.match(text):
            return category
    return NoteCategory.OTHER


def is_merge_subject(subject: str) -> bool:
    lowered = subject.lower()
    return any(marker in lowered for marker in MERGE_MARKERS)


def truncate(text: str, max_length: int) -> tuple[str, bool]:
    """Cap ``text`` at ``max_length`` characters, marker included."""
    if len(text) <= max_length:
        return text, False
    if max_length <= len(ELLIPSIS):
        return text[:max_length], True
    return text[: max_length - len(ELLIPSIS)] + ELLIPSIS, True


def render_sections(
    sections: list[tuple[NoteCategory, tuple[str, ...]]],
    contributors: tuple[str, ...],
) -> str:
    blocks: list[str] = []
    for category, lines in sections:
        bullets = "\n".join(f"{BULLET} {line}" for line in lines)
        blocks.append(f"**{SECTION_TITLES[category]}:**\n{bullets}")
    if contributors:
        blocks.append(f"**Contributors:** {', '.join(contributors)}")
    return "\n\n".join(blocks)


class ReleaseNotesCompiler:
    """Builds ``ReleaseNotes`` for a resolved version.

    Parameters
    ----------
    repo:
        Git bridge used to read commit subjects and authors.
    """

    def __init__(self, repo: GitRepository) -> None:
        self._repo = repo

    def commit_range(self, version: Version) -> str | None:
        """Revision range for the notes, or None for the fixed-depth window."""
        if version.is_tagged_release:
            if self._repo.has_parent("HEAD"):
                previous = nearest_release_tag(self._repo, "HEAD^")
                if previous is not None:
                    logger.info("Using commit range for tagged release: %s..HEAD", previous[0])
                    return f"{previous[0]}..HEAD"
        elif version.commits_ahead > 0:
            latest = nearest_release_tag(self._repo, "HEAD")
            if latest is not None:
                logger.info("Using commit range for development build: %s..HEAD", latest[0])
                return f"{latest[0]}..HEAD"
        logger.info("Using the last %d commits for release notes", FALLBACK_WINDOW)
        return None

    def compile(
        self,
        version: Version,
        custom_override: str | None = None,
        max_length: int = DEFAULT_MAX_LENGTH,
    ) -> ReleaseNotes:
        if max_length <= 0:
            raise ConfigurationError(
                f"MAX_RELEASE_NOTES_LENGTH must be positive, got {max_length}"
            )

        if custom_override:
            logger.info("Using custom release notes")
            text, truncated = truncate(custom_override, max_length)
            if truncated:
                logger.warning("Release notes truncated to %d characters", max_length)
            return ReleaseNotes(text=text, truncated=truncated)

        revision_range = self.commit_range(version)
        max_count = None if revision_range else FALLBACK_WINDOW
        subjects = self._repo.log_field("%s", revision_range, max_count=max_count)
        authors = self._repo.log_field("%aN", revision_range, max_count=max_count)

        grouped: dict[NoteCategory, list[str]] = {category: [] for category in NoteCategory}
        for subject in subjects:
            if is_merge_subject(subject):
                continue
            grouped[categorize(subject)].append(subject)

        sections = [
            (category, tuple(lines)) for category, lines in grouped.items() if lines
        ]
        contributors = tuple(dict.fromkeys(author.strip() for author in authors if author.strip()))

        body = render_sections(sections, contributors) or DEFAULT_NOTES
        text, truncated = truncate(body, max_length)
        if truncated:
            logger.warning("Release notes truncated to %d characters", max_length)
        logger.info("Release notes generated (%d characters)", len(text))

        return ReleaseNotes(
            sections=tuple(sections),
            contributors=contributors,
            truncated=truncated,
            text=text,
        )
