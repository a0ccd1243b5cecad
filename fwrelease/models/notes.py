"""Release notes model."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class NoteCategory(str, Enum):
    """Closed set of commit categories, in rendering order."""

    FEATURES = "Features"
    FIXES = "Fixes"
    OTHER = "Other"


SECTION_TITLES: dict[NoteCategory, str] = {
    NoteCategory.FEATURES: "New Features",
    NoteCategory.FIXES: "Bug Fixes",
    NoteCategory.OTHER: "Other Changes",
}


class ReleaseNotes(BaseModel):
    """Categorized, length-bounded release notes.

    ``text`` is the serialized form sent in payloads; it never exceeds the
    configured cap and ``truncated`` records whether the cap was hit.
    """

    model_config = ConfigDict(frozen=True)

    sections: tuple[tuple[NoteCategory, tuple[str, ...]], ...] = ()
    contributors: tuple[str, ...] = ()
    truncated: bool = False
    text: str

    def lines_for(self, category: NoteCategory) -> tuple[str, ...]:
        for section_category, lines in self.sections:
            if section_category == category:
                return lines
        return ()
