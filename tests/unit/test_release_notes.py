"""Unit tests for release notes compilation."""

from __future__ import annotations

import pytest

from fwrelease.bridge.vcs import GitRepository
from fwrelease.core.release_notes import (
    DEFAULT_NOTES,
    ELLIPSIS,
    FALLBACK_WINDOW,
    ReleaseNotesCompiler,
    categorize,
    is_merge_subject,
    render_sections,
    truncate,
)
from fwrelease.core.version_resolver import VersionResolver
from fwrelease.errors import ConfigurationError
from fwrelease.models.notes import NoteCategory

# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


class TestCategorize:
    @pytest.mark.parametrize(
        "subject, expected",
        [
            ("feat: add telemetry", NoteCategory.FEATURES),
            ("feature: gps fallback", NoteCategory.FEATURES),
            ("add: new mixer", NoteCategory.FEATURES),
            ("feat(nav): waypoint smoothing", NoteCategory.FEATURES),
            ("feat!: drop legacy params", NoteCategory.FEATURES),
            ("fix: imu drift", NoteCategory.FIXES),
            ("bug: wrong units", NoteCategory.FIXES),
            ("fix(ekf): reset", NoteCategory.FIXES),
            ("Fix compass calibration", NoteCategory.FIXES),
            ("docs: update readme", NoteCategory.OTHER),
            ("refactor: split module", NoteCategory.OTHER),
            ("prefix: not a fix", NoteCategory.OTHER),
            ("Feat: uppercase is not a marker", NoteCategory.OTHER),
        ],
    )
    def test_rule_table(self, subject, expected):
        assert categorize(subject) == expected

    @pytest.mark.parametrize(
        "subject",
        ["Merge branch 'dev'", "Merge pull request #12", "chore: merge upstream", "MERGE fix"],
    )
    def test_merge_detection(self, subject):
        assert is_merge_subject(subject)

    def test_regular_subject_is_not_merge(self):
        assert not is_merge_subject("fix: landing gear retraction")

    def test_render_format(self):
        text = render_sections(
            [
                (NoteCategory.FEATURES, ("feat: a",)),
                (NoteCategory.FIXES, ("fix: b", "fix: c")),
            ],
            ("Alice", "Bob"),
        )
        assert text == (
            "**New Features:**\n• feat: a\n\n"
            "**Bug Fixes:**\n• fix: b\n• fix: c\n\n"
            "**Contributors:** Alice, Bob"
        )


class TestTruncate:
    def test_short_text_untouched(self):
        assert truncate("hello", 10) == ("hello", False)

    def test_exact_length_untouched(self):
        assert truncate("x" * 10, 10) == ("x" * 10, False)

    def test_marker_counts_toward_cap(self):
        text, truncated = truncate("x" * 50, 20)
        assert truncated is True
        assert len(text) == 20
        assert text.endswith(ELLIPSIS)

    @pytest.mark.parametrize("cap", [1, 2, 3, 4, 999])
    def test_never_exceeds_cap(self, cap):
        text, truncated = truncate("y" * 1000, cap)
        assert len(text) <= cap
        assert truncated is True


# ---------------------------------------------------------------------------
# Compilation against real history
# ---------------------------------------------------------------------------


class _EmptyHistory:
    """Repository double whose log is empty."""

    def log_field(self, fmt, revision_range=None, *, max_count=None):
        return []


def _compile(builder, **kwargs):
    repo = GitRepository(builder.path)
    version = VersionResolver(repo).resolve()
    return ReleaseNotesCompiler(repo).compile(version, **kwargs)


class TestReleaseNotesCompiler:
    def test_development_build_uses_commits_since_tag(self, make_repo):
        repo = make_repo()
        repo.commit("feat: before the tag")
        repo.tag("v1.0.0")
        repo.commit("feat: add geofence", author="Alice")
        repo.commit("fix: baro offset", author="Bob")
        repo.commit("docs: wiring diagram", author="Alice")

        notes = _compile(repo)
        assert notes.lines_for(NoteCategory.FEATURES) == ("feat: add geofence",)
        assert notes.lines_for(NoteCategory.FIXES) == ("fix: baro offset",)
        assert notes.lines_for(NoteCategory.OTHER) == ("docs: wiring diagram",)
        assert notes.contributors == ("Alice", "Bob")
        assert "before the tag" not in notes.text
        assert notes.text == (
            "**New Features:**\n• feat: add geofence\n\n"
            "**Bug Fixes:**\n• fix: baro offset\n\n"
            "**Other Changes:**\n• docs: wiring diagram\n\n"
            "**Contributors:** Alice, Bob"
        )

    def test_tagged_release_uses_previous_tag(self, make_repo):
        repo = make_repo()
        repo.commit("feat: first release")
        repo.tag("v1.0.0")
        repo.commit("feat: second feature", author="Carol")
        repo.commit("Merge branch 'feature/x'", author="Carol")
        repo.commit("Fix arming check", author="Dave")
        repo.tag("v1.1.0")

        notes = _compile(repo)
        assert notes.lines_for(NoteCategory.FEATURES) == ("feat: second feature",)
        assert notes.lines_for(NoteCategory.FIXES) == ("Fix arming check",)
        assert "Merge" not in notes.text
        assert "first release" not in notes.text
        assert notes.contributors == ("Dave", "Carol")

    def test_first_tagged_release_uses_window(self, make_repo):
        repo = make_repo()
        for n in range(FALLBACK_WINDOW + 2):
            repo.commit(f"chore: step {n}")
        repo.tag("v0.1.0")

        notes = _compile(repo)
        assert len(notes.lines_for(NoteCategory.OTHER)) == FALLBACK_WINDOW
        assert "chore: step 0" not in notes.text

    def test_untagged_uses_window(self, make_repo):
        repo = make_repo()
        for n in range(FALLBACK_WINDOW + 5):
            repo.commit(f"feat: thing {n}")

        notes = _compile(repo)
        assert len(notes.lines_for(NoteCategory.FEATURES)) == FALLBACK_WINDOW
        assert notes.lines_for(NoteCategory.FEATURES)[0] == f"feat: thing {FALLBACK_WINDOW + 4}"

    def test_merge_authors_still_credited(self, make_repo):
        repo = make_repo()
        repo.commit("init")
        repo.tag("v1.0.0")
        repo.commit("Merge branch 'a'", author="Erin")
        repo.commit("Merge pull request #2", author="Erin")

        notes = _compile(repo)
        assert notes.sections == ()
        assert notes.text == "**Contributors:** Erin"

    def test_empty_history_gives_default_text(self, tagged_version):
        untagged = tagged_version.model_copy(
            update={"is_tagged_release": False, "short_form": "0.0.0-dev"}
        )
        notes = ReleaseNotesCompiler(_EmptyHistory()).compile(untagged)
        assert notes.text == DEFAULT_NOTES
        assert notes.contributors == ()

    def test_truncation(self, make_repo):
        repo = make_repo()
        for n in range(8):
            repo.commit(f"feat: a fairly long subject line describing change number {n}")

        notes = _compile(repo, max_length=120)
        assert len(notes.text) <= 120
        assert notes.truncated is True
        assert notes.text.endswith(ELLIPSIS)

    def test_not_truncated_flag(self, make_repo):
        repo = make_repo()
        repo.commit("fix: short")

        notes = _compile(repo)
        assert notes.truncated is False

    def test_custom_override(self, make_repo):
        repo = make_repo()
        repo.commit("feat: ignored")

        notes = _compile(repo, custom_override="Critical security update")
        assert notes.text == "Critical security update"
        assert notes.sections == ()
        assert notes.truncated is False

    def test_custom_override_is_still_capped(self, make_repo):
        repo = make_repo()
        repo.commit("feat: ignored")

        notes = _compile(repo, custom_override="z" * 50, max_length=10)
        assert notes.text == "zzzzzzz..."
        assert notes.truncated is True

    def test_non_positive_cap_rejected(self, make_repo):
        repo = make_repo()
        repo.commit("feat: x")

        with pytest.raises(ConfigurationError):
            _compile(repo, max_length=0)
