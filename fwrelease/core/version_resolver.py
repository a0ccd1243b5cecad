"""Version resolution from repository tag/commit state.

Precedence (first match wins):

1. A release tag (``v{d}.{d}.{d}``) on HEAD: tagged release.
2. The nearest reachable release tag: ``{tag}+{n}.{short}`` / ``{tag}-dev``
   when HEAD is ``n > 0`` commits ahead of it.
3. No release tag at all: ``{branch}-{short}`` / ``0.0.0-dev``.
4. An external override replaces ``raw`` on top of whichever case applied.

When several release tags tie (same commit, or same distance from HEAD),
the greatest by numeric (major, minor, patch) ordering wins, so repeated
runs on an unchanged repository always pick the same tag.
"""

from __future__ import annotations

import logging

from fwrelease.bridge.vcs import GitRepository
from fwrelease.models.versioning import (
    SHORT_HASH_LENGTH,
    Version,
    is_release_tag,
    release_tag_key,
    strip_tag_prefix,
)

logger = logging.getLogger(__name__)

UNTAGGED_SHORT_FORM = "0.0.0-dev"
DEV_SUFFIX = "-dev"


def pick_release_tag(tags: list[str]) -> str | None:
    """Greatest release tag among ``tags``; non-release tags are ignored."""
    candidates = [tag for tag in tags if is_release_tag(tag)]
    if not candidates:
        return None
    return max(candidates, key=release_tag_key)


def nearest_release_tag(repo: GitRepository, ref: str = "HEAD") -> tuple[str, int] | None:
    """Closest release tag reachable from ``ref`` and its distance in commits.

    Distance is the number of commits reachable from ``ref`` but not from
    the tag, i.e. how far ``ref`` is ahead of it.
    """
    best: tuple[str, int] | None = None
    for tag in repo.merged_tags(ref):
        if not is_release_tag(tag):
            continue
        distance = repo.count_commits(tag, ref)
        if (
            best is None
            or distance < best[1]
            or (distance == best[1] and release_tag_key(tag) > release_tag_key(best[0]))
        ):
            best = (tag, distance)
    return best


class VersionResolver:
    """Derives the canonical ``Version`` for the current checkout.

    Parameters
    ----------
    repo:
        Git bridge for the work tree being released.
    """

    def __init__(self, repo: GitRepository) -> None:
        self._repo = repo

    def resolve(self, override: str | None = None) -> Version:
        """Resolve HEAD to a ``Version``; raises ``RepositoryStateError``."""
        self._repo.ensure_valid()

        commit = self._repo.head_commit()
        branch = self._repo.current_branch()
        logger.info("Current commit: %s", commit)
        logger.info("Current branch: %s", branch)

        version = self._from_tags(commit, branch)

        if override:
            logger.info("Overriding version with %s", override)
            version = version.with_override(override)
            for warning in version.warnings:
                logger.warning(warning)

        logger.info("Version resolved: %s (short %s)", version.raw, version.short_form)
        return version

    def _from_tags(self, commit: str, branch: str) -> Version:
        head_tag = pick_release_tag(self._repo.tags_at("HEAD"))
        if head_tag is not None:
            logger.info("Found tag on current commit: %s", head_tag)
            return self._tagged(head_tag, commit, branch)

        nearest = nearest_release_tag(self._repo)
        if nearest is not None:
            tag, ahead = nearest
            logger.info("Latest tag: %s, commits ahead: %d", tag, ahead)
            if ahead == 0:
                return self._tagged(tag, commit, branch)
            short = commit[:SHORT_HASH_LENGTH]
            return Version(
                raw=f"{tag}+{ahead}.{short}",
                short_form=f"{strip_tag_prefix(tag)}{DEV_SUFFIX}",
                commit_hash=commit,
                branch=branch,
                is_tagged_release=False,
                commits_ahead=ahead,
            )

        logger.info("No suitable tags found, using branch + commit")
        return Version(
            raw=f"{branch}-{commit[:SHORT_HASH_LENGTH]}",
            short_form=UNTAGGED_SHORT_FORM,
            commit_hash=commit,
            branch=branch,
            is_tagged_release=False,
            commits_ahead=0,
        )

    @staticmethod
    def _tagged(tag: str, commit: str, branch: str) -> Version:
        return Version(
            raw=tag,
            short_form=strip_tag_prefix(tag),
            commit_hash=commit,
            branch=branch,
            is_tagged_release=True,
            commits_ahead=0,
        )
