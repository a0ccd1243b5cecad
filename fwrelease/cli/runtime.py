"""Helpers shared by the CLI commands: error rendering, interrupts, wiring."""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager

import typer
from rich.console import Console

from fwrelease.bridge.vcs import GitRepository
from fwrelease.core.version_resolver import VersionResolver
from fwrelease.errors import ReleaseError, RepositoryStateError
from fwrelease.models.versioning import Version, is_release_tag, strip_tag_prefix

logger = logging.getLogger(__name__)

err_console = Console(stderr=True)

UNKNOWN = "unknown"


def render_error(exc: ReleaseError) -> None:
    """Print a structured error (message, then the suggested fix)."""
    err_console.print(f"[bold red]Error ({exc.code}):[/bold red] {exc.message}")
    if exc.suggestion:
        err_console.print(f"  [dim]{exc.suggestion}[/dim]")


@contextmanager
def interruptible(cancel_event: threading.Event) -> Iterator[None]:
    """Turn the first Ctrl-C into a cooperative cancel; the second aborts.

    In-flight retry loops observe ``cancel_event`` at their next boundary,
    which lets an upload run its compensating delete before exiting.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handler(signum: int, frame: object) -> None:
        if cancel_event.is_set():
            raise KeyboardInterrupt
        err_console.print(
            "[yellow]Interrupt received, stopping at the next retry boundary "
            "(press Ctrl-C again to abort immediately)[/yellow]"
        )
        cancel_event.set()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def version_for_release(value: str, repo: GitRepository) -> Version:
    """Version named on the command line, with provenance from ``repo``.

    Outside a repository the commit and branch fall back to ``unknown``.
    """
    try:
        return VersionResolver(repo).resolve(override=value)
    except RepositoryStateError as exc:
        logger.warning("Git information unavailable (%s), using %r", exc.message, UNKNOWN)
    return Version(
        raw=value,
        short_form=strip_tag_prefix(value),
        commit_hash=UNKNOWN,
        branch=UNKNOWN,
        is_tagged_release=is_release_tag(value),
    )


def check_version_option(value: str) -> str:
    """Typer callback: reject values that leave no short form."""
    if not value or not strip_tag_prefix(value.strip()):
        raise typer.BadParameter(f"invalid version {value!r}")
    return value.strip()
