"""``fwrelease version`` — resolve the build version and its release notes.

Honours ``OVERRIDE_VERSION``, ``CUSTOM_RELEASE_NOTES`` and
``MAX_RELEASE_NOTES_LENGTH``. With ``--output-json`` the metadata is printed
as a single JSON object on stdout for pipeline consumption.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

import typer
from rich.console import Console
from rich.panel import Panel

from fwrelease.bridge.vcs import GitRepository
from fwrelease.cli.runtime import render_error
from fwrelease.config import load_settings
from fwrelease.core.release_notes import ReleaseNotesCompiler
from fwrelease.core.version_resolver import VersionResolver
from fwrelease.errors import ReleaseError
from fwrelease.models.versioning import VersionMetadata
from fwrelease.utils.logging import configure_logging, step_timer

console = Console()


def version_cmd(
    output_json: bool = typer.Option(
        False, "--output-json", help="Output structured JSON instead of a summary."
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Show what would be generated (implies --verbose)."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Generate version metadata from git tags and commit history."""
    configure_logging(verbose or dry_run)

    try:
        settings = load_settings()
        repo = GitRepository()
        with step_timer("resolve version"):
            version = VersionResolver(repo).resolve(override=settings.override_version)
        with step_timer("compile release notes"):
            notes = ReleaseNotesCompiler(repo).compile(
                version,
                custom_override=settings.custom_release_notes,
                max_length=settings.max_release_notes_length,
            )
    except ReleaseError as exc:
        render_error(exc)
        raise typer.Exit(code=1)

    metadata = VersionMetadata(
        version=version,
        release_notes=notes.text,
        build_date=datetime.now(timezone.utc),
    )
    wire = metadata.to_wire()

    if output_json:
        typer.echo(json.dumps(wire, indent=2, ensure_ascii=False))
        return

    kind = (
        "tagged release"
        if version.is_tagged_release
        else f"{version.commits_ahead} commits ahead"
        if version.commits_ahead
        else "untagged build"
    )
    console.print(
        Panel(
            "\n".join([
                f"[bold]Version:[/bold]       {wire['version']}",
                f"[bold]Short Version:[/bold] {wire['shortVersion']}",
                f"[bold]Build Date:[/bold]    {wire['buildDate']}",
                f"[bold]Git Commit:[/bold]    {wire['gitCommit']}",
                f"[bold]Git Branch:[/bold]    {wire['gitBranch']}",
                f"[bold]Kind:[/bold]          {kind}",
                "",
                "[bold]Release Notes:[/bold]",
                notes.text,
            ]),
            title="[bold]Version Metadata[/bold]" + (" [yellow](dry-run)[/yellow]" if dry_run else ""),
            border_style="cyan",
            padding=(1, 2),
        )
    )
