"""``fwrelease publish`` — publish uploaded binaries to the update API.

Each controller type is resolved, built and submitted independently. The
command exits 0 only if every attempted type was published; a partial
success is a failure for the caller.
"""

from __future__ import annotations

import threading
from collections.abc import Callable

import typer
from rich.console import Console
from rich.table import Table

from fwrelease.bridge.credentials import CredentialBroker
from fwrelease.bridge.object_store import S3ObjectStore
from fwrelease.bridge.publish_api import PublishApiClient
from fwrelease.bridge.vcs import GitRepository
from fwrelease.cli.runtime import check_version_option, interruptible, render_error, version_for_release
from fwrelease.config import ReleaseSettings, load_settings
from fwrelease.core.orchestrator import PublishOrchestrator
from fwrelease.core.release_notes import DEFAULT_NOTES, ReleaseNotesCompiler, truncate
from fwrelease.core.retry import publish_policy, upload_policy
from fwrelease.errors import ReleaseError, RepositoryStateError
from fwrelease.models.artifacts import ControllerType
from fwrelease.models.publish import PipelineResult, PipelineStatus
from fwrelease.models.versioning import Version
from fwrelease.utils.logging import configure_logging

console = Console()


def _notes_source(settings: ReleaseSettings, repo: GitRepository) -> Callable[[Version], str]:
    """Release notes for the payloads; falls back to the default text outside git."""
    compiler = ReleaseNotesCompiler(repo)

    def _compile(version: Version) -> str:
        try:
            return compiler.compile(
                version,
                custom_override=settings.custom_release_notes,
                max_length=settings.max_release_notes_length,
            ).text
        except RepositoryStateError:
            fallback = settings.custom_release_notes or DEFAULT_NOTES
            return truncate(fallback, settings.max_release_notes_length)[0]

    return _compile


def _print_result(result: PipelineResult, dry_run: bool) -> None:
    table = Table(title="Publish Results" + (" (dry-run)" if dry_run else ""))
    table.add_column("Type", style="cyan")
    table.add_column("State")
    table.add_column("Storage Key")
    table.add_column("Detail")
    for outcome in result.outcomes:
        state = (
            f"[green]{outcome.state.value}[/green]"
            if outcome.published
            else f"[red]{outcome.state.value}[/red]"
        )
        key = outcome.payload.storage_key if outcome.payload else ""
        detail = outcome.error or (outcome.response.status or "" if outcome.response else "")
        table.add_row(outcome.controller_type.value, state, key, detail)
    console.print(table)

    colour = {
        PipelineStatus.ALL_SUCCEEDED: "green",
        PipelineStatus.PARTIAL_SUCCESS: "yellow",
        PipelineStatus.ALL_FAILED: "red",
    }[result.status]
    console.print(
        f"[bold {colour}]{result.status.value}[/bold {colour}]: "
        f"{result.succeeded}/{result.attempted} binaries published"
    )


def publish_cmd(
    version: str = typer.Option(
        ..., "--version", help="Version to publish (e.g. v1.15.4).", callback=check_version_option
    ),
    controller_types: list[ControllerType] = typer.Option(
        None, "--type", "-t", help="Limit to these controller types (repeatable)."
    ),
    parallel: bool = typer.Option(
        False, "--parallel", help="Publish controller types concurrently."
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Show the API requests without sending them."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Publish a firmware version to the remote update API."""
    configure_logging(verbose or dry_run)
    cancel_event = threading.Event()
    types = controller_types or list(ControllerType)

    try:
        settings = load_settings()
        settings.validate_api()
        repo = GitRepository()
        release = version_for_release(version, repo)

        store = None
        verify_account = None
        if not dry_run:
            context = CredentialBroker(settings).ensure_session()
            store = S3ObjectStore(
                context.session,
                settings.s3_bucket,
                region=settings.aws_region,
                timeout=settings.api_timeout,
            )
            verify_account = context.verify

        policy = publish_policy(settings.max_retries, cancel_event=cancel_event)
        with PublishApiClient(settings, policy=policy) as client, interruptible(cancel_event):
            if not dry_run:
                client.check_connectivity()
            orchestrator = PublishOrchestrator(
                store,
                client,
                settings.s3_key_prefix,
                _notes_source(settings, repo),
                verify_account=verify_account,
                policy=upload_policy(settings.max_retries, cancel_event=cancel_event),
                max_workers=len(types) if parallel else 1,
            )
            result = orchestrator.publish_all(release, types, dry_run=dry_run)
    except ReleaseError as exc:
        render_error(exc)
        raise typer.Exit(code=1)

    _print_result(result, dry_run)
    raise typer.Exit(code=result.exit_code)
