"""``fwrelease upload`` — upload one firmware binary to the object store.

The object is written under ``{prefix}/{shortVersion}/{artifactName}`` with
its SHA-256 and provenance in the object metadata, then read back and
verified. An existing object is never replaced without ``--force-overwrite``.
"""

from __future__ import annotations

import threading
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from fwrelease.bridge.credentials import CredentialBroker
from fwrelease.bridge.object_store import S3ObjectStore
from fwrelease.bridge.vcs import GitRepository
from fwrelease.cli.runtime import check_version_option, interruptible, render_error, version_for_release
from fwrelease.config import load_settings
from fwrelease.core.retry import upload_policy
from fwrelease.core.uploader import ArtifactUploader, format_bytes
from fwrelease.errors import ReleaseError
from fwrelease.models.artifacts import ControllerType
from fwrelease.utils.logging import configure_logging

console = Console()


def upload_cmd(
    file: Path = typer.Option(..., "--file", "-f", help="Firmware binary to upload."),
    controller_type: ControllerType = typer.Option(
        ..., "--type", "-t", help="Flight controller type."
    ),
    version: str = typer.Option(
        ..., "--version", help="Version string (e.g. v1.15.4).", callback=check_version_option
    ),
    force_overwrite: bool = typer.Option(
        False, "--force-overwrite", help="Replace an existing object at the same key."
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Validate and show the destination without uploading."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Upload a flight controller binary with checksum verification."""
    configure_logging(verbose or dry_run)
    cancel_event = threading.Event()

    try:
        settings = load_settings()
        release = version_for_release(version, GitRepository())
        policy = upload_policy(settings.max_retries, cancel_event=cancel_event)

        if dry_run:
            uploader = ArtifactUploader(
                None, settings.s3_key_prefix, policy=policy, bucket=settings.s3_bucket
            )
        else:
            context = CredentialBroker(settings).ensure_session()
            store = S3ObjectStore(
                context.session,
                settings.s3_bucket,
                region=settings.aws_region,
                timeout=settings.upload_timeout,
            )
            uploader = ArtifactUploader(
                store,
                settings.s3_key_prefix,
                policy=policy,
                verify_account=context.verify,
            )

        with interruptible(cancel_event):
            descriptor = uploader.upload(
                file, controller_type, release, force_overwrite, dry_run=dry_run
            )
    except ReleaseError as exc:
        render_error(exc)
        raise typer.Exit(code=1)

    console.print(
        Panel(
            "\n".join([
                "[bold yellow]Dry run: nothing was uploaded[/bold yellow]"
                if dry_run
                else "[bold green]Upload verified![/bold green]",
                "",
                f"[bold]Type:[/bold]     {controller_type.value}",
                f"[bold]Version:[/bold]  {release.short_form}",
                f"[bold]Location:[/bold] s3://{uploader.bucket}/{descriptor.storage_key}",
                f"[bold]Size:[/bold]     {format_bytes(descriptor.size_bytes)}",
                f"[bold]SHA256:[/bold]   {descriptor.checksum}",
            ]),
            title="[bold]Firmware Upload[/bold]",
            border_style="yellow" if dry_run else "green",
            padding=(1, 2),
        )
    )
