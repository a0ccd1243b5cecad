"""Main Typer application — registers the release commands.

Entry point: ``fwrelease`` (configured via pyproject.toml ``[project.scripts]``).
"""

from __future__ import annotations

import typer

from fwrelease.cli.commands.publish_cmd import publish_cmd
from fwrelease.cli.commands.upload_cmd import upload_cmd
from fwrelease.cli.commands.version_cmd import version_cmd

app = typer.Typer(
    name="fwrelease",
    help="fwrelease: firmware versioning, upload and publishing pipeline.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

app.command(name="version", help="Generate version metadata from git.")(version_cmd)
app.command(name="upload", help="Upload a firmware binary to the object store.")(upload_cmd)
app.command(name="publish", help="Publish a firmware version to the update API.")(publish_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
