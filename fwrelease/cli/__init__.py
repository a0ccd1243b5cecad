"""fwrelease CLI: Typer-based command-line interface.

Provides the ``fwrelease`` command with ``version``, ``upload`` and
``publish`` subcommands. Logs go to stderr; command output goes to stdout.
"""
