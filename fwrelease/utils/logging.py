"""Pipeline logging setup and step timer."""

from __future__ import annotations

import logging
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(message)s"
LOG_DATEFMT = "%H:%M:%S"

logger = logging.getLogger("fwrelease")


def configure_logging(verbose: bool = False) -> None:
    """Route ``fwrelease`` logs to stderr.

    Stdout is reserved for command output (JSON metadata, summaries), so
    logs never interleave with what a calling job parses. Without
    ``verbose`` only warnings and errors are shown.
    """
    root = logging.getLogger("fwrelease")
    for handler in list(root.handlers):
        if getattr(handler, "_fwrelease", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    handler._fwrelease = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
    root.propagate = False


@contextmanager
def step_timer(step_name: str) -> Iterator[None]:
    """Log the start and duration of a pipeline step."""
    logger.info("%s — started", step_name)
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info("%s — finished in %.0f ms", step_name, elapsed_ms)
