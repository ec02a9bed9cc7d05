"""GitHub Actions runner plumbing: log commands, step outputs, saved state.

The runner reads workflow commands from stdout (``::warning::...``) and
file commands from the files named by ``GITHUB_OUTPUT`` / ``GITHUB_STATE``.
State saved during the main phase is handed to the post phase as
``STATE_<name>`` environment variables.
"""

from __future__ import annotations

import logging
import os
import sys
import uuid
from collections.abc import Mapping
from typing import IO

logger = logging.getLogger(__name__)

_LEVEL_COMMANDS = {
    logging.DEBUG: "debug",
    logging.WARNING: "warning",
    logging.ERROR: "error",
    logging.CRITICAL: "error",
}


def escape_data(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


class ActionsLogHandler(logging.Handler):
    """Render log records as workflow commands.

    INFO records are printed as plain lines; DEBUG, WARNING and ERROR become
    ``::debug::``, ``::warning::`` and ``::error::`` commands.
    """

    def __init__(self, stream: IO[str] | None = None) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            command = _LEVEL_COMMANDS.get(record.levelno)
            line = f"::{command}::{escape_data(message)}" if command else message
            stream = self.stream or sys.stdout
            stream.write(line + "\n")
            stream.flush()
        except Exception:
            self.handleError(record)


def configure_logging(
    debug: bool | None = None,
    environ: Mapping[str, str] | None = None,
    stream: IO[str] | None = None,
) -> ActionsLogHandler:
    """Install an ``ActionsLogHandler`` on the root logger.

    Debug output is enabled when ``RUNNER_DEBUG=1`` unless ``debug`` is given.
    """
    env = os.environ if environ is None else environ
    if debug is None:
        debug = env.get("RUNNER_DEBUG") == "1"

    root = logging.getLogger()
    for existing in list(root.handlers):
        if isinstance(existing, ActionsLogHandler):
            root.removeHandler(existing)

    handler = ActionsLogHandler(stream)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return handler


def _append_file_command(path: str, key: str, value: str) -> None:
    delimiter = f"ghadelimiter_{uuid.uuid4()}"
    if delimiter in key or delimiter in value:
        raise ValueError(f"Unexpected input: {key!r} contains the command delimiter")
    with open(path, "a", encoding="utf-8") as fh:
        fh.write(f"{key}<<{delimiter}\n{value}\n{delimiter}\n")


def set_output(name: str, value: str, environ: Mapping[str, str] | None = None) -> None:
    """Record a step output in the ``GITHUB_OUTPUT`` file."""
    env = os.environ if environ is None else environ
    path = env.get("GITHUB_OUTPUT")
    if not path:
        logger.info("Output %s=%s (GITHUB_OUTPUT is not set)", name, value)
        return
    _append_file_command(path, name, value)


def set_failed(message: str) -> int:
    """Report the step as failed; returns the process exit code to use."""
    logger.error(message)
    return 1


class ActionsStateStore:
    """Key/value state that survives from the main phase to the post phase."""

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = os.environ if environ is None else environ

    def save_state(self, key: str, value: str) -> None:
        path = self._environ.get("GITHUB_STATE")
        if not path:
            logger.debug("GITHUB_STATE is not set, state %s not persisted", key)
            return
        _append_file_command(path, key, value)

    def get_state(self, key: str) -> str:
        return self._environ.get(f"STATE_{key}", "")
