"""Helpers for running external tools and capturing their output."""

from __future__ import annotations

import logging
import subprocess
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class CommandError(Exception):
    """An external command could not be launched or exited unsuccessfully."""

    def __init__(self, args: Sequence[str], reason: str) -> None:
        self.command = list(args)
        self.reason = reason
        super().__init__(f"{self.command[0]}: {reason}")


def run_command(args: Sequence[str], timeout: float = DEFAULT_TIMEOUT) -> str:
    """Run a command and return its stdout.

    Output is read to the end before the process is reaped, so large
    outputs cannot fill the pipe and deadlock the child.
    """
    try:
        proc = subprocess.run(
            list(args),
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as exc:
        raise CommandError(args, "not found") from exc
    except subprocess.TimeoutExpired as exc:
        raise CommandError(args, f"timed out after {timeout:g}s") from exc
    except OSError as exc:
        raise CommandError(args, str(exc)) from exc
    if proc.returncode != 0:
        stderr = proc.stderr.strip()
        reason = f"exited with status {proc.returncode}"
        if stderr:
            reason = f"{reason}: {stderr.splitlines()[-1]}"
        raise CommandError(args, reason)
    return proc.stdout


def run_quietly(args: Sequence[str], timeout: float = DEFAULT_TIMEOUT) -> bool:
    """Run a fire-and-forget command, logging failures instead of raising."""
    try:
        run_command(args, timeout=timeout)
    except CommandError as exc:
        logger.debug("Ignoring failed command: %s", exc)
        return False
    return True
