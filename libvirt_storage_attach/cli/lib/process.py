"""
Helpers for running external commands and staging descriptor files.
"""

import logging
import os
import subprocess
import tempfile
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, TypeVar

from libvirt_storage_attach.exceptions import OperationTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRAILING_WHITESPACE = "\n\t\r "


@dataclass
class CommandResult:
    args: List[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def run_command(args: List[str], timeout: Optional[float] = None) -> CommandResult:
    """
    Run a command and capture its output.

    Trailing whitespace is stripped from stdout and stderr. A non-zero exit
    status is not an error here; callers inspect `CommandResult.ok`.

    Args:
        args: Command and arguments
        timeout: Seconds before the process is killed (None = no limit)

    Raises:
        OperationTimeout: If the command runs past `timeout`
    """
    logger.info("processing output command=%s", args)
    try:
        result = subprocess.run(
            args,
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        stdout = _decode(e.stdout)
        stderr = _decode(e.stderr)
        raise OperationTimeout(
            f"{args[0]} timed out after {timeout}s",
            command=args,
            stdout=stdout,
            stderr=stderr,
        )

    return CommandResult(
        args=args,
        returncode=result.returncode,
        stdout=(result.stdout or "").rstrip(_TRAILING_WHITESPACE),
        stderr=(result.stderr or "").rstrip(_TRAILING_WHITESPACE),
    )


def _decode(output) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        output = output.decode("utf-8", errors="replace")
    return output.rstrip(_TRAILING_WHITESPACE)


class Deadline:
    """Overall time budget shared by several steps of one operation."""

    def __init__(self, seconds: float, action: str):
        self.seconds = seconds
        self.action = action
        self._expires = time.monotonic() + seconds

    def remaining(self) -> float:
        return max(0.0, self._expires - time.monotonic())

    def check(self) -> None:
        if time.monotonic() >= self._expires:
            raise OperationTimeout(f"{self.action} timed out after {self.seconds}s")


def call_with_deadline(func: Callable[[], T], deadline: Deadline) -> T:
    """
    Run `func` in a daemon thread and wait for it until `deadline` expires.

    libvirt calls can't be interrupted, so a call that hangs is abandoned
    instead of cancelled. The daemon thread doesn't keep the process alive
    once the CLI exits.

    Raises:
        OperationTimeout: If `func` is still running when time is up
        Exception: Whatever `func` raised
    """
    outcome: Dict[str, Any] = {}

    def _runner() -> None:
        try:
            outcome["value"] = func()
        except BaseException as e:
            outcome["error"] = e

    thread = threading.Thread(target=_runner, name=deadline.action, daemon=True)
    thread.start()
    thread.join(timeout=deadline.remaining())
    if thread.is_alive():
        logger.error("%s still running after %ss, abandoning it", deadline.action, deadline.seconds)
        raise OperationTimeout(f"{deadline.action} timed out after {deadline.seconds}s")
    if "error" in outcome:
        raise outcome["error"]
    return outcome["value"]


def write_temp_file(prefix: str, contents: str) -> str:
    """Write `contents` to a new temp file named `<prefix>-*` and return its path."""
    fd, path = tempfile.mkstemp(prefix=f"{prefix}-", suffix=".xml")
    with os.fdopen(fd, "w", encoding="utf-8") as file:
        file.write(contents)
    return path


def remove_file(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
