"""PID-file bookkeeping and detached daemon spawning."""

from __future__ import annotations

import os
import signal
import subprocess
import sys
from pathlib import Path
from typing import Optional

from camille import paths


def read_pid(pid_file: Path | None = None) -> Optional[int]:
    pid_file = pid_file or paths.pid()
    try:
        return int(pid_file.read_text(encoding="utf-8").strip())
    except (FileNotFoundError, ValueError):
        return None


def process_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def is_running(pid_file: Path | None = None) -> bool:
    """True if the PID file names a live process; a stale file is removed."""
    pid = read_pid(pid_file)
    if pid is None:
        return False
    if process_alive(pid):
        return True
    remove_pid(pid_file)
    return False


def write_pid(pid: int | None = None, pid_file: Path | None = None) -> None:
    pid_file = pid_file or paths.pid()
    pid_file.write_text(str(pid if pid is not None else os.getpid()), encoding="utf-8")


def remove_pid(pid_file: Path | None = None) -> None:
    pid_file = pid_file or paths.pid()
    try:
        pid_file.unlink()
    except FileNotFoundError:
        pass


def spawn_detached() -> int:
    """Start ``camille start --foreground`` in a new session, logging to file."""
    log_path = paths.logs() / "camille.log"
    with open(log_path, "a", encoding="utf-8") as log:
        process = subprocess.Popen(
            [sys.executable, "-m", "camille", "start", "--foreground", "--log-file", str(log_path)],
            stdin=subprocess.DEVNULL,
            stdout=log,
            stderr=log,
            start_new_session=True,
        )
    return process.pid


def terminate(pid: int) -> None:
    os.kill(pid, signal.SIGTERM)
