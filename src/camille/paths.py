"""Per-user data directory layout (~/.camille by default)."""

from __future__ import annotations

import os
from pathlib import Path

HOME_ENV_VAR = "CAMILLE_HOME"


def data() -> Path:
    """Root data directory, created on first access.

    ``CAMILLE_HOME`` overrides the default ``~/.camille`` location.
    """
    override = os.environ.get(HOME_ENV_VAR)
    root = Path(override).expanduser() if override else Path.home() / ".camille"
    root.mkdir(parents=True, exist_ok=True)
    return root


def db() -> Path:
    return data() / "camille.db"


def socket() -> Path:
    return data() / "camille.sock"


def pid() -> Path:
    return data() / "camille.pid"


def config() -> Path:
    return data() / "config.yaml"


def env() -> Path:
    return data() / ".env"


def logs() -> Path:
    logs_dir = data() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir


def expand_tilde(path: str) -> str:
    if path == "~":
        return str(Path.home())
    if path.startswith("~/"):
        return str(Path.home()) + path[1:]
    return path
