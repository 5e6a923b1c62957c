"""Filesystem access policy for tools.

Reads are allowed inside the agent home and any whitelisted directory;
writes only inside the agent home.
"""

from __future__ import annotations

import os
from pathlib import Path

from camille.core.types import PathPermissions
from camille.log import get_logger
from camille.storage.allowed_path_repo import AllowedPathRepository

logger = get_logger(__name__)


class PathPermissionError(PermissionError):
    def __init__(self, message: str, path: str, operation: str):
        super().__init__(message)
        self.path = path
        self.operation = operation


def resolve_path(input_path: str | Path) -> Path:
    """Resolve symlinks, even when the tail of the path does not exist yet."""
    normalized = Path(os.path.normpath(os.path.abspath(input_path)))
    if normalized.exists():
        return normalized.resolve()

    for parent in normalized.parents:
        if parent.exists():
            return parent.resolve() / normalized.relative_to(parent)
    return normalized


def _is_within(path: Path, root: Path) -> bool:
    return path == root or root in path.parents


class PathGuard:
    def __init__(self, agent_home: str | Path, allowed_paths: AllowedPathRepository):
        self._agent_home = Path(agent_home)
        self._allowed_paths = allowed_paths

    @property
    def agent_home(self) -> Path:
        return self._agent_home

    def is_inside_agent_home(self, path: str | Path) -> bool:
        return _is_within(resolve_path(path), resolve_path(self._agent_home))

    async def whitelisted(self) -> list[tuple[Path, PathPermissions]]:
        return [(Path(p.path), p.permissions) for p in await self._allowed_paths.find_all()]

    async def can_read(self, path: str | Path) -> bool:
        if self.is_inside_agent_home(path):
            return True
        resolved = resolve_path(path)
        for root, _ in await self.whitelisted():
            if _is_within(resolved, resolve_path(root)):
                return True
        return False

    def can_write(self, path: str | Path) -> bool:
        return self.is_inside_agent_home(path)

    async def assert_read(self, path: str | Path) -> None:
        if not await self.can_read(path):
            resolved = str(resolve_path(path))
            logger.warning("read_permission_denied", path=resolved)
            raise PathPermissionError(
                f"Read access denied: {resolved} is not in {self._agent_home} or whitelisted paths",
                resolved,
                "read",
            )

    def assert_write(self, path: str | Path) -> None:
        if not self.can_write(path):
            resolved = str(resolve_path(path))
            logger.warning("write_permission_denied", path=resolved)
            raise PathPermissionError(
                f"Write access denied: {resolved} is outside {self._agent_home}",
                resolved,
                "write",
            )
