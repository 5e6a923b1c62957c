"""File search and read tools, confined to the agent home and whitelisted paths."""

from __future__ import annotations

import asyncio
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from camille import paths
from camille.ai.tools.base import Tool, ToolContext
from camille.core.permissions import PathGuard, resolve_path

SKIPPED_NAMES = frozenset({"node_modules"})


class SearchInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(min_length=1, description="Search query (filename pattern or text)")
    max_results: int = Field(
        default=20, gt=0, alias="maxResults", description="Maximum results to return"
    )


class ReadFileInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    path: str = Field(min_length=1, description="Path to the file to read")
    max_lines: Optional[int] = Field(
        default=None, gt=0, alias="maxLines", description="Maximum lines to read"
    )


def query_to_regex(query: str) -> re.Pattern[str]:
    """Translate ``*`` / ``?`` wildcards into a case-insensitive search pattern."""
    pattern = re.escape(query).replace(r"\*", ".*").replace(r"\?", ".")
    return re.compile(pattern, re.IGNORECASE)


def _dedupe_roots(roots: list[Path]) -> list[Path]:
    unique = list(dict.fromkeys(roots))
    return [r for r in unique if not any(r != s and s in r.parents for s in unique)]


def _is_within_any(path: Path, roots: list[Path]) -> bool:
    return any(path == root or root in path.parents for root in roots)


def _walk(
    directory: Path,
    pattern: re.Pattern[str],
    roots: list[Path],
    results: list[dict[str, Any]],
    max_results: int,
    visited: set[Path],
) -> None:
    real = resolve_path(directory)
    if real in visited or not _is_within_any(real, roots):
        return
    visited.add(real)

    try:
        entries = sorted(os.scandir(directory), key=lambda e: e.name)
    except OSError:
        return

    for entry in entries:
        if len(results) >= max_results:
            return
        if entry.name.startswith(".") or entry.name in SKIPPED_NAMES:
            continue
        try:
            stat = entry.stat()
            is_dir = entry.is_dir()
        except OSError:
            continue

        if pattern.search(entry.name):
            match: dict[str, Any] = {
                "path": entry.path,
                "name": entry.name,
                "type": "directory" if is_dir else "file",
                "modified": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
            }
            if not is_dir:
                match["size"] = stat.st_size
            results.append(match)

        if is_dir and len(results) < max_results:
            _walk(Path(entry.path), pattern, roots, results, max_results, visited)


class SearchTool(Tool[SearchInput]):
    """Search file and directory names under every readable root."""

    def __init__(self, guard: PathGuard):
        self._guard = guard

    @property
    def name(self) -> str:
        return "search"

    @property
    def description(self) -> str:
        return (
            "Search for files and directories by name pattern in the agent home "
            "and whitelisted paths only"
        )

    @property
    def input_model(self) -> type[SearchInput]:
        return SearchInput

    async def run(self, params: SearchInput, context: ToolContext) -> Any:
        whitelisted = [root for root, _ in await self._guard.whitelisted()]
        roots = _dedupe_roots(
            [resolve_path(self._guard.agent_home)] + [resolve_path(r) for r in whitelisted]
        )
        pattern = query_to_regex(params.query)

        def _search() -> list[dict[str, Any]]:
            results: list[dict[str, Any]] = []
            visited: set[Path] = set()
            for root in roots:
                if len(results) >= params.max_results:
                    break
                _walk(root, pattern, roots, results, params.max_results, visited)
            return results

        results = await asyncio.to_thread(_search)
        if not results:
            return {
                "message": f'No files matching "{params.query}" found in the agent home or whitelisted paths',
                "results": [],
            }
        return {
            "message": f'Found {len(results)} result(s) matching "{params.query}"',
            "results": results,
        }


class ReadFileTool(Tool[ReadFileInput]):
    def __init__(self, guard: PathGuard):
        self._guard = guard

    @property
    def name(self) -> str:
        return "read"

    @property
    def description(self) -> str:
        return "Read the contents of a file"

    @property
    def input_model(self) -> type[ReadFileInput]:
        return ReadFileInput

    async def run(self, params: ReadFileInput, context: ToolContext) -> Any:
        absolute = Path(paths.expand_tilde(params.path)).resolve()
        await self._guard.assert_read(absolute)

        content = await asyncio.to_thread(absolute.read_text, encoding="utf-8")

        if params.max_lines:
            lines = content.split("\n")
            return {
                "path": str(absolute),
                "content": "\n".join(lines[: params.max_lines]),
                "truncated": len(lines) > params.max_lines,
            }
        return {"path": str(absolute), "content": content}
