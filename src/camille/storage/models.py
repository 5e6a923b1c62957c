"""Data models for storage layer.

All timestamps are integer epoch milliseconds.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional

from camille.core.types import ClientType, MessageRole, PathPermissions


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class Session:
    id: str
    client_type: ClientType
    client_id: Optional[str] = None
    created_at: int = field(default_factory=now_ms)
    last_active_at: int = field(default_factory=now_ms)


@dataclass
class Message:
    session_id: str
    role: MessageRole
    content: str
    created_at: int = field(default_factory=now_ms)
    id: Optional[int] = None


@dataclass
class ToolCallRecord:
    session_id: str
    tool_name: str
    input: str
    output: Optional[str] = None
    error: Optional[str] = None
    duration_ms: Optional[int] = None
    created_at: int = field(default_factory=now_ms)
    id: Optional[int] = None


@dataclass
class TelegramUser:
    telegram_id: int
    username: Optional[str] = None
    paired_at: int = field(default_factory=now_ms)
    id: Optional[int] = None


@dataclass
class AllowedPath:
    path: str
    permissions: PathPermissions = PathPermissions.READ
    added_at: int = field(default_factory=now_ms)
    added_by: str = "cli"
    id: Optional[int] = None
