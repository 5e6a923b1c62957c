"""Shared types and enumerations."""

from __future__ import annotations

from enum import StrEnum


class ClientType(StrEnum):
    CLI = "cli"
    TELEGRAM = "telegram"
    IPC = "ipc"


class MessageRole(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


class PathPermissions(StrEnum):
    READ = "read"
    READ_WRITE = "read,write"
