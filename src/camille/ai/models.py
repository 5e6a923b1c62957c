"""Value types passed between the planner, the orchestrator and the adapters."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Optional


@dataclass
class PlanStep:
    tool: str
    input: dict[str, Any] = field(default_factory=dict)


@dataclass
class Plan:
    reasoning: str
    requires_tools: bool
    steps: list[PlanStep] = field(default_factory=list)


@dataclass
class ToolExecutionResult:
    tool: str
    result: Any = None
    error: Optional[str] = None


@dataclass
class HistoryEntry:
    role: str  # "user" | "assistant"
    content: str

    def as_message(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


class ProcessingStatus(StrEnum):
    PLANNING = "planning"
    EXECUTING_TOOL = "executing_tool"
    SYNTHESIZING = "synthesizing"
    STREAMING = "streaming"
    DONE = "done"


@dataclass(frozen=True)
class OrchestratorStatus:
    type: ProcessingStatus
    tool: Optional[str] = None
    chunk: Optional[str] = None


@dataclass
class ToolCallSummary:
    tool: str
    input: dict[str, Any]
    result: Any = None
    error: Optional[str] = None


@dataclass
class OrchestratorResponse:
    text: str
    tool_calls: Optional[list[ToolCallSummary]] = None
