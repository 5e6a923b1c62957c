"""Abstract tool interface for planner-driven tool use."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

InputT = TypeVar("InputT", bound=BaseModel)


@dataclass(frozen=True, slots=True)
class ToolContext:
    """Per-call context handed to every tool."""

    session_id: str
    agent_home: str  # configured LLM provider name


class ToolInputError(ValueError):
    """Raised when a tool receives input that does not match its schema."""


class Tool(ABC, Generic[InputT]):
    """Base class for all planner-callable tools.

    Subclasses declare a pydantic ``input_model``; ``execute`` validates the
    raw planner input against it before calling ``run``.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique tool name used as registry key and LLM-facing identifier."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description shown to the planner."""
        ...

    @property
    @abstractmethod
    def input_model(self) -> type[InputT]:
        ...

    @property
    def parameters(self) -> dict[str, Any]:
        """JSON Schema dict describing accepted parameters."""
        return self.input_model.model_json_schema()

    def parse_input(self, raw: Any) -> InputT:
        try:
            return self.input_model.model_validate(raw if raw is not None else {})
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}"
                for err in e.errors()
            )
            raise ToolInputError(f"Invalid input for {self.name}: {problems}") from e

    async def execute(self, raw_input: Any, context: ToolContext) -> Any:
        """Validate *raw_input* and run the tool. May raise."""
        return await self.run(self.parse_input(raw_input), context)

    @abstractmethod
    async def run(self, params: InputT, context: ToolContext) -> Any:
        ...

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }
