"""Planner and synthesizer agents, each wrapping a single LLM call."""

from __future__ import annotations

import json
from typing import Any, Awaitable, Callable, Literal, Optional, Union

from pydantic import BaseModel, Field

from camille.ai.client import AIClient, build_ai_client
from camille.ai.models import HistoryEntry, Plan, PlanStep, ToolExecutionResult
from camille.config import AppConfig, LLMConfig
from camille.log import get_logger

logger = get_logger(__name__)

AgentType = Literal["planner", "synthesizer"]
ClientFactory = Callable[[LLMConfig, Optional[str]], AIClient]
ChunkCallback = Callable[[str], Union[None, Awaitable[None]]]

DEFAULT_PLANNER_SYSTEM_PROMPT = """You are a planning agent. Your job is to analyze the user's request and determine if any tools need to be called to fulfill it.

If the request can be answered directly from your knowledge, set requiresTools to false and leave steps empty.

If tools are needed, create a plan with the specific tools to call and their inputs. Be precise with tool inputs.

Available tools will be provided in the conversation. Only use tools that are available.

Keep your reasoning concise but clear."""

DEFAULT_SYNTHESIZER_SYSTEM_PROMPT = """You are a helpful assistant. Your job is to answer the user's question using the provided tool results.

If tool results are provided, use them to formulate your response. Be concise and helpful.

If no tool results are provided, answer directly from your knowledge.

Do not mention the internal workings of tools or the planning process to the user."""

AGENT_DEFAULTS: dict[str, dict[str, Any]] = {
    "planner": {"system_prompt": DEFAULT_PLANNER_SYSTEM_PROMPT, "temperature": 0.2},
    "synthesizer": {"system_prompt": DEFAULT_SYNTHESIZER_SYSTEM_PROMPT, "temperature": 0.7},
}


class PlanStepSchema(BaseModel):
    tool: str = Field(description="Name of the tool to call")
    input: str = Field(
        description="Input parameters for the tool as a JSON string (e.g., '{\"query\":\"test\"}')"
    )


class PlanSchema(BaseModel):
    """Structured output requested from the planning model."""

    reasoning: str = Field(description="Brief explanation of your planning decision")
    requiresTools: bool = Field(description="Whether tools are needed to answer this request")
    steps: list[PlanStepSchema] = Field(description="List of tool calls to make, in order")


def _default_client_factory(config: LLMConfig, model: Optional[str]) -> AIClient:
    return build_ai_client(config, model)


class Agent:
    """Resolves prompt, temperature and model for one agent type."""

    name: AgentType

    def __init__(
        self,
        config: AppConfig,
        client_factory: ClientFactory = _default_client_factory,
    ):
        defaults = AGENT_DEFAULTS[self.name]
        overrides = getattr(config.agents, self.name, None) if config.agents else None
        model_override = overrides.model if overrides else None

        self.system_prompt: str = (
            overrides.system_prompt if overrides and overrides.system_prompt else defaults["system_prompt"]
        )
        self.temperature: float = (
            model_override.temperature
            if model_override and model_override.temperature is not None
            else defaults["temperature"]
        )
        self.client = client_factory(config.llm, model_override.model if model_override else None)

    @staticmethod
    def history_messages(history: Optional[list[HistoryEntry]]) -> list[dict[str, Any]]:
        return [entry.as_message() for entry in history or []]


def parse_step_input(tool: str, raw: str) -> dict[str, Any]:
    """Decode a planner-produced JSON string, falling back to ``{}``."""
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.warning("tool_input_parse_failed", tool=tool, input=raw, error=str(e))
        return {}
    if not isinstance(parsed, dict):
        logger.warning("tool_input_not_an_object", tool=tool, input=raw)
        return {}
    return parsed


def render_tool_catalog(tools: list[dict[str, Any]]) -> str:
    return "\n".join(
        f"- {t['name']}: {t['description']}\n  Parameters: {json.dumps(t['parameters'])}"
        for t in tools
    )


class PlannerAgent(Agent):
    name = "planner"

    async def run(
        self,
        message: str,
        tools: list[dict[str, Any]],
        history: Optional[list[HistoryEntry]] = None,
    ) -> Plan:
        messages = self.history_messages(history) + [
            {
                "role": "user",
                "content": f"Available tools:\n{render_tool_catalog(tools)}\n\nUser request: {message}",
            }
        ]
        obj = await self.client.generate_object(
            self.system_prompt, messages, PlanSchema, self.temperature
        )
        plan = Plan(
            reasoning=obj.reasoning,
            requires_tools=obj.requiresTools,
            steps=[PlanStep(tool=s.tool, input=parse_step_input(s.tool, s.input)) for s in obj.steps],
        )
        logger.debug(
            "plan_created",
            requires_tools=plan.requires_tools,
            steps=[s.tool for s in plan.steps],
        )
        return plan


def render_tool_results(results: list[ToolExecutionResult]) -> str:
    if not results:
        return ""
    lines = [
        f"- {r.tool}: ERROR - {r.error}" if r.error else f"- {r.tool}: {json.dumps(r.result, default=str)}"
        for r in results
    ]
    return "Tool results:\n" + "\n".join(lines) + "\n\n"


class SynthesizerAgent(Agent):
    name = "synthesizer"

    def build_messages(
        self,
        message: str,
        tool_results: list[ToolExecutionResult],
        history: Optional[list[HistoryEntry]] = None,
    ) -> list[dict[str, Any]]:
        return self.history_messages(history) + [
            {"role": "user", "content": f"{render_tool_results(tool_results)}User request: {message}"}
        ]

    async def stream(
        self,
        message: str,
        tool_results: list[ToolExecutionResult],
        history: Optional[list[HistoryEntry]] = None,
    ):
        """Yield answer fragments as the model produces them."""
        messages = self.build_messages(message, tool_results, history)
        async for chunk in self.client.stream_text(self.system_prompt, messages, self.temperature):
            yield chunk

    async def run(
        self,
        message: str,
        tool_results: list[ToolExecutionResult],
        history: Optional[list[HistoryEntry]] = None,
        on_chunk: Optional[ChunkCallback] = None,
    ) -> str:
        """Stream the answer through *on_chunk* and return the full text."""
        parts: list[str] = []
        async for chunk in self.stream(message, tool_results, history):
            parts.append(chunk)
            if on_chunk is not None:
                outcome = on_chunk(chunk)
                if outcome is not None:
                    await outcome
        return "".join(parts)
