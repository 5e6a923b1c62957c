from __future__ import annotations

import pytest

from camille.ai.agents import (
    DEFAULT_PLANNER_SYSTEM_PROMPT,
    DEFAULT_SYNTHESIZER_SYSTEM_PROMPT,
    PlannerAgent,
    PlanSchema,
    SynthesizerAgent,
)
from camille.ai.models import HistoryEntry, ToolExecutionResult
from camille.config import (
    AgentModelOverride,
    AgentOverride,
    AgentsConfig,
    AppConfig,
    LLMConfig,
)
from conftest import FakeAIClient

TOOLS = [
    {
        "name": "search",
        "description": "Search files",
        "parameters": {"type": "object", "properties": {"query": {"type": "string"}}},
    }
]


def make_agent(agent_cls, client, config=None):
    config = config or AppConfig(llm=LLMConfig(provider="ollama", model="llama3.2"))
    requested = []

    def factory(llm, model):
        requested.append(model)
        return client

    agent = agent_cls(config, client_factory=factory)
    return agent, requested


class TestAgentSettings:
    def test_defaults(self):
        planner, requested = make_agent(PlannerAgent, FakeAIClient())
        synthesizer, _ = make_agent(SynthesizerAgent, FakeAIClient())

        assert planner.system_prompt == DEFAULT_PLANNER_SYSTEM_PROMPT
        assert planner.temperature == 0.2
        assert requested == [None]
        assert synthesizer.system_prompt == DEFAULT_SYNTHESIZER_SYSTEM_PROMPT
        assert synthesizer.temperature == 0.7

    def test_overrides(self):
        config = AppConfig(
            llm=LLMConfig(provider="ollama", model="llama3.2"),
            agents=AgentsConfig(
                planner=AgentOverride(
                    system_prompt="Plan tersely.",
                    model=AgentModelOverride(model="qwen2.5", temperature=0.0),
                )
            ),
        )
        planner, requested = make_agent(PlannerAgent, FakeAIClient(), config)
        synthesizer, synth_requested = make_agent(SynthesizerAgent, FakeAIClient(), config)

        assert planner.system_prompt == "Plan tersely."
        assert planner.temperature == 0.0
        assert requested == ["qwen2.5"]
        assert synthesizer.system_prompt == DEFAULT_SYNTHESIZER_SYSTEM_PROMPT
        assert synth_requested == [None]


class TestPlannerAgent:
    async def test_parses_json_string_inputs(self):
        client = FakeAIClient(
            objects=[
                {
                    "reasoning": "needs a search",
                    "requiresTools": True,
                    "steps": [{"tool": "search", "input": '{"query": "report"}'}],
                }
            ]
        )
        planner, _ = make_agent(PlannerAgent, client)

        plan = await planner.run("find my report", TOOLS)

        assert plan.requires_tools is True
        assert plan.steps[0].tool == "search"
        assert plan.steps[0].input == {"query": "report"}
        assert client.object_calls[0]["schema"] is PlanSchema

    async def test_unparseable_input_falls_back_to_empty(self):
        client = FakeAIClient(
            objects=[
                {
                    "reasoning": "",
                    "requiresTools": True,
                    "steps": [
                        {"tool": "search", "input": "{not json"},
                        {"tool": "search", "input": "[1, 2]"},
                    ],
                }
            ]
        )
        planner, _ = make_agent(PlannerAgent, client)

        plan = await planner.run("x", TOOLS)

        assert [s.input for s in plan.steps] == [{}, {}]

    async def test_prompt_lists_tools_after_history(self):
        client = FakeAIClient(objects=[{"reasoning": "", "requiresTools": False, "steps": []}])
        planner, _ = make_agent(PlannerAgent, client)
        history = [HistoryEntry("user", "earlier"), HistoryEntry("assistant", "reply")]

        await planner.run("what now?", TOOLS, history)

        messages = client.object_calls[0]["messages"]
        assert messages[:2] == [
            {"role": "user", "content": "earlier"},
            {"role": "assistant", "content": "reply"},
        ]
        content = messages[2]["content"]
        assert content.startswith("Available tools:\n- search: Search files\n  Parameters: {")
        assert content.endswith("\n\nUser request: what now?")

    async def test_llm_failure_propagates(self):
        client = FakeAIClient(objects=[RuntimeError("network down")])
        planner, _ = make_agent(PlannerAgent, client)

        with pytest.raises(RuntimeError, match="network down"):
            await planner.run("x", TOOLS)


class TestSynthesizerAgent:
    async def test_streams_chunks_in_order(self):
        client = FakeAIClient(streams=[["Hel", "lo", " there"]])
        synthesizer, _ = make_agent(SynthesizerAgent, client)
        seen = []

        text = await synthesizer.run("hi", [], on_chunk=seen.append)

        assert text == "Hello there"
        assert "".join(seen) == text
        assert client.stream_calls[0]["messages"][-1]["content"] == "User request: hi"

    async def test_tool_results_section(self):
        client = FakeAIClient(streams=[["ok"]])
        synthesizer, _ = make_agent(SynthesizerAgent, client)
        results = [
            ToolExecutionResult(tool="search", result={"results": []}),
            ToolExecutionResult(tool="read", error="Read access denied"),
        ]

        await synthesizer.run("summarize", results)

        assert client.stream_calls[0]["messages"][-1]["content"] == (
            "Tool results:\n"
            '- search: {"results": []}\n'
            "- read: ERROR - Read access denied\n\n"
            "User request: summarize"
        )

    async def test_async_chunk_callback(self):
        client = FakeAIClient(streams=[["a", "b"]])
        synthesizer, _ = make_agent(SynthesizerAgent, client)
        seen = []

        async def on_chunk(chunk):
            seen.append(chunk)

        await synthesizer.run("x", [], on_chunk=on_chunk)
        assert seen == ["a", "b"]
