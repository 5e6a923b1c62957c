"""LLM client abstraction with OpenAI-compatible and Anthropic backends."""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, TypeVar

from pydantic import BaseModel

from camille.config import ConfigurationError, LLMConfig
from camille.log import get_logger

logger = get_logger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

OLLAMA_DEFAULT_BASE_URL = "http://localhost:11434/v1"
DEFAULT_MAX_TOKENS = 4096

API_KEY_ENV_VARS = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}


class AIClientError(RuntimeError):
    """The model answered, but not in the shape that was asked for."""


class AIClient(ABC):
    """Abstract base class for LLM backends.

    ``messages`` are plain ``{"role": ..., "content": ...}`` dicts with
    roles ``user`` / ``assistant``; the system prompt is passed separately.
    """

    model: str

    @abstractmethod
    async def generate_object(
        self,
        system: str,
        messages: list[dict[str, Any]],
        schema: type[SchemaT],
        temperature: float,
    ) -> SchemaT:
        """Request structured output and validate it against *schema*."""
        ...

    @abstractmethod
    def stream_text(
        self,
        system: str,
        messages: list[dict[str, Any]],
        temperature: float,
    ) -> AsyncIterator[str]:
        """Stream generated text fragments in generation order."""
        ...


class OpenAIClient(AIClient):
    """OpenAI chat completions API; also serves Ollama's compatible endpoint."""

    def __init__(self, model: str, api_key: str, base_url: str | None = None):
        from openai import AsyncOpenAI

        self.model = model
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url)

    @staticmethod
    def _with_system(system: str, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return [{"role": "system", "content": system}, *messages]

    async def generate_object(
        self,
        system: str,
        messages: list[dict[str, Any]],
        schema: type[SchemaT],
        temperature: float,
    ) -> SchemaT:
        logger.debug("api_request", model=self.model, message_count=len(messages), mode="object")
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=self._with_system(system, messages),
            temperature=temperature,
            response_format={
                "type": "json_schema",
                "json_schema": {
                    "name": schema.__name__,
                    "schema": schema.model_json_schema(),
                },
            },
        )
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise AIClientError("Model returned no structured output")
        return schema.model_validate_json(content)

    async def stream_text(
        self,
        system: str,
        messages: list[dict[str, Any]],
        temperature: float,
    ) -> AsyncIterator[str]:
        logger.debug("api_request", model=self.model, message_count=len(messages), mode="stream")
        stream = await self._client.chat.completions.create(
            model=self.model,
            messages=self._with_system(system, messages),
            temperature=temperature,
            stream=True,
        )
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                yield delta


class AnthropicClient(AIClient):
    """Anthropic API backend using the official SDK."""

    RESPONSE_TOOL = "respond"

    def __init__(self, model: str, api_key: str, base_url: str | None = None):
        import anthropic

        self.model = model
        self._client = anthropic.AsyncAnthropic(api_key=api_key, base_url=base_url)

    async def generate_object(
        self,
        system: str,
        messages: list[dict[str, Any]],
        schema: type[SchemaT],
        temperature: float,
    ) -> SchemaT:
        logger.debug("api_request", model=self.model, message_count=len(messages), mode="object")
        response = await self._client.messages.create(
            model=self.model,
            max_tokens=DEFAULT_MAX_TOKENS,
            system=system,
            messages=messages,
            temperature=temperature,
            tools=[
                {
                    "name": self.RESPONSE_TOOL,
                    "description": "Return the response in the required structure.",
                    "input_schema": schema.model_json_schema(),
                }
            ],
            tool_choice={"type": "tool", "name": self.RESPONSE_TOOL},
        )
        logger.debug(
            "api_response",
            model=self.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            stop_reason=response.stop_reason,
        )
        for block in response.content:
            if block.type == "tool_use" and block.name == self.RESPONSE_TOOL:
                return schema.model_validate(block.input)
        raise AIClientError("Model returned no structured output")

    async def stream_text(
        self,
        system: str,
        messages: list[dict[str, Any]],
        temperature: float,
    ) -> AsyncIterator[str]:
        logger.debug("api_request", model=self.model, message_count=len(messages), mode="stream")
        async with self._client.messages.stream(
            model=self.model,
            max_tokens=DEFAULT_MAX_TOKENS,
            system=system,
            messages=messages,
            temperature=temperature,
        ) as stream:
            async for text in stream.text_stream:
                yield text


def resolve_api_key(config: LLMConfig) -> str | None:
    if config.api_key:
        return config.api_key
    env_var = API_KEY_ENV_VARS.get(config.provider)
    return os.environ.get(env_var) if env_var else None


def check_credentials(config: LLMConfig) -> None:
    """Raise ``ConfigurationError`` if the provider needs a key and has none."""
    if config.provider in API_KEY_ENV_VARS and not resolve_api_key(config):
        raise ConfigurationError(
            f"No API key configured for provider '{config.provider}'. "
            f"Set llm.api_key in the config file or {API_KEY_ENV_VARS[config.provider]}."
        )


def build_ai_client(config: LLMConfig, model: str | None = None) -> AIClient:
    """Create the client for the configured provider, optionally overriding the model."""
    check_credentials(config)
    model_name = model or config.model
    api_key = resolve_api_key(config)

    if config.provider == "anthropic":
        client: AIClient = AnthropicClient(model_name, api_key or "", config.base_url)
    elif config.provider == "ollama":
        # Ollama ignores the key, but the OpenAI SDK insists on one
        client = OpenAIClient(
            model_name, api_key or "ollama", config.base_url or OLLAMA_DEFAULT_BASE_URL
        )
    else:
        client = OpenAIClient(model_name, api_key or "", config.base_url)

    logger.info("ai_client_created", provider=config.provider, model=model_name)
    return client
