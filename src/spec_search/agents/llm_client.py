"""Provider-chained LLM client shared by the spec writer and the coder."""

import json
import logging
import os
from typing import Any, Literal

import anthropic
import openai
from anthropic import Anthropic

from spec_search.agents.constants import DEFAULT_MODEL, OPENAI_DEFAULT_MODEL
from spec_search.agents.exceptions import (
    AgentError,
    LLMCallError,
    LLMTimeoutError,
    ResponseParseError,
)

logger = logging.getLogger(__name__)

_TIMEOUT_ERRORS = (anthropic.APITimeoutError, openai.APITimeoutError, TimeoutError)


class LLMClient:
    """Calls Anthropic or OpenAI with a forced tool call.

    ``auto`` prefers Anthropic when its key is configured. When
    ``allow_fallback`` is set, a failed primary call is retried once on the
    fallback provider.
    """

    def __init__(
        self,
        api_key: str | None = None,
        openai_api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        llm_provider: str = "auto",
        llm_fallback_provider: str | None = None,
        allow_fallback: bool = False,
    ) -> None:
        self.model = model
        self.api_key: str | None = (
            api_key
            or os.getenv("ANTHROPIC_API_KEY")
            or os.getenv("CLAUDE_CODE_OAUTH_TOKEN")
        )
        self.openai_api_key: str | None = openai_api_key or os.getenv("OPENAI_API_KEY")
        self._anthropic_client: Anthropic | None = None
        self._openai_client: openai.OpenAI | None = None
        if self.api_key:
            self._anthropic_client = Anthropic(api_key=self.api_key)
        if self.openai_api_key:
            self._openai_client = openai.OpenAI(api_key=self.openai_api_key)
        if not (self._anthropic_client or self._openai_client):
            raise AgentError(
                "No Anthropic or OpenAI API key found. "
                "Provide via parameters, ANTHROPIC_API_KEY, CLAUDE_CODE_OAUTH_TOKEN, "
                "or OPENAI_API_KEY env vars."
            )

        self.llm_provider = self._normalize_provider(llm_provider)
        self.llm_fallback_provider = (
            self._normalize_provider(llm_fallback_provider) if llm_fallback_provider else None
        )
        self.allow_fallback = bool(allow_fallback)

        if self.llm_provider == "anthropic" and self._anthropic_client is None:
            raise AgentError("No Anthropic API key found for --llm-provider=anthropic.")
        if self.llm_provider == "openai" and self._openai_client is None:
            raise AgentError("No OpenAI API key found for --llm-provider=openai.")
        if self.allow_fallback and self.llm_fallback_provider:
            if self.llm_fallback_provider == "anthropic" and self._anthropic_client is None:
                raise AgentError(
                    "Fallback provider requested as anthropic but ANTHROPIC_API_KEY is not set."
                )
            if self.llm_fallback_provider == "openai" and self._openai_client is None:
                raise AgentError(
                    "Fallback provider requested as openai but OPENAI_API_KEY is not set."
                )

    def _normalize_provider(self, value: str) -> Literal["anthropic", "openai", "auto"]:
        if value not in {"auto", "anthropic", "openai"}:
            raise AgentError(f"Unsupported provider: {value}")
        return value

    def _primary_provider(self) -> Literal["anthropic", "openai"]:
        if self.llm_provider == "auto":
            if self._anthropic_client is not None:
                return "anthropic"
            return "openai"
        return self.llm_provider

    def _provider_chain(self) -> list[str]:
        chain: list[str] = [self._primary_provider()]
        if self.allow_fallback and self.llm_fallback_provider:
            if self.llm_fallback_provider != chain[0]:
                chain.append(self.llm_fallback_provider)
        return chain

    def _resolve_model(self, provider: str) -> str:
        if provider == "openai" and self.model.startswith("claude-"):
            return OPENAI_DEFAULT_MODEL
        return self.model

    def _get_openai_tool_schema(self, schema: dict[str, Any]) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": schema["name"],
                "description": schema.get("description", ""),
                "parameters": schema.get("input_schema", {}),
            },
        }

    def _parse_anthropic_tool_payload(self, response: Any, tool_name: str) -> dict[str, Any]:
        for block in response.content:
            if getattr(block, "type", None) == "tool_use" and block.name == tool_name:
                if not isinstance(block.input, dict):
                    raise ResponseParseError("Tool input was not a JSON object")
                return block.input
        raise ResponseParseError(f"No {tool_name} tool_use block found in response")

    def _parse_openai_tool_payload(self, response: Any) -> dict[str, Any]:
        message = response.choices[0].message
        tool_calls = getattr(message, "tool_calls", None)
        if not tool_calls:
            raise ResponseParseError("No tool call found in OpenAI response")
        call = tool_calls[0]
        if getattr(call, "type", "function") != "function":
            raise ResponseParseError("OpenAI tool call type is not function")
        try:
            arguments = json.loads(call.function.arguments or "{}")
        except json.JSONDecodeError as exc:
            raise ResponseParseError(f"OpenAI tool arguments are not valid JSON: {exc}") from exc
        if not isinstance(arguments, dict):
            raise ResponseParseError("OpenAI tool arguments were not a valid JSON object")
        return arguments

    def call_tool(
        self,
        prompt: str,
        tool_schema: dict[str, Any],
        max_tokens: int = 4096,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Send ``prompt`` and return the input of the forced tool call.

        Raises:
            LLMTimeoutError: If the last attempted call timed out.
            LLMCallError: If every provider in the chain failed.
            ResponseParseError: If the response carries no usable tool call.
        """
        tool_name = tool_schema["name"]
        request_options: dict[str, Any] = {"timeout": timeout} if timeout is not None else {}
        providers = self._provider_chain()
        last_error: Exception | None = None
        for provider in providers:
            try:
                if provider == "anthropic":
                    if self._anthropic_client is None:
                        raise LLMCallError("Anthropic client unavailable")
                    response = self._anthropic_client.messages.create(
                        model=self._resolve_model("anthropic"),
                        max_tokens=max_tokens,
                        tools=[tool_schema],
                        tool_choice={"type": "tool", "name": tool_name},
                        messages=[{"role": "user", "content": prompt}],
                        **request_options,
                    )
                    return self._parse_anthropic_tool_payload(response, tool_name)

                if self._openai_client is None:
                    raise LLMCallError("OpenAI client unavailable")
                response = self._openai_client.chat.completions.create(
                    model=self._resolve_model("openai"),
                    max_tokens=max_tokens,
                    tools=[self._get_openai_tool_schema(tool_schema)],
                    tool_choice={"type": "function", "function": {"name": tool_name}},
                    messages=[{"role": "user", "content": prompt}],
                    **request_options,
                )
                return self._parse_openai_tool_payload(response)
            except ResponseParseError:
                raise
            except Exception as error:
                last_error = error
                logger.debug("%s call for %s failed: %s", provider, tool_name, error)

        if isinstance(last_error, _TIMEOUT_ERRORS):
            raise LLMTimeoutError(f"LLM call timed out: {last_error}") from last_error
        raise LLMCallError(f"Failed to call LLM: {last_error}") from last_error
