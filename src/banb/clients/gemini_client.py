# banb/clients/gemini_client.py
"""
Gemini reasoning-model client for the two-phase tool-calling loop.

Behavior:
- Maps the immutable Conversation onto google-genai contents
  (system -> system_instruction, assistant tool calls -> function_call parts,
  tool results -> function_response parts).
- Maps registry Tools onto FunctionDeclarations; automatic function calling is
  disabled, the orchestrator executes tools itself.
- Exposes: async complete(conversation, tools) -> ModelReply

Every failure surfaces as UpstreamError (ConfigurationError when the client
cannot be used at all), so the orchestrator can switch to its fallback.

Environment:
- LLM_PROVIDER must be "gemini"
- GEMINI_API_KEY (from Google AI Studio)
- GEMINI_MODEL (defaults to "gemini-2.5-flash")
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx
from google import genai  # type: ignore
from google.genai import errors as genai_errors  # type: ignore
from google.genai import types  # type: ignore

from banb.agent.conversation import AssistantTurn, Conversation, ModelReply, ToolCall, ToolResultTurn, UserTurn
from banb.errors import ConfigurationError, UpstreamError
from banb.tools.registry import Tool

logger = logging.getLogger("banb.llm")

DEFAULT_MODEL = "gemini-2.5-flash"
TEMPERATURE = 0.7
MAX_OUTPUT_TOKENS = 500


def validate_model_configuration(provider: Optional[str], api_key: Optional[str]) -> Optional[str]:
    """Return a human-readable configuration problem, or None when usable."""
    if (provider or "").lower() != "gemini":
        return f"Unsupported LLM_PROVIDER '{provider}'. Set LLM_PROVIDER=gemini."
    if not api_key:
        return "GEMINI_API_KEY is not configured. Add a valid Gemini API key to your .env file."
    if api_key.startswith("your_"):
        return "GEMINI_API_KEY is still a placeholder value. Replace it with a real Gemini API key."
    if not api_key.startswith("AIza"):
        return "GEMINI_API_KEY has an invalid format (Google API keys start with 'AIza')."
    return None


def _schema(node: Dict[str, Any]) -> types.Schema:
    kwargs: Dict[str, Any] = {"type": types.Type(str(node.get("type", "string")).upper())}
    if node.get("description"):
        kwargs["description"] = node["description"]
    for key in ("minimum", "maximum", "default"):
        if key in node:
            kwargs[key] = node[key]
    if node.get("properties"):
        kwargs["properties"] = {name: _schema(sub) for name, sub in node["properties"].items()}
    if node.get("required"):
        kwargs["required"] = list(node["required"])
    if node.get("items"):
        kwargs["items"] = _schema(node["items"])
    return types.Schema(**kwargs)


def tool_declarations(tools: Sequence[Tool]) -> List[types.FunctionDeclaration]:
    decls = []
    for tool in tools:
        decl: Dict[str, Any] = {"name": tool.name, "description": tool.description}
        # tools without arguments are declared without parameters
        if tool.input_schema.get("properties"):
            decl["parameters"] = _schema(tool.input_schema)
        decls.append(types.FunctionDeclaration(**decl))
    return decls


def to_contents(conversation: Conversation) -> List[types.Content]:
    contents: List[types.Content] = []
    pending_results: List[types.Part] = []

    def flush_results() -> None:
        if pending_results:
            contents.append(types.Content(role="user", parts=list(pending_results)))
            pending_results.clear()

    for turn in conversation.non_system():
        if isinstance(turn, ToolResultTurn):
            pending_results.append(
                types.Part(
                    function_response=types.FunctionResponse(
                        id=turn.call_id, name=turn.name, response={"result": turn.content}
                    )
                )
            )
            continue
        flush_results()
        if isinstance(turn, UserTurn):
            contents.append(types.Content(role="user", parts=[types.Part.from_text(text=turn.content)]))
        elif isinstance(turn, AssistantTurn):
            if isinstance(turn.raw, types.Content):
                contents.append(turn.raw)
                continue
            parts: List[types.Part] = []
            if turn.content:
                parts.append(types.Part.from_text(text=turn.content))
            for call in turn.tool_calls:
                parts.append(
                    types.Part(function_call=types.FunctionCall(id=call.id, name=call.name, args=dict(call.arguments)))
                )
            contents.append(types.Content(role="model", parts=parts))
    flush_results()
    return contents


def parse_response(response: Any) -> ModelReply:
    calls = []
    for idx, fc in enumerate(getattr(response, "function_calls", None) or []):
        calls.append(ToolCall(id=getattr(fc, "id", None) or f"call_{idx}", name=fc.name, arguments=dict(fc.args or {})))

    raw = None
    candidates = getattr(response, "candidates", None)
    if calls and candidates:
        raw = getattr(candidates[0], "content", None)

    text = None
    if not calls:
        text = getattr(response, "text", None)
    return ModelReply(text=text.strip() if isinstance(text, str) else None, tool_calls=tuple(calls), raw=raw)


class GeminiToolClient:
    """
    Reasoning-model adapter. Construction never fails on bad configuration;
    the problem is reported by every `complete` call instead.
    """

    def __init__(
        self,
        api_key: Optional[str],
        *,
        model: str = DEFAULT_MODEL,
        timeout: float = 30.0,
        provider: str = "gemini",
        client: Any = None,
    ) -> None:
        self.model = model
        self.timeout = timeout
        self.config_error = None if client is not None else validate_model_configuration(provider, api_key)
        self.client = client
        if self.client is None and self.config_error is None:
            self.client = genai.Client(api_key=api_key)
            logger.info("Using google-genai SDK for Gemini (model=%s)", model)
        elif self.config_error:
            logger.warning("Gemini client disabled: %s", self.config_error)

    @classmethod
    def from_settings(cls, settings) -> "GeminiToolClient":
        return cls(
            settings.gemini_api_key,
            model=settings.gemini_model,
            timeout=settings.llm_timeout_seconds,
            provider=settings.llm_provider,
        )

    async def complete(self, conversation: Conversation, tools: Sequence[Tool] = ()) -> ModelReply:
        if self.config_error:
            raise ConfigurationError(self.config_error)

        config_kwargs: Dict[str, Any] = {
            "system_instruction": conversation.system_prompt,
            "temperature": TEMPERATURE,
            "max_output_tokens": MAX_OUTPUT_TOKENS,
        }
        if tools:
            config_kwargs["tools"] = [types.Tool(function_declarations=tool_declarations(tools))]
            config_kwargs["automatic_function_calling"] = types.AutomaticFunctionCallingConfig(disable=True)

        contents = to_contents(conversation)
        logger.info("Gemini request: model=%s turns=%d tools=%d", self.model, len(contents), len(tools))
        try:
            response = await asyncio.wait_for(
                self.client.aio.models.generate_content(
                    model=self.model,
                    contents=contents,
                    config=types.GenerateContentConfig(**config_kwargs),
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error("Gemini request timed out after %.1fs", self.timeout)
            raise UpstreamError(f"AI provider timed out after {self.timeout:g}s") from e
        except genai_errors.APIError as e:
            code = getattr(e, "code", None)
            logger.error("Gemini API error %s: %s", code, e)
            if code in (401, 403):
                raise ConfigurationError("Invalid or expired Gemini API key. Please check GEMINI_API_KEY.") from e
            if code == 429:
                raise UpstreamError("AI provider rate limit exceeded. Please try again later.") from e
            raise UpstreamError(f"AI provider error ({code})") from e
        except httpx.HTTPError as e:
            logger.error("Gemini transport error: %s", e)
            raise UpstreamError(f"AI provider unreachable: {e.__class__.__name__}") from e

        reply = parse_response(response)
        logger.info(
            "Gemini reply: tool_calls=%s text_len=%d",
            [c.name for c in reply.tool_calls],
            len(reply.text or ""),
        )
        return reply
