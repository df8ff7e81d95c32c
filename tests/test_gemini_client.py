"""
Gemini adapter: configuration checks, request mapping, response parsing and
error translation. The google-genai client is replaced by a stub exposing
`aio.models.generate_content`.
"""

import asyncio
from types import SimpleNamespace

import httpx
import pytest
from google.genai import errors as genai_errors
from google.genai import types

from banb.agent.conversation import Conversation, ModelReply, ToolCall, ToolResultTurn
from banb.clients.gemini_client import (
    GeminiToolClient,
    parse_response,
    to_contents,
    tool_declarations,
    validate_model_configuration,
)
from banb.config import Settings
from banb.errors import ConfigurationError, UpstreamError
from banb.tools.registry import TOOL_REGISTRY, list_tools


class StubModels:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    async def generate_content(self, *, model, contents, config):
        self.requests.append(SimpleNamespace(model=model, contents=contents, config=config))
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return await response()
        return response


def stub_client(*responses):
    models = StubModels(*responses)
    return SimpleNamespace(aio=SimpleNamespace(models=models)), models


def text_response(text):
    return SimpleNamespace(function_calls=None, candidates=[], text=text)


def call_response(*calls):
    fcs = [SimpleNamespace(id=cid, name=name, args=args) for cid, name, args in calls]
    content = types.Content(
        role="model",
        parts=[types.Part(function_call=types.FunctionCall(id=cid, name=name, args=args)) for cid, name, args in calls],
    )
    return SimpleNamespace(function_calls=fcs, candidates=[SimpleNamespace(content=content)], text=None)


@pytest.mark.parametrize(
    "provider, key, fragment",
    [
        ("openai", "AIzaXYZ", "Unsupported LLM_PROVIDER"),
        ("gemini", None, "not configured"),
        ("gemini", "your_gemini_api_key_here", "placeholder"),
        ("gemini", "sk-123", "invalid format"),
    ],
)
def test_configuration_problems(provider, key, fragment):
    assert fragment in validate_model_configuration(provider, key)


def test_valid_configuration():
    assert validate_model_configuration("GEMINI", "AIzaSyExample") is None


async def test_misconfigured_client_raises_configuration_error():
    client = GeminiToolClient.from_settings(Settings(gemini_api_key=None))
    assert client.client is None
    with pytest.raises(ConfigurationError) as exc:
        await client.complete(Conversation.start("sys", "hi"))
    assert "GEMINI_API_KEY" in exc.value.message
    assert isinstance(exc.value, UpstreamError)


def test_tool_declarations_skip_empty_parameters():
    decls = {d.name: d for d in tool_declarations(list_tools())}
    assert decls["get_user_balance"].parameters is None
    limit = decls["get_recent_transactions"].parameters.properties["limit"]
    assert limit.type == types.Type.NUMBER
    assert limit.maximum == 50


def test_to_contents_groups_tool_results():
    conv = (
        Conversation.start("sys", "hi")
        .with_assistant(ModelReply(tool_calls=(ToolCall("c1", "get_accounts"), ToolCall("c2", "get_recipients"))))
        .with_tool_results([ToolResultTurn("c1", "get_accounts", "[]"), ToolResultTurn("c2", "get_recipients", "[]")])
    )
    contents = to_contents(conv)
    assert [c.role for c in contents] == ["user", "model", "user"]
    assert [p.function_call.name for p in contents[1].parts] == ["get_accounts", "get_recipients"]
    responses = [p.function_response for p in contents[2].parts]
    assert [r.name for r in responses] == ["get_accounts", "get_recipients"]
    assert responses[0].response == {"result": "[]"}


def test_parse_response_text_and_calls():
    reply = parse_response(text_response("  Your balance is $5.  "))
    assert reply.text == "Your balance is $5."
    assert not reply.wants_tools

    reply = parse_response(call_response((None, "get_recent_transactions", {"limit": 3})))
    assert reply.text is None
    assert reply.tool_calls == (ToolCall("call_0", "get_recent_transactions", {"limit": 3}),)
    assert isinstance(reply.raw, types.Content)


async def test_complete_sends_config_and_tools():
    client, models = stub_client(text_response("hello"))
    gemini = GeminiToolClient("AIzaTest", client=client, model="gemini-test")
    reply = await gemini.complete(Conversation.start("be nice", "hi"), list_tools())

    assert reply.text == "hello"
    request = models.requests[0]
    assert request.model == "gemini-test"
    assert request.config.system_instruction == "be nice"
    assert request.config.temperature == 0.7
    assert request.config.max_output_tokens == 500
    assert request.config.automatic_function_calling.disable is True
    declared = [d.name for d in request.config.tools[0].function_declarations]
    assert declared == TOOL_REGISTRY.names()


async def test_complete_without_tools_sends_none():
    client, models = stub_client(text_response("ok"))
    await GeminiToolClient("AIzaTest", client=client).complete(Conversation.start("s", "u"))
    assert models.requests[0].config.tools is None


async def test_timeout_becomes_upstream_error():
    async def slow():
        await asyncio.sleep(1)

    client, _ = stub_client(slow)
    gemini = GeminiToolClient("AIzaTest", client=client, timeout=0.05)
    with pytest.raises(UpstreamError, match="timed out"):
        await gemini.complete(Conversation.start("s", "u"))


@pytest.mark.parametrize(
    "code, error_type, fragment",
    [
        (401, ConfigurationError, "Invalid or expired"),
        (403, ConfigurationError, "Invalid or expired"),
        (429, UpstreamError, "rate limit"),
        (500, UpstreamError, "(500)"),
    ],
)
async def test_api_errors_are_translated(code, error_type, fragment):
    client, _ = stub_client(genai_errors.APIError(code, {"error": {"message": "nope", "status": "X"}}))
    with pytest.raises(error_type) as exc:
        await GeminiToolClient("AIzaTest", client=client).complete(Conversation.start("s", "u"))
    assert fragment in exc.value.message


async def test_transport_error_is_upstream_error():
    client, _ = stub_client(httpx.ConnectError("refused"))
    with pytest.raises(UpstreamError, match="unreachable"):
        await GeminiToolClient("AIzaTest", client=client).complete(Conversation.start("s", "u"))
