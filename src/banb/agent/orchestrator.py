"""
agent/orchestrator.py

AgentOrchestrator owns one chat turn:

1. rate limit (per caller, injected limiter)
2. sanitize the message
3. assemble the per-turn ConversationContext
4. first model call with the tool catalog
5. execute requested tools concurrently, each result becomes a tool turn
6. second model call with the tool results
7. on any model failure, answer with the deterministic FallbackResponder

The final answer is scanned for a payment intent; detected operations are
recorded through the ConfirmationGate and never executed here.
"""

import asyncio
import logging
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel

from banb.agent.context import ContextAssembler, ConversationContext
from banb.agent.conversation import Conversation, ToolCall, ToolResultTurn
from banb.agent.fallback import FallbackResponder
from banb.agent.helpers import build_tools_block, build_user_context_block, describe_error, format_tool_result
from banb.errors import UpstreamError
from banb.guards.sanitizer import sanitize_input, wants_onchain_lookup
from banb.operations.parser import ParsedOperation, parse_operation
from banb.prompts.system_prompt import build_system_prompt
from banb.tools.executor import ToolExecutionContext
from banb.tools.registry import ToolRegistry, TOOL_REGISTRY

logger = logging.getLogger("banb.agent")

ANONYMOUS_KEY = "anonymous"
EMPTY_ANSWER = "I processed your request but couldn't generate a response."


class AgentReply(BaseModel):
    response: str
    sanitized_message: str
    used_fallback: bool = False
    tool_calls: List[str] = []
    operation: Optional[ParsedOperation] = None
    operation_id: Optional[str] = None


class AgentOrchestrator:
    def __init__(
        self,
        *,
        tools: Any,
        model_client: Any,
        rate_limiter: Any,
        context_assembler: ContextAssembler,
        fallback: Optional[FallbackResponder] = None,
        gate: Any = None,
        registry: ToolRegistry = TOOL_REGISTRY,
    ) -> None:
        # tools: anything with `async execute(name, args, ctx) -> ToolResult`
        # model_client: anything with `async complete(conversation, tools) -> ModelReply`
        self.tools = tools
        self.model_client = model_client
        self.rate_limiter = rate_limiter
        self.context_assembler = context_assembler
        self.fallback = fallback or FallbackResponder(tools)
        self.gate = gate
        self.registry = registry

    async def handle_turn(
        self,
        message: str,
        caller_id: Optional[str],
        *,
        include_balance: bool = False,
        include_transactions: bool = False,
        include_recipients: bool = False,
        session_id: Optional[str] = None,
    ) -> AgentReply:
        logger.info("=" * 80)
        logger.info("CHAT TURN - Starting | caller=%s session=%s", caller_id, session_id)

        # RateLimitError propagates: the turn stops before any model or tool call
        await self.rate_limiter.enforce(caller_id or ANONYMOUS_KEY)

        sanitized = sanitize_input(message)
        if sanitized != (message or "").strip():
            logger.info("CHAT TURN: message sanitized (len %d -> %d)", len(message or ""), len(sanitized))

        context = await self.context_assembler.assemble(
            caller_id,
            include_balance=include_balance,
            include_transactions=include_transactions,
            include_recipients=include_recipients,
            session_id=session_id,
        )

        used_fallback = False
        tool_names: List[str] = []
        try:
            answer, tool_names = await self._model_turn(sanitized, caller_id, context, session_id)
        except UpstreamError as exc:
            logger.warning("CHAT TURN: model unavailable (%s); using fallback responder", describe_error(exc))
            answer = await self.fallback.respond(sanitized, caller_id, context, cause=exc, session_id=session_id)
            used_fallback = True
        except Exception as exc:
            logger.exception("CHAT TURN: unexpected model failure; using fallback responder")
            cause = UpstreamError(f"AI provider error: {describe_error(exc)}")
            answer = await self.fallback.respond(sanitized, caller_id, context, cause=cause, session_id=session_id)
            used_fallback = True

        reply = AgentReply(
            response=answer,
            sanitized_message=sanitized,
            used_fallback=used_fallback,
            tool_calls=tool_names,
        )

        operation = parse_operation(answer)
        if operation is not None and caller_id:
            reply.operation = operation
            if self.gate is not None:
                record = await self.gate.record(
                    caller_id, operation, user_message=sanitized, model_response=answer
                )
                reply.operation_id = record.id

        logger.info(
            "CHAT TURN - Done | fallback=%s tools=%s operation=%s",
            used_fallback,
            tool_names,
            operation.type if operation else None,
        )
        logger.info("=" * 80)
        return reply

    async def _model_turn(
        self,
        message: str,
        caller_id: Optional[str],
        context: ConversationContext,
        session_id: Optional[str],
    ) -> Tuple[str, List[str]]:
        # tools are only offered to authenticated callers
        tools = self.registry.list_tools() if caller_id else []
        system_prompt = build_system_prompt(build_tools_block(tools), build_user_context_block(context))
        conversation = Conversation.start(system_prompt, message)

        first = await self.model_client.complete(conversation, tools)
        if not first.wants_tools or not caller_id:
            return first.text or EMPTY_ANSWER, []

        ctx = ToolExecutionContext(
            caller_id=caller_id,
            session_id=session_id,
            allow_onchain_lookup=wants_onchain_lookup(message),
        )
        results = await self.run_tool_round(first.tool_calls, ctx)
        followup = conversation.with_assistant(first).with_tool_results(results)

        second = await self.model_client.complete(followup, tools)
        return second.text or EMPTY_ANSWER, [c.name for c in first.tool_calls]

    async def run_tool_round(self, calls: Tuple[ToolCall, ...], ctx: ToolExecutionContext) -> List[ToolResultTurn]:
        """Execute every requested call concurrently; failures become error turns."""
        logger.info("TOOL ROUND: %s", [c.name for c in calls])
        outcomes = await asyncio.gather(
            *(self.tools.execute(call.name, dict(call.arguments), ctx) for call in calls),
            return_exceptions=True,
        )
        turns: List[ToolResultTurn] = []
        for call, outcome in zip(calls, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.warning("TOOL ROUND: %s raised %s", call.name, describe_error(outcome))
                content = f"Error: {describe_error(outcome)}"
            else:
                content = format_tool_result(outcome)
            turns.append(ToolResultTurn(call_id=call.id, name=call.name, content=content))
        return turns
