"""
tools/executor.py

ToolExecutor binds (tool name, arguments, caller identity) to a registered
handler and always answers with the same ToolResult envelope.

- Identity comes only from ToolExecutionContext; identity-looking keys in the
  arguments are dropped before the handler sees them.
- Unknown tools and missing identity raise (UnknownToolError / AuthenticationError).
- Handler failures and timeouts are captured into ToolResult.error.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, Field

from banb.errors import AuthenticationError, ExecutionError
from banb.tools.registry import ONCHAIN_TOOL, ToolRegistry, TOOL_REGISTRY

logger = logging.getLogger("banb.tools")

IDENTITY_KEYS = frozenset({"callerId", "caller_id", "profileId", "profile_id", "userId", "user_id"})
ONCHAIN_NOT_REQUESTED = (
    "On-chain lookup not requested. Ask explicitly (e.g. 'check onchain') to search the blockchain."
)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ToolExecutionContext:
    caller_id: str
    session_id: Optional[str] = None
    allow_onchain_lookup: bool = False


class ToolResult(BaseModel):
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    timestamp: str = Field(default_factory=_utc_timestamp)

    @classmethod
    def ok(cls, data: Any) -> "ToolResult":
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, error: str) -> "ToolResult":
        return cls(success=False, error=error)

    def wire(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


@dataclass
class HandlerDeps:
    """Per-call collaborators handed to every tool handler."""

    db: Any
    onchain: Any = None


def strip_identity_args(args: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not isinstance(args, dict):
        return {}
    dropped = [k for k in args if k in IDENTITY_KEYS]
    if dropped:
        logger.warning("Dropping identity arguments from tool call: %s", dropped)
    return {k: v for k, v in args.items() if k not in IDENTITY_KEYS}


class ToolExecutor:
    def __init__(
        self,
        session_factory: Callable[[], Any],
        *,
        handlers: Optional[Dict[str, Callable]] = None,
        registry: ToolRegistry = TOOL_REGISTRY,
        onchain_client: Any = None,
        timeout: float = 10.0,
    ) -> None:
        if handlers is None:
            from banb.tools.handlers import HANDLERS

            handlers = HANDLERS
        missing = [name for name in registry.names() if name not in handlers]
        if missing:
            raise RuntimeError(f"No handler registered for tools: {missing}")
        self.session_factory = session_factory
        self.handlers = handlers
        self.registry = registry
        self.onchain_client = onchain_client
        self.timeout = timeout

    async def execute(self, tool_name: str, args: Optional[Dict[str, Any]], ctx: ToolExecutionContext) -> ToolResult:
        if ctx is None or not ctx.caller_id or not str(ctx.caller_id).strip():
            raise AuthenticationError("Authentication required")

        self.registry.get(tool_name)
        handler = self.handlers[tool_name]
        clean_args = strip_identity_args(args)

        if tool_name == ONCHAIN_TOOL and not ctx.allow_onchain_lookup:
            logger.info("Refusing %s for caller=%s: no explicit on-chain request", tool_name, ctx.caller_id)
            return ToolResult.failure(ONCHAIN_NOT_REQUESTED)

        logger.info("TOOL CALL: %s | caller=%s | args=%s", tool_name, ctx.caller_id, clean_args)
        started = time.perf_counter()
        try:
            async with self.session_factory() as db:
                deps = HandlerDeps(db=db, onchain=self.onchain_client)
                data = await asyncio.wait_for(handler(deps, clean_args, ctx), timeout=self.timeout)
                await db.commit()
        except asyncio.TimeoutError:
            logger.error("TOOL TIMEOUT: %s after %.1fs (caller=%s)", tool_name, self.timeout, ctx.caller_id)
            return ToolResult.failure(f"Tool {tool_name} timed out after {self.timeout:g}s")
        except ExecutionError as exc:
            logger.warning("TOOL FAILED: %s | %s", tool_name, exc.message)
            return ToolResult.failure(exc.message)
        except Exception as exc:
            logger.exception("TOOL ERROR: %s | caller=%s", tool_name, ctx.caller_id)
            return ToolResult.failure(str(exc) or f"Tool {tool_name} failed")

        logger.info("TOOL OK: %s in %.0fms", tool_name, (time.perf_counter() - started) * 1000)
        return ToolResult.ok(data)
