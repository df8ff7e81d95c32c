"""
gateway/protocol.py

Two-method tool protocol (`list`, `call`) over a transport-neutral handler.

Per request:
  Received -> AuthExtracted -> AuthValidated -> RequestParsed -> Dispatched -> Logged -> Responded

Identity is checked before anything else and fails closed. Every request,
successful or not, emits one structured log line on the `banb.gateway` logger.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Tuple

from banb.db import crud
from banb.errors import AuthenticationError, BanbError, UnknownToolError, ValidationError
from banb.gateway.auth import resolve_caller_id
from banb.tools.executor import ToolExecutionContext, ToolExecutor
from banb.tools.registry import ToolRegistry, TOOL_REGISTRY

logger = logging.getLogger("banb.gateway")

SERVER_INFO = {
    "name": "Banb MCP Server",
    "version": "1.0.0",
    "description": "Model Context Protocol server for Banb banking data",
    "methods": ["list", "call"],
    "authentication": "required",
}

METHOD_ALIASES = {
    "list": "list",
    "tools/list": "list",
    "call": "call",
    "tools/call": "call",
}


@dataclass
class GatewayResponse:
    status_code: int
    payload: Dict[str, Any]


def parse_request(body: Dict[str, Any]) -> Tuple[str, Optional[str], Dict[str, Any]]:
    """Return (method, tool_name, arguments) or raise ValidationError."""
    raw_method = body.get("method")
    if not isinstance(raw_method, str) or not raw_method:
        raise ValidationError("Missing or invalid method")
    method = METHOD_ALIASES.get(raw_method)
    if method is None:
        raise ValidationError(f"Unsupported method: {raw_method}")
    if method == "list":
        return method, None, {}

    params = body.get("params")
    if not isinstance(params, dict):
        raise ValidationError("Missing params for tools/call")
    name = params.get("name")
    if not isinstance(name, str) or not name:
        raise ValidationError("Missing tool name in params")
    arguments = params.get("arguments") or {}
    if not isinstance(arguments, dict):
        raise ValidationError("Tool arguments must be an object")
    return method, name, arguments


class ProtocolGateway:
    def __init__(
        self,
        executor: ToolExecutor,
        session_factory: Callable[[], Any],
        *,
        registry: ToolRegistry = TOOL_REGISTRY,
        jwt_secret: Optional[str] = None,
    ) -> None:
        self.executor = executor
        self.session_factory = session_factory
        self.registry = registry
        self.jwt_secret = jwt_secret

    def server_info(self) -> Dict[str, Any]:
        return dict(SERVER_INFO, tools=len(self.registry))

    async def validate_caller(self, caller_id: str) -> None:
        async with self.session_factory() as db:
            profile = await crud.get_active_profile(db, caller_id)
        if profile is None:
            raise AuthenticationError("Invalid or inactive profile")

    async def handle(
        self,
        body: Any,
        *,
        session_id: Optional[str] = None,
        authorization: Optional[str] = None,
    ) -> GatewayResponse:
        body = body if isinstance(body, dict) else {}
        record: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "method": body.get("method") if isinstance(body.get("method"), str) else None,
            "tool_name": None,
            "profile_id": None,
            "session_id": session_id,
            "status": None,
            "error": None,
        }

        try:
            context = body.get("context")
            claimed = context.get("profileId") if isinstance(context, dict) else None
            caller_id = resolve_caller_id(claimed, authorization=authorization, jwt_secret=self.jwt_secret)
            record["profile_id"] = caller_id

            await self.validate_caller(caller_id)

            method, tool_name, arguments = parse_request(body)
            record["method"] = method
            record["tool_name"] = tool_name

            if method == "list":
                response = GatewayResponse(200, {"tools": [t.wire() for t in self.registry.list_tools()]})
            else:
                if tool_name not in self.registry:
                    raise UnknownToolError(tool_name)
                # a direct protocol call is an explicit request, on-chain included
                ctx = ToolExecutionContext(caller_id=caller_id, session_id=session_id, allow_onchain_lookup=True)
                result = await self.executor.execute(tool_name, arguments, ctx)
                text = json.dumps(result.wire(), default=str)
                response = GatewayResponse(200, {"content": [{"type": "text", "text": text}]})
                if not result.success:
                    record["error"] = result.error
        except BanbError as exc:
            record["error"] = exc.message
            response = GatewayResponse(exc.status_code, exc.to_payload())
        except Exception as exc:
            logger.exception("Unexpected gateway failure")
            record["error"] = str(exc) or exc.__class__.__name__
            response = GatewayResponse(500, {"error": "Internal server error", "code": "INTERNAL_ERROR"})

        record["status"] = response.status_code
        line = json.dumps(record, default=str)
        if response.status_code >= 500:
            logger.error("MCP request: %s", line)
        elif response.status_code >= 400:
            logger.warning("MCP request: %s", line)
        else:
            logger.info("MCP request: %s", line)
        return response
