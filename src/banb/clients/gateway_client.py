# banb/clients/gateway_client.py
"""
HTTP client for the tool protocol gateway.

Lets the orchestrator run tools in a separate gateway process. It exposes the
same `execute(name, args, ctx) -> ToolResult` surface as ToolExecutor.

Environment:
  TOOL_GATEWAY_URL  base URL of the Banb API hosting /api/mcp
  JWT_SECRET        when set, each call carries a token minted for the caller

The gateway treats every call as explicit, so the on-chain gate is enforced
here before anything goes over the wire.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from banb.errors import AuthenticationError, BanbError, UnknownToolError, ValidationError
from banb.gateway.auth import create_token
from banb.tools.executor import ONCHAIN_NOT_REQUESTED, ToolExecutionContext, ToolResult
from banb.tools.registry import ONCHAIN_TOOL, Tool

logger = logging.getLogger("banb.tools")

GATEWAY_PATH = "/api/mcp"


class GatewayToolClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        bearer_token: Optional[str] = None,
        jwt_secret: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.bearer_token = bearer_token
        self.jwt_secret = jwt_secret
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)
        logger.info("GatewayToolClient initialized for %s", self.base_url)

    async def close(self) -> None:
        try:
            await self._client.aclose()
        except Exception:
            logger.exception("Error closing gateway client")

    def _headers(self, caller_id: str, session_id: Optional[str]) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if session_id:
            headers["X-Session-Id"] = session_id
        token = create_token(caller_id, self.jwt_secret) if self.jwt_secret else self.bearer_token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _post(self, body: Dict[str, Any], session_id: Optional[str]) -> Dict[str, Any]:
        headers = self._headers(body["context"]["profileId"], session_id)
        resp = await self._client.post(GATEWAY_PATH, json=body, headers=headers)
        try:
            payload = resp.json()
        except ValueError:
            payload = {"error": resp.text or "Invalid gateway response", "code": "INTERNAL_ERROR"}

        if resp.status_code == 200:
            return payload
        message = payload.get("error") or f"Gateway error {resp.status_code}"
        logger.error("Gateway %s -> %s: %s", body.get("method"), resp.status_code, message)
        if resp.status_code == 401:
            raise AuthenticationError(message)
        if resp.status_code == 400:
            raise ValidationError(message)
        if resp.status_code == 404:
            raise UnknownToolError(body.get("params", {}).get("name", "?"))
        raise BanbError(message)

    async def list_tools(self, caller_id: str, session_id: Optional[str] = None) -> List[Tool]:
        payload = await self._post({"method": "list", "context": {"profileId": caller_id}}, session_id)
        return [Tool.model_validate(t) for t in payload.get("tools", [])]

    async def execute(self, tool_name: str, args: Optional[Dict[str, Any]], ctx: ToolExecutionContext) -> ToolResult:
        if ctx is None or not ctx.caller_id:
            raise AuthenticationError("Authentication required")
        if tool_name == ONCHAIN_TOOL and not ctx.allow_onchain_lookup:
            logger.info("Refusing %s for caller=%s: no explicit on-chain request", tool_name, ctx.caller_id)
            return ToolResult.failure(ONCHAIN_NOT_REQUESTED)
        body = {
            "method": "call",
            "params": {"name": tool_name, "arguments": args or {}},
            "context": {"profileId": ctx.caller_id},
        }
        try:
            payload = await self._post(body, ctx.session_id)
        except httpx.HTTPError as e:
            logger.error("Gateway unreachable for %s: %s", tool_name, e)
            return ToolResult.failure(f"Tool gateway unreachable: {e.__class__.__name__}")

        try:
            text = payload["content"][0]["text"]
            return ToolResult.model_validate(json.loads(text))
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.error("Malformed gateway result for %s: %s", tool_name, e)
            return ToolResult.failure("Malformed tool result from gateway")
