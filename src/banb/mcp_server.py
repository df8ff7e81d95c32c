"""
Standalone FastMCP HTTP Server
--------------------------------
Publishes the Banb tool registry over the Model Context Protocol
(streamable-http transport), backed by the same ToolExecutor as /api/mcp.

Tools exposed:
 - get_investment_options
 - get_user_balance
 - get_accounts
 - get_recent_transactions
 - get_recipients
 - get_transaction_summary
 - get_onchain_transactions

Caller identity comes from the X-Profile-Id header, or from the
Authorization bearer token when JWT_SECRET is configured. It is never a
tool argument.
"""

import asyncio
from typing import Any, Dict, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.server.dependencies import get_http_headers

from banb.config import load_settings
from banb.errors import AuthenticationError
from banb.gateway.auth import resolve_caller_id
from banb.logging_config import get_logger, setup_logging
from banb.services import Services, build_services
from banb.tools.executor import ToolExecutionContext
from banb.tools.registry import TOOL_REGISTRY

logger = get_logger("banb.mcp_server")

# Create MCP registry
mcp = FastMCP(name="banb_mcp")

_services: Optional[Services] = None
_services_lock = asyncio.Lock()


def configure(services: Optional[Services]) -> None:
    """Install (or clear) the services used by the tool functions."""
    global _services
    _services = services


async def _get_services() -> Services:
    global _services
    if _services is None:
        async with _services_lock:
            if _services is None:
                _services = await build_services(load_settings())
    return _services


def _description(name: str) -> str:
    return TOOL_REGISTRY.get(name).description


async def _run_tool(name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
    services = await _get_services()
    headers = get_http_headers(include_all=True)
    try:
        caller_id = resolve_caller_id(
            headers.get("x-profile-id"),
            authorization=headers.get("authorization"),
            jwt_secret=services.settings.jwt_secret,
        )
        await services.gateway.validate_caller(caller_id)
    except AuthenticationError as exc:
        logger.warning("MCP tool %s rejected: %s", name, exc.message)
        raise ToolError(f"UNAUTHORIZED: {exc.message}") from exc

    # an MCP tool call is an explicit request, on-chain included
    ctx = ToolExecutionContext(
        caller_id=caller_id,
        session_id=headers.get("mcp-session-id") or headers.get("x-session-id"),
        allow_onchain_lookup=True,
    )
    result = await services.executor.execute(name, arguments, ctx)
    logger.info("MCP tool %s caller=%s success=%s", name, caller_id, result.success)
    return result.wire()


@mcp.tool(name="get_investment_options", description=_description("get_investment_options"))
async def get_investment_options() -> dict:
    return await _run_tool("get_investment_options", {})


@mcp.tool(name="get_user_balance", description=_description("get_user_balance"))
async def get_user_balance() -> dict:
    return await _run_tool("get_user_balance", {})


@mcp.tool(name="get_accounts", description=_description("get_accounts"))
async def get_accounts() -> dict:
    return await _run_tool("get_accounts", {})


@mcp.tool(name="get_recent_transactions", description=_description("get_recent_transactions"))
async def get_recent_transactions(limit: int = 10) -> dict:
    return await _run_tool("get_recent_transactions", {"limit": limit})


@mcp.tool(name="get_recipients", description=_description("get_recipients"))
async def get_recipients() -> dict:
    return await _run_tool("get_recipients", {})


@mcp.tool(name="get_transaction_summary", description=_description("get_transaction_summary"))
async def get_transaction_summary() -> dict:
    return await _run_tool("get_transaction_summary", {})


@mcp.tool(name="get_onchain_transactions", description=_description("get_onchain_transactions"))
async def get_onchain_transactions(limit: int = 5) -> dict:
    return await _run_tool("get_onchain_transactions", {"limit": limit})


# -----------------------------
# Start MCP HTTP server
# -----------------------------
def main():
    settings = load_settings()
    setup_logging(settings.log_dir, settings.log_level)
    logger.info("Starting MCP HTTP server on http://%s:%s", settings.mcp_host, settings.mcp_port)

    mcp.run(
        host=settings.mcp_host,
        port=settings.mcp_port,
        transport="streamable-http",
    )


if __name__ == "__main__":
    main()
