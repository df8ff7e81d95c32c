"""
banb/services.py

Process-wide wiring: one set of long-lived collaborators per app instance.
Shared by the FastAPI app and the MCP server.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from banb.agent.context import ContextAssembler
from banb.agent.fallback import FallbackResponder
from banb.agent.orchestrator import AgentOrchestrator
from banb.clients.gateway_client import GatewayToolClient
from banb.clients.gemini_client import GeminiToolClient
from banb.config import Settings
from banb.db import build_session_factory, create_engine_from_url, create_schema
from banb.gateway.protocol import ProtocolGateway
from banb.guards.rate_limit import build_rate_limiter
from banb.operations.gate import ConfirmationGate
from banb.tools.executor import ToolExecutor
from banb.tools.onchain import OnchainClient

logger = logging.getLogger("banb.api")


@dataclass
class Services:
    settings: Settings
    session_factory: Any
    executor: ToolExecutor
    gateway: ProtocolGateway
    orchestrator: AgentOrchestrator
    gate: ConfirmationGate
    engine: Any = None
    onchain: Optional[OnchainClient] = None
    remote_tools: Optional[GatewayToolClient] = None

    async def close(self) -> None:
        if self.remote_tools is not None:
            await self.remote_tools.close()
        if self.onchain is not None:
            await self.onchain.close()
        await self.orchestrator.rate_limiter.close()
        if self.engine is not None:
            await self.engine.dispose()


def assemble_services(
    settings: Settings,
    session_factory: Any,
    *,
    model_client: Any = None,
    rate_limiter: Any = None,
    onchain: Optional[OnchainClient] = None,
    engine: Any = None,
) -> Services:
    """Wire collaborators around an existing session factory."""
    executor = ToolExecutor(session_factory, onchain_client=onchain, timeout=settings.tool_timeout_seconds)
    gateway = ProtocolGateway(executor, session_factory, jwt_secret=settings.jwt_secret)

    remote_tools = None
    tools: Any = executor
    if settings.tool_gateway_url:
        remote_tools = GatewayToolClient(
            settings.tool_gateway_url, timeout=settings.tool_timeout_seconds, jwt_secret=settings.jwt_secret
        )
        tools = remote_tools
        logger.info("Agent tools routed through gateway at %s", settings.tool_gateway_url)

    gate = ConfirmationGate(session_factory, tools=tools)
    orchestrator = AgentOrchestrator(
        tools=tools,
        model_client=model_client if model_client is not None else GeminiToolClient.from_settings(settings),
        rate_limiter=rate_limiter if rate_limiter is not None else build_rate_limiter(settings),
        context_assembler=ContextAssembler(tools, session_factory),
        fallback=FallbackResponder(tools),
        gate=gate,
    )
    return Services(
        settings=settings,
        session_factory=session_factory,
        executor=executor,
        gateway=gateway,
        orchestrator=orchestrator,
        gate=gate,
        engine=engine,
        onchain=onchain,
        remote_tools=remote_tools,
    )


async def build_services(settings: Settings) -> Services:
    engine = create_engine_from_url(settings.database_url)
    if settings.database_url.startswith("sqlite"):
        # local/dev runs bootstrap their own schema; PostgreSQL uses managed migrations
        await create_schema(engine)
    onchain = OnchainClient(settings.etherscan_api_key, timeout=settings.tool_timeout_seconds)
    return assemble_services(settings, build_session_factory(engine), onchain=onchain, engine=engine)
