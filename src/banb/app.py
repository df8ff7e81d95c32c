"""
banb/app.py

FastAPI application for the Banb AI layer
- /api/mcp         tool protocol gateway (list / call)
- /api/ai/chat     agent chat turn
- /api/ai/...      operation review, confirmation, rejection and audit history
"""

import os
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from banb import __version__
from banb.config import Settings, load_settings
from banb.errors import AuthenticationError, BanbError, RateLimitError
from banb.gateway.auth import resolve_caller_id
from banb.logging_config import get_logger, setup_logging
from banb.operations.parser import ParsedOperation
from banb.schemas.api_models import (
    ChatRequest,
    ChatResponse,
    DirectOperationRequest,
    ExecuteRequest,
    RejectRequest,
)
from banb.services import Services, build_services

logger = get_logger("banb.api")


def _failure(status_code: int, message: str, code: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
    content: Dict[str, Any] = {"success": False, "message": message}
    if code:
        content["code"] = code
    return JSONResponse(content, status_code=status_code, headers=headers)


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        return None


def create_app(services: Optional[Services] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or (services.settings if services is not None else load_settings())

    app = FastAPI(title="Banb AI API", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.services = services

    @app.on_event("startup")
    async def startup_event():
        """
        Startup wiring:
         - configure file logging
         - build engine, executor, gateway, model client, limiter, orchestrator and gate
        """
        if app.state.services is not None:
            return
        setup_logging(settings.log_dir, settings.log_level)
        logger.info("=" * 80)
        logger.info("BANB API STARTUP")
        app.state.services = await build_services(settings)
        logger.info("Tools: %s", app.state.services.executor.registry.names())
        logger.info("=" * 80)

    @app.on_event("shutdown")
    async def shutdown_event():
        services_ = app.state.services
        if services_ is None:
            return
        try:
            await services_.close()
        except Exception:
            logger.exception("Error during shutdown")
        logger.info("Banb API shutdown complete.")

    def svc(request: Request) -> Services:
        return request.app.state.services

    async def caller_for(request: Request, claimed: Optional[str]) -> str:
        services_ = svc(request)
        caller_id = resolve_caller_id(
            claimed,
            authorization=request.headers.get("authorization"),
            jwt_secret=services_.settings.jwt_secret,
        )
        await services_.gateway.validate_caller(caller_id)
        return caller_id

    @app.get("/api/health")
    async def health_check():
        return {"status": "ok", "version": __version__}

    # ------------------------------------------------------------------
    # tool protocol gateway
    # ------------------------------------------------------------------
    @app.get("/api/mcp")
    async def mcp_info(request: Request):
        return svc(request).gateway.server_info()

    @app.post("/api/mcp")
    async def mcp_endpoint(request: Request):
        body = await _json_body(request)
        result = await svc(request).gateway.handle(
            body,
            session_id=request.headers.get("x-session-id"),
            authorization=request.headers.get("authorization"),
        )
        return JSONResponse(result.payload, status_code=result.status_code)

    # ------------------------------------------------------------------
    # chat
    # ------------------------------------------------------------------
    @app.post("/api/ai/chat")
    async def chat(request: Request):
        body = await _json_body(request)
        try:
            req = ChatRequest.model_validate(body)
        except PydanticValidationError:
            return _failure(400, "Invalid message")

        logger.info("API Request: POST /api/ai/chat | profile=%s", req.context.profileId)
        try:
            caller_id = await caller_for(request, req.context.profileId)
            reply = await svc(request).orchestrator.handle_turn(
                req.message,
                caller_id,
                include_balance=req.context.includeBalance,
                include_transactions=req.context.includeTransactions,
                include_recipients=req.context.includeRecipients,
                session_id=request.headers.get("x-session-id"),
            )
        except AuthenticationError as exc:
            return _failure(401, exc.message)
        except RateLimitError as exc:
            return _failure(429, exc.message, headers={"Retry-After": str(exc.retry_after)})
        except Exception:
            logger.exception("AI chat error")
            return _failure(500, "Unable to process request")

        return ChatResponse(
            success=True,
            response=reply.response,
            operation=reply.operation.model_dump() if reply.operation else None,
            operationId=reply.operation_id,
            fallback=reply.used_fallback,
        ).model_dump(exclude_none=True)

    # ------------------------------------------------------------------
    # operations: review, confirm, reject, direct, history
    # ------------------------------------------------------------------
    async def run_operation_call(request: Request, claimed: Optional[str], fn):
        try:
            caller_id = await caller_for(request, claimed)
            return await fn(caller_id)
        except BanbError as exc:
            return _failure(exc.status_code, exc.message, exc.code)
        except Exception:
            logger.exception("AI operation error")
            return _failure(500, "Unable to process request")

    @app.get("/api/ai/operations")
    async def operation_history(request: Request, profileId: Optional[str] = None, limit: int = Query(20, ge=1, le=100)):
        async def run(caller_id: str):
            records = await svc(request).gate.history(caller_id, limit=limit)
            return {"success": True, "operations": [r.model_dump() for r in records]}

        return await run_operation_call(request, profileId, run)

    @app.get("/api/ai/operations/{operation_id}")
    async def operation_review(request: Request, operation_id: str, profileId: Optional[str] = None):
        async def run(caller_id: str):
            return {"success": True, "review": await svc(request).gate.review(operation_id, caller_id)}

        return await run_operation_call(request, profileId, run)

    @app.post("/api/ai/operations")
    async def direct_operation(request: Request):
        try:
            req = DirectOperationRequest.model_validate(await _json_body(request))
        except PydanticValidationError:
            return _failure(400, "Invalid operation request", "BAD_REQUEST")

        async def run(caller_id: str):
            record, result = await svc(request).gate.run_direct(
                caller_id, ParsedOperation(type=req.type, data=req.data), user_message=req.message
            )
            return {"success": True, "operation": record.model_dump(), "result": result}

        return await run_operation_call(request, req.profileId, run)

    @app.post("/api/ai/execute")
    async def execute_operation(request: Request):
        try:
            req = ExecuteRequest.model_validate(await _json_body(request))
        except PydanticValidationError:
            return _failure(400, "Missing required fields", "BAD_REQUEST")

        logger.info(
            "API Request: POST /api/ai/execute | operation=%s confirmed=%s acknowledged=%s",
            req.operationId,
            req.confirmed,
            req.acknowledgeRisk,
        )

        async def run(caller_id: str):
            result = await svc(request).gate.execute(
                req.operationId, caller_id, confirmed=req.confirmed, acknowledged=req.acknowledgeRisk
            )
            return {"success": True, "result": result}

        return await run_operation_call(request, req.profileId, run)

    @app.post("/api/ai/reject")
    async def reject_operation(request: Request):
        try:
            req = RejectRequest.model_validate(await _json_body(request))
        except PydanticValidationError:
            return _failure(400, "Missing required fields", "BAD_REQUEST")

        async def run(caller_id: str):
            record = await svc(request).gate.reject(req.operationId, caller_id)
            return {"success": True, "operation": record.model_dump()}

        return await run_operation_call(request, req.profileId, run)

    return app


app = create_app()


def main():
    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8000"))
    uvicorn.run("banb.app:app", host=host, port=port, reload=False)


if __name__ == "__main__":
    main()
