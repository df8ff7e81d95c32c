"""
agent/context.py

ContextAssembler builds the per-turn ConversationContext used to seed the
system prompt. Nothing here is cached between turns.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel

from banb.db import crud
from banb.db.serializers import mask_address, serialize_transaction
from banb.tools.executor import ToolExecutionContext

logger = logging.getLogger("banb.agent")

CONTEXT_TRANSACTION_LIMIT = 10


class ConversationContext(BaseModel):
    profile_summary: Optional[Dict[str, Any]] = None
    balance: Optional[Dict[str, Any]] = None
    recent_transactions: Optional[List[Dict[str, Any]]] = None
    recipients: Optional[List[Dict[str, Any]]] = None

    @property
    def is_empty(self) -> bool:
        return not any((self.profile_summary, self.balance, self.recent_transactions, self.recipients))


class ContextAssembler:
    def __init__(self, tools: Any, session_factory: Callable[[], Any]) -> None:
        # tools: anything with `async execute(name, args, ctx) -> ToolResult`
        self.tools = tools
        self.session_factory = session_factory

    async def assemble(
        self,
        caller_id: Optional[str],
        *,
        include_balance: bool = False,
        include_transactions: bool = False,
        include_recipients: bool = False,
        session_id: Optional[str] = None,
    ) -> ConversationContext:
        if not caller_id:
            return ConversationContext()

        context = ConversationContext()
        try:
            async with self.session_factory() as db:
                profile = await crud.get_profile(db, caller_id)
                if profile is not None:
                    context.profile_summary = {"name": profile.name, "handle": profile.handle}

                if include_transactions:
                    rows = await crud.list_recent_transactions(db, caller_id, limit=CONTEXT_TRANSACTION_LIMIT)
                    context.recent_transactions = [serialize_transaction(t) for t in rows]

                if include_recipients:
                    recipients = await crud.list_recipients(db, caller_id, active_only=True)
                    context.recipients = [
                        {"name": r.name, "type": r.recipient_type, "address": mask_address(r.external_address)}
                        for r in recipients
                    ]
        except Exception:
            logger.exception("Context assembly failed for caller=%s; continuing with partial context", caller_id)

        if include_balance:
            ctx = ToolExecutionContext(caller_id=caller_id, session_id=session_id)
            try:
                result = await self.tools.execute("get_user_balance", {}, ctx)
            except Exception:
                logger.exception("Balance lookup failed while assembling context")
            else:
                if result.success:
                    context.balance = result.data
                else:
                    logger.warning("Balance lookup returned error: %s", result.error)

        logger.info(
            "CONTEXT: caller=%s profile=%s balance=%s transactions=%s recipients=%s",
            caller_id,
            bool(context.profile_summary),
            bool(context.balance),
            len(context.recent_transactions or []),
            len(context.recipients or []),
        )
        return context
