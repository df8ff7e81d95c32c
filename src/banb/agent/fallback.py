"""
agent/fallback.py

Deterministic responder used when the reasoning model cannot be reached.

Authenticated callers get live data: keywords (English and Italian) pick the
tools to call directly, and the formatted results are stitched into a
templated answer. Unauthenticated callers only get generic guidance.
The cause of the fallback is always shown as a visible warning prefix.
"""

import asyncio
import logging
import re
from typing import Any, List, Optional

from banb.agent.context import ConversationContext
from banb.agent.helpers import describe_error, format_tool_result
from banb.errors import ConfigurationError
from banb.tools.executor import ToolExecutionContext

logger = logging.getLogger("banb.agent")

IT_TRANSACTIONS = ("transazioni", "storico")
IT_ACCOUNTS = ("conti", "collegati")
IT_BALANCE = ("saldo", "ammontare", "disponibile")
IT_INVESTMENTS = ("investimenti", "investimento", "tipologie")


def _has(text: str, keywords) -> bool:
    return any(k in text for k in keywords)


def _has_word(text: str, keywords) -> bool:
    return any(re.search(rf"\b{k}\b", text) for k in keywords)


def warning_prefix(cause: Optional[BaseException]) -> str:
    if cause is None:
        return ""
    if isinstance(cause, ConfigurationError):
        return f"⚠️ Configuration Issue: {describe_error(cause)}\n\n"
    return f"⚠️ AI service unavailable: {describe_error(cause)}\n\n"


class FallbackResponder:
    def __init__(self, tools: Any) -> None:
        # tools: anything with `async execute(name, args, ctx) -> ToolResult`
        self.tools = tools

    async def _tool_text(self, name: str, args: dict, ctx: ToolExecutionContext) -> str:
        result = await self.tools.execute(name, args, ctx)
        return format_tool_result(result)

    async def respond(
        self,
        message: str,
        caller_id: Optional[str],
        context: Optional[ConversationContext] = None,
        *,
        cause: Optional[BaseException] = None,
        session_id: Optional[str] = None,
    ) -> str:
        prefix = warning_prefix(cause)
        lower = (message or "").lower()

        if caller_id:
            ctx = ToolExecutionContext(caller_id=caller_id, session_id=session_id)
            try:
                live = await self._live_answer(lower, ctx)
            except Exception:
                logger.warning("Fallback live lookup failed; returning generic guidance", exc_info=True)
            else:
                return prefix + live

        return prefix + self._generic_answer(lower, context)

    async def _live_answer(self, lower: str, ctx: ToolExecutionContext) -> str:
        it_tx = _has_word(lower, IT_TRANSACTIONS)
        it_accounts = _has_word(lower, IT_ACCOUNTS)
        it_balance = _has_word(lower, IT_BALANCE)
        it_invest = _has_word(lower, IT_INVESTMENTS)

        if it_tx or it_accounts or it_balance or it_invest:
            parts: List[str] = []
            if it_accounts or it_balance:
                parts.append("Conti collegati e saldi (dati live):\n" + await self._tool_text("get_accounts", {}, ctx))
            if it_tx:
                parts.append(
                    "Transazioni recenti (dati live):\n"
                    + await self._tool_text("get_recent_transactions", {"limit": 10}, ctx)
                )
            if it_invest:
                parts.append(
                    "Tipologie di investimenti disponibili (dati dal codice):\n"
                    + await self._tool_text("get_investment_options", {}, ctx)
                )
            return "\n\n".join(parts)

        if "invest" in lower:
            data = await self._tool_text("get_investment_options", {}, ctx)
            return "Here are the available investment options (live data):\n\n" + data

        if _has(lower, ("spending", "analyze", "summary")):
            data = await self._tool_text("get_transaction_summary", {}, ctx)
            return "Here is your spending summary (live data):\n\n" + data

        if _has(lower, ("transaction", "history")):
            data = await self._tool_text("get_recent_transactions", {"limit": 10}, ctx)
            return "Here are your recent transactions (live data):\n\n" + data

        if _has(lower, ("recipient", "friend")):
            data = await self._tool_text("get_recipients", {}, ctx)
            return "Here are your saved recipients (live data):\n\n" + data

        if _has(lower, ("balance", "accounts")):
            balance, accounts = await asyncio.gather(
                self._tool_text("get_user_balance", {}, ctx),
                self._tool_text("get_accounts", {}, ctx),
            )
            return "Balance information (live data):\n\n" + balance + "\n\nLinked accounts (live data):\n" + accounts

        summary, accounts = await asyncio.gather(
            self._tool_text("get_transaction_summary", {}, ctx),
            self._tool_text("get_accounts", {}, ctx),
        )
        return (
            "Here is a quick snapshot of your account (live data):\n\n"
            "Spending summary:\n" + summary + "\n\nLinked accounts and balances:\n" + accounts
        )

    @staticmethod
    def _generic_answer(lower: str, context: Optional[ConversationContext]) -> str:
        if "invest" in lower:
            return (
                "I can help you explore investment options. You have access to several "
                "investment products with different risk levels and APR rates."
            )
        if _has(lower, ("spending", "analyze", "summary")):
            count = len((context.recent_transactions if context else None) or [])
            return (
                f"Based on your recent activity, you have {count} transactions. "
                "I can provide detailed spending analysis and insights."
            )
        if _has(lower, ("transaction", "history")):
            return "I can show you your recent transaction history including amounts, recipients, and dates."
        if _has(lower, ("recipient", "friend")):
            return "I can help you view your saved payment recipients and analyze your payment patterns."
        if _has(lower, ("send", "pay")):
            return (
                "I can help you send a payment. Please specify the amount and recipient, "
                "and I'll prepare the transaction for your review."
            )
        if "balance" in lower:
            return "I can check your current USDC balance and provide balance-related insights."
        return (
            "I'm here to help with your banking needs. You can ask me about investments, "
            "balance, transactions, recipients, or spending analysis."
        )
