"""
Shared utilities for the Banb agent and orchestrator.

This file centralizes formatting and prompt-assembly helpers so that the
main classes stay focused on core logic.
"""

import json
from typing import Any, Iterable, List

from banb.agent.context import ConversationContext
from banb.tools.executor import ToolResult
from banb.tools.registry import Tool


def build_tools_block(tools: Iterable[Tool]) -> str:
    """Render `- name: description` lines for the system prompt."""
    return "\n".join(f"- {t.name}: {t.description}" for t in tools)


def build_user_context_block(context: ConversationContext) -> str:
    """
    Compact, prompt-friendly rendering of the assembled context.
    Only sections that were actually fetched are included.
    """
    if context is None or context.is_empty:
        return ""
    lines: List[str] = []
    if context.profile_summary:
        lines.append(f"- Name: {context.profile_summary.get('name')} (@{context.profile_summary.get('handle')})")
    if context.balance:
        lines.append(f"- Balance: {context.balance.get('balance')} {context.balance.get('currency', '')}".rstrip())
    if context.recent_transactions is not None:
        lines.append(f"- Recent transactions ({len(context.recent_transactions)}):")
        for tx in context.recent_transactions:
            lines.append(f"  * {tx.get('date')} {tx.get('amount')} to {tx.get('recipient_name')} [{tx.get('status')}]")
    if context.recipients is not None:
        names = ", ".join(r.get("name", "?") for r in context.recipients) or "none"
        lines.append(f"- Saved recipients: {names}")
    return "\n".join(lines)


def format_tool_result(result: ToolResult) -> str:
    """Text fed back to the model (and used by the fallback) for one tool result."""
    if not result.success:
        return f"Error: {result.error or 'Tool execution failed'}"
    return json.dumps(result.data, indent=2, default=str)


def describe_error(exc: Any) -> str:
    message = getattr(exc, "message", None) or str(exc)
    return message or exc.__class__.__name__
