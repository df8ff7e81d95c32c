"""Spending insights over a caller's sent transactions."""

from collections import defaultdict
from decimal import Decimal
from typing import Any, Dict, List, Sequence

from banb.db.models import Transaction
from banb.db.serializers import format_usd

TREND_THRESHOLD = Decimal("0.10")


def spending_trend(amounts_oldest_first: Sequence[Decimal]) -> str:
    """Compare the older half of the history with the newer half (±10%)."""
    if len(amounts_oldest_first) < 2:
        return "stable"
    mid = len(amounts_oldest_first) // 2
    older = sum(amounts_oldest_first[:mid], Decimal("0"))
    newer = sum(amounts_oldest_first[mid:], Decimal("0"))
    if newer > older * (1 + TREND_THRESHOLD):
        return "increasing"
    if newer < older * (1 - TREND_THRESHOLD):
        return "decreasing"
    return "stable"


def portfolio_insights(transactions: List[Transaction]) -> Dict[str, Any]:
    amounts = [Decimal(str(t.amount)) for t in transactions]
    total = sum(amounts, Decimal("0"))

    by_recipient: Dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
    for t, amount in zip(transactions, amounts):
        name = t.recipient.name if t.recipient is not None else "Unknown"
        by_recipient[name] += amount
    top = sorted(by_recipient.items(), key=lambda item: item[1], reverse=True)[:3]

    ordered = sorted(zip(transactions, amounts), key=lambda pair: pair[0].created_at)
    trend = spending_trend([amount for _, amount in ordered])
    average = total / len(amounts) if amounts else Decimal("0")

    insights = {
        "total_spent": format_usd(total),
        "transaction_count": len(amounts),
        "top_recipients": [{"name": name, "amount": format_usd(amount)} for name, amount in top],
        "spending_trend": trend,
        "average_transaction": format_usd(average),
    }
    insights["summary"] = insights_summary(insights)
    return insights


def insights_summary(insights: Dict[str, Any]) -> str:
    if not insights["transaction_count"]:
        return "You haven't sent any payments yet."
    parts = [
        f"You've sent {insights['total_spent']} across {insights['transaction_count']} transaction(s)."
    ]
    if insights["top_recipients"]:
        top = insights["top_recipients"][0]
        parts.append(f"Your top recipient is {top['name']} ({top['amount']}).")
    trend = insights["spending_trend"]
    if trend == "increasing":
        parts.append("Your spending is trending up recently.")
    elif trend == "decreasing":
        parts.append("Your spending is trending down recently.")
    else:
        parts.append("Your spending has been stable.")
    return " ".join(parts)
