"""Pre-execution checks for payment operations."""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from banb.db.serializers import format_usd
from banb.errors import ValidationError

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")


def parse_amount(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip().lstrip("$"))
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def payment_violations(data: Dict[str, Any]) -> List[str]:
    """All blocking problems, in the order they are reported."""
    violations: List[str] = []
    if not data.get("recipient_id") and not data.get("to"):
        violations.append("Payment requires recipient_id or recipient address")

    raw_amount = data.get("amount")
    if raw_amount is None or str(raw_amount).strip() == "":
        violations.append("Payment requires amount")
    else:
        amount = parse_amount(raw_amount)
        if amount is None:
            violations.append("Payment amount must be a number")
        elif amount <= 0:
            violations.append("Payment amount must be greater than zero")

    if data.get("to") and not data.get("recipient_id") and not ADDRESS_PATTERN.match(str(data["to"])):
        violations.append("Invalid recipient address format")

    if not data.get("chain"):
        violations.append("Payment requires blockchain network")
    return violations


def balance_warning(data: Dict[str, Any], known_balance: Optional[Decimal]) -> Optional[str]:
    """Informational only; never blocks execution."""
    amount = parse_amount(data.get("amount"))
    if amount is None or known_balance is None:
        return None
    if amount > known_balance:
        return f"Amount exceeds your known balance of {format_usd(known_balance)}"
    return None


def validate_payment(data: Dict[str, Any]) -> None:
    violations = payment_violations(data)
    if violations:
        raise ValidationError(violations[0], details={"violations": violations})
