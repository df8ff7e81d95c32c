from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from banb.db.models import Account, Recipient, Transaction


def format_usd(value: Any) -> str:
    """Render an amount as "$x.xx"; unparseable values render as "$0.00"."""
    try:
        num = Decimal(str(value if value is not None else 0))
    except InvalidOperation:
        num = Decimal("0")
    return f"${num.quantize(Decimal('0.01'))}"


def mask_address(address: Optional[str]) -> Optional[str]:
    """Return 0x1234...abcd style address; short values are returned unchanged."""
    if not address:
        return None
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


def _date(value) -> Optional[str]:
    return value.date().isoformat() if value is not None else None


def serialize_account(a: Account) -> Dict[str, Any]:
    return {
        "id": a.id,
        "name": a.name,
        "type": a.type,
        "network": a.network,
        "balance": format_usd(a.balance),
        "address": mask_address(a.address),
        "is_primary": bool(a.is_primary),
        "status": a.status,
    }


def recipient_address(r: Optional[Recipient]) -> Optional[str]:
    if r is None:
        return None
    return r.external_address


def serialize_transaction(t: Transaction) -> Dict[str, Any]:
    recipient = t.recipient
    return {
        "id": t.id,
        "amount": format_usd(t.amount),
        "recipient_name": recipient.name if recipient is not None else "Unknown",
        "recipient_address": mask_address(recipient_address(recipient)),
        "date": _date(t.created_at),
        "status": t.status,
        "token": t.token,
        "chain": t.chain,
    }


def serialize_recipient(r: Recipient, total_sent: Decimal = Decimal("0")) -> Dict[str, Any]:
    return {
        "id": r.id,
        "name": r.name,
        "address": mask_address(r.external_address),
        "type": r.recipient_type,
        "status": r.status,
        "is_app_user": bool(r.profile_id_link),
        "total_sent": format_usd(total_sent),
    }
