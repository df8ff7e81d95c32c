# banb/db/crud.py
"""
Caller-scoped queries. Every read takes the caller's profile id explicitly;
none of these helpers can be asked for another profile's rows by argument
shape alone.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager

from banb.db.models import Profile, Account, Recipient, Transaction, AiOperation


async def get_profile(db: AsyncSession, profile_id: str) -> Optional[Profile]:
    q = select(Profile).where(Profile.id == profile_id)
    res = await db.execute(q)
    return res.scalars().first()


async def get_active_profile(db: AsyncSession, profile_id: str) -> Optional[Profile]:
    q = select(Profile).where(Profile.id == profile_id, Profile.status == "active")
    res = await db.execute(q)
    return res.scalars().first()


async def get_primary_account(db: AsyncSession, profile_id: str) -> Optional[Account]:
    q = (
        select(Account)
        .where(Account.profile_id == profile_id, Account.is_primary.is_(True), Account.status == "active")
        .limit(1)
    )
    res = await db.execute(q)
    return res.scalars().first()


async def list_accounts(db: AsyncSession, profile_id: str) -> List[Account]:
    q = (
        select(Account)
        .where(Account.profile_id == profile_id)
        .order_by(Account.is_primary.desc(), Account.created_at.desc())
    )
    res = await db.execute(q)
    return list(res.scalars().all())


async def get_base_account(db: AsyncSession, profile_id: str) -> Optional[Account]:
    """Primary active account on base, else any active base account."""
    q = (
        select(Account)
        .where(Account.profile_id == profile_id, Account.network == "base", Account.status == "active")
        .order_by(Account.is_primary.desc(), Account.created_at.desc())
        .limit(1)
    )
    res = await db.execute(q)
    return res.scalars().first()


async def list_recent_transactions(db: AsyncSession, profile_id: str, limit: int = 10) -> List[Transaction]:
    """Transactions the caller sent or that went to one of their own recipients, newest first."""
    own_recipients = select(Recipient.id).where(Recipient.profile_id == profile_id)
    q = (
        select(Transaction)
        .join(Transaction.recipient)
        .options(contains_eager(Transaction.recipient))
        .where(or_(Transaction.sender_profile_id == profile_id, Transaction.recipient_id.in_(own_recipients)))
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .limit(limit)
    )
    res = await db.execute(q)
    return list(res.scalars().all())


async def list_sent_transactions(db: AsyncSession, profile_id: str, limit: Optional[int] = None) -> List[Transaction]:
    q = (
        select(Transaction)
        .join(Transaction.recipient)
        .options(contains_eager(Transaction.recipient))
        .where(Transaction.sender_profile_id == profile_id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
    )
    if limit is not None:
        q = q.limit(limit)
    res = await db.execute(q)
    return list(res.scalars().all())


async def sent_totals_by_recipient(db: AsyncSession, profile_id: str) -> Dict[str, Decimal]:
    q = (
        select(Transaction.recipient_id, func.sum(Transaction.amount))
        .where(Transaction.sender_profile_id == profile_id)
        .group_by(Transaction.recipient_id)
    )
    res = await db.execute(q)
    return {rid: Decimal(str(total or 0)) for rid, total in res.all()}


async def list_recipients(db: AsyncSession, profile_id: str, active_only: bool = False) -> List[Recipient]:
    q = select(Recipient).where(Recipient.profile_id == profile_id)
    if active_only:
        q = q.where(Recipient.status == "active")
    q = q.order_by(Recipient.name.asc())
    res = await db.execute(q)
    return list(res.scalars().all())


async def find_recipient_by_name(db: AsyncSession, profile_id: str, name: str) -> Optional[Recipient]:
    q = (
        select(Recipient)
        .where(
            Recipient.profile_id == profile_id,
            Recipient.status == "active",
            func.lower(Recipient.name) == name.strip().lower(),
        )
        .limit(1)
    )
    res = await db.execute(q)
    return res.scalars().first()


async def get_recipient(db: AsyncSession, profile_id: str, recipient_id: str) -> Optional[Recipient]:
    q = select(Recipient).where(Recipient.profile_id == profile_id, Recipient.id == recipient_id)
    res = await db.execute(q)
    return res.scalars().first()


async def create_pending_transaction(
    db: AsyncSession,
    *,
    profile_id: str,
    recipient_id: str,
    amount: Decimal,
    chain: str = "base",
    token: str = "USDC",
) -> Transaction:
    tx = Transaction(
        sender_profile_id=profile_id,
        recipient_id=recipient_id,
        amount=amount,
        chain=chain,
        token=token,
        status="pending",
    )
    db.add(tx)
    await db.flush()
    return tx


# ---------------------------------------------------------------------------
# ai_operations audit trail (insert/update only, never deleted)
# ---------------------------------------------------------------------------

async def insert_ai_operation(
    db: AsyncSession,
    *,
    profile_id: str,
    operation_type: str,
    operation_data: Dict[str, Any],
    user_message: Optional[str],
    ai_response: Optional[str],
) -> AiOperation:
    op = AiOperation(
        profile_id=profile_id,
        operation_type=operation_type,
        operation_data=operation_data,
        user_message=user_message,
        ai_response=ai_response,
        user_confirmed=False,
        executed=False,
    )
    db.add(op)
    await db.flush()
    return op


async def get_ai_operation(db: AsyncSession, operation_id: str, profile_id: str) -> Optional[AiOperation]:
    q = select(AiOperation).where(AiOperation.id == operation_id, AiOperation.profile_id == profile_id)
    res = await db.execute(q)
    return res.scalars().first()


async def claim_ai_operation(db: AsyncSession, operation_id: str, profile_id: str) -> bool:
    """
    Flip an unexecuted operation to confirmed+executed in one conditional
    UPDATE. Returns False when the row is missing, foreign or already claimed.
    """
    q = (
        update(AiOperation)
        .where(
            AiOperation.id == operation_id,
            AiOperation.profile_id == profile_id,
            AiOperation.executed.is_(False),
        )
        .values(user_confirmed=True, executed=True, executed_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    res = await db.execute(q)
    return res.rowcount == 1


async def list_ai_operations(db: AsyncSession, profile_id: str, limit: int = 20) -> List[AiOperation]:
    q = (
        select(AiOperation)
        .where(AiOperation.profile_id == profile_id)
        .order_by(AiOperation.created_at.desc(), AiOperation.id.desc())
        .limit(limit)
    )
    res = await db.execute(q)
    return list(res.scalars().all())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
