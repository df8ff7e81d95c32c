# banb/db/models.py
import uuid
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy import Column, String, Boolean, DateTime, Numeric, ForeignKey, JSON, Text
from sqlalchemy.orm import relationship

from banb.db.session import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False)
    handle = Column(String(50), unique=True, nullable=False)
    wallet_address = Column(String(64), nullable=True)
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), default=_now)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now)


class Account(Base):
    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=_uuid)
    profile_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    # wallet | bank | investment
    type = Column(String(20), nullable=False, default="wallet")
    address = Column(String(64), nullable=True)
    network = Column(String(20), nullable=False, default="base")
    balance = Column(Numeric(20, 8), nullable=False, default=0)
    is_primary = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), default=_now)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now)


class Recipient(Base):
    __tablename__ = "recipients"

    id = Column(String(36), primary_key=True, default=_uuid)
    profile_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default="active")
    # app_user | external_wallet | bank_account
    recipient_type = Column(String(20), nullable=False, default="external_wallet")
    profile_id_link = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    external_address = Column(String(64), nullable=True)
    bank_details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now)


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=_uuid)
    sender_profile_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    recipient_id = Column(String(36), ForeignKey("recipients.id"), nullable=False)
    tx_hash = Column(String(80), nullable=True)
    chain = Column(String(20), nullable=False, default="base")
    amount = Column(Numeric(20, 8), nullable=False)
    token = Column(String(10), nullable=False, default="USDC")
    # pending | completed | failed
    status = Column(String(20), nullable=False, default="pending")
    created_at = Column(DateTime(timezone=True), default=_now, index=True)

    recipient = relationship("Recipient")


class AiOperation(Base):
    __tablename__ = "ai_operations"

    id = Column(String(36), primary_key=True, default=_uuid)
    profile_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    # payment | analysis | query
    operation_type = Column(String(20), nullable=False)
    operation_data = Column(JSON, nullable=False)
    user_message = Column(Text, nullable=True)
    ai_response = Column(Text, nullable=True)
    user_confirmed = Column(Boolean, nullable=False, default=False)
    executed = Column(Boolean, nullable=False, default=False)
    execution_result = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now, index=True)
    executed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        sa.CheckConstraint("NOT executed OR user_confirmed", name="ck_ai_operations_executed_confirmed"),
    )
