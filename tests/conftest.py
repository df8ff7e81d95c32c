"""
Pytest config and shared fixtures.

`src/` is put on sys.path so the tests run against the working tree even when
the package is not installed. Every test gets a fresh in-memory SQLite database
seeded with two active callers (`u1`, `u2`) whose data must never mix, plus an
inactive profile (`u3`).
"""

from __future__ import annotations

import sys
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from types import SimpleNamespace
from typing import Any, List

import pytest


def _ensure_src_on_syspath() -> None:
    src = str(Path(__file__).resolve().parents[1] / "src")
    if src not in sys.path:
        sys.path.insert(0, src)


_ensure_src_on_syspath()

from banb.agent.conversation import ModelReply  # noqa: E402
from banb.config import Settings  # noqa: E402
from banb.db import build_session_factory, create_engine_from_url, create_schema  # noqa: E402
from banb.db.models import Account, Profile, Recipient, Transaction  # noqa: E402
from banb.guards.rate_limit import FixedWindowRateLimiter, MemoryCounterStore  # noqa: E402
from banb.tools.executor import ToolExecutor  # noqa: E402

ADDR_U1 = "0x" + "a1" * 20
ADDR_U2 = "0x" + "b2" * 20
ADDR_BOB = "0x" + "c3" * 20


@pytest.fixture
async def engine():
    eng = create_engine_from_url("sqlite+aiosqlite://")
    await create_schema(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def seeded(session_factory):
    """Two callers with accounts, recipients and transactions in both directions."""
    async with session_factory() as db:
        db.add_all(
            [
                Profile(id="u1", name="Mario Rossi", handle="mario", wallet_address=ADDR_U1, status="active"),
                Profile(id="u2", name="Alice Bianchi", handle="alice", wallet_address=ADDR_U2, status="active"),
                Profile(id="u3", name="Dormant User", handle="dormant", status="inactive"),
            ]
        )
        await db.flush()
        db.add_all(
            [
                Account(
                    id="acc-u1-main", profile_id="u1", name="Main Wallet", type="wallet", address=ADDR_U1,
                    network="base", balance=Decimal("1250.50"), is_primary=True, status="active",
                    created_at=datetime(2025, 1, 2),
                ),
                Account(
                    id="acc-u1-bank", profile_id="u1", name="Savings", type="bank", address=None,
                    network="base", balance=Decimal("300"), is_primary=False, status="active",
                    created_at=datetime(2025, 3, 1),
                ),
                Account(
                    id="acc-u2-main", profile_id="u2", name="Alice Wallet", type="wallet", address=ADDR_U2,
                    network="base", balance=Decimal("999"), is_primary=True, status="active",
                    created_at=datetime(2025, 1, 5),
                ),
                Recipient(
                    id="rec-alice", profile_id="u1", name="Alice", status="active", recipient_type="app_user",
                    profile_id_link="u2", external_address=ADDR_U2,
                ),
                Recipient(
                    id="rec-bob", profile_id="u1", name="Bob", status="active", recipient_type="external_wallet",
                    external_address=ADDR_BOB,
                ),
                Recipient(
                    id="rec-carol", profile_id="u1", name="Carol", status="inactive",
                    recipient_type="external_wallet", external_address="0x" + "d4" * 20,
                ),
                Recipient(
                    id="rec-mario", profile_id="u2", name="Mario", status="active", recipient_type="app_user",
                    profile_id_link="u1", external_address=ADDR_U1,
                ),
            ]
        )
        await db.flush()
        db.add_all(
            [
                Transaction(id="tx1", sender_profile_id="u1", recipient_id="rec-alice", amount=Decimal("20"),
                            status="completed", created_at=datetime(2025, 1, 10)),
                Transaction(id="tx2", sender_profile_id="u1", recipient_id="rec-bob", amount=Decimal("30"),
                            status="completed", created_at=datetime(2025, 1, 11)),
                Transaction(id="tx3", sender_profile_id="u1", recipient_id="rec-alice", amount=Decimal("50"),
                            status="completed", created_at=datetime(2025, 1, 12)),
                Transaction(id="tx4", sender_profile_id="u2", recipient_id="rec-mario", amount=Decimal("15"),
                            status="completed", created_at=datetime(2025, 1, 13)),
            ]
        )
        await db.commit()
    return SimpleNamespace(caller="u1", other="u2", inactive="u3")


@pytest.fixture
def executor(session_factory):
    return ToolExecutor(session_factory, timeout=5.0)


@pytest.fixture
def settings():
    return Settings(database_url="sqlite+aiosqlite://", gemini_api_key=None)


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rate_limiter(clock):
    return FixedWindowRateLimiter(MemoryCounterStore(), limit=10, window_seconds=60, clock=clock)


class ScriptedModel:
    """Reasoning-model double: returns (or raises) the scripted replies in order."""

    def __init__(self, *replies: Any) -> None:
        self.replies: List[Any] = list(replies)
        self.calls: List[Any] = []

    async def complete(self, conversation, tools=()):
        self.calls.append(SimpleNamespace(conversation=conversation, tools=list(tools)))
        if not self.replies:
            return ModelReply(text="(no scripted reply)")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


@pytest.fixture
def scripted_model():
    return ScriptedModel
