"""
Operation parsing, payment validation and the confirmation gate lifecycle.
"""

import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from banb.db import crud
from banb.db.models import AiOperation, Transaction
from banb.errors import OperationNotFoundError, ValidationError
from banb.operations.gate import ACKNOWLEDGEMENT_REQUIRED, PAYMENT_WARNING, ConfirmationGate
from banb.operations.parser import ParsedOperation, parse_operation
from banb.operations.policy import OperationPolicy
from banb.operations.validation import balance_warning, parse_amount, payment_violations, validate_payment
from banb.tools.insights import spending_trend

VALID_ADDR = "0x" + "ab" * 20


# ---------------------------------------------------------------------------
# parser
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "text, amount, name",
    [
        ("I'll send $50 to Alice", "50", "Alice"),
        ("send 12.50 to bob now", "12.50", "bob"),
        ("SEND $7 TO Carol.", "7", "Carol"),
    ],
)
def test_parse_payment(text, amount, name):
    op = parse_operation(text)
    assert op.type == "payment"
    assert op.data == {"amount": amount, "recipientName": name}
    assert op.requires_confirmation


@pytest.mark.parametrize("text", [None, "", "Your balance is $50", "transfer 50 to Alice", "send money to Alice"])
def test_no_operation(text):
    assert parse_operation(text) is None


def test_policy_levels():
    policy = OperationPolicy()
    assert policy.evaluate("payment") == {
        "risk_level": "high",
        "requires_confirmation": True,
        "requires_acknowledgement": True,
    }
    assert policy.evaluate("analysis")["requires_confirmation"] is False
    assert policy.evaluate("something_new")["risk_level"] == "medium"


# ---------------------------------------------------------------------------
# validation
# ---------------------------------------------------------------------------

def test_valid_payment_has_no_violations():
    assert payment_violations({"recipient_id": "r1", "amount": "10", "chain": "base"}) == []
    assert payment_violations({"to": VALID_ADDR, "amount": 1, "chain": "base"}) == []


@pytest.mark.parametrize(
    "data, first",
    [
        ({"amount": "10", "chain": "base"}, "Payment requires recipient_id or recipient address"),
        ({"recipient_id": "r1", "chain": "base"}, "Payment requires amount"),
        ({"recipient_id": "r1", "amount": "ten", "chain": "base"}, "Payment amount must be a number"),
        ({"recipient_id": "r1", "amount": "0", "chain": "base"}, "Payment amount must be greater than zero"),
        ({"recipient_id": "r1", "amount": "-5", "chain": "base"}, "Payment amount must be greater than zero"),
        ({"to": "0x1234", "amount": "5", "chain": "base"}, "Invalid recipient address format"),
        ({"recipient_id": "r1", "amount": "5"}, "Payment requires blockchain network"),
    ],
)
def test_payment_violations(data, first):
    assert payment_violations(data)[0] == first
    with pytest.raises(ValidationError, match=first):
        validate_payment(data)


def test_violations_are_all_reported():
    violations = payment_violations({})
    assert violations == [
        "Payment requires recipient_id or recipient address",
        "Payment requires amount",
        "Payment requires blockchain network",
    ]


def test_parse_amount():
    assert parse_amount("$12.50") == Decimal("12.50")
    assert parse_amount(3) == Decimal("3")
    assert parse_amount("abc") is None
    assert parse_amount(True) is None
    assert parse_amount("NaN") is None


def test_balance_warning_is_informational():
    assert balance_warning({"amount": "2000"}, Decimal("1250.50")) == "Amount exceeds your known balance of $1250.50"
    assert balance_warning({"amount": "20"}, Decimal("1250.50")) is None
    assert balance_warning({"amount": "20"}, None) is None


@pytest.mark.parametrize(
    "amounts, trend",
    [([], "stable"), ([10], "stable"), ([10, 50], "increasing"), ([50, 10], "decreasing"), ([10, 10.5], "stable")],
)
def test_spending_trend(amounts, trend):
    assert spending_trend([Decimal(str(a)) for a in amounts]) == trend


# ---------------------------------------------------------------------------
# confirmation gate
# ---------------------------------------------------------------------------

@pytest.fixture
def gate(session_factory, executor):
    return ConfirmationGate(session_factory, tools=executor)


async def record_payment(gate, caller="u1", amount="25", name="Alice"):
    op = ParsedOperation(type="payment", data={"amount": amount, "recipientName": name})
    return await gate.record(caller, op, user_message=f"send {amount} to {name}", model_response="ok")


async def count_transactions(session_factory):
    async with session_factory() as db:
        return (await db.execute(select(func.count()).select_from(Transaction))).scalar_one()


async def test_record_starts_unconfirmed(seeded, gate):
    record = await record_payment(gate)
    assert record.caller_id == "u1"
    assert record.user_confirmed is False
    assert record.executed is False
    assert record.execution_result is None


async def test_review_payment(seeded, gate):
    record = await record_payment(gate)
    review = await gate.review(record.id, "u1")
    assert review["amount"] == "$25.00"
    assert review["token"] == "USDC"
    assert review["recipient_name"] == "Alice"
    assert review["recipient_address"] == "0xb2b2...b2b2"
    assert review["network"] == "base"
    assert review["estimated_fee"] == "$0.01"
    assert review["warning"] == PAYMENT_WARNING
    assert review["requires_acknowledgement"] is True
    assert review["blocking_issue"] is None
    assert review["balance_warning"] is None


async def test_review_flags_unknown_recipient_and_large_amount(seeded, gate):
    record = await record_payment(gate, amount="5000", name="Zed")
    review = await gate.review(record.id, "u1")
    assert review["blocking_issue"] == "Recipient 'Zed' not found in your saved recipients"
    assert review["balance_warning"] == "Amount exceeds your known balance of $1250.50"


async def test_other_callers_cannot_see_operation(seeded, gate):
    record = await record_payment(gate)
    with pytest.raises(OperationNotFoundError):
        await gate.review(record.id, "u2")
    with pytest.raises(OperationNotFoundError):
        await gate.execute(record.id, "u2", confirmed=True, acknowledged=True)


async def test_unconfirmed_execute_is_refused_and_audited(seeded, gate, session_factory):
    record = await record_payment(gate)
    with pytest.raises(ValidationError, match="Operation not confirmed by user"):
        await gate.execute(record.id, "u1", confirmed=False)

    stored = await gate.get(record.id, "u1")
    assert stored.executed is False
    assert stored.user_confirmed is False
    assert stored.execution_result == {"status": "rejected", "error": "Operation not confirmed by user"}
    assert await count_transactions(session_factory) == 4


async def test_payment_needs_acknowledgement(seeded, gate, session_factory):
    record = await record_payment(gate)
    with pytest.raises(ValidationError) as exc:
        await gate.execute(record.id, "u1", confirmed=True)
    assert exc.value.message == ACKNOWLEDGEMENT_REQUIRED
    assert (await gate.get(record.id, "u1")).executed is False
    assert await count_transactions(session_factory) == 4


async def test_confirmed_payment_creates_pending_transaction(seeded, gate, session_factory):
    record = await record_payment(gate)
    result = await gate.execute(record.id, "u1", confirmed=True, acknowledged=True)

    assert result["recipientName"] == "Alice"
    assert result["amount"] == "$25.00"
    assert result["chain"] == "base"
    assert result["token"] == "USDC"
    assert "warning" not in result

    stored = await gate.get(record.id, "u1")
    assert stored.user_confirmed is True
    assert stored.executed is True
    assert stored.executed_at is not None
    assert stored.execution_result["transactionId"] == result["transactionId"]

    async with session_factory() as db:
        tx = await db.get(Transaction, result["transactionId"])
    assert tx.status == "pending"
    assert tx.sender_profile_id == "u1"
    assert tx.recipient_id == "rec-alice"
    assert Decimal(str(tx.amount)) == Decimal("25")


async def test_payment_is_never_executed_twice(seeded, gate, session_factory):
    record = await record_payment(gate)
    await gate.execute(record.id, "u1", confirmed=True, acknowledged=True)
    with pytest.raises(ValidationError, match="already executed"):
        await gate.execute(record.id, "u1", confirmed=True, acknowledged=True)
    with pytest.raises(ValidationError, match="already executed"):
        await gate.reject(record.id, "u1")
    assert await count_transactions(session_factory) == 5


async def test_concurrent_confirmations_execute_once(seeded, gate, session_factory):
    record = await record_payment(gate)
    outcomes = await asyncio.gather(
        gate.execute(record.id, "u1", confirmed=True, acknowledged=True),
        gate.execute(record.id, "u1", confirmed=True, acknowledged=True),
        return_exceptions=True,
    )

    succeeded = [o for o in outcomes if isinstance(o, dict)]
    refused = [o for o in outcomes if isinstance(o, ValidationError)]
    assert len(succeeded) == 1 and len(refused) == 1
    assert refused[0].message == "Operation already executed"
    assert await count_transactions(session_factory) == 5
    stored = await gate.get(record.id, "u1")
    assert stored.executed is True
    assert stored.execution_result["transactionId"] == succeeded[0]["transactionId"]


async def test_failed_execution_releases_claim(seeded, gate, session_factory, monkeypatch):
    record = await record_payment(gate)

    async def broken(*args, **kwargs):
        raise RuntimeError("db went away")

    monkeypatch.setattr(crud, "create_pending_transaction", broken)
    with pytest.raises(RuntimeError):
        await gate.execute(record.id, "u1", confirmed=True, acknowledged=True)

    stored = await gate.get(record.id, "u1")
    assert stored.executed is False
    assert stored.executed_at is None
    assert stored.execution_result == {"status": "failed", "error": "RuntimeError"}

    monkeypatch.undo()
    await gate.execute(record.id, "u1", confirmed=True, acknowledged=True)
    assert await count_transactions(session_factory) == 5


async def test_large_payment_executes_with_warning(seeded, gate):
    record = await record_payment(gate, amount="2000", name="bob")
    result = await gate.execute(record.id, "u1", confirmed=True, acknowledged=True)
    assert result["recipientName"] == "Bob"
    assert result["warning"] == "Amount exceeds your known balance of $1250.50"


async def test_invalid_payment_is_blocked(seeded, gate, session_factory):
    record = await record_payment(gate, name="Carol")  # inactive recipient
    with pytest.raises(ValidationError, match="not found in your saved recipients"):
        await gate.execute(record.id, "u1", confirmed=True, acknowledged=True)

    stored = await gate.get(record.id, "u1")
    assert stored.executed is False
    assert stored.execution_result["status"] == "blocked"
    assert await count_transactions(session_factory) == 4


async def test_zero_amount_is_blocked(seeded, gate):
    op = ParsedOperation(type="payment", data={"amount": "0", "recipient_id": "rec-bob"})
    record = await gate.record("u1", op)
    with pytest.raises(ValidationError, match="greater than zero"):
        await gate.execute(record.id, "u1", confirmed=True, acknowledged=True)


async def test_reject_keeps_row(seeded, gate):
    record = await record_payment(gate)
    rejected = await gate.reject(record.id, "u1")
    assert rejected.execution_result["status"] == "rejected"
    history = await gate.history("u1")
    assert [h.id for h in history] == [record.id]


async def test_direct_analysis_runs_immediately(seeded, gate):
    record, result = await gate.run_direct("u1", ParsedOperation(type="analysis"), user_message="analyze")
    assert result["analysis"]["total_spent"] == "$100.00"
    assert record.executed and record.user_confirmed


async def test_direct_query_runs_tool(seeded, gate):
    op = ParsedOperation(type="query", data={"tool": "get_user_balance"})
    record, result = await gate.run_direct("u1", op)
    assert result["query"] == "get_user_balance"
    assert result["result"]["data"]["balance"] == "$1250.50"
    assert record.execution_result == result


async def test_direct_payment_is_refused(seeded, gate):
    with pytest.raises(ValidationError):
        await gate.run_direct("u1", ParsedOperation(type="payment", data={"amount": "1", "recipientName": "Bob"}))
    assert await gate.history("u1") == []


async def test_executed_requires_confirmed_in_every_row(seeded, gate, session_factory):
    await gate.run_direct("u1", ParsedOperation(type="analysis"))
    record = await record_payment(gate)
    await gate.execute(record.id, "u1", confirmed=True, acknowledged=True)
    await gate.reject((await record_payment(gate)).id, "u1")

    async with session_factory() as db:
        rows = (await db.execute(select(AiOperation))).scalars().all()
    assert len(rows) == 3
    assert all(r.user_confirmed for r in rows if r.executed)
