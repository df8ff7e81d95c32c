"""
operations/gate.py

ConfirmationGate owns the lifecycle of AI-derived operations:

- record():   one ai_operations row per detected operation (unconfirmed, unexecuted)
- review():   re-display what a payment will do (amount, recipient, network, fee)
- execute():  run a confirmed operation; payments also need the
              irreversibility acknowledgement and must pass validation
- reject():   record the user's refusal
- run_direct(): UI-initiated analysis/query operations, executed immediately
- history():  the caller's audit trail, newest first

Audit rows are never deleted. A row reaches executed=True only together with
user_confirmed=True.
"""

import logging
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel

from banb.db import crud
from banb.db.models import AiOperation
from banb.db.serializers import format_usd, mask_address
from banb.errors import OperationNotFoundError, ValidationError
from banb.operations.parser import ParsedOperation
from banb.operations.policy import OperationPolicy
from banb.operations.validation import balance_warning, parse_amount, payment_violations, validate_payment
from banb.tools.executor import ToolExecutionContext
from banb.tools.insights import portfolio_insights

logger = logging.getLogger("banb.operations")

PAYMENT_WARNING = (
    "This will send real funds from your wallet. "
    "Make sure the recipient and amount are correct before confirming."
)
ACKNOWLEDGEMENT_REQUIRED = (
    "Payment requires acknowledging that funds are real and the transfer is irreversible"
)
DEFAULT_NETWORK = "base"
DEFAULT_TOKEN = "USDC"
# estimated network fee in USD per chain
NETWORK_FEES = {"base": Decimal("0.01")}
ANALYSIS_WINDOW = 50


class OperationRecord(BaseModel):
    id: str
    caller_id: str
    operation_type: str
    operation_data: Dict[str, Any]
    user_message: Optional[str] = None
    model_response: Optional[str] = None
    user_confirmed: bool
    executed: bool
    execution_result: Optional[Dict[str, Any]] = None
    created_at: Optional[str] = None
    executed_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: AiOperation) -> "OperationRecord":
        return cls(
            id=row.id,
            caller_id=row.profile_id,
            operation_type=row.operation_type,
            operation_data=dict(row.operation_data or {}),
            user_message=row.user_message,
            model_response=row.ai_response,
            user_confirmed=bool(row.user_confirmed),
            executed=bool(row.executed),
            execution_result=row.execution_result,
            created_at=row.created_at.isoformat() if row.created_at else None,
            executed_at=row.executed_at.isoformat() if row.executed_at else None,
        )


class ConfirmationGate:
    def __init__(
        self,
        session_factory: Callable[[], Any],
        *,
        tools: Any = None,
        policy: Optional[OperationPolicy] = None,
    ) -> None:
        self.session_factory = session_factory
        # tools: anything with `async execute(name, args, ctx) -> ToolResult`, used by query operations
        self.tools = tools
        self.policy = policy or OperationPolicy()

    # ------------------------------------------------------------------
    # recording
    # ------------------------------------------------------------------
    async def record(
        self,
        caller_id: str,
        operation: ParsedOperation,
        *,
        user_message: Optional[str] = None,
        model_response: Optional[str] = None,
    ) -> OperationRecord:
        async with self.session_factory() as db:
            row = await crud.insert_ai_operation(
                db,
                profile_id=caller_id,
                operation_type=operation.type,
                operation_data=operation.data,
                user_message=user_message,
                ai_response=model_response,
            )
            await db.commit()
            record = OperationRecord.from_row(row)
        logger.info("AUDIT: recorded %s operation %s for caller=%s", operation.type, record.id, caller_id)
        return record

    async def history(self, caller_id: str, limit: int = 20) -> List[OperationRecord]:
        async with self.session_factory() as db:
            rows = await crud.list_ai_operations(db, caller_id, limit=limit)
        return [OperationRecord.from_row(r) for r in rows]

    async def get(self, operation_id: str, caller_id: str) -> OperationRecord:
        async with self.session_factory() as db:
            row = await self._load(db, operation_id, caller_id)
        return OperationRecord.from_row(row)

    # ------------------------------------------------------------------
    # review / confirm / reject
    # ------------------------------------------------------------------
    async def review(self, operation_id: str, caller_id: str) -> Dict[str, Any]:
        async with self.session_factory() as db:
            row = await self._load(db, operation_id, caller_id)
            policy = self.policy.evaluate(row.operation_type)
            review: Dict[str, Any] = {
                "operation_id": row.id,
                "type": row.operation_type,
                "executed": bool(row.executed),
                **policy,
            }
            if row.operation_type != "payment":
                return review

            resolved = await self._resolve_payment(db, caller_id, row.operation_data or {})
            primary = await crud.get_primary_account(db, caller_id)

        amount = parse_amount(resolved.get("amount"))
        violations = payment_violations(resolved)
        if resolved.get("recipient_name") and not resolved.get("recipient_id"):
            violations.insert(0, f"Recipient '{resolved['recipient_name']}' not found in your saved recipients")
        review.update(
            {
                "amount": format_usd(amount) if amount is not None else None,
                "token": resolved.get("token"),
                "recipient_name": resolved.get("recipient_name"),
                "recipient_address": mask_address(resolved.get("to")),
                "network": resolved.get("chain"),
                "estimated_fee": format_usd(NETWORK_FEES.get(resolved.get("chain") or "", Decimal("0"))),
                "warning": PAYMENT_WARNING,
                "balance_warning": balance_warning(resolved, primary.balance if primary else None),
                "blocking_issue": violations[0] if violations else None,
            }
        )
        return review

    async def reject(self, operation_id: str, caller_id: str) -> OperationRecord:
        async with self.session_factory() as db:
            row = await self._load(db, operation_id, caller_id)
            if row.executed:
                raise ValidationError("Operation already executed")
            row.user_confirmed = False
            row.execution_result = {"status": "rejected", "error": "Operation not confirmed by user"}
            await db.commit()
            record = OperationRecord.from_row(row)
        logger.info("AUDIT: operation %s rejected by caller=%s", operation_id, caller_id)
        return record

    async def execute(
        self,
        operation_id: str,
        caller_id: str,
        *,
        confirmed: bool,
        acknowledged: bool = False,
    ) -> Dict[str, Any]:
        if not confirmed:
            await self.reject(operation_id, caller_id)
            raise ValidationError("Operation not confirmed by user")

        record = await self.get(operation_id, caller_id)
        if record.executed:
            raise ValidationError("Operation already executed")
        policy = self.policy.evaluate(record.operation_type)
        if policy["requires_acknowledgement"] and not acknowledged:
            raise ValidationError(ACKNOWLEDGEMENT_REQUIRED)

        await self._claim(operation_id, caller_id)
        try:
            # query tools open their own session, so they run before ours
            query_result = None
            if record.operation_type == "query":
                query_result = await self._execute_query(record.operation_data, caller_id)

            async with self.session_factory() as db:
                row = await self._load(db, operation_id, caller_id)
                result = query_result if query_result is not None else await self._run(db, row, caller_id)
                self._mark_executed(row, result)
                await db.commit()
        except ValidationError as exc:
            logger.warning("AUDIT: operation %s blocked: %s", operation_id, exc.message)
            await self._release(operation_id, caller_id, {"status": "blocked", "error": exc.message})
            raise
        except Exception as exc:
            logger.exception("AUDIT: operation %s failed", operation_id)
            await self._release(operation_id, caller_id, {"status": "failed", "error": type(exc).__name__})
            raise

        logger.info("AUDIT: operation %s (%s) executed for caller=%s", operation_id, record.operation_type, caller_id)
        return result

    async def run_direct(
        self,
        caller_id: str,
        operation: ParsedOperation,
        *,
        user_message: Optional[str] = None,
    ) -> Tuple[OperationRecord, Dict[str, Any]]:
        """UI-initiated analysis/query: audited, then executed without a confirmation step."""
        if self.policy.evaluate(operation.type)["requires_confirmation"]:
            raise ValidationError(f"{operation.type} operations require confirmation")
        record = await self.record(caller_id, operation, user_message=user_message)
        result = await self.execute(record.id, caller_id, confirmed=True)
        return await self.get(record.id, caller_id), result

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------
    @staticmethod
    async def _load(db, operation_id: str, caller_id: str) -> AiOperation:
        row = await crud.get_ai_operation(db, operation_id, caller_id)
        if row is None:
            raise OperationNotFoundError("Operation not found")
        return row

    async def _claim(self, operation_id: str, caller_id: str) -> None:
        # committed on its own so a concurrent confirmation sees the claim
        async with self.session_factory() as db:
            claimed = await crud.claim_ai_operation(db, operation_id, caller_id)
            await db.commit()
        if not claimed:
            raise ValidationError("Operation already executed")

    async def _release(self, operation_id: str, caller_id: str, outcome: Dict[str, Any]) -> None:
        """Undo a claim whose execution did not complete; the row stays confirmed."""
        async with self.session_factory() as db:
            row = await self._load(db, operation_id, caller_id)
            row.executed = False
            row.executed_at = None
            row.execution_result = outcome
            await db.commit()

    @staticmethod
    def _mark_executed(row: AiOperation, result: Dict[str, Any]) -> None:
        if not row.user_confirmed:
            raise ValidationError("Operation cannot execute without user confirmation")
        row.executed = True
        row.execution_result = result
        row.executed_at = crud.utcnow()

    async def _resolve_payment(self, db, caller_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Fill recipient id and address from the caller's saved recipients."""
        resolved = {
            "amount": data.get("amount"),
            "recipient_id": data.get("recipient_id"),
            "recipient_name": data.get("recipientName") or data.get("recipient_name"),
            "to": data.get("to"),
            "chain": data.get("chain", DEFAULT_NETWORK),
            "token": data.get("token", DEFAULT_TOKEN),
        }
        recipient = None
        if resolved["recipient_id"]:
            recipient = await crud.get_recipient(db, caller_id, resolved["recipient_id"])
            if recipient is None:
                resolved["recipient_id"] = None
        elif resolved["recipient_name"]:
            recipient = await crud.find_recipient_by_name(db, caller_id, resolved["recipient_name"])

        if recipient is not None:
            resolved["recipient_id"] = recipient.id
            resolved["recipient_name"] = recipient.name
            address = recipient.external_address
            if not address and recipient.profile_id_link:
                linked = await crud.get_profile(db, recipient.profile_id_link)
                address = linked.wallet_address if linked else None
            resolved["to"] = resolved["to"] or address
        return resolved

    async def _run(self, db, row: AiOperation, caller_id: str) -> Dict[str, Any]:
        if row.operation_type == "payment":
            return await self._execute_payment(db, row, caller_id)
        if row.operation_type == "analysis":
            sent = await crud.list_sent_transactions(db, caller_id, limit=ANALYSIS_WINDOW)
            return {"analysis": portfolio_insights(sent)}
        raise ValidationError(f"Unsupported operation type: {row.operation_type}")

    async def _execute_payment(self, db, row: AiOperation, caller_id: str) -> Dict[str, Any]:
        data = await self._resolve_payment(db, caller_id, row.operation_data or {})
        if data["recipient_name"] and not data["recipient_id"]:
            raise ValidationError(f"Recipient '{data['recipient_name']}' not found in your saved recipients")
        validate_payment(data)
        if not data["recipient_id"]:
            raise ValidationError("Payments to unsaved addresses must be added as a recipient first")

        primary = await crud.get_primary_account(db, caller_id)
        warning = balance_warning(data, primary.balance if primary else None)

        tx = await crud.create_pending_transaction(
            db,
            profile_id=caller_id,
            recipient_id=data["recipient_id"],
            amount=parse_amount(data["amount"]),
            chain=data["chain"],
            token=data["token"],
        )
        result = {
            "transactionId": tx.id,
            "recipientName": data["recipient_name"],
            "recipientAddress": data["to"],
            "amount": format_usd(parse_amount(data["amount"])),
            "chain": data["chain"],
            "token": data["token"],
            "message": "Transaction created. Please confirm in your wallet to complete the payment.",
        }
        if warning:
            result["warning"] = warning
        return result

    async def _execute_query(self, data: Dict[str, Any], caller_id: str) -> Dict[str, Any]:
        if self.tools is None:
            raise ValidationError("Query operations are not available")
        data = data or {}
        tool_name = data.get("tool")
        if not isinstance(tool_name, str) or not tool_name:
            raise ValidationError("Query requires a tool name")
        ctx = ToolExecutionContext(caller_id=caller_id)
        result = await self.tools.execute(tool_name, data.get("arguments") or {}, ctx)
        return {"query": tool_name, "result": result.wire()}
