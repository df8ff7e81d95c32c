"""
tools/handlers.py

One async handler per catalog tool, registered by name into HANDLERS.
Signature: handler(deps: HandlerDeps, args: dict, ctx: ToolExecutionContext) -> data

Every query is scoped by ctx.caller_id.
"""

from typing import Any, Callable, Dict

from banb.db import crud
from banb.db.serializers import (
    format_usd,
    mask_address,
    serialize_account,
    serialize_recipient,
    serialize_transaction,
)
from banb.errors import ExecutionError
from banb.tools.insights import portfolio_insights
from banb.tools.onchain import BASESCAN_TX_URL
from banb.tools.registry import TOOL_REGISTRY, clamp_limit

HANDLERS: Dict[str, Callable] = {}


def handler(name: str):
    def register(fn: Callable) -> Callable:
        if name in HANDLERS:
            raise ValueError(f"Handler already registered for {name}")
        HANDLERS[name] = fn
        return fn

    return register


INVESTMENT_OPTIONS = (
    {
        "id": "morpho-vault-1",
        "name": "Spark USDC Vault",
        "type": "morpho_vault",
        "apr": 6.55,
        "description": "Spark-curated USDC lending vault on Morpho, optimized for stable yield on Base.",
        "vault_address": "0x7BfA7C4f149E7415b73bdeDfe609237e29CBF34A",
    },
    {
        "id": "morpho-vault-2",
        "name": "Steakhouse USDC Vault",
        "type": "morpho_vault",
        "apr": 5.59,
        "description": "Steakhouse Financial USDC vault on Morpho with conservative, blue-chip collateral.",
        "vault_address": "0xbeeF010f9cb27031ad51e3333f9aF9C6B1228183",
    },
    {
        "id": "morpho-vault-3",
        "name": "Seamless USDC Vault",
        "type": "morpho_vault",
        "apr": 6.99,
        "description": "Seamless Protocol USDC vault on Morpho, the highest-yield option currently available.",
        "vault_address": "0x616a4E1db48e22028f6bbf20444Cd3b8e3273738",
    },
)


@handler("get_investment_options")
async def get_investment_options(deps, args, ctx):
    return [dict(option) for option in INVESTMENT_OPTIONS]


@handler("get_user_balance")
async def get_user_balance(deps, args, ctx):
    account = await crud.get_primary_account(deps.db, ctx.caller_id)
    if account is None:
        return {"balance": "$0.00", "currency": "USDC", "status": "wallet_not_connected"}
    return {"balance": format_usd(account.balance), "currency": "USDC", "status": "connected"}


@handler("get_accounts")
async def get_accounts(deps, args, ctx):
    accounts = await crud.list_accounts(deps.db, ctx.caller_id)
    return [serialize_account(a) for a in accounts]


@handler("get_recent_transactions")
async def get_recent_transactions(deps, args, ctx):
    limit = clamp_limit(TOOL_REGISTRY.get("get_recent_transactions"), args.get("limit"))
    rows = await crud.list_recent_transactions(deps.db, ctx.caller_id, limit=limit)
    if not rows:
        return {
            "message": "No transactions found in the database.",
            "suggestion": "Would you like me to check for onchain transactions? "
            "Just ask me to 'check onchain' and I'll search the blockchain.",
        }
    return [serialize_transaction(t) for t in rows]


@handler("get_recipients")
async def get_recipients(deps, args, ctx):
    recipients = await crud.list_recipients(deps.db, ctx.caller_id)
    totals = await crud.sent_totals_by_recipient(deps.db, ctx.caller_id)
    return [serialize_recipient(r, totals.get(r.id, 0)) for r in recipients]


@handler("get_transaction_summary")
async def get_transaction_summary(deps, args, ctx):
    sent = await crud.list_sent_transactions(deps.db, ctx.caller_id)
    return portfolio_insights(sent)


@handler("get_onchain_transactions")
async def get_onchain_transactions(deps, args, ctx) -> Any:
    if deps.onchain is None:
        raise ExecutionError("On-chain lookups are not configured")
    limit = clamp_limit(TOOL_REGISTRY.get("get_onchain_transactions"), args.get("limit"))
    account = await crud.get_base_account(deps.db, ctx.caller_id)
    if account is None or not account.address:
        raise ExecutionError("No Base account found for this profile. Please connect a wallet first.")

    rows = await deps.onchain.fetch_transactions(account.address, limit=limit)
    if not rows:
        return {"error": "no_transactions", "message": "No onchain transactions found for this account."}
    return [
        {
            "hash": f"{row['hash'][:10]}...{row['hash'][-8:]}",
            "from": mask_address(row["from"]),
            "to": mask_address(row["to"]),
            "amount": row["amount"],
            "token": row["token"],
            "date": row["date"],
            "direction": row["direction"],
            "status": row["status"],
            "explorer_url": BASESCAN_TX_URL.format(row["hash"]),
        }
        for row in rows
    ]
