"""
tools/onchain.py

Base-network transaction history via the Etherscan v2 multichain API.
Native transfers (txlist) and ERC20 transfers (tokentx) are fetched
concurrently, merged and returned newest first.
"""

import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import httpx

from banb.errors import ExecutionError

logger = logging.getLogger("banb.tools")

ETHERSCAN_V2_URL = "https://api.etherscan.io/v2/api"
BASE_CHAIN_ID = 8453
BASESCAN_TX_URL = "https://basescan.org/tx/{}"


def _scaled(raw: Any, decimals: int) -> Decimal:
    try:
        return Decimal(str(raw)) / (Decimal(10) ** decimals)
    except InvalidOperation:
        return Decimal("0")


class OnchainClient:
    def __init__(
        self,
        api_key: Optional[str],
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: str = ETHERSCAN_V2_URL,
        chain_id: int = BASE_CHAIN_ID,
        timeout: float = 10.0,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self.chain_id = chain_id
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self._http.aclose()

    async def _fetch(self, action: str, address: str, offset: int) -> List[Dict[str, Any]]:
        params = {
            "chainid": self.chain_id,
            "module": "account",
            "action": action,
            "address": address,
            "page": 1,
            "offset": offset,
            "sort": "desc",
            "apikey": self.api_key,
        }
        try:
            resp = await self._http.get(self.base_url, params=params)
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPStatusError as e:
            logger.error("Etherscan %s -> %s", action, e.response.status_code)
            raise ExecutionError(f"Basescan API error: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error("Etherscan %s request failed: %s", action, e)
            raise ExecutionError(f"Basescan API unreachable: {e}") from e

        # status "0" covers both "No transactions found" and API errors
        if str(payload.get("status")) != "1" or not isinstance(payload.get("result"), list):
            logger.info("Etherscan %s: status=%s message=%s", action, payload.get("status"), payload.get("message"))
            return []
        return payload["result"]

    async def fetch_transactions(self, address: str, limit: int = 5) -> List[Dict[str, Any]]:
        if not self.api_key:
            raise ExecutionError("On-chain lookups are not configured (missing ETHERSCAN_API_KEY)")

        offset = limit * 2
        native, tokens = await asyncio.gather(
            self._fetch("txlist", address, offset),
            self._fetch("tokentx", address, offset),
        )
        own = address.lower()
        merged: List[Dict[str, Any]] = []

        for tx in native:
            value = _scaled(tx.get("value", "0"), 18)
            if value <= 0:
                continue
            merged.append(self._row(tx, own, value, "ETH", 6))

        for tx in tokens:
            try:
                decimals = int(tx.get("tokenDecimal") or 18)
            except ValueError:
                decimals = 18
            value = _scaled(tx.get("value", "0"), decimals)
            merged.append(self._row(tx, own, value, tx.get("tokenSymbol") or "UNKNOWN", 2 if decimals <= 6 else 6))

        merged.sort(key=lambda row: row["timestamp"], reverse=True)
        return merged[:limit]

    @staticmethod
    def _row(tx: Dict[str, Any], own: str, value: Decimal, token: str, places: int) -> Dict[str, Any]:
        try:
            ts = int(tx.get("timeStamp") or 0)
        except ValueError:
            ts = 0
        return {
            "hash": tx.get("hash", ""),
            "from": tx.get("from", ""),
            "to": tx.get("to", ""),
            "amount": f"{value:.{places}f}",
            "token": token,
            "timestamp": ts,
            "date": datetime.fromtimestamp(ts, tz=timezone.utc).date().isoformat(),
            "direction": "received" if (tx.get("to") or "").lower() == own else "sent",
            "status": "failed" if str(tx.get("isError", "0")) == "1" else "confirmed",
        }
