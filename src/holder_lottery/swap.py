from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

import httpx

from .project_constants import JUPITER_API_URL, PRIZE_MINT, QUOTE_MINT, SWAP_ATTEMPTS

log = logging.getLogger(__name__)


class TransactionSigner(Protocol):
    def sign(self, transaction_b64: str) -> str:
        """Sign a base64 serialized transaction and return it re-serialized."""
        ...


class JupiterSwap:
    """Swaps claimed quote fees into the prize token through Jupiter Ultra."""

    def __init__(
        self,
        signer: TransactionSigner,
        taker: str,
        api_url: str = JUPITER_API_URL,
        input_mint: str = QUOTE_MINT,
        output_mint: str = PRIZE_MINT,
        attempts: int = SWAP_ATTEMPTS,
        timeout_s: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.signer = signer
        self.taker = taker
        self.api_url = api_url.rstrip("/")
        self.input_mint = input_mint
        self.output_mint = output_mint
        self.attempts = attempts
        self.timeout_s = timeout_s
        self.transport = transport

    async def _order(self, client: httpx.AsyncClient, amount_in: int) -> Dict[str, Any]:
        resp = await client.get(
            f"{self.api_url}/order",
            params={
                "inputMint": self.input_mint,
                "outputMint": self.output_mint,
                "amount": str(amount_in),
                "taker": self.taker,
            },
        )
        resp.raise_for_status()
        order = resp.json()
        if not order.get("transaction"):
            raise RuntimeError(f"Order returned no transaction: {order}")
        return order

    async def _execute(self, client: httpx.AsyncClient, order: Dict[str, Any]) -> Dict[str, Any]:
        signed = self.signer.sign(order["transaction"])
        resp = await client.post(
            f"{self.api_url}/execute",
            json={"signedTransaction": signed, "requestId": order["requestId"]},
        )
        resp.raise_for_status()
        return resp.json()

    async def swap(self, amount_in: int) -> str:
        if amount_in <= 0:
            raise ValueError(f"Nothing to swap: amount_in={amount_in}")

        log.info("Swapping %d quote units into %s", amount_in, self.output_mint)
        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self.transport) as client:
            for attempt in range(1, self.attempts + 1):
                try:
                    order = await self._order(client, amount_in)
                    result = await self._execute(client, order)
                except (httpx.HTTPError, RuntimeError, KeyError) as e:
                    log.error("Swap error on attempt %d: %s", attempt, e)
                    continue

                if result.get("status") == "Success":
                    log.info("Swap signature: %s", result.get("signature"))
                    return result["signature"]
                log.error("Swap failed on attempt %d: %s", attempt, result)

        raise RuntimeError(f"Swap failed after {self.attempts} attempts")
