"""
Unclaimed-fee preview shown between draws.

While the lottery is WAITING the estimator polls the fee source, prices
the quote-side fees in USD and in the prize token through the Jupiter
price API, and publishes the estimate as a `feesUpdate` message.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional

import httpx

from .collaborators import FeeSource
from .models import FeeAmounts
from .project_constants import (
    FEE_REFRESH_SECONDS,
    JUPITER_PRICE_URL,
    PRIZE_MINT,
    QUOTE_DECIMALS,
    QUOTE_MINT,
)
from .state import DrawPhase, DrawStateMachine

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeeEstimate:
    fees: FeeAmounts
    estimated_usd_value: float
    estimated_prize_amount: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "creatorBaseFee": str(self.fees.base_amount),
            "creatorQuoteFee": str(self.fees.quote_amount),
            "estimatedBonkAmount": self.estimated_prize_amount,
            "estimatedUsdValue": self.estimated_usd_value,
        }


class JupiterPriceClient:
    def __init__(
        self,
        api_url: str = JUPITER_PRICE_URL,
        timeout_s: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.timeout_s = timeout_s
        self.transport = transport

    async def usd_prices(self, mints: Iterable[str]) -> Dict[str, float]:
        mints = list(mints)
        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self.transport) as client:
            resp = await client.get(self.api_url, params={"ids": ",".join(mints)})
            resp.raise_for_status()
            data = resp.json()

        prices = {}
        for mint in mints:
            entry = data.get(mint) or {}
            price = entry.get("usdPrice")
            if not price:
                raise RuntimeError(f"No USD price for {mint}")
            prices[mint] = float(price)
        return prices


def estimate_fees(
    fees: FeeAmounts,
    quote_usd_price: float,
    prize_usd_price: float,
    quote_decimals: int = QUOTE_DECIMALS,
) -> FeeEstimate:
    usd = fees.quote_amount / 10**quote_decimals * quote_usd_price
    return FeeEstimate(
        fees=fees,
        estimated_usd_value=usd,
        estimated_prize_amount=usd / prize_usd_price,
    )


class FeeEstimator:
    """Refreshes the fee preview on a fixed period, only while WAITING."""

    def __init__(
        self,
        fees: FeeSource,
        prices: JupiterPriceClient,
        state: DrawStateMachine,
        publish: Callable[[FeeEstimate], None],
        *,
        quote_mint: str = QUOTE_MINT,
        prize_mint: str = PRIZE_MINT,
        interval_s: float = FEE_REFRESH_SECONDS,
    ) -> None:
        self.fees = fees
        self.prices = prices
        self.state = state
        self.publish = publish
        self.quote_mint = quote_mint
        self.prize_mint = prize_mint
        self.interval_s = interval_s
        self.latest: Optional[FeeEstimate] = None

    async def refresh(self) -> Optional[FeeEstimate]:
        # A running draw is claiming and swapping these very fees.
        if self.state.phase is not DrawPhase.WAITING:
            return None

        fees = await self.fees.check_fees()
        prices = await self.prices.usd_prices([self.quote_mint, self.prize_mint])
        estimate = estimate_fees(fees, prices[self.quote_mint], prices[self.prize_mint])
        log.debug(
            "Fee estimate: %.2f USD, %.0f prize tokens",
            estimate.estimated_usd_value,
            estimate.estimated_prize_amount,
        )
        self.latest = estimate
        self.publish(estimate)
        return estimate

    async def run_forever(self) -> None:
        while True:
            try:
                await self.refresh()
            except (httpx.HTTPError, RuntimeError) as e:
                log.error("Fee estimate refresh failed: %s", e)
            await asyncio.sleep(self.interval_s)
