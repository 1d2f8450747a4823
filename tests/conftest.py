from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

import pytest

from holder_lottery.models import BlockInfo, DrawResult, FeeAmounts, Holder, Randomness

T0 = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeHolders:
    def __init__(self, holders: List[Holder], error: Optional[Exception] = None) -> None:
        self.holders = holders
        self.error = error
        self.calls: List[Tuple[str, frozenset]] = []

    async def list_holders(self, token_mint: str, exclude: Iterable[str]):
        self.calls.append((token_mint, frozenset(exclude)))
        if self.error:
            raise self.error
        block = BlockInfo(slot=1234, blockhash="BlockHash1234", block_time=1_760_000_000)
        return list(self.holders), block


class FakeRandomness:
    def __init__(self, value: int = 23, error: Optional[Exception] = None, gate=None) -> None:
        self.value = value
        self.error = error
        self.gate = gate
        self.calls = 0

    async def request_randomness(self) -> Randomness:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error:
            raise self.error
        return Randomness(self.value, "slot:1240", "ResultHash")


class FakeFees:
    def __init__(self, quote: int = 220_000_000_000, error: Optional[Exception] = None) -> None:
        self.quote = quote
        self.error = error
        self.claimed: List[FeeAmounts] = []

    async def check_fees(self) -> FeeAmounts:
        if self.error:
            raise self.error
        return FeeAmounts(base_amount=0, quote_amount=self.quote)

    async def claim_fees(self, fees: FeeAmounts) -> Optional[str]:
        self.claimed.append(fees)
        return "claim-tx"


class FakeSwap:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error
        self.amounts: List[int] = []

    async def swap(self, amount_in: int) -> str:
        self.amounts.append(amount_in)
        if self.error:
            raise self.error
        return "swap-tx"


class FakeDistributor:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error
        self.winners: List[str] = []

    async def distribute(self, winner_address: str):
        self.winners.append(winner_address)
        if self.error:
            raise self.error
        return "payout-tx", 1234.5


class FakeStore:
    def __init__(self, error: Optional[Exception] = None, gate=None) -> None:
        self.error = error
        self.gate = gate
        self.saved: List[DrawResult] = []

    async def save(self, result: DrawResult) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if self.error:
            raise self.error
        self.saved.append(result)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scenario_holders() -> List[Holder]:
    # A=50,000  B=9,999  C=20,000 whole tokens (6 decimals)
    return [
        Holder("A", 50_000 * 10**6, 6),
        Holder("B", 9_999 * 10**6, 6),
        Holder("C", 20_000 * 10**6, 6),
    ]
