from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple


@dataclass(frozen=True)
class Holder:
    owner: str
    raw_balance: int
    decimals: int = 0

    @property
    def balance(self) -> Decimal:
        return Decimal(self.raw_balance).scaleb(-self.decimals)

    def tickets(self, divisor: int) -> int:
        # floor(balance / divisor), kept in integers so large balances stay exact
        return self.raw_balance // (divisor * 10**self.decimals)


@dataclass(frozen=True)
class HolderRange:
    owner: str
    raw_balance: int
    decimals: int
    tickets: int
    start_ticket: int
    end_ticket: int  # inclusive

    @property
    def balance(self) -> Decimal:
        return Decimal(self.raw_balance).scaleb(-self.decimals)

    def contains(self, ticket: int) -> bool:
        return self.start_ticket <= ticket <= self.end_ticket


@dataclass(frozen=True)
class BlockInfo:
    slot: int
    blockhash: str
    block_time: Optional[int]


@dataclass(frozen=True)
class Snapshot:
    holders: Tuple[HolderRange, ...]
    total_tickets: int
    block: Optional[BlockInfo] = None


@dataclass(frozen=True)
class Randomness:
    value: int
    request_ref: str
    result_ref: str


@dataclass(frozen=True)
class FeeAmounts:
    base_amount: int
    quote_amount: int


@dataclass(frozen=True)
class DrawResult:
    snapshot: Snapshot
    randomness: Randomness
    winner: HolderRange
    winning_ticket: int
    fees: FeeAmounts
    claim_tx: Optional[str]
    swap_tx: Optional[str]
    distribution_tx: Optional[str]
    distributed_amount: float
    completed_at: datetime
