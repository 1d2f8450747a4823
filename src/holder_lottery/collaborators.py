"""Interfaces of the services a draw depends on."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Protocol, Tuple

from .models import BlockInfo, DrawResult, FeeAmounts, Holder, Randomness

log = logging.getLogger(__name__)


class HolderSource(Protocol):
    async def list_holders(
        self, token_mint: str, exclude: Iterable[str]
    ) -> Tuple[List[Holder], BlockInfo]:
        """Holders in allocation order, plus the block the scan was taken at."""
        ...


class RandomnessSource(Protocol):
    async def request_randomness(self) -> Randomness:
        ...


class FeeSource(Protocol):
    async def check_fees(self) -> FeeAmounts:
        ...

    async def claim_fees(self, fees: FeeAmounts) -> Optional[str]:
        ...


class Swapper(Protocol):
    async def swap(self, amount_in: int) -> str:
        ...


class Distributor(Protocol):
    async def distribute(self, winner_address: str) -> Tuple[str, float]:
        """Returns (transaction signature, amount sent in prize-token units)."""
        ...


class ResultStore(Protocol):
    async def save(self, result: DrawResult) -> object:
        ...


class DryRunSwap:
    async def swap(self, amount_in: int) -> str:
        log.info("[DRY RUN] Would swap %d quote units into the prize token", amount_in)
        return "dry-run"


class DryRunDistributor:
    async def distribute(self, winner_address: str) -> Tuple[str, float]:
        log.info("[DRY RUN] Would send the prize to %s", winner_address)
        return "dry-run", 0.0
