from __future__ import annotations

import asyncio
import hashlib
import logging
from typing import Tuple

import httpx

from .models import Randomness
from .project_constants import RANDOMNESS_ATTEMPTS, RANDOMNESS_TIMEOUT_S
from .rpc import RpcClient

log = logging.getLogger(__name__)


def seed_from_blockhash(blockhash: str) -> Tuple[int, str]:
    seed_hash_hex = hashlib.sha256(blockhash.encode("utf-8")).hexdigest()
    return int(seed_hash_hex, 16), seed_hash_hex


class BlockhashRandomness:
    """
    Randomness from the SHA-256 of a finalized blockhash.

    The blockhash is unknown until the slot is finalized and anyone can
    recompute the seed from public data. A skipped slot or a stalled RPC
    costs one attempt; after `attempts` failures the request fails.
    """

    def __init__(
        self,
        rpc: RpcClient,
        attempts: int = RANDOMNESS_ATTEMPTS,
        timeout_s: float = RANDOMNESS_TIMEOUT_S,
        retry_delay_s: float = 2.5,
    ) -> None:
        if attempts <= 0:
            raise ValueError("attempts must be positive")
        self.rpc = rpc
        self.attempts = attempts
        self.timeout_s = timeout_s
        self.retry_delay_s = retry_delay_s

    async def _fetch(self) -> Tuple[int, str]:
        slot = await self.rpc.get_slot("finalized")
        blockhash = await self.rpc.get_blockhash_for_slot(slot)
        return slot, blockhash

    async def request_randomness(self) -> Randomness:
        for attempt in range(1, self.attempts + 1):
            log.info("Requesting randomness (attempt %d)...", attempt)
            try:
                slot, blockhash = await asyncio.wait_for(self._fetch(), self.timeout_s)
            except (asyncio.TimeoutError, httpx.HTTPError, RuntimeError) as e:
                log.warning(
                    "Randomness attempt %d failed: %s", attempt, str(e) or type(e).__name__
                )
                if attempt < self.attempts:
                    await asyncio.sleep(self.retry_delay_s)
                continue

            value, seed_hash_hex = seed_from_blockhash(blockhash)
            log.info("Seed blockhash %s (slot %d), SHA-256 %s", blockhash, slot, seed_hash_hex)
            return Randomness(value=value, request_ref=f"slot:{slot}", result_ref=blockhash)

        raise RuntimeError(f"Failed to obtain randomness after {self.attempts} attempts")
