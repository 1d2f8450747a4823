from __future__ import annotations

import logging
from typing import Iterable, List, Tuple

from .models import BlockInfo, Holder
from .rpc import RpcClient
from .token_accounts import (
    TOKEN_2022_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    aggregate_holders_from_b64,
    eligible_holders,
)

log = logging.getLogger(__name__)


class RpcHolderSource:
    """Scans both token programs for every account of a mint."""

    def __init__(self, rpc: RpcClient, commitment: str = "confirmed") -> None:
        self.rpc = rpc
        self.commitment = commitment

    async def list_holders(
        self, token_mint: str, exclude: Iterable[str]
    ) -> Tuple[List[Holder], BlockInfo]:
        log.info("Taking token holder snapshot for %s", token_mint)
        decimals = await self.rpc.get_mint_decimals(token_mint)

        slot = await self.rpc.get_slot(self.commitment)
        block = await self.rpc.get_block(slot)
        block_info = BlockInfo(
            slot=slot,
            blockhash=block["blockhash"],
            block_time=block.get("blockTime"),
        )

        log.info("Scanning classic SPL Token program...")
        classic_b64 = await self.rpc.get_program_accounts_base64(
            program_id=TOKEN_PROGRAM_ID,
            mint=token_mint,
            classic_token_program=True,
        )
        log.info("Scanning Token-2022 program...")
        t22_b64 = await self.rpc.get_program_accounts_base64(
            program_id=TOKEN_2022_PROGRAM_ID,
            mint=token_mint,
            classic_token_program=False,
        )

        all_b64 = classic_b64 + t22_b64
        log.info("Accounts fetched  : %d", len(all_b64))

        owner_to_balance = aggregate_holders_from_b64(all_b64)
        log.info("Unique owners     : %d", len(owner_to_balance))

        holders = eligible_holders(owner_to_balance, set(exclude), decimals)
        log.info("Holders after exclusions: %d (slot %d)", len(holders), slot)
        return holders, block_info
