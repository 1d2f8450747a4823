from __future__ import annotations

import asyncio
import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .models import DrawResult, HolderRange, Snapshot
from .project_constants import AUDIT_DIR, TICKET_DIVISOR

log = logging.getLogger(__name__)

AUDIT_TOOL = "holder-lottery"
AUDIT_VERSION = "1.0.0"


def range_to_dict(r: HolderRange) -> Dict[str, Any]:
    return {
        "address": r.owner,
        # raw amounts can exceed 2**53; store as string for safety
        "raw_balance": str(r.raw_balance),
        "decimals": r.decimals,
        "balance": str(r.balance),
        "tickets": r.tickets,
        "start_ticket": r.start_ticket,
        "end_ticket": r.end_ticket,
    }


def snapshot_to_dict(snapshot: Snapshot, holder_limit: Optional[int] = None) -> Dict[str, Any]:
    holders = snapshot.holders if holder_limit is None else snapshot.holders[:holder_limit]
    block = snapshot.block
    return {
        "total_tickets": snapshot.total_tickets,
        "holder_count": len(snapshot.holders),
        "holders": [range_to_dict(r) for r in holders],
        "block": None
        if block is None
        else {
            "slot": block.slot,
            "blockhash": block.blockhash,
            "block_time": block.block_time,
        },
    }


def result_summary(result: DrawResult, holder_limit: Optional[int] = None) -> Dict[str, Any]:
    """JSON-safe view of a draw, as shown to observers."""
    return {
        "snapshot": snapshot_to_dict(result.snapshot, holder_limit=holder_limit),
        "randomness": {
            "value": str(result.randomness.value),
            "request_ref": result.randomness.request_ref,
            "result_ref": result.randomness.result_ref,
        },
        "winner": range_to_dict(result.winner),
        "winning_ticket": result.winning_ticket,
        "prize": {
            "claim_tx": result.claim_tx,
            "swap_tx": result.swap_tx,
            "distribution_tx": result.distribution_tx,
            "amount": result.distributed_amount,
        },
        "completed_at": result.completed_at.isoformat(),
    }


def audit_payload(result: DrawResult, divisor: int = TICKET_DIVISOR) -> Dict[str, Any]:
    block = result.snapshot.block
    return {
        "metadata": {
            "tool": AUDIT_TOOL,
            "version": AUDIT_VERSION,
            "generated_at_utc": datetime.now(timezone.utc).isoformat(),
            "completed_at_utc": result.completed_at.isoformat(),
            "ticket_divisor": divisor,
            "snapshot_slot": block.slot if block else None,
            "snapshot_blockhash": block.blockhash if block else None,
            "snapshot_block_time": block.block_time if block else None,
            "randomness": str(result.randomness.value),
            "randomness_request": result.randomness.request_ref,
            "randomness_result": result.randomness.result_ref,
            "total_tickets": result.snapshot.total_tickets,
            "winning_ticket": result.winning_ticket,
            "base_fee": str(result.fees.base_amount),
            "quote_fee": str(result.fees.quote_amount),
            "claim_tx": result.claim_tx,
            "swap_tx": result.swap_tx,
            "distribution_tx": result.distribution_tx,
            "distributed_amount": result.distributed_amount,
        },
        "winner": range_to_dict(result.winner),
        # Entrants in allocation order with ranges so anyone can re-run.
        "all_entrants": [range_to_dict(r) for r in result.snapshot.holders],
    }


class AuditStore:
    """Writes one audit JSON per finished draw."""

    def __init__(self, directory: str = AUDIT_DIR, divisor: int = TICKET_DIVISOR) -> None:
        self.directory = directory
        self.divisor = divisor

    def path_for(self, result: DrawResult) -> str:
        slot = result.snapshot.block.slot if result.snapshot.block else 0
        stamp = result.completed_at.strftime("%Y%m%dT%H%M%SZ")
        return os.path.join(self.directory, f"draw-{slot}-{stamp}.json")

    async def save(self, result: DrawResult) -> str:
        return await asyncio.to_thread(self._write, result)

    def _write(self, result: DrawResult) -> str:
        os.makedirs(self.directory, exist_ok=True)
        path = self.path_for(result)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(audit_payload(result, self.divisor), f, indent=2)
        log.info("Wrote audit: %s", path)
        return path
