from __future__ import annotations

import json
from typing import Any, Dict

from .draw import allocate_tickets, select_winner
from .models import Holder


def verify_audit(audit_path: str) -> Dict[str, Any]:
    with open(audit_path, "r", encoding="utf-8") as f:
        audit = json.load(f)

    meta = audit["metadata"]
    divisor = int(meta["ticket_divisor"])
    randomness = int(meta["randomness"])
    total_expected = int(meta["total_tickets"])
    winning_ticket_expected = int(meta["winning_ticket"])

    # Recreate the holder list from stored entrants, keeping their order
    holders = [
        Holder(e["address"], int(e["raw_balance"]), int(e["decimals"]))
        for e in audit["all_entrants"]
    ]
    snapshot = allocate_tickets(holders, divisor)

    if snapshot.total_tickets != total_expected:
        raise RuntimeError(
            f"Total tickets mismatch: audit={total_expected} recomputed={snapshot.total_tickets}"
        )

    for stored, recomputed in zip(audit["all_entrants"], snapshot.holders):
        if (int(stored["start_ticket"]), int(stored["end_ticket"])) != (
            recomputed.start_ticket,
            recomputed.end_ticket,
        ):
            raise RuntimeError(
                f"Ticket range mismatch for {recomputed.owner}: "
                f"audit=[{stored['start_ticket']}, {stored['end_ticket']}] "
                f"recomputed=[{recomputed.start_ticket}, {recomputed.end_ticket}]"
            )

    winner, ticket = select_winner(snapshot, randomness)
    if ticket != winning_ticket_expected:
        raise RuntimeError(
            f"Winning ticket mismatch: audit={winning_ticket_expected} recomputed={ticket}"
        )

    winner_expected = audit["winner"]["address"]
    if winner.owner != winner_expected:
        raise RuntimeError(
            f"Winner mismatch: audit={winner_expected} recomputed={winner.owner}"
        )

    return {
        "ok": True,
        "randomness": randomness,
        "winner": winner.owner,
        "winning_ticket": ticket,
        "total_tickets": snapshot.total_tickets,
    }
