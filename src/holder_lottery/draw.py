from __future__ import annotations

from bisect import bisect_left
from typing import Iterable, List, Optional, Tuple

from .errors import CorruptSnapshot, IneligibleDraw
from .models import BlockInfo, Holder, HolderRange, Snapshot
from .project_constants import TICKET_DIVISOR


def order_holders(holders: Iterable[Holder]) -> List[Holder]:
    """
    Deterministic allocation order (critical for reproducibility).

    Largest raw on-chain amount first, so the biggest holder owns ticket 0.
    Equal raw amounts fall back to the owner address. Human-scale balances
    are never compared here.
    """
    return sorted(holders, key=lambda h: (-h.raw_balance, h.owner))


def allocate_tickets(
    holders: Iterable[Holder],
    divisor: int = TICKET_DIVISOR,
    block: Optional[BlockInfo] = None,
) -> Snapshot:
    """
    Give each holder a contiguous inclusive ticket range, in input order.

    Holders worth less than one ticket are left out entirely.
    """
    if divisor <= 0:
        raise ValueError(f"Ticket divisor must be positive, got {divisor}")

    ranges: List[HolderRange] = []
    cursor = 0
    for holder in holders:
        tickets = holder.tickets(divisor)
        if tickets <= 0:
            continue
        ranges.append(
            HolderRange(
                owner=holder.owner,
                raw_balance=holder.raw_balance,
                decimals=holder.decimals,
                tickets=tickets,
                start_ticket=cursor,
                end_ticket=cursor + tickets - 1,
            )
        )
        cursor += tickets
    return Snapshot(holders=tuple(ranges), total_tickets=cursor, block=block)


def compute_ticket(randomness: int, total_tickets: int) -> int:
    if total_tickets <= 0:
        raise IneligibleDraw("No eligible holders: snapshot has no tickets.")
    if randomness < 0:
        raise ValueError("Randomness must be a non-negative integer.")
    return randomness % total_tickets


def find_winner(ranges: Tuple[HolderRange, ...], ticket: int) -> HolderRange:
    ends = [r.end_ticket for r in ranges]
    idx = bisect_left(ends, ticket)
    if idx >= len(ranges) or not ranges[idx].contains(ticket):
        raise CorruptSnapshot(f"No holder owns ticket {ticket}.")
    if idx + 1 < len(ranges) and ranges[idx + 1].contains(ticket):
        raise CorruptSnapshot(f"Ticket {ticket} is owned by more than one holder.")
    return ranges[idx]


def select_winner(snapshot: Snapshot, randomness: int) -> Tuple[HolderRange, int]:
    ticket = compute_ticket(randomness, snapshot.total_tickets)
    return find_winner(snapshot.holders, ticket), ticket
