"""
Draw pipeline: snapshot -> randomness -> select -> claim fees -> swap ->
distribute -> persist.

Each step is awaited to completion before the next starts. Its outcome is
folded through PIPELINE_POLICY: a fatal failure aborts the draw and sends
the state machine back to WAITING, a best-effort failure is logged and the
draw is still announced.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .collaborators import (
    Distributor,
    FeeSource,
    HolderSource,
    RandomnessSource,
    ResultStore,
    Swapper,
)
from .draw import allocate_tickets, order_holders, select_winner
from .errors import DrawError, IneligibleDraw, PersistenceFailure, PipelineStepFailure
from .models import DrawResult, FeeAmounts, HolderRange, Randomness, Snapshot
from .project_constants import TICKET_DIVISOR
from .state import DrawStateMachine, utc_now

log = logging.getLogger(__name__)


class StepPolicy(Enum):
    FATAL = "fatal"
    BEST_EFFORT = "best_effort"


PIPELINE_POLICY: Dict[str, StepPolicy] = {
    "snapshot": StepPolicy.FATAL,
    "randomness": StepPolicy.FATAL,
    "select": StepPolicy.FATAL,
    "claim_fees": StepPolicy.FATAL,
    "swap": StepPolicy.FATAL,
    "distribute": StepPolicy.FATAL,
    # the prize has already moved; never undo or repeat it
    "persist": StepPolicy.BEST_EFFORT,
}


@dataclass(frozen=True)
class StepOutcome:
    step: str
    value: Any = None
    error: Optional[DrawError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class _DrawContext:
    snapshot: Optional[Snapshot] = None
    randomness: Optional[Randomness] = None
    winner: Optional[HolderRange] = None
    winning_ticket: Optional[int] = None
    fees: Optional[FeeAmounts] = None
    claim_tx: Optional[str] = None
    swap_tx: Optional[str] = None
    distribution_tx: Optional[str] = None
    distributed_amount: float = 0.0
    completed_at: Optional[datetime] = None

    def to_result(self) -> DrawResult:
        return DrawResult(
            snapshot=self.snapshot,
            randomness=self.randomness,
            winner=self.winner,
            winning_ticket=self.winning_ticket,
            fees=self.fees,
            claim_tx=self.claim_tx,
            swap_tx=self.swap_tx,
            distribution_tx=self.distribution_tx,
            distributed_amount=self.distributed_amount,
            completed_at=self.completed_at,
        )


Step = Callable[[_DrawContext], Awaitable[Any]]


class DrawOrchestrator:
    def __init__(
        self,
        state: DrawStateMachine,
        holders: HolderSource,
        randomness: RandomnessSource,
        fees: FeeSource,
        swapper: Swapper,
        distributor: Distributor,
        store: ResultStore,
        *,
        token_mint: str,
        exclude: Iterable[str] = (),
        divisor: int = TICKET_DIVISOR,
        step_timeouts: Optional[Mapping[str, float]] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        unknown = set(step_timeouts or {}) - set(PIPELINE_POLICY)
        if unknown:
            raise ValueError(f"Unknown pipeline steps: {', '.join(sorted(unknown))}")
        self.state = state
        self.holders = holders
        self.randomness = randomness
        self.fees = fees
        self.swapper = swapper
        self.distributor = distributor
        self.store = store
        self.token_mint = token_mint
        self.exclude = frozenset(exclude)
        self.divisor = divisor
        self.step_timeouts = dict(step_timeouts or {})
        self.clock = clock

    async def tick(self, now: Optional[datetime] = None, force: bool = False) -> Optional[DrawResult]:
        """
        Run one draw if one is due. Safe to call while another tick is running:
        only the caller that wins the WAITING -> EXECUTING transition proceeds.
        """
        if not self.state.begin_draw(now, force=force):
            return None

        ctx = _DrawContext()
        result: Optional[DrawResult] = None
        try:
            result = await self._run_pipeline(ctx)
        except DrawError as e:
            log.error("Draw failed: %s", e)
        except asyncio.CancelledError:
            if ctx.completed_at is None:
                raise
            # The prize has been paid: announce it, unsaved, then stop.
            log.error("Draw cancelled after payout; announcing without persisting")
            self.state.announce(ctx.to_result())
            raise
        finally:
            # also reached on cancellation: never leave the machine EXECUTING
            if result is None:
                self.state.fail_draw()

        if result is not None:
            self.state.announce(result)
        return result

    def _steps(self) -> List[Tuple[str, Step]]:
        return [
            ("snapshot", self._take_snapshot),
            ("randomness", self._get_randomness),
            ("select", self._select),
            ("claim_fees", self._claim_fees),
            ("swap", self._swap),
            ("distribute", self._distribute),
            ("persist", self._persist),
        ]

    async def _run_pipeline(self, ctx: _DrawContext) -> DrawResult:
        for name, step in self._steps():
            outcome = await self._run_step(name, step, ctx)
            if outcome.ok:
                continue
            if PIPELINE_POLICY[name] is StepPolicy.FATAL:
                raise outcome.error
            log.error("Step '%s' failed, continuing: %s", name, outcome.error)
        return ctx.to_result()

    async def _run_step(self, name: str, step: Step, ctx: _DrawContext) -> StepOutcome:
        timeout = self.step_timeouts.get(name)
        try:
            if timeout is not None:
                value = await asyncio.wait_for(step(ctx), timeout)
            else:
                value = await step(ctx)
        except DrawError as e:
            return StepOutcome(name, error=e)
        except Exception as e:
            if PIPELINE_POLICY[name] is StepPolicy.BEST_EFFORT:
                return StepOutcome(name, error=PersistenceFailure(e))
            return StepOutcome(name, error=PipelineStepFailure(name, e))
        return StepOutcome(name, value=value)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------
    async def _take_snapshot(self, ctx: _DrawContext) -> Snapshot:
        holders, block = await self.holders.list_holders(self.token_mint, self.exclude)
        # Sources may return any order; ticket ownership depends on this one.
        snapshot = allocate_tickets(order_holders(holders), self.divisor, block=block)
        log.info(
            "Snapshot at slot %d: %d eligible holders, %d tickets",
            block.slot,
            len(snapshot.holders),
            snapshot.total_tickets,
        )
        if snapshot.total_tickets == 0:
            raise IneligibleDraw("No eligible holders: nobody holds a full ticket.")
        ctx.snapshot = snapshot
        return snapshot

    async def _get_randomness(self, ctx: _DrawContext) -> Randomness:
        randomness = await self.randomness.request_randomness()
        if randomness.value < 0:
            raise ValueError("Randomness source returned a negative value")
        ctx.randomness = randomness
        return randomness

    async def _select(self, ctx: _DrawContext) -> HolderRange:
        winner, ticket = select_winner(ctx.snapshot, ctx.randomness.value)
        log.info("Winning ticket %d -> %s", ticket, winner.owner)
        ctx.winner = winner
        ctx.winning_ticket = ticket
        return winner

    async def _claim_fees(self, ctx: _DrawContext) -> Optional[str]:
        fees = await self.fees.check_fees()
        ctx.fees = fees
        ctx.claim_tx = await self.fees.claim_fees(fees)
        return ctx.claim_tx

    async def _swap(self, ctx: _DrawContext) -> str:
        ctx.swap_tx = await self.swapper.swap(ctx.fees.quote_amount)
        return ctx.swap_tx

    async def _distribute(self, ctx: _DrawContext) -> str:
        tx, amount = await self.distributor.distribute(ctx.winner.owner)
        ctx.distribution_tx = tx
        ctx.distributed_amount = amount
        ctx.completed_at = self.clock()
        log.info("Prize of %s sent to %s: %s", amount, ctx.winner.owner, tx)
        return tx

    async def _persist(self, ctx: _DrawContext) -> Any:
        return await self.store.save(ctx.to_result())
