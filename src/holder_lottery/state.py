"""
Draw lifecycle: WAITING -> EXECUTING -> ANNOUNCING -> WAITING.

The state machine is the only owner of the lifecycle fields. Callers read
frozen DrawStatus snapshots and change state through the transition
methods, each of which publishes the new status to every observer.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from .audit import result_summary
from .errors import StateTransitionError
from .models import DrawResult
from .project_constants import ANNOUNCE_SECONDS, DRAW_MINUTES, STATUS_HOLDER_LIMIT

log = logging.getLogger(__name__)


class DrawPhase(str, Enum):
    WAITING = "WAITING"
    EXECUTING = "EXECUTING"
    ANNOUNCING = "ANNOUNCING"


@dataclass(frozen=True)
class DrawStatus:
    phase: DrawPhase
    next_draw_time: datetime
    last_draw_result: Optional[DrawResult]

    def to_dict(self, holder_limit: int = STATUS_HOLDER_LIMIT) -> Dict[str, Any]:
        last = None
        if self.last_draw_result is not None:
            last = result_summary(self.last_draw_result, holder_limit=holder_limit)
        return {
            "currentState": self.phase.value,
            "nextDrawTime": self.next_draw_time.isoformat(),
            "lastDrawResult": last,
        }


Observer = Callable[[DrawStatus], None]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def next_draw_time(now: datetime, minutes: Sequence[int] = DRAW_MINUTES) -> datetime:
    """First boundary of the hourly minute grid strictly after `now`."""
    grid = sorted(set(minutes))
    if not grid or grid[0] < 0 or grid[-1] > 59:
        raise ValueError(f"Draw minutes must be within 0..59, got {list(minutes)}")

    hour = now.replace(minute=0, second=0, microsecond=0)
    for hours_ahead in (0, 1):
        base = hour + timedelta(hours=hours_ahead)
        for minute in grid:
            candidate = base + timedelta(minutes=minute)
            if candidate > now:
                return candidate
    # Unreachable for a valid grid: the first slot of the next hour is always later.
    raise AssertionError("no draw slot after %s" % now.isoformat())


class DrawStateMachine:
    def __init__(
        self,
        *,
        draw_minutes: Sequence[int] = DRAW_MINUTES,
        announce_seconds: float = ANNOUNCE_SECONDS,
        clock: Callable[[], datetime] = utc_now,
        observers: Iterable[Observer] = (),
    ) -> None:
        self._lock = threading.Lock()
        self._draw_minutes = tuple(draw_minutes)
        self._announce_seconds = announce_seconds
        self._clock = clock
        self._observers: List[Observer] = list(observers)
        self._announce_timer: Optional[asyncio.TimerHandle] = None

        self._phase = DrawPhase.WAITING
        self._next_draw_time = next_draw_time(clock(), self._draw_minutes)
        self._last_draw_result: Optional[DrawResult] = None
        log.info("Next draw at %s", self._next_draw_time.isoformat())

    def add_observer(self, observer: Observer) -> None:
        self._observers.append(observer)

    def status(self) -> DrawStatus:
        with self._lock:
            return self._status()

    @property
    def phase(self) -> DrawPhase:
        return self._phase

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def begin_draw(self, now: Optional[datetime] = None, force: bool = False) -> bool:
        """
        WAITING -> EXECUTING when the scheduled time has come.

        Check and set happen under one lock, so of any number of concurrent
        callers at most one gets True. Everyone else is a no-op.
        """
        now = now or self._clock()
        with self._lock:
            if self._phase is not DrawPhase.WAITING:
                log.debug("Draw not started: state is %s", self._phase.value)
                return False
            if not force and now < self._next_draw_time:
                return False
            self._phase = DrawPhase.EXECUTING
            self._last_draw_result = None
            status = self._status()

        log.info("Draw started")
        self._publish(status)
        return True

    def announce(self, result: DrawResult) -> None:
        """
        EXECUTING -> ANNOUNCING; WAITING follows after the display window.

        Must be called from the running event loop that owns the timer.
        """
        loop = asyncio.get_running_loop()
        with self._lock:
            if self._phase is not DrawPhase.EXECUTING:
                raise StateTransitionError(
                    f"Cannot announce a result while {self._phase.value}"
                )
            self._phase = DrawPhase.ANNOUNCING
            self._last_draw_result = result
            status = self._status()
            self._schedule_reset(loop)

        log.info(
            "Announcing winner %s (ticket %d of %d)",
            result.winner.owner,
            result.winning_ticket,
            result.snapshot.total_tickets,
        )
        self._publish(status)

    def fail_draw(self, now: Optional[datetime] = None) -> bool:
        """EXECUTING -> WAITING after a failed pipeline; retry at the next slot."""
        now = now or self._clock()
        with self._lock:
            if self._phase is not DrawPhase.EXECUTING:
                return False
            self._to_waiting(now)
            status = self._status()

        log.warning("Draw aborted; next draw at %s", status.next_draw_time.isoformat())
        self._publish(status)
        return True

    def reset_to_waiting(self, now: Optional[datetime] = None) -> bool:
        """
        ANNOUNCING -> WAITING.

        Harmless when already WAITING, so the display timer and a manual
        reset can race. Refused while a draw is executing.
        """
        now = now or self._clock()
        with self._lock:
            if self._phase is DrawPhase.WAITING:
                return False
            if self._phase is DrawPhase.EXECUTING:
                log.warning("Ignoring reset while a draw is executing")
                return False
            self._to_waiting(now)
            status = self._status()

        log.info("Back to waiting; next draw at %s", status.next_draw_time.isoformat())
        self._publish(status)
        return True

    # ------------------------------------------------------------------
    # Internals (call with the lock held unless noted)
    # ------------------------------------------------------------------
    def _status(self) -> DrawStatus:
        return DrawStatus(
            phase=self._phase,
            next_draw_time=self._next_draw_time,
            last_draw_result=self._last_draw_result,
        )

    def _to_waiting(self, now: datetime) -> None:
        self._cancel_reset()
        self._phase = DrawPhase.WAITING
        self._last_draw_result = None
        self._next_draw_time = next_draw_time(now, self._draw_minutes)

    def _schedule_reset(self, loop: asyncio.AbstractEventLoop) -> None:
        self._cancel_reset()
        self._announce_timer = loop.call_later(
            self._announce_seconds, self._announcement_over
        )

    def _cancel_reset(self) -> None:
        if self._announce_timer is not None:
            self._announce_timer.cancel()
            self._announce_timer = None

    def _announcement_over(self) -> None:
        # Runs on the event loop, lock not held.
        self.reset_to_waiting()

    def _publish(self, status: DrawStatus) -> None:
        # Lock not held: a slow observer must not stall transitions.
        for observer in list(self._observers):
            try:
                observer(status)
            except Exception:
                log.exception("Draw status observer %r failed", observer)
