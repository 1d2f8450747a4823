from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Any, Dict, Set

from .audit import AuditStore
from .broadcast import Broadcaster
from .collaborators import DryRunDistributor, DryRunSwap
from .config import Settings, draw_minutes_from_env
from .fee_estimate import FeeEstimator, JupiterPriceClient
from .fees import fee_source_from_settings
from .pipeline import DrawOrchestrator
from .project_constants import TICK_SECONDS
from .randomness import BlockhashRandomness
from .rpc import RpcClient
from .snapshot import RpcHolderSource
from .state import DrawStateMachine, next_draw_time, utc_now
from .token_accounts import load_excluded_wallets
from .verify import verify_audit

log = logging.getLogger("holder_lottery")


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def build_orchestrator(
    settings: Settings, rpc: RpcClient, broadcaster: Broadcaster
) -> DrawOrchestrator:
    state = DrawStateMachine(
        draw_minutes=settings.draw_minutes,
        announce_seconds=settings.announce_seconds,
    )
    broadcaster.track(state)
    return DrawOrchestrator(
        state,
        holders=RpcHolderSource(rpc),
        randomness=BlockhashRandomness(rpc),
        fees=fee_source_from_settings(settings),
        # No signing keys are handled here: swap and payout are logged only.
        swapper=DryRunSwap(),
        distributor=DryRunDistributor(),
        store=AuditStore(settings.audit_dir, settings.ticket_divisor),
        token_mint=settings.token_mint,
        exclude=load_excluded_wallets(settings.excluded_wallets_file),
        divisor=settings.ticket_divisor,
    )


def _log_message(message: Dict[str, Any]) -> None:
    data = message["data"]
    if message["type"] == "feesUpdate":
        log.info("Unclaimed fees worth about %.2f USD", data["estimatedUsdValue"])
    else:
        log.info("Status: %s (next draw %s)", data["currentState"], data["nextDrawTime"])


async def _run_forever(settings: Settings, timeout: float, tick_seconds: float) -> None:
    broadcaster = Broadcaster()
    broadcaster.add_listener(_log_message)
    async with RpcClient(settings.rpc_url, timeout_s=timeout) as rpc:
        orchestrator = build_orchestrator(settings, rpc, broadcaster)
        estimator = FeeEstimator(
            orchestrator.fees,
            JupiterPriceClient(),
            orchestrator.state,
            broadcaster.notify_fees,
        )
        in_flight: Set[asyncio.Task] = {asyncio.create_task(estimator.run_forever())}
        while True:
            # Ticks are not awaited; an overlapping tick is a no-op.
            task = asyncio.create_task(orchestrator.tick())
            in_flight.add(task)
            task.add_done_callback(in_flight.discard)
            await asyncio.sleep(tick_seconds)


async def _draw_once(settings: Settings, timeout: float) -> int:
    broadcaster = Broadcaster()
    async with RpcClient(settings.rpc_url, timeout_s=timeout) as rpc:
        orchestrator = build_orchestrator(settings, rpc, broadcaster)
        result = await orchestrator.tick(force=True)

    if result is None:
        print("Draw failed; see log for details.")
        return 1

    print("========================================")
    print("HOLDER LOTTERY DRAW")
    print("========================================")
    print(f"Mint          : {settings.token_mint}")
    if result.snapshot.block:
        print(f"Snapshot slot : {result.snapshot.block.slot}")
    print(f"Randomness    : {result.randomness.request_ref} / {result.randomness.result_ref}")
    print("----------------------------------------")
    print("WINNER")
    print(f"Address       : {result.winner.owner}")
    print(f"Balance       : {result.winner.balance}")
    print(f"Winning ticket: {result.winning_ticket} of {result.snapshot.total_tickets}")
    print("----------------------------------------")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    settings = Settings.from_env(rpc_url_override=args.rpc_url)
    try:
        asyncio.run(_run_forever(settings, args.timeout, args.tick_seconds))
    except KeyboardInterrupt:
        log.info("Stopped")
    return 0


def cmd_draw(args: argparse.Namespace) -> int:
    settings = Settings.from_env(rpc_url_override=args.rpc_url)
    return asyncio.run(_draw_once(settings, args.timeout))


def cmd_next_draw(args: argparse.Namespace) -> int:
    print(next_draw_time(utc_now(), draw_minutes_from_env()).isoformat())
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    result = verify_audit(args.audit)
    print("AUDIT VERIFIED")
    print(f"Winner        : {result['winner']}")
    print(f"Winning Ticket: {result['winning_ticket']}")
    print(f"Total Tickets : {result['total_tickets']}")
    print(f"Randomness    : {result['randomness']}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="holder-lottery",
        description="Recurring token-holder lottery runner.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--rpc-url", default=None, help="Override RPC URL (else use env).")
    p.add_argument("--timeout", type=float, default=60.0, help="RPC timeout seconds.")

    sub = p.add_subparsers(dest="cmd", required=True)

    r = sub.add_parser("run", help="Run draws on schedule until interrupted.")
    r.add_argument(
        "--tick-seconds",
        type=float,
        default=TICK_SECONDS,
        help="Seconds between schedule checks.",
    )
    r.set_defaults(func=cmd_run)

    d = sub.add_parser("draw", help="Run one draw now and write its audit JSON.")
    d.set_defaults(func=cmd_draw)

    n = sub.add_parser("next-draw", help="Print the next scheduled draw time.")
    n.set_defaults(func=cmd_next_draw)

    v = sub.add_parser(
        "verify", help="Verify an existing draw audit deterministically."
    )
    v.add_argument("--audit", required=True, help="Path to a draw audit JSON.")
    v.set_defaults(func=cmd_verify)

    return p


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(args.verbose)
    raise SystemExit(args.func(args))
