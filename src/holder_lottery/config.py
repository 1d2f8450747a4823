from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Tuple

from dotenv import load_dotenv

from .project_constants import (
    ANNOUNCE_SECONDS,
    AUDIT_DIR,
    DRAW_MINUTES,
    EXCLUDED_WALLETS_FILE,
    TICKET_DIVISOR,
    TOKEN_MINT,
)

FEE_MODES = ("fixed",)


@dataclass(frozen=True)
class Settings:
    rpc_url: str
    token_mint: str = TOKEN_MINT
    excluded_wallets_file: str | None = EXCLUDED_WALLETS_FILE
    ticket_divisor: int = TICKET_DIVISOR
    draw_minutes: Tuple[int, ...] = DRAW_MINUTES
    announce_seconds: float = ANNOUNCE_SECONDS
    fee_mode: str = "fixed"
    fixed_base_fee: int = 0
    fixed_quote_fee: int = 0
    audit_dir: str = AUDIT_DIR

    @staticmethod
    def from_env(rpc_url_override: str | None = None) -> "Settings":
        load_dotenv()

        return Settings(
            rpc_url=_rpc_url(rpc_url_override),
            token_mint=os.getenv("TOKEN_MINT", "").strip() or TOKEN_MINT,
            excluded_wallets_file=os.getenv(
                "EXCLUDED_WALLETS_FILE", EXCLUDED_WALLETS_FILE
            ).strip()
            or None,
            ticket_divisor=_positive_int("TICKET_DIVISOR", TICKET_DIVISOR),
            draw_minutes=_minutes("DRAW_MINUTES", DRAW_MINUTES),
            announce_seconds=_positive_float("ANNOUNCE_SECONDS", ANNOUNCE_SECONDS),
            fee_mode=_fee_mode(),
            fixed_base_fee=_non_negative_int("FIXED_BASE_FEE", 0),
            fixed_quote_fee=_non_negative_int("FIXED_QUOTE_FEE", 0),
            audit_dir=os.getenv("AUDIT_DIR", "").strip() or AUDIT_DIR,
        )


def draw_minutes_from_env() -> Tuple[int, ...]:
    load_dotenv()
    return _minutes("DRAW_MINUTES", DRAW_MINUTES)


def _rpc_url(override: str | None) -> str:
    # If user provides --rpc-url, trust it.
    if override:
        return override

    # Otherwise, use RPC_URL from env if present, else build helius url from key.
    env_rpc = os.getenv("RPC_URL", "").strip()
    if env_rpc:
        return env_rpc

    helius_key = os.getenv("HELIUS_API_KEY", "").strip()
    if not helius_key:
        raise RuntimeError(
            "Missing HELIUS_API_KEY (or RPC_URL). Put it in .env or export it."
        )

    return f"https://mainnet.helius-rpc.com/?api-key={helius_key}"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw.replace("_", ""))
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")


def _positive_int(name: str, default: int) -> int:
    value = _int_env(name, default)
    if value <= 0:
        raise RuntimeError(f"{name} must be positive, got {value}")
    return value


def _non_negative_int(name: str, default: int) -> int:
    value = _int_env(name, default)
    if value < 0:
        raise RuntimeError(f"{name} must not be negative, got {value}")
    return value


def _positive_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return float(default)
    try:
        value = float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise RuntimeError(f"{name} must be positive, got {value}")
    return value


def _minutes(name: str, default: Tuple[int, ...]) -> Tuple[int, ...]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return tuple(default)
    try:
        minutes = tuple(sorted({int(m) for m in raw.split(",") if m.strip()}))
    except ValueError:
        raise RuntimeError(f"{name} must be a comma separated list of minutes")
    if not minutes or any(m < 0 or m > 59 for m in minutes):
        raise RuntimeError(f"{name} must list minutes between 0 and 59, got {raw!r}")
    return minutes


def _fee_mode() -> str:
    mode = os.getenv("FEE_MODE", "").strip().lower() or "fixed"
    if mode not in FEE_MODES:
        raise RuntimeError(
            f"Unsupported FEE_MODE {mode!r}; expected one of {', '.join(FEE_MODES)}"
        )
    return mode
