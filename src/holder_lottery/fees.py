from __future__ import annotations

import logging
from typing import Optional

from .config import Settings
from .models import FeeAmounts

log = logging.getLogger(__name__)


class FixedFeeSource:
    """
    Fees that were already claimed out of band and sit in the prize wallet.

    check_fees reports the configured amounts and claim_fees has nothing to
    send, so it returns no transaction.
    """

    def __init__(self, base_amount: int = 0, quote_amount: int = 0) -> None:
        if base_amount < 0 or quote_amount < 0:
            raise ValueError("Fee amounts must not be negative")
        self.fees = FeeAmounts(base_amount=base_amount, quote_amount=quote_amount)

    async def check_fees(self) -> FeeAmounts:
        log.info(
            "Fixed fees: base=%d quote=%d (%.9f SOL)",
            self.fees.base_amount,
            self.fees.quote_amount,
            self.fees.quote_amount / 1e9,
        )
        return self.fees

    async def claim_fees(self, fees: FeeAmounts) -> Optional[str]:
        log.info("Fixed fee mode: nothing to claim on-chain")
        return None


def fee_source_from_settings(settings: Settings) -> FixedFeeSource:
    if settings.fee_mode == "fixed":
        return FixedFeeSource(settings.fixed_base_fee, settings.fixed_quote_fee)
    raise RuntimeError(f"Unsupported fee mode: {settings.fee_mode}")
