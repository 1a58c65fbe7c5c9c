"""
Fee split for settled funds.

    platform_fee  = round_half_up(total * PAYMENTS_PLATFORM_FEE_RATE)
    processor_fee = round_half_up(total * PAYMENTS_PROCESSOR_FEE_RATE)
                    + PAYMENTS_PROCESSOR_FIXED_FEE_CENTS
    net           = total - platform_fee - processor_fee

net absorbs the rounding remainder, so the three parts always sum to the
total exactly. net may be negative for very small totals; the caller
decides what to do about that.

Usage:
    from payments.services.fee_calculator import calculate_fees

    fees = calculate_fees(5000)
    fees.platform_fee_cents   # 350
    fees.processor_fee_cents  # 578
    fees.net_cents            # 4072
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings


@dataclass(frozen=True)
class FeeBreakdown:
    total_cents: int
    platform_fee_cents: int
    processor_fee_cents: int
    net_cents: int

    @property
    def is_payable(self) -> bool:
        return self.net_cents >= 0


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_fees(total_cents: int) -> FeeBreakdown:
    """
    Split a captured total into platform fee, processor fee and net payout.

    Raises:
        ValueError: total_cents is negative
    """
    if total_cents < 0:
        raise ValueError("total_cents must be non-negative")

    total = Decimal(total_cents)
    platform_rate = Decimal(str(settings.PAYMENTS_PLATFORM_FEE_RATE))
    processor_rate = Decimal(str(settings.PAYMENTS_PROCESSOR_FEE_RATE))
    fixed_fee = int(settings.PAYMENTS_PROCESSOR_FIXED_FEE_CENTS)

    platform_fee = _round_half_up(total * platform_rate)
    processor_fee = _round_half_up(total * processor_rate) + fixed_fee

    return FeeBreakdown(
        total_cents=total_cents,
        platform_fee_cents=platform_fee,
        processor_fee_cents=processor_fee,
        net_cents=total_cents - platform_fee - processor_fee,
    )
