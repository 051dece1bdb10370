"""
Constant-product swap quotes.

Mirrors the AMM v4 fixed-in swap: a 0.25% trade fee is taken from the
input, the rest moves along x * y = k, and the slippage-adjusted minimum
is amount_out / (1 + slippage). All math is on raw integers; fractional
results round down, so a quote never promises more than the pool pays.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from fractions import Fraction
from typing import Union

from .models import PoolReserves, SwapDirection

TRADE_FEE_NUMERATOR = 25
TRADE_FEE_DENOMINATOR = 10_000


@dataclass(frozen=True)
class SwapQuote:
    """Simulated swap output."""

    amount_in: int
    amount_out: int
    min_amount_out: int


def compute_amount_out(
    amount_in: int,
    reserve_in: int,
    reserve_out: int,
    slippage_percent: Union[Decimal, int] = 0,
) -> SwapQuote:
    """
    Quote a fixed-input swap against raw reserves.

    Args:
        amount_in: Raw input amount
        reserve_in: Raw reserve of the input token
        reserve_out: Raw reserve of the output token
        slippage_percent: Tolerance in percent (e.g. Decimal("5") for 5%)

    Returns:
        SwapQuote with expected and minimum acceptable output

    Raises:
        ValueError: If reserves are empty or inputs negative
    """
    if reserve_in <= 0 or reserve_out <= 0:
        raise ValueError(f"Pool has no liquidity (reserves {reserve_in}/{reserve_out})")
    if amount_in < 0:
        raise ValueError(f"Negative input amount: {amount_in}")

    fee = amount_in * TRADE_FEE_NUMERATOR // TRADE_FEE_DENOMINATOR
    amount_in_with_fee = amount_in - fee
    amount_out = reserve_out * amount_in_with_fee // (reserve_in + amount_in_with_fee)

    slippage = Fraction(Decimal(slippage_percent)) / 100
    min_amount_out = int(Fraction(amount_out) / (1 + slippage))

    return SwapQuote(
        amount_in=amount_in,
        amount_out=amount_out,
        min_amount_out=min_amount_out,
    )


def quote_swap(
    reserves: PoolReserves,
    amount_in: int,
    direction: SwapDirection,
    slippage_percent: Union[Decimal, int] = 0,
) -> SwapQuote:
    """Quote a buy (quote -> base) or sell (base -> quote) against pool reserves."""
    if direction is SwapDirection.BUY:
        return compute_amount_out(amount_in, reserves.quote, reserves.base, slippage_percent)
    return compute_amount_out(amount_in, reserves.base, reserves.quote, slippage_percent)
