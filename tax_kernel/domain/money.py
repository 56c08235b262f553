"""
Money -- Integer minor-unit arithmetic and rounding modes.

Responsibility:
    Every monetary value in the tax engine is an ``int`` count of minor
    units (cents).  This module owns the only places where a ratio of such
    integers is rounded back to an integer: applying a basis-point rate,
    extracting tax from a tax-inclusive gross, and percentage surcharges.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by the engines; imports nothing from the rest of the kernel.

Invariants enforced:
    - No float anywhere: inputs must be ``int`` (``bool`` is rejected) and
      rounding works on the exact integer remainder of the division.
    - ``extract_from_gross`` derives tax as ``gross - net`` so that
      ``net + tax == gross`` holds exactly for every input.

Failure modes:
    - TypeError when a float, Decimal, bool or str reaches an operation.
    - ValueError on a negative rate or a non-positive denominator.
"""

from __future__ import annotations

from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP
from enum import Enum

BPS_DENOMINATOR = 10_000


class RoundingMode(str, Enum):
    """How a tie (exactly half a minor unit) is resolved."""

    HALF_UP = "half_up"  # 0.5 rounds away from zero
    HALF_EVEN = "half_even"  # banker's rounding, ties to even

    @property
    def decimal_rounding(self) -> str:
        """The equivalent ``decimal`` module constant, for Decimal callers."""
        if self is RoundingMode.HALF_EVEN:
            return ROUND_HALF_EVEN
        return ROUND_HALF_UP


def _require_int(value: object, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be int minor units, got {type(value).__name__}")
    return value


def _require_rate(rate_bps: object, name: str = "rate_bps") -> int:
    rate = _require_int(rate_bps, name)
    if rate < 0:
        raise ValueError(f"{name} cannot be negative: {rate}")
    return rate


def round_ratio(numerator: int, denominator: int, mode: RoundingMode) -> int:
    """
    Divide two integers and round the exact quotient to an integer.

    Preconditions:
        - ``numerator`` and ``denominator`` are ints, ``denominator > 0``.

    Postconditions:
        - Returns the integer nearest to ``numerator / denominator``; ties
          resolved per ``mode``.  Symmetric around zero.
    """
    _require_int(numerator, "numerator")
    _require_int(denominator, "denominator")
    if denominator <= 0:
        raise ValueError(f"denominator must be positive: {denominator}")

    sign = -1 if numerator < 0 else 1
    quotient, remainder = divmod(abs(numerator), denominator)
    twice = remainder * 2
    if twice > denominator:
        quotient += 1
    elif twice == denominator:
        if mode is RoundingMode.HALF_UP or quotient % 2 == 1:
            quotient += 1
    return sign * quotient


def apply_rate_bps(base_cents: int, rate_bps: int, mode: RoundingMode) -> int:
    """Tax on a tax-exclusive base: ``round(base * rate / 10000)``."""
    base = _require_int(base_cents, "base_cents")
    rate = _require_rate(rate_bps)
    return round_ratio(base * rate, BPS_DENOMINATOR, mode)


def percent_of(base_cents: int, percent_bps: int, mode: RoundingMode) -> int:
    """A basis-point share of a base, e.g. a 10% service charge."""
    base = _require_int(base_cents, "base_cents")
    percent = _require_rate(percent_bps, "percent_bps")
    return round_ratio(base * percent, BPS_DENOMINATOR, mode)


def extract_from_gross(
    gross_cents: int,
    rate_bps: int,
    mode: RoundingMode,
) -> tuple[int, int]:
    """
    Split a tax-inclusive gross into ``(net, tax)``.

    ``net = round(gross * 10000 / (10000 + rate))`` and ``tax = gross - net``.

    Postconditions:
        - ``net + tax == gross_cents`` exactly.
        - With ``rate_bps == 0`` the whole gross is net.
    """
    gross = _require_int(gross_cents, "gross_cents")
    rate = _require_rate(rate_bps)
    net = round_ratio(gross * BPS_DENOMINATOR, BPS_DENOMINATOR + rate, mode)
    return net, gross - net


def line_base_cents(quantity: int, unit_price_cents: int, addons_cents: int = 0) -> int:
    """Base of an order line: addons are per unit, so both scale with quantity."""
    qty = _require_int(quantity, "quantity")
    unit = _require_int(unit_price_cents, "unit_price_cents")
    addons = _require_int(addons_cents, "addons_cents")
    return (unit + addons) * qty
