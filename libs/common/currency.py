"""Currency conversion utilities for GoBusker.

Internal storage unit: öre (smallest SEK unit, 100 öre = 1 kr), stored as int.
API / display unit: kronor (float with two decimals, e.g. 12.5 = 12,50 kr).

All rounding is banker's rounding (ROUND_HALF_EVEN) on Decimal values so the
same amount always converts to the same number of minor units.
"""

from __future__ import annotations

from decimal import ROUND_FLOOR, ROUND_HALF_EVEN, Decimal
from typing import Sequence, Union

# ─── constants ───────────────────────────────────────────────────────────────

MINOR_PER_MAJOR: int = 100

# Largest major-unit amount accepted from clients; fits BigInteger minor units
MAX_MAJOR_AMOUNT: int = 1_000_000_000

Number = Union[int, float, str, Decimal]


# ─── conversion helpers ───────────────────────────────────────────────────────


def to_decimal(value: Number) -> Decimal:
    """Exact Decimal for a value (floats go through repr, not binary)."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def to_minor(amount: Number) -> int:
    """Convert a major-unit amount to minor units (round half-even)."""
    value = to_decimal(amount)
    if not value.is_finite():
        raise ValueError(f"Amount must be a finite number, got {amount!r}")
    scaled = value * MINOR_PER_MAJOR
    return int(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_EVEN))


def to_major(minor: int) -> float:
    """Convert minor units to a major-unit float. 100 öre = 1 kr."""
    return float(Decimal(minor) / MINOR_PER_MAJOR)


def format_amount(minor: int, currency: str) -> str:
    """Human readable amount, e.g. ``15.00 SEK``."""
    return f"{Decimal(minor) / MINOR_PER_MAJOR:.2f} {currency}"


# ─── revenue splitting ────────────────────────────────────────────────────────


def allocate_by_shares(amount_minor: int, shares: Sequence[Number]) -> list[int]:
    """Split ``amount_minor`` across percentage ``shares`` (largest remainder).

    Every member's exact credit ``share / 100 * amount`` is floored to whole
    minor units; the units left over up to the half-even rounded exact total
    go one by one to the largest fractional remainders, earlier entries
    winning ties. Each result is therefore within one minor unit of its exact
    value and, when shares sum to 100, the results sum to ``amount_minor``.
    """
    if not shares:
        return []

    amount = Decimal(amount_minor)
    exact = [amount * to_decimal(share) / 100 for share in shares]
    floors = [int(value.to_integral_value(rounding=ROUND_FLOOR)) for value in exact]

    target = int(sum(exact).quantize(Decimal("1"), rounding=ROUND_HALF_EVEN))
    # Never hand out more than the payment itself
    target = min(target, amount_minor)
    leftover = target - sum(floors)

    by_remainder = sorted(
        range(len(exact)),
        key=lambda i: (-(exact[i] - floors[i]), i),
    )
    allocations = list(floors)
    for i in by_remainder[: max(leftover, 0)]:
        allocations[i] += 1
    return allocations
