"""Split policies for spend assignments and the reconciliation check.

Shares are computed in integer minor units. An EQUAL split gives every
assignee the floor of the even share and the whole remainder to the first
assignee in submission order (101 / 3 -> 35, 33, 33). SHARES splits hand the
leftover out one unit at a time by largest remainder. Both always add up to
the amount being split.
"""

import enum
from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import Iterable, Sequence

from app.currency import normalize_minor
from app.errors import (
    DUPLICATE_ASSIGNEE,
    EMPTY_ASSIGNMENT_SET,
    INVALID_AMOUNT,
    ReconciliationFailed,
    ValidationError,
)


class SplitType(str, enum.Enum):
    EQUAL = "EQUAL"
    PERCENTAGE = "PERCENTAGE"
    EXACT = "EXACT"
    SHARES = "SHARES"


@dataclass(frozen=True)
class AssignmentInput:
    user_id: str
    split_type: SplitType = SplitType.EQUAL
    split_value: Decimal | None = None


@dataclass(frozen=True)
class ComputedShare:
    user_id: str
    split_type: SplitType
    split_value: Decimal | None
    share_amount: int  # minor units of the spend's currency
    normalized_share_amount: int  # minor units of the trip's base currency


@dataclass(frozen=True)
class SpendSummary:
    normalized_amount: int
    assigned_total: int
    unassigned: int
    percent_assigned: Decimal
    is_fully_assigned: bool
    items_total: int = 0  # minor units of the spend's currency


def allocate(total: int, weights: Sequence[Decimal]) -> list[int]:
    """Split ``total`` in proportion to ``weights`` without losing a unit.

    Each part is floored, then the leftover units go to the largest
    fractional remainders, earliest position first on ties.
    """
    weight_sum = sum(weights, Decimal(0))
    raw = [Decimal(total) * w / weight_sum for w in weights]
    parts = [int(r.to_integral_value(rounding=ROUND_FLOOR)) for r in raw]
    leftover = total - sum(parts)
    order = sorted(range(len(parts)), key=lambda i: (-(raw[i] - parts[i]), i))
    for i in order[:leftover]:
        parts[i] += 1
    return parts


def split_evenly(total: int, count: int) -> list[int]:
    """Even split with the whole remainder on the first part."""
    base, remainder = divmod(total, count)
    return [base + remainder] + [base] * (count - 1)


def _percent_of(total: int, percent: Decimal) -> int:
    return int((Decimal(total) * percent / 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _check_entries(entries: Sequence[AssignmentInput]) -> None:
    if not entries:
        raise ValidationError(EMPTY_ASSIGNMENT_SET, "At least one assignment is required")

    seen: set[str] = set()
    for entry in entries:
        if entry.user_id in seen:
            raise ValidationError(DUPLICATE_ASSIGNEE, f"User {entry.user_id} appears more than once")
        seen.add(entry.user_id)

        split_type = SplitType(entry.split_type)
        value = entry.split_value
        if split_type == SplitType.EQUAL:
            continue
        if value is None:
            raise ValidationError(INVALID_AMOUNT, f"{split_type.value} split for {entry.user_id} needs a split value")
        value = Decimal(value)
        if split_type == SplitType.PERCENTAGE and not (0 <= value <= 100):
            raise ValidationError(INVALID_AMOUNT, f"Percentage for {entry.user_id} must be between 0 and 100")
        if split_type == SplitType.EXACT and (value < 0 or value != value.to_integral_value()):
            raise ValidationError(INVALID_AMOUNT, f"Exact amount for {entry.user_id} must be a non-negative whole number of minor units")
        if split_type == SplitType.SHARES and value <= 0:
            raise ValidationError(INVALID_AMOUNT, f"Share count for {entry.user_id} must be positive")


def compute_shares(
    amount: int,
    normalized_amount: int,
    entries: Sequence[AssignmentInput],
    fx_rate: Decimal = Decimal("1"),
    currency: str = "USD",
    base_currency: str = "USD",
) -> list[ComputedShare]:
    """Compute each assignee's share of a spend.

    ``amount`` is in minor units of the spend's currency and
    ``normalized_amount`` in minor units of the base currency. EQUAL, SHARES
    and PERCENTAGE apply the same policy to both amounts, so an EQUAL split
    reconciles exactly in each currency. EXACT values are minor units of the
    spend's currency and are converted with ``fx_rate``.

    EQUAL and SHARES entries each divide the whole amount among
    themselves, independently of any EXACT or PERCENTAGE entries in the same
    batch. A batch mixing EQUAL with EXACT therefore over-assigns the spend
    and will not pass the finalize check without ``force``.

    Raises ValidationError for an empty batch, a repeated user or any
    negative share. Percentages need not add up to 100 here; completeness
    is enforced when the spend is finalized.
    """
    _check_entries(entries)

    share_amounts: dict[int, int] = {}
    normalized: dict[int, int] = {}

    equal_idx = [i for i, e in enumerate(entries) if SplitType(e.split_type) == SplitType.EQUAL]
    if equal_idx:
        share_amounts.update(zip(equal_idx, split_evenly(amount, len(equal_idx))))
        normalized.update(zip(equal_idx, split_evenly(normalized_amount, len(equal_idx))))

    shares_idx = [i for i, e in enumerate(entries) if SplitType(e.split_type) == SplitType.SHARES]
    if shares_idx:
        weights = [Decimal(entries[i].split_value) for i in shares_idx]
        share_amounts.update(zip(shares_idx, allocate(amount, weights)))
        normalized.update(zip(shares_idx, allocate(normalized_amount, weights)))

    for i, entry in enumerate(entries):
        split_type = SplitType(entry.split_type)
        if split_type == SplitType.PERCENTAGE:
            percent = Decimal(entry.split_value)
            share_amounts[i] = _percent_of(amount, percent)
            normalized[i] = _percent_of(normalized_amount, percent)
        elif split_type == SplitType.EXACT:
            exact = int(Decimal(entry.split_value))
            share_amounts[i] = exact
            normalized[i] = normalize_minor(exact, fx_rate, currency, base_currency)

    result = []
    for i, entry in enumerate(entries):
        if share_amounts[i] < 0 or normalized[i] < 0:
            raise ValidationError(INVALID_AMOUNT, f"Share for {entry.user_id} is negative")
        result.append(ComputedShare(
            user_id=entry.user_id,
            split_type=SplitType(entry.split_type),
            split_value=None if entry.split_value is None else Decimal(entry.split_value),
            share_amount=share_amounts[i],
            normalized_share_amount=normalized[i],
        ))
    return result


def reconciliation_tolerance(assignment_count: int) -> int:
    """One minor unit of slack per assignment absorbs conversion rounding."""
    return assignment_count


def assigned_total(shares: Iterable) -> int:
    return sum(s.normalized_share_amount for s in shares)


def is_reconciled(normalized_amount: int, shares: Sequence) -> bool:
    difference = abs(normalized_amount - assigned_total(shares))
    return difference <= reconciliation_tolerance(len(shares))


def check_reconciled(normalized_amount: int, shares: Sequence) -> None:
    if not is_reconciled(normalized_amount, shares):
        raise ReconciliationFailed(
            normalized_amount,
            assigned_total(shares),
            reconciliation_tolerance(len(shares)),
        )


def summarize(normalized_amount: int, shares: Sequence, items: Iterable = ()) -> SpendSummary:
    total = assigned_total(shares)
    if normalized_amount:
        percent = (Decimal(total) * 100 / normalized_amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    else:
        percent = Decimal("0.00")
    return SpendSummary(
        normalized_amount=normalized_amount,
        assigned_total=total,
        unassigned=normalized_amount - total,
        percent_assigned=percent,
        is_fully_assigned=is_reconciled(normalized_amount, shares),
        items_total=sum(item.cost for item in items),
    )
