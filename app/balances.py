"""Balance computation and debt simplification.

Everything here works on plain objects exposing the attributes of
``SpendRecord`` / ``ShareRecord`` (ORM rows qualify), in integer minor units
of the trip's base currency.
"""

import enum
from dataclasses import dataclass
from datetime import date as date_type
from typing import Iterable, Mapping


class SpendStatus(str, enum.Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


@dataclass(frozen=True)
class SpendRecord:
    id: str
    paid_by_id: str
    normalized_amount: int
    status: SpendStatus = SpendStatus.CLOSED
    date: date_type | None = None


@dataclass(frozen=True)
class ShareRecord:
    spend_id: str
    user_id: str
    normalized_share_amount: int


@dataclass
class MemberTotals:
    paid: int = 0
    owed: int = 0

    @property
    def net(self) -> int:
        return self.paid - self.owed


@dataclass(frozen=True)
class Transfer:
    from_user_id: str
    to_user_id: str
    amount: int


@dataclass
class _Party:
    user_id: str
    amount: int = 0


def _is_closed(spend) -> bool:
    return SpendStatus(spend.status) == SpendStatus.CLOSED


def _closed_by_id(spends: Iterable) -> dict:
    return {spend.id: spend for spend in spends if _is_closed(spend)}


def compute_member_totals(
    spends: Iterable,
    assignments: Iterable,
    member_ids: Iterable[str] = (),
) -> dict[str, MemberTotals]:
    """Fold closed spends into per-user paid/owed totals.

    Every id in ``member_ids`` is present even without activity; users with
    activity who are not in ``member_ids`` are included as well.
    """
    totals: dict[str, MemberTotals] = {mid: MemberTotals() for mid in member_ids}
    closed = _closed_by_id(spends)

    for spend in closed.values():
        totals.setdefault(spend.paid_by_id, MemberTotals()).paid += spend.normalized_amount

    for assignment in assignments:
        if assignment.spend_id not in closed:
            continue
        totals.setdefault(assignment.user_id, MemberTotals()).owed += assignment.normalized_share_amount

    return totals


def compute_balances(
    spends: Iterable,
    assignments: Iterable,
    member_ids: Iterable[str] = (),
) -> dict[str, int]:
    """Net balance per user: positive is owed money, negative owes money.

    Only CLOSED spends count. The values are the literal sums; rounding
    slack tolerated at finalize time is not corrected here.
    """
    totals = compute_member_totals(spends, assignments, member_ids)
    return {user_id: t.net for user_id, t in totals.items()}


def user_position(user_id: str, spends: Iterable, assignments: Iterable) -> tuple[int, int]:
    """Return ``(owes, is_owed)`` for one user across closed spends."""
    closed = _closed_by_id(spends)
    own_share: dict[str, int] = {}
    owes = 0
    for assignment in assignments:
        spend = closed.get(assignment.spend_id)
        if spend is None or assignment.user_id != user_id:
            continue
        own_share[spend.id] = own_share.get(spend.id, 0) + assignment.normalized_share_amount
        if spend.paid_by_id != user_id:
            owes += assignment.normalized_share_amount

    is_owed = sum(
        spend.normalized_amount - own_share.get(spend.id, 0)
        for spend in closed.values()
        if spend.paid_by_id == user_id
    )
    return owes, is_owed


def pending_total(spends: Iterable) -> int:
    """Sum of OPEN spends, which are left out of balances."""
    return sum(s.normalized_amount for s in spends if not _is_closed(s))


def debt_ages(spends: Iterable, assignments: Iterable) -> dict[tuple[str, str], date_type]:
    """Oldest closed spend date per (debtor, payer) pair."""
    closed = _closed_by_id(spends)
    ages: dict[tuple[str, str], date_type] = {}
    for assignment in assignments:
        spend = closed.get(assignment.spend_id)
        if spend is None or spend.date is None:
            continue
        if assignment.user_id == spend.paid_by_id or assignment.normalized_share_amount <= 0:
            continue
        key = (assignment.user_id, spend.paid_by_id)
        if key not in ages or spend.date < ages[key]:
            ages[key] = spend.date
    return ages


def plan_settlement(net_balances: Mapping[str, int], epsilon: int = 0) -> list[Transfer]:
    """Greedy debt simplification: largest debtor pays largest creditor.

    Equal amounts are ordered by user id so the plan is reproducible. A
    transfer is never emitted for zero. If debts and credits do not net to
    zero, whatever is left over on the larger side stays unmatched.
    """
    creditors = [_Party(uid, bal) for uid, bal in net_balances.items() if bal > epsilon]
    debtors = [_Party(uid, -bal) for uid, bal in net_balances.items() if bal < -epsilon]

    creditors.sort(key=lambda p: (-p.amount, p.user_id))
    debtors.sort(key=lambda p: (-p.amount, p.user_id))

    transfers: list[Transfer] = []
    ci = 0
    di = 0

    while ci < len(creditors) and di < len(debtors):
        creditor = creditors[ci]
        debtor = debtors[di]
        amount = min(creditor.amount, debtor.amount)
        transfers.append(Transfer(from_user_id=debtor.user_id, to_user_id=creditor.user_id, amount=amount))
        creditor.amount -= amount
        debtor.amount -= amount
        if creditor.amount <= epsilon:
            ci += 1
        if debtor.amount <= epsilon:
            di += 1

    return transfers


def apply_transfers(net_balances: Mapping[str, int], transfers: Iterable[Transfer]) -> dict[str, int]:
    """Balances after every transfer has been paid."""
    after = dict(net_balances)
    for t in transfers:
        after[t.from_user_id] = after.get(t.from_user_id, 0) + t.amount
        after[t.to_user_id] = after.get(t.to_user_id, 0) - t.amount
    return after
