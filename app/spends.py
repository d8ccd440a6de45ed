"""Spend lifecycle: create, edit, assign, finalize, reopen, delete.

Each operation validates everything first and only then touches the
session, committing once at the end, so a rejected request never leaves a
partial assignment list behind. Callers load the spend with
``get_spend_for_update`` to hold a row lock for the duration.
"""

import logging
from datetime import date as date_type
from decimal import Decimal
from typing import Sequence

from sqlalchemy.orm import Session

from app.balances import SpendStatus
from app.currency import DEFAULT_FX_RATE, normalize_minor
from app.errors import INVALID_AMOUNT, SpendNotOpen, ValidationError
from app.events import EventType, log_event
from app.models import Spend, SpendAssignment, SpendItem, Trip, utcnow
from app.splits import AssignmentInput, ComputedShare, SplitType, check_reconciled, compute_shares, summarize

logger = logging.getLogger("tripsplit")

# Spend fields an edit may set back to None
CLEARABLE_FIELDS = {"notes"}


def get_spend_for_update(db: Session, spend_id: str) -> Spend | None:
    return db.query(Spend).filter(Spend.id == spend_id).with_for_update().populate_existing().first()


def list_trip_spends(
    db: Session,
    trip_id: str,
    status: SpendStatus | None = None,
    paid_by_id: str | None = None,
) -> list[Spend]:
    query = db.query(Spend).filter(Spend.trip_id == trip_id)
    if status is not None:
        query = query.filter(Spend.status == SpendStatus(status).value)
    if paid_by_id is not None:
        query = query.filter(Spend.paid_by_id == paid_by_id)
    return query.order_by(Spend.date.desc(), Spend.created_at.desc()).all()


def is_open(spend: Spend) -> bool:
    return SpendStatus(spend.status) == SpendStatus.OPEN


def _ensure_open(spend: Spend, action: str) -> None:
    if not is_open(spend):
        raise SpendNotOpen(spend.id, action)


def _check_money(amount: int, fx_rate: Decimal) -> None:
    if amount < 0:
        raise ValidationError(INVALID_AMOUNT, "Spend amount cannot be negative")
    if fx_rate <= 0:
        raise ValidationError(INVALID_AMOUNT, "Exchange rate must be positive")


def _current_inputs(spend: Spend) -> list[AssignmentInput]:
    return [
        AssignmentInput(user_id=a.user_id, split_type=SplitType(a.split_type), split_value=a.split_value)
        for a in spend.assignments
    ]


def _compute_for(spend: Spend, entries: Sequence[AssignmentInput], **overrides) -> list[ComputedShare]:
    amount = overrides.get("amount", spend.amount)
    return compute_shares(
        amount,
        overrides.get("normalized_amount", spend.normalized_amount),
        entries,
        fx_rate=Decimal(overrides.get("fx_rate", spend.fx_rate)),
        currency=overrides.get("currency", spend.currency),
        base_currency=spend.trip.base_currency,
    )


def _write_shares(spend: Spend, shares: Sequence[ComputedShare], linked: dict[str, bool] | None = None) -> None:
    """Make the spend's assignment rows match ``shares`` exactly.

    Rows for users that stay are updated in place so the unique
    (spend, user) constraint never sees a transient duplicate. ``linked``
    sets ``item_linked`` for the given users; other rows keep theirs.
    """
    linked = linked or {}
    existing = {a.user_id: a for a in spend.assignments}
    for position, share in enumerate(shares):
        assignment = existing.pop(share.user_id, None)
        if assignment is None:
            assignment = SpendAssignment(user_id=share.user_id, item_linked=False)
            spend.assignments.append(assignment)
        assignment.split_type = share.split_type.value
        assignment.split_value = share.split_value
        assignment.share_amount = share.share_amount
        assignment.normalized_share_amount = share.normalized_share_amount
        assignment.position = position
        if share.user_id in linked:
            assignment.item_linked = linked[share.user_id]
    for stale in existing.values():
        spend.assignments.remove(stale)
    spend.assignments.sort(key=lambda a: a.position)


def _set_money(
    spend: Spend,
    amount: int,
    currency: str,
    fx_rate: Decimal,
    entries: Sequence[AssignmentInput],
    linked: dict[str, bool] | None = None,
) -> None:
    """Store new money fields and re-derive ``entries`` as the assignment set."""
    normalized_amount = normalize_minor(amount, fx_rate, currency, spend.trip.base_currency)
    shares = []
    if entries:
        shares = _compute_for(
            spend,
            entries,
            amount=amount,
            normalized_amount=normalized_amount,
            fx_rate=fx_rate,
            currency=currency,
        )
    spend.amount = amount
    spend.currency = currency
    spend.fx_rate = fx_rate
    spend.normalized_amount = normalized_amount
    _write_shares(spend, shares, linked)


def create_spend(
    db: Session,
    trip: Trip,
    paid_by_id: str,
    description: str,
    amount: int,
    currency: str | None = None,
    fx_rate: Decimal | None = None,
    spend_date: date_type | None = None,
    notes: str | None = None,
    actor_id: str | None = None,
) -> Spend:
    currency = (currency or trip.base_currency).upper()
    fx_rate = DEFAULT_FX_RATE if fx_rate is None else Decimal(fx_rate)
    _check_money(amount, fx_rate)

    spend = Spend(
        trip_id=trip.id,
        paid_by_id=paid_by_id,
        description=description,
        amount=amount,
        currency=currency,
        fx_rate=fx_rate,
        normalized_amount=normalize_minor(amount, fx_rate, currency, trip.base_currency),
        status=SpendStatus.OPEN.value,
        date=spend_date or date_type.today(),
        notes=notes,
    )
    db.add(spend)
    db.flush()

    log_event(db, "Spend", spend.id, EventType.SPEND_CREATED, actor_id or paid_by_id, trip.id, {
        "description": description,
        "amount": amount,
        "currency": currency,
        "normalizedAmount": spend.normalized_amount,
    })
    trip.updated_at = utcnow()
    db.commit()
    db.refresh(spend)
    return spend


def update_spend(db: Session, spend: Spend, actor_id: str | None = None, **changes) -> Spend:
    """Edit an OPEN spend.

    A change to amount, currency or fx_rate re-derives ``normalized_amount``
    and every existing assignment's shares from its stored split. None
    leaves a field unchanged, except for ``notes`` which it clears.
    """
    _ensure_open(spend, "edit")
    changes = {k: v for k, v in changes.items() if v is not None or k in CLEARABLE_FIELDS}

    amount = changes.get("amount", spend.amount)
    currency = changes.get("currency", spend.currency).upper()
    fx_rate = Decimal(changes.get("fx_rate", spend.fx_rate))
    _check_money(amount, fx_rate)

    if (amount, currency, fx_rate) != (spend.amount, spend.currency, Decimal(spend.fx_rate)):
        _set_money(spend, amount, currency, fx_rate, _current_inputs(spend))

    for field in ("description", "paid_by_id", "date", "notes"):
        if field in changes:
            setattr(spend, field, changes[field])

    log_event(db, "Spend", spend.id, EventType.SPEND_UPDATED, actor_id, spend.trip_id, {
        key: str(value) for key, value in changes.items()
    })
    spend.trip.updated_at = utcnow()
    db.commit()
    db.refresh(spend)
    return spend


def delete_spend(db: Session, spend: Spend, actor_id: str | None = None) -> None:
    _ensure_open(spend, "delete")
    trip = spend.trip
    log_event(db, "Spend", spend.id, EventType.SPEND_DELETED, actor_id, trip.id, {
        "description": spend.description,
    })
    db.delete(spend)
    trip.updated_at = utcnow()
    db.commit()


def create_assignments(
    db: Session,
    spend: Spend,
    entries: Sequence[AssignmentInput],
    actor_id: str | None = None,
) -> list[SpendAssignment]:
    """Add or update assignments for some users, keeping everyone else's.

    The submitted batch is validated on its own first. It is then merged
    over the existing assignments (a user already assigned is replaced in
    place) and the shares of the whole set are recomputed, so EQUAL splits
    always divide among every EQUAL assignee of the spend.
    """
    _ensure_open(spend, "add assignments to")
    _compute_for(spend, entries)

    merged = _current_inputs(spend)
    index = {entry.user_id: i for i, entry in enumerate(merged)}
    for entry in entries:
        if entry.user_id in index:
            merged[index[entry.user_id]] = entry
        else:
            index[entry.user_id] = len(merged)
            merged.append(entry)

    shares = _compute_for(spend, merged)
    _write_shares(spend, shares, {entry.user_id: False for entry in entries})
    return _commit_assignments(db, spend, actor_id, "create", len(entries))


def replace_assignments(
    db: Session,
    spend: Spend,
    entries: Sequence[AssignmentInput],
    actor_id: str | None = None,
) -> list[SpendAssignment]:
    """Swap the spend's whole assignment set for ``entries``."""
    _ensure_open(spend, "replace assignments of")
    shares = _compute_for(spend, entries)
    _write_shares(spend, shares, {entry.user_id: False for entry in entries})
    return _commit_assignments(db, spend, actor_id, "replace", len(entries))


def delete_assignment(
    db: Session,
    spend: Spend,
    assignment: SpendAssignment,
    actor_id: str | None = None,
) -> list[SpendAssignment]:
    _ensure_open(spend, "remove assignments from")
    remaining = [e for e in _current_inputs(spend) if e.user_id != assignment.user_id]
    shares = _compute_for(spend, remaining) if remaining else []
    _write_shares(spend, shares)
    return _commit_assignments(db, spend, actor_id, "delete", 1)


def _commit_assignments(db: Session, spend: Spend, actor_id: str | None, mode: str, count: int) -> list[SpendAssignment]:
    summary = summarize(spend.normalized_amount, spend.assignments)
    log_event(db, "Spend", spend.id, EventType.ASSIGNMENTS_CHANGED, actor_id, spend.trip_id, {
        "mode": mode,
        "count": count,
        "assignedTotal": summary.assigned_total,
        "percentAssigned": str(summary.percent_assigned),
    })
    spend.trip.updated_at = utcnow()
    db.commit()
    db.refresh(spend)
    return list(spend.assignments)


def finalize_spend(db: Session, spend: Spend, force: bool = False, actor_id: str | None = None) -> Spend:
    """Close a spend so it counts towards balances.

    Without ``force`` the assignments must reconcile with the spend total.
    With ``force`` any discrepancy is kept as is; shares are not rescaled.
    Finalizing a CLOSED spend does nothing.
    """
    if not is_open(spend):
        return spend

    if not force:
        check_reconciled(spend.normalized_amount, spend.assignments)

    summary = summarize(spend.normalized_amount, spend.assignments)
    spend.status = SpendStatus.CLOSED.value
    log_event(db, "Spend", spend.id, EventType.SPEND_FINALIZED, actor_id, spend.trip_id, {
        "force": force,
        "assignedTotal": summary.assigned_total,
        "unassigned": summary.unassigned,
    })
    if force and not summary.is_fully_assigned:
        logger.warning(
            "Spend force-finalized with unassigned amount",
            extra={"extra_data": {"spend_id": spend.id, "unassigned": summary.unassigned}},
        )
    db.commit()
    db.refresh(spend)
    return spend


def reopen_spend(db: Session, spend: Spend, actor_id: str | None = None) -> Spend:
    """Make a CLOSED spend editable again. Reopening an OPEN spend does nothing."""
    if is_open(spend):
        return spend

    spend.status = SpendStatus.OPEN.value
    log_event(db, "Spend", spend.id, EventType.SPEND_REOPENED, actor_id, spend.trip_id)
    db.commit()
    db.refresh(spend)
    return spend


def _check_item_cost(cost: int) -> None:
    if cost < 0:
        raise ValidationError(INVALID_AMOUNT, "Item cost cannot be negative")


def _item_entries(spend: Spend) -> tuple[list[AssignmentInput], dict[str, bool]]:
    """The assignment set after syncing every item assignee's EXACT share.

    A user with items owes the sum of their items' costs. An item-linked
    assignment whose user no longer has any items is dropped; assignments
    made by hand are kept as they are.
    """
    costs: dict[str, int] = {}
    for item in spend.items:
        if item.assigned_user_id:
            costs[item.assigned_user_id] = costs.get(item.assigned_user_id, 0) + item.cost
    linked = {user_id: True for user_id in costs}

    entries = []
    for a in spend.assignments:
        if a.user_id in costs:
            entries.append(AssignmentInput(a.user_id, SplitType.EXACT, Decimal(costs.pop(a.user_id))))
        elif not a.item_linked:
            entries.append(AssignmentInput(a.user_id, SplitType(a.split_type), a.split_value))
    for user_id, cost in costs.items():
        entries.append(AssignmentInput(user_id, SplitType.EXACT, Decimal(cost)))
    return entries, linked


def _sync_items(spend: Spend) -> None:
    """Recompute the spend total from its items, then every share."""
    entries, linked = _item_entries(spend)
    amount = sum(item.cost for item in spend.items)
    _set_money(spend, amount, spend.currency, Decimal(spend.fx_rate), entries, linked)


def _commit_items(db: Session, spend: Spend, event_type: EventType, item: SpendItem, actor_id: str | None) -> None:
    log_event(db, "SpendItem", item.id, event_type, actor_id, spend.trip_id, {
        "spendId": spend.id,
        "name": item.name,
        "cost": item.cost,
        "assignedUserId": item.assigned_user_id,
        "spendAmount": spend.amount,
    })
    spend.trip.updated_at = utcnow()
    db.commit()
    db.refresh(spend)


def create_spend_item(
    db: Session,
    spend: Spend,
    name: str,
    cost: int,
    description: str | None = None,
    assigned_user_id: str | None = None,
    actor_id: str | None = None,
) -> SpendItem:
    """Add a line item; the spend amount becomes the sum of its items."""
    _ensure_open(spend, "add items to")
    _check_item_cost(cost)

    item = SpendItem(
        name=name,
        description=description,
        cost=cost,
        assigned_user_id=assigned_user_id,
        created_by_id=actor_id,
    )
    spend.items.append(item)
    _sync_items(spend)
    db.flush()
    _commit_items(db, spend, EventType.SPEND_ITEM_CREATED, item, actor_id)
    db.refresh(item)
    return item


def update_spend_item(
    db: Session,
    spend: Spend,
    item: SpendItem,
    actor_id: str | None = None,
    **changes,
) -> SpendItem:
    """Edit a line item.

    ``name`` and ``cost`` are left alone when None; ``description`` and
    ``assigned_user_id`` are cleared by None, which unassigns the item.
    """
    _ensure_open(spend, "update items on")
    if changes.get("cost") is not None:
        _check_item_cost(changes["cost"])

    for field in ("name", "cost"):
        if changes.get(field) is not None:
            setattr(item, field, changes[field])
    for field in ("description", "assigned_user_id"):
        if field in changes:
            setattr(item, field, changes[field])

    _sync_items(spend)
    _commit_items(db, spend, EventType.SPEND_ITEM_UPDATED, item, actor_id)
    db.refresh(item)
    return item


def delete_spend_item(db: Session, spend: Spend, item: SpendItem, actor_id: str | None = None) -> None:
    _ensure_open(spend, "delete items from")
    spend.items.remove(item)
    _sync_items(spend)
    _commit_items(db, spend, EventType.SPEND_ITEM_DELETED, item, actor_id)
