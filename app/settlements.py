"""Trip balance summaries and the ledger of payments actually made.

The planned transfers are recomputed on every request; ``Settlement`` rows
only exist once someone chooses to persist a plan and start recording
payments against it.
"""

import logging
from dataclasses import dataclass
from datetime import date as date_type, datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.balances import (
    MemberTotals, SpendStatus, Transfer, compute_member_totals, debt_ages, pending_total, plan_settlement,
)
from app.config import SETTLEMENT_EPSILON
from app.errors import INVALID_AMOUNT, ValidationError
from app.events import EventType, log_event
from app.models import (
    MemberRole, Payment, Settlement, SettlementStatus, Spend, SpendAssignment, Trip, TripMember, utcnow,
)

logger = logging.getLogger("tripsplit")


@dataclass(frozen=True)
class PlannedTransfer:
    transfer: Transfer
    oldest_debt_date: date_type | None


@dataclass(frozen=True)
class TripBalanceSummary:
    trip_id: str
    base_currency: str
    total_spent: int
    pending_total: int
    balances: dict[str, MemberTotals]
    transfers: list[PlannedTransfer]
    calculated_at: datetime


def balance_member_ids(db: Session, trip_id: str) -> list[str]:
    """Members whose balance is reported: everyone except viewers, whatever their RSVP."""
    rows = (
        db.query(TripMember.user_id)
        .filter(TripMember.trip_id == trip_id, TripMember.role != MemberRole.VIEWER.value)
        .all()
    )
    return [user_id for (user_id,) in rows]


def calculate_trip_balances(db: Session, trip: Trip, epsilon: int = SETTLEMENT_EPSILON) -> TripBalanceSummary:
    spends = db.query(Spend).filter(Spend.trip_id == trip.id).order_by(Spend.date.asc()).all()
    assignments = (
        db.query(SpendAssignment)
        .join(Spend, Spend.id == SpendAssignment.spend_id)
        .filter(Spend.trip_id == trip.id, Spend.status == SpendStatus.CLOSED.value)
        .all()
    )

    totals = compute_member_totals(spends, assignments, balance_member_ids(db, trip.id))
    transfers = plan_settlement({uid: t.net for uid, t in totals.items()}, epsilon=epsilon)
    ages = debt_ages(spends, assignments)

    return TripBalanceSummary(
        trip_id=trip.id,
        base_currency=trip.base_currency,
        total_spent=sum(s.normalized_amount for s in spends if SpendStatus(s.status) == SpendStatus.CLOSED),
        pending_total=pending_total(spends),
        balances=totals,
        transfers=[PlannedTransfer(t, ages.get((t.from_user_id, t.to_user_id))) for t in transfers],
        calculated_at=utcnow(),
    )


def get_settlement_for_update(db: Session, settlement_id: str) -> Settlement | None:
    """Load a settlement holding its row lock, so payments are recorded one at a time."""
    return (
        db.query(Settlement)
        .filter(Settlement.id == settlement_id)
        .with_for_update()
        .populate_existing()
        .first()
    )


def list_trip_settlements(db: Session, trip_id: str) -> list[Settlement]:
    return (
        db.query(Settlement)
        .filter(Settlement.trip_id == trip_id)
        .order_by(Settlement.created_at.asc())
        .all()
    )


def persist_settlement_plan(db: Session, trip: Trip, user_id: str | None = None) -> list[Settlement]:
    """Replace the trip's PENDING settlements with the current plan.

    Settlements that already have payments recorded are left alone.
    """
    summary = calculate_trip_balances(db, trip)

    db.query(Settlement).filter(
        Settlement.trip_id == trip.id,
        Settlement.status == SettlementStatus.PENDING.value,
    ).delete(synchronize_session="fetch")

    created = []
    for planned in summary.transfers:
        t = planned.transfer
        settlement = Settlement(
            trip_id=trip.id,
            from_user_id=t.from_user_id,
            to_user_id=t.to_user_id,
            amount=t.amount,
            status=SettlementStatus.PENDING.value,
            notes=f"Debt since {planned.oldest_debt_date.isoformat()}" if planned.oldest_debt_date else None,
        )
        db.add(settlement)
        created.append(settlement)

    db.flush()
    log_event(db, "Trip", trip.id, EventType.SETTLEMENT_PLANNED, user_id, trip.id, {
        "transfers": len(created),
        "total": sum(s.amount for s in created),
    })
    db.commit()
    for settlement in created:
        db.refresh(settlement)
    logger.info(
        "Settlement plan persisted",
        extra={"extra_data": {"trip_id": trip.id, "transfers": len(created)}},
    )
    return created


def paid_total(settlement: Settlement) -> int:
    return sum(p.amount for p in settlement.payments)


def record_payment(
    db: Session,
    settlement: Settlement,
    amount: int,
    paid_at: date_type,
    recorded_by_id: str | None,
    payment_method: str | None = None,
    payment_reference: str | None = None,
    notes: str | None = None,
) -> Payment:
    """Record money changing hands against a settlement and update its status.

    The running total is read from the database; callers load the
    settlement with ``get_settlement_for_update`` so concurrent payments
    queue on its row lock.
    """
    if amount <= 0:
        raise ValidationError(INVALID_AMOUNT, "Payment amount must be positive")

    already_paid = (
        db.query(func.coalesce(func.sum(Payment.amount), 0))
        .filter(Payment.settlement_id == settlement.id)
        .scalar()
    )
    new_total = already_paid + amount
    if new_total >= settlement.amount:
        status = SettlementStatus.PAID
    else:
        status = SettlementStatus.PARTIALLY_PAID

    payment = Payment(
        amount=amount,
        paid_at=paid_at,
        payment_method=payment_method,
        payment_reference=payment_reference,
        notes=notes,
        recorded_by_id=recorded_by_id,
    )
    settlement.payments.append(payment)
    settlement.status = status.value
    db.flush()

    log_event(db, "Payment", payment.id, EventType.PAYMENT_RECORDED, recorded_by_id, settlement.trip_id, {
        "settlementId": settlement.id,
        "amount": amount,
        "paidAt": paid_at.isoformat(),
        "paymentMethod": payment_method,
        "newTotalPaid": new_total,
        "remainingAmount": settlement.amount - new_total,
        "settlementStatus": status.value,
    })
    db.commit()
    db.refresh(payment)
    db.refresh(settlement)
    return payment
