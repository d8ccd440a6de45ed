from datetime import date as date_type

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from app.database import get_db
from app.deps import get_current_user, get_member_settlement, get_trip, require_trip_member
from app.email import send_settlement_reminder
from app.models import SettlementStatus, User
from app.schemas import PaymentIn
from app.serializers import serialize_payment, serialize_settlement
from app.settlements import list_trip_settlements, persist_settlement_plan, record_payment

router = APIRouter()


@router.post("/trips/{trip_id}/settlements", status_code=201)
def create_settlement_plan(
    trip_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    trip = get_trip(trip_id, db)
    require_trip_member(trip, user, db, allow_viewer=False)
    settlements = persist_settlement_plan(db, trip, user.id)
    return [serialize_settlement(s) for s in settlements]


@router.get("/trips/{trip_id}/settlements")
def list_settlements(
    trip_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    trip = get_trip(trip_id, db)
    require_trip_member(trip, user, db)
    return [serialize_settlement(s) for s in list_trip_settlements(db, trip.id)]


@router.post("/settlements/{settlement_id}/payments", status_code=201)
def add_payment(
    settlement_id: str,
    data: PaymentIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    settlement = get_member_settlement(settlement_id, user, db)
    if user.id not in (settlement.from_user_id, settlement.to_user_id):
        raise HTTPException(status_code=403, detail="Only the payer or payee can record a payment")

    payment = record_payment(
        db,
        settlement,
        amount=data.amount,
        paid_at=data.paid_at or date_type.today(),
        recorded_by_id=user.id,
        payment_method=data.payment_method,
        payment_reference=data.payment_reference,
        notes=data.notes,
    )
    return {"payment": serialize_payment(payment), "settlement": serialize_settlement(settlement)}


@router.post("/settlements/{settlement_id}/remind", status_code=202)
def remind_debtor(
    settlement_id: str,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    settlement = get_member_settlement(settlement_id, user, db)
    if settlement.status == SettlementStatus.PAID.value:
        raise HTTPException(status_code=400, detail="Settlement is already paid")

    debtor = db.query(User).filter(User.id == settlement.from_user_id).first()
    creditor = db.query(User).filter(User.id == settlement.to_user_id).first()
    if not debtor or not debtor.email:
        raise HTTPException(status_code=400, detail="Debtor has no email address")

    remaining = settlement.amount - sum(p.amount for p in settlement.payments)
    background_tasks.add_task(
        send_settlement_reminder,
        debtor.email,
        settlement.trip_id,
        settlement.trip.name,
        creditor.display_name or creditor.email or creditor.id,
        remaining,
        settlement.trip.base_currency,
    )
    return {"queued": True}
