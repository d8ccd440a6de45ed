from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.balances import SpendStatus, user_position
from app.database import get_db
from app.deps import get_current_user, get_trip, require_trip_member
from app.models import Spend, SpendAssignment, User
from app.serializers import serialize_balances
from app.settlements import calculate_trip_balances

router = APIRouter()


@router.get("/trips/{trip_id}/balances")
def get_trip_balances(
    trip_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    trip = get_trip(trip_id, db)
    require_trip_member(trip, user, db)
    return serialize_balances(calculate_trip_balances(db, trip))


@router.get("/trips/{trip_id}/balances/me")
def get_my_balance(
    trip_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    trip = get_trip(trip_id, db)
    require_trip_member(trip, user, db)
    spends = db.query(Spend).filter(Spend.trip_id == trip.id, Spend.status == SpendStatus.CLOSED.value).all()
    assignments = (
        db.query(SpendAssignment)
        .filter(SpendAssignment.spend_id.in_([s.id for s in spends]))
        .all()
    )
    owes, is_owed = user_position(user.id, spends, assignments)
    return {
        "userId": user.id,
        "baseCurrency": trip.base_currency,
        "owes": owes,
        "isOwed": is_owed,
        "net": is_owed - owes,
    }
