from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.deps import get_current_user, get_trip, require_trip_member
from app.events import list_trip_events
from app.models import User
from app.serializers import serialize_event

router = APIRouter()


@router.get("/trips/{trip_id}/activity")
def get_activity(
    trip_id: str,
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    trip = get_trip(trip_id, db)
    require_trip_member(trip, user, db)
    return [serialize_event(e) for e in list_trip_events(db, trip.id, limit=limit)]
