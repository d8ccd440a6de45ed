import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.database import get_db
from app.deps import get_current_user, get_trip, require_trip_member
from app.models import MemberRole, RsvpStatus, Trip, TripMember, User
from app.ratelimit import limiter
from app.schemas import CreateTripIn
from app.serializers import serialize_trip

logger = logging.getLogger("tripsplit")

router = APIRouter()


@router.post("/trips", status_code=201)
@limiter.limit("20/hour")
def create_trip(
    request: Request,
    data: CreateTripIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    trip = Trip(name=data.name, base_currency=data.base_currency, created_by_id=user.id)
    db.add(trip)
    db.flush()  # get trip.id

    db.add(TripMember(
        trip_id=trip.id,
        user_id=user.id,
        role=MemberRole.OWNER.value,
        rsvp_status=RsvpStatus.ACCEPTED.value,
    ))
    db.commit()
    db.refresh(trip)
    logger.info("Trip created", extra={"extra_data": {"trip_id": trip.id, "user_id": user.id}})
    return serialize_trip(trip)


@router.get("/trips")
def list_trips(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    trips = (
        db.query(Trip)
        .join(TripMember, TripMember.trip_id == Trip.id)
        .filter(TripMember.user_id == user.id)
        .order_by(Trip.updated_at.desc())
        .all()
    )
    return [serialize_trip(t) for t in trips]


@router.get("/trips/{trip_id}")
def get_trip_detail(
    trip_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    trip = get_trip(trip_id, db)
    require_trip_member(trip, user, db)
    return serialize_trip(trip)
