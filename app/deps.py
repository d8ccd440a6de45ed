import logging

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.database import get_db
from app.models import MemberRole, Settlement, Spend, Trip, TripMember, User
from app.settlements import get_settlement_for_update
from app.spends import get_spend_for_update

logger = logging.getLogger("tripsplit")


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Resolve the verified identity to a User, creating it on first sight."""
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise HTTPException(status_code=401, detail="Authentication required")

    user = db.query(User).filter(User.id == identity.uid).first()
    if not user:
        user = User(id=identity.uid, email=identity.email, display_name=identity.name)
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("User created", extra={"extra_data": {"user_id": user.id}})
    elif identity.email and user.email != identity.email:
        user.email = identity.email
        db.commit()
    return user


def get_trip(trip_id: str, db: Session) -> Trip:
    trip = db.query(Trip).filter(Trip.id == trip_id).first()
    if not trip:
        raise HTTPException(status_code=404, detail="Trip not found")
    return trip


def require_trip_member(trip: Trip, user: User, db: Session, allow_viewer: bool = True) -> TripMember:
    membership = (
        db.query(TripMember)
        .filter(TripMember.trip_id == trip.id, TripMember.user_id == user.id)
        .first()
    )
    if not membership or (not allow_viewer and membership.role == MemberRole.VIEWER.value):
        logger.warning(
            "Trip membership check failed",
            extra={"extra_data": {"trip_id": trip.id, "user_id": user.id}},
        )
        raise HTTPException(status_code=403, detail="You are not a member of this trip")
    return membership


def require_trip_manager(trip: Trip, user: User, db: Session) -> TripMember:
    membership = require_trip_member(trip, user, db)
    if membership.role not in (MemberRole.OWNER.value, MemberRole.ADMIN.value):
        raise HTTPException(status_code=403, detail="Only trip owners and admins can do this")
    return membership


def get_member_spend(spend_id: str, user: User, db: Session, allow_viewer: bool = True) -> Spend:
    """Load and lock a spend, checking the caller belongs to its trip."""
    spend = get_spend_for_update(db, spend_id)
    if not spend:
        raise HTTPException(status_code=404, detail="Spend not found")
    require_trip_member(spend.trip, user, db, allow_viewer=allow_viewer)
    return spend


def get_member_settlement(settlement_id: str, user: User, db: Session) -> Settlement:
    """Load and lock a settlement, checking the caller belongs to its trip."""
    settlement = get_settlement_for_update(db, settlement_id)
    if not settlement:
        raise HTTPException(status_code=404, detail="Settlement not found")
    require_trip_member(settlement.trip, user, db)
    return settlement


def validate_trip_users(db: Session, trip_id: str, user_ids: list[str]) -> None:
    """Check that every referenced user belongs to this trip."""
    member_ids = {
        uid for (uid,) in db.query(TripMember.user_id).filter(TripMember.trip_id == trip_id).all()
    }
    for uid in user_ids:
        if uid not in member_ids:
            raise HTTPException(status_code=400, detail=f"User {uid} is not a member of this trip")
