import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.database import get_db
from app.deps import get_current_user, get_trip, require_trip_manager, require_trip_member
from app.models import MemberRole, TripMember, User, utcnow
from app.schemas import AddMemberIn, UpdateMemberIn
from app.serializers import serialize_member

logger = logging.getLogger("tripsplit")

router = APIRouter()


@router.post("/trips/{trip_id}/members", status_code=201)
def add_member(
    trip_id: str,
    data: AddMemberIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    trip = get_trip(trip_id, db)
    require_trip_manager(trip, user, db)
    if data.role == MemberRole.OWNER:
        raise HTTPException(status_code=400, detail="A trip has a single owner")

    existing = db.query(TripMember).filter(
        TripMember.trip_id == trip.id, TripMember.user_id == data.user_id
    ).first()
    if existing:
        raise HTTPException(status_code=409, detail="User is already a member of this trip")

    invitee = db.query(User).filter(User.id == data.user_id).first()
    if not invitee:
        invitee = User(id=data.user_id, email=data.email, display_name=data.display_name)
        db.add(invitee)

    member = TripMember(
        trip_id=trip.id,
        user_id=data.user_id,
        role=data.role.value,
        rsvp_status=data.rsvp_status.value,
    )
    db.add(member)
    trip.updated_at = utcnow()
    db.commit()
    db.refresh(member)
    logger.info("Member added", extra={"extra_data": {"trip_id": trip.id, "user_id": data.user_id}})
    return serialize_member(member)


@router.get("/trips/{trip_id}/members")
def list_members(
    trip_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    trip = get_trip(trip_id, db)
    require_trip_member(trip, user, db)
    return [serialize_member(m) for m in trip.members]


@router.patch("/trips/{trip_id}/members/{member_user_id}")
def update_member(
    trip_id: str,
    member_user_id: str,
    data: UpdateMemberIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    trip = get_trip(trip_id, db)
    caller = require_trip_member(trip, user, db)

    member = db.query(TripMember).filter(
        TripMember.trip_id == trip.id, TripMember.user_id == member_user_id
    ).first()
    if not member:
        raise HTTPException(status_code=404, detail="Member not found")

    is_self = member_user_id == user.id
    if data.role is not None or not is_self:
        require_trip_manager(trip, user, db)
    if data.role is not None:
        if MemberRole.OWNER in (data.role, MemberRole(member.role)):
            raise HTTPException(status_code=400, detail="The owner role cannot be changed")
        member.role = data.role.value

    if data.rsvp_status is not None:
        member.rsvp_status = data.rsvp_status.value

    trip.updated_at = utcnow()
    db.commit()
    db.refresh(member)
    logger.info(
        "Member updated",
        extra={"extra_data": {"trip_id": trip.id, "user_id": member_user_id, "by": caller.user_id}},
    )
    return serialize_member(member)
