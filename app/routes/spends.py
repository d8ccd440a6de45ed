from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app import spends as spend_service
from app.balances import SpendStatus
from app.database import get_db
from app.deps import get_current_user, get_member_spend, get_trip, require_trip_member, validate_trip_users
from app.models import Spend, SpendItem, User
from app.schemas import (
    AssignmentsIn,
    CreateSpendIn,
    CreateSpendItemIn,
    FinalizeSpendIn,
    UpdateSpendIn,
    UpdateSpendItemIn,
)
from app.serializers import serialize_item, serialize_spend

router = APIRouter()


@router.post("/trips/{trip_id}/spends", status_code=201)
def create_spend(
    trip_id: str,
    data: CreateSpendIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    trip = get_trip(trip_id, db)
    require_trip_member(trip, user, db, allow_viewer=False)
    paid_by = data.paid_by or user.id
    validate_trip_users(db, trip.id, [paid_by])

    spend = spend_service.create_spend(
        db,
        trip,
        paid_by_id=paid_by,
        description=data.description,
        amount=data.amount,
        currency=data.currency,
        fx_rate=data.fx_rate,
        spend_date=data.date,
        notes=data.notes,
        actor_id=user.id,
    )
    return serialize_spend(spend)


@router.get("/trips/{trip_id}/spends")
def list_spends(
    trip_id: str,
    status: SpendStatus | None = None,
    paid_by: str | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    trip = get_trip(trip_id, db)
    require_trip_member(trip, user, db)
    spends = spend_service.list_trip_spends(db, trip.id, status=status, paid_by_id=paid_by)
    return [serialize_spend(s) for s in spends]


@router.get("/spends/{spend_id}")
def get_spend(
    spend_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    spend = get_member_spend(spend_id, user, db)
    return serialize_spend(spend)


@router.patch("/spends/{spend_id}")
def update_spend(
    spend_id: str,
    data: UpdateSpendIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    spend = get_member_spend(spend_id, user, db, allow_viewer=False)
    changes = data.model_dump(exclude_unset=True)
    if "paid_by" in changes:
        changes["paid_by_id"] = changes.pop("paid_by")
    if changes.get("paid_by_id") is not None:
        validate_trip_users(db, spend.trip_id, [changes["paid_by_id"]])

    spend = spend_service.update_spend(db, spend, actor_id=user.id, **changes)
    return serialize_spend(spend)


@router.delete("/spends/{spend_id}", status_code=204)
def delete_spend(
    spend_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    spend = get_member_spend(spend_id, user, db, allow_viewer=False)
    spend_service.delete_spend(db, spend, actor_id=user.id)
    return None


@router.post("/spends/{spend_id}/finalize")
def finalize_spend(
    spend_id: str,
    data: FinalizeSpendIn | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    spend = get_member_spend(spend_id, user, db, allow_viewer=False)
    force = data.force if data else False
    spend = spend_service.finalize_spend(db, spend, force=force, actor_id=user.id)
    return serialize_spend(spend)


@router.post("/spends/{spend_id}/reopen")
def reopen_spend(
    spend_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    spend = get_member_spend(spend_id, user, db, allow_viewer=False)
    spend = spend_service.reopen_spend(db, spend, actor_id=user.id)
    return serialize_spend(spend)


@router.post("/spends/{spend_id}/assignments", status_code=201)
def create_assignments(
    spend_id: str,
    data: AssignmentsIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    spend = get_member_spend(spend_id, user, db, allow_viewer=False)
    validate_trip_users(db, spend.trip_id, [a.user_id for a in data.assignments])
    spend_service.create_assignments(db, spend, [a.to_input() for a in data.assignments], actor_id=user.id)
    return serialize_spend(spend)


@router.put("/spends/{spend_id}/assignments")
def replace_assignments(
    spend_id: str,
    data: AssignmentsIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    spend = get_member_spend(spend_id, user, db, allow_viewer=False)
    validate_trip_users(db, spend.trip_id, [a.user_id for a in data.assignments])
    spend_service.replace_assignments(db, spend, [a.to_input() for a in data.assignments], actor_id=user.id)
    return serialize_spend(spend)


@router.delete("/spends/{spend_id}/assignments/{assignment_id}", status_code=204)
def delete_assignment(
    spend_id: str,
    assignment_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    spend = get_member_spend(spend_id, user, db, allow_viewer=False)
    assignment = next((a for a in spend.assignments if a.id == assignment_id), None)
    if assignment is None:
        raise HTTPException(status_code=404, detail="Assignment not found")
    spend_service.delete_assignment(db, spend, assignment, actor_id=user.id)
    return None


def _find_item(spend: Spend, item_id: str) -> SpendItem:
    item = next((i for i in spend.items if i.id == item_id), None)
    if item is None:
        raise HTTPException(status_code=404, detail="Item not found")
    return item


@router.get("/spends/{spend_id}/items")
def list_items(
    spend_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    spend = get_member_spend(spend_id, user, db)
    items_total = sum(item.cost for item in spend.items)
    return {
        "items": [serialize_item(i) for i in spend.items],
        "itemsTotal": items_total,
        "spendTotal": spend.amount,
        "difference": spend.amount - items_total,
    }


@router.post("/spends/{spend_id}/items", status_code=201)
def create_item(
    spend_id: str,
    data: CreateSpendItemIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    spend = get_member_spend(spend_id, user, db, allow_viewer=False)
    if data.user_id is not None:
        validate_trip_users(db, spend.trip_id, [data.user_id])

    item = spend_service.create_spend_item(
        db,
        spend,
        name=data.name,
        cost=data.cost,
        description=data.description,
        assigned_user_id=data.user_id,
        actor_id=user.id,
    )
    return serialize_item(item)


@router.patch("/spends/{spend_id}/items/{item_id}")
def update_item(
    spend_id: str,
    item_id: str,
    data: UpdateSpendItemIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    spend = get_member_spend(spend_id, user, db, allow_viewer=False)
    item = _find_item(spend, item_id)
    changes = data.model_dump(exclude_unset=True)
    if "user_id" in changes:
        changes["assigned_user_id"] = changes.pop("user_id")
    if changes.get("assigned_user_id") is not None:
        validate_trip_users(db, spend.trip_id, [changes["assigned_user_id"]])

    item = spend_service.update_spend_item(db, spend, item, actor_id=user.id, **changes)
    return serialize_item(item)


@router.delete("/spends/{spend_id}/items/{item_id}", status_code=204)
def delete_item(
    spend_id: str,
    item_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    spend = get_member_spend(spend_id, user, db, allow_viewer=False)
    item = _find_item(spend, item_id)
    spend_service.delete_spend_item(db, spend, item, actor_id=user.id)
    return None
