import enum
import logging

from sqlalchemy.orm import Session

from app.models import EventLog

logger = logging.getLogger("tripsplit")


class EventType(str, enum.Enum):
    SPEND_CREATED = "SPEND_CREATED"
    SPEND_UPDATED = "SPEND_UPDATED"
    SPEND_DELETED = "SPEND_DELETED"
    ASSIGNMENTS_CHANGED = "ASSIGNMENTS_CHANGED"
    SPEND_FINALIZED = "SPEND_FINALIZED"
    SPEND_REOPENED = "SPEND_REOPENED"
    SPEND_ITEM_CREATED = "SPEND_ITEM_CREATED"
    SPEND_ITEM_UPDATED = "SPEND_ITEM_UPDATED"
    SPEND_ITEM_DELETED = "SPEND_ITEM_DELETED"
    SETTLEMENT_PLANNED = "SETTLEMENT_PLANNED"
    PAYMENT_RECORDED = "PAYMENT_RECORDED"
    RECEIPT_SCANNED = "RECEIPT_SCANNED"


def log_event(
    db: Session,
    entity_type: str,
    entity_id: str,
    event_type: EventType,
    actor_id: str | None,
    trip_id: str | None = None,
    payload: dict | None = None,
) -> EventLog:
    """Add an activity row to the caller's transaction; the caller commits."""
    event = EventLog(
        trip_id=trip_id,
        entity_type=entity_type,
        entity_id=entity_id,
        event_type=event_type.value,
        actor_id=actor_id,
        payload=payload or {},
    )
    db.add(event)
    logger.info(
        event_type.value,
        extra={"extra_data": {"entity_type": entity_type, "entity_id": entity_id, "trip_id": trip_id, "actor_id": actor_id}},
    )
    return event


def list_trip_events(db: Session, trip_id: str, limit: int = 50) -> list[EventLog]:
    return (
        db.query(EventLog)
        .filter(EventLog.trip_id == trip_id)
        .order_by(EventLog.created_at.desc())
        .limit(limit)
        .all()
    )
