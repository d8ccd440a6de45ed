import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from sqlalchemy.orm import Session

from app.currency import is_supported
from app.database import get_db
from app.deps import get_current_user, get_trip, require_trip_member
from app.events import EventType, log_event
from app.models import User
from app.ratelimit import limiter
from app.receipt.base import receipt_in_minor_units
from app.receipt.factory import get_receipt_extractor

logger = logging.getLogger("tripsplit")
router = APIRouter()

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/webp", "image/heic", "image/heif"}


@router.post("/trips/{trip_id}/receipt-parse")
@limiter.limit("30/hour")
async def parse_receipt(
    trip_id: str,
    request: Request,
    file: UploadFile = File(...),
    currency: str | None = Form(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    trip = get_trip(trip_id, db)
    require_trip_member(trip, user, db, allow_viewer=False)

    currency_hint = (currency or trip.base_currency).upper()
    if not is_supported(currency_hint):
        raise HTTPException(status_code=400, detail="Unsupported currency")
    if file.content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(status_code=400, detail="Unsupported image format. Use JPEG, PNG, or WebP.")

    image_bytes = await file.read()
    if len(image_bytes) == 0:
        raise HTTPException(status_code=400, detail="Empty file")
    if len(image_bytes) > MAX_FILE_SIZE:
        raise HTTPException(status_code=400, detail="Image too large. Maximum size is 10 MB.")

    try:
        extractor = get_receipt_extractor()
        parsed = await extractor.parse_document(image_bytes, file.content_type, currency_hint)
    except ValueError as e:
        logger.error(f"Receipt parser config error: {e}")
        raise HTTPException(status_code=503, detail="Receipt scanning is not available")
    except Exception as e:
        logger.error(f"Receipt parsing failed: {e}", exc_info=True)
        raise HTTPException(status_code=502, detail="Failed to parse receipt. Please try again.")

    receipt_currency = (parsed.currency or currency_hint).upper()
    if not is_supported(receipt_currency):
        receipt_currency = currency_hint
    result = receipt_in_minor_units(parsed, receipt_currency)

    log_event(db, "Receipt", trip.id, EventType.RECEIPT_SCANNED, user.id, trip.id, {
        "itemCount": len(result["items"]),
        "total": result["total"],
        "currency": receipt_currency,
    })
    db.commit()
    return result
