import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.currency import is_supported
from app.database import get_db
from app.deps import get_current_user
from app.exchange import get_rate
from app.models import User

logger = logging.getLogger("tripsplit")
router = APIRouter()


@router.get("/fx-rate")
def suggest_fx_rate(
    from_currency: str = Query(alias="from"),
    to_currency: str = Query(alias="to"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    base = from_currency.upper()
    target = to_currency.upper()
    if not is_supported(base) or not is_supported(target):
        raise HTTPException(status_code=400, detail="Unsupported currency")

    try:
        rate, rate_date = get_rate(db, base, target)
    except httpx.HTTPError as e:
        logger.error(f"Exchange rate lookup failed: {e}")
        raise HTTPException(status_code=502, detail="Exchange rate service unavailable")

    return {"from": base, "to": target, "rate": format(rate, "f"), "date": rate_date.isoformat()}
