"""Suggested exchange rates from frankfurter.dev.

Spends store whatever rate the user entered; this lookup only pre-fills it.
"""

import logging
from datetime import date as date_type, timedelta
from decimal import Decimal

import httpx
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import ExchangeRate, utcnow

logger = logging.getLogger("tripsplit")

FRANKFURTER_BASE = "https://api.frankfurter.dev/v1"
CACHE_TTL = timedelta(hours=24)


def fetch_latest_rate(base: str, target: str) -> tuple[Decimal, date_type]:
    resp = httpx.get(
        f"{FRANKFURTER_BASE}/latest",
        params={"from": base, "to": target},
        timeout=10,
    )
    resp.raise_for_status()
    data = resp.json()
    # parse via str so the JSON float never becomes a binary Decimal
    return Decimal(str(data["rates"][target])), date_type.fromisoformat(data["date"])


def get_rate(db: Session, base: str, target: str) -> tuple[Decimal, date_type]:
    """Rate converting one unit of ``base`` into ``target``, with its date.

    Cached rows younger than a day are reused; otherwise the rate is
    fetched and upserted into the cache.
    """
    if base == target:
        return Decimal("1"), date_type.today()

    now = utcnow()
    cached = (
        db.query(ExchangeRate)
        .filter(
            ExchangeRate.base_currency == base,
            ExchangeRate.target_currency == target,
            ExchangeRate.fetched_at >= now - CACHE_TTL,
        )
        .order_by(ExchangeRate.fetched_at.desc())
        .first()
    )
    if cached:
        return Decimal(cached.rate), cached.date

    rate_value, rate_date = fetch_latest_rate(base, target)

    existing = (
        db.query(ExchangeRate)
        .filter(
            ExchangeRate.date == rate_date,
            ExchangeRate.base_currency == base,
            ExchangeRate.target_currency == target,
        )
        .first()
    )
    if existing:
        existing.rate = rate_value
        existing.fetched_at = now
    else:
        db.add(
            ExchangeRate(
                date=rate_date,
                base_currency=base,
                target_currency=target,
                rate=rate_value,
                fetched_at=now,
            )
        )
    try:
        db.commit()
    except IntegrityError:
        # Race condition: another request already inserted this rate
        db.rollback()
        logger.info("Exchange rate cached concurrently", extra={"extra_data": {"base": base, "target": target}})

    return rate_value, rate_date
