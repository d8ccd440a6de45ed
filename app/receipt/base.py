from decimal import Decimal
from typing import Protocol

from pydantic import BaseModel

from app.currency import to_minor_units


class ReceiptItem(BaseModel):
    description: str
    cost: float  # display units as printed, e.g. 12.50
    quantity: int | None = None


class ParsedReceipt(BaseModel):
    merchant: str | None = None
    currency: str | None = None  # ISO code if the receipt shows one
    items: list[ReceiptItem]
    extras: float | None = None  # tax, tip and service charges combined
    total: float | None = None


class ReceiptExtractor(Protocol):
    async def parse_document(self, image_bytes: bytes, content_type: str, currency_hint: str) -> ParsedReceipt: ...


def receipt_in_minor_units(receipt: ParsedReceipt, currency: str) -> dict:
    """Convert a parsed receipt's display amounts into minor units of ``currency``."""

    def minor(value: float | None) -> int | None:
        return None if value is None else to_minor_units(Decimal(str(value)), currency)

    items = [
        {"description": item.description, "cost": minor(item.cost), "quantity": item.quantity}
        for item in receipt.items
    ]
    items_total = sum(item["cost"] for item in items)
    extras = minor(receipt.extras)
    total = minor(receipt.total)
    if total is None:
        total = items_total + (extras or 0)
    return {
        "merchant": receipt.merchant,
        "currency": currency,
        "items": items,
        "itemsTotal": items_total,
        "extras": extras,
        "total": total,
    }
