from app.config import RECEIPT_PROVIDER
from app.receipt.base import ReceiptExtractor
from app.receipt.openai_provider import OpenAIReceiptExtractor


def get_receipt_extractor() -> ReceiptExtractor:
    """Return the configured receipt parsing provider."""
    if RECEIPT_PROVIDER == "openai":
        return OpenAIReceiptExtractor()
    raise ValueError(f"Unknown receipt provider: {RECEIPT_PROVIDER}")
