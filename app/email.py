import logging

import resend

from app.config import FRONTEND_URL, RESEND_API_KEY
from app.currency import from_minor_units

logger = logging.getLogger("tripsplit")


def send_settlement_reminder(
    email: str,
    trip_id: str,
    trip_name: str,
    creditor_name: str,
    amount: int,
    currency: str,
):
    """Email a debtor about an outstanding settlement. No-op without an API key."""
    if not RESEND_API_KEY:
        return

    resend.api_key = RESEND_API_KEY
    trip_url = f"{FRONTEND_URL}/trips/{trip_id}"
    display_amount = f"{from_minor_units(amount, currency)} {currency}"

    resend.Emails.send({
        "from": "onboarding@resend.dev",
        "to": [email],
        "subject": f"{trip_name}: you owe {creditor_name} {display_amount}",
        "html": (
            f"<p>You still owe <strong>{creditor_name}</strong> {display_amount} "
            f"for <strong>{trip_name}</strong>.</p>"
            f'<p><a href="{trip_url}">Open the trip balances</a></p>'
        ),
    })
    logger.info("Settlement reminder sent", extra={"extra_data": {"trip_id": trip_id}})
