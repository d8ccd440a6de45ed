from decimal import Decimal

from app.models import EventLog, Payment, Settlement, Spend, SpendAssignment, SpendItem, Trip, TripMember, User
from app.settlements import TripBalanceSummary, paid_total
from app.splits import summarize


def _decimal(value) -> str | None:
    return None if value is None else format(Decimal(value).normalize(), "f")


def serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "displayName": user.display_name,
    }


def serialize_member(member: TripMember) -> dict:
    return {
        "userId": member.user_id,
        "displayName": member.user.display_name if member.user else None,
        "email": member.user.email if member.user else None,
        "role": member.role,
        "rsvpStatus": member.rsvp_status,
    }


def serialize_trip(trip: Trip) -> dict:
    return {
        "id": trip.id,
        "name": trip.name,
        "baseCurrency": trip.base_currency,
        "createdById": trip.created_by_id,
        "members": [serialize_member(m) for m in trip.members],
        "createdAt": trip.created_at.isoformat(),
        "updatedAt": trip.updated_at.isoformat(),
    }


def serialize_assignment(assignment: SpendAssignment) -> dict:
    return {
        "id": assignment.id,
        "userId": assignment.user_id,
        "splitType": assignment.split_type,
        "splitValue": _decimal(assignment.split_value),
        "shareAmount": assignment.share_amount,
        "normalizedShareAmount": assignment.normalized_share_amount,
        "itemLinked": assignment.item_linked,
    }


def serialize_item(item: SpendItem) -> dict:
    return {
        "id": item.id,
        "spendId": item.spend_id,
        "name": item.name,
        "description": item.description,
        "cost": item.cost,
        "assignedUserId": item.assigned_user_id,
        "createdById": item.created_by_id,
        "createdAt": item.created_at.isoformat(),
        "updatedAt": item.updated_at.isoformat(),
    }


def serialize_spend(spend: Spend) -> dict:
    summary = summarize(spend.normalized_amount, spend.assignments, spend.items)
    return {
        "id": spend.id,
        "tripId": spend.trip_id,
        "description": spend.description,
        "amount": spend.amount,
        "currency": spend.currency,
        "fxRate": _decimal(spend.fx_rate),
        "normalizedAmount": spend.normalized_amount,
        "paidBy": spend.paid_by_id,
        "date": spend.date.isoformat(),
        "status": spend.status,
        "notes": spend.notes,
        "assignments": [serialize_assignment(a) for a in spend.assignments],
        "items": [serialize_item(i) for i in spend.items],
        "itemsTotal": summary.items_total,
        "assignedTotal": summary.assigned_total,
        "assignedPercentage": str(summary.percent_assigned),
        "isFullyAssigned": summary.is_fully_assigned,
    }


def serialize_balances(summary: TripBalanceSummary) -> dict:
    return {
        "tripId": summary.trip_id,
        "baseCurrency": summary.base_currency,
        "totalSpent": summary.total_spent,
        "pendingTotal": summary.pending_total,
        "balances": [
            {"userId": uid, "totalPaid": t.paid, "totalOwed": t.owed, "netBalance": t.net}
            for uid, t in sorted(summary.balances.items())
        ],
        "settlements": [
            {
                "from": p.transfer.from_user_id,
                "to": p.transfer.to_user_id,
                "amount": p.transfer.amount,
                "oldestDebtDate": p.oldest_debt_date.isoformat() if p.oldest_debt_date else None,
            }
            for p in summary.transfers
        ],
        "calculatedAt": summary.calculated_at.isoformat(),
    }


def serialize_payment(payment: Payment) -> dict:
    return {
        "id": payment.id,
        "amount": payment.amount,
        "paidAt": payment.paid_at.isoformat(),
        "paymentMethod": payment.payment_method,
        "paymentReference": payment.payment_reference,
        "notes": payment.notes,
        "recordedById": payment.recorded_by_id,
    }


def serialize_settlement(settlement: Settlement) -> dict:
    paid = paid_total(settlement)
    return {
        "id": settlement.id,
        "from": settlement.from_user_id,
        "to": settlement.to_user_id,
        "amount": settlement.amount,
        "status": settlement.status,
        "notes": settlement.notes,
        "totalPaid": paid,
        "remainingAmount": settlement.amount - paid,
        "payments": [serialize_payment(p) for p in settlement.payments],
        "createdAt": settlement.created_at.isoformat(),
    }


def serialize_event(event: EventLog) -> dict:
    return {
        "id": event.id,
        "entityType": event.entity_type,
        "entityId": event.entity_id,
        "eventType": event.event_type,
        "actorId": event.actor_id,
        "payload": event.payload,
        "createdAt": event.created_at.isoformat(),
    }
