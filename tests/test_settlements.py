from datetime import date

import pytest

from app import spends as spend_service
from app.errors import ValidationError
from app.models import MemberRole, RsvpStatus, Settlement, SettlementStatus, TripMember, User
from app.config import SETTLEMENT_EPSILON
from app.settlements import (
    calculate_trip_balances,
    get_settlement_for_update,
    list_trip_settlements,
    paid_total,
    persist_settlement_plan,
    record_payment,
)
from app.splits import AssignmentInput


def closed_spend(db, trip, paid_by, amount, user_ids, on):
    spend = spend_service.create_spend(db, trip, paid_by, "Spend", amount, spend_date=on)
    spend_service.create_assignments(db, spend, [AssignmentInput(uid) for uid in user_ids])
    return spend_service.finalize_spend(db, spend)


@pytest.fixture
def weekend(db, trip):
    closed_spend(db, trip, "u1", 9000, ["u1", "u2", "u3"], date(2024, 5, 3))
    closed_spend(db, trip, "u2", 5000, ["u1", "u2"], date(2024, 5, 1))
    return trip


def add_member(db, trip, uid, role=MemberRole.MEMBER, rsvp=RsvpStatus.ACCEPTED):
    db.add(User(id=uid, email=f"{uid}@example.com"))
    db.add(TripMember(trip_id=trip.id, user_id=uid, role=role.value, rsvp_status=rsvp.value))
    db.commit()


def test_trip_balances(db, weekend):
    summary = calculate_trip_balances(db, weekend)

    assert {uid: t.net for uid, t in summary.balances.items()} == {"u1": 3500, "u2": -500, "u3": -3000}
    assert summary.total_spent == 14000
    assert summary.pending_total == 0
    assert [(p.transfer.from_user_id, p.transfer.to_user_id, p.transfer.amount) for p in summary.transfers] == [
        ("u3", "u1", 3000),
        ("u2", "u1", 500),
    ]
    assert summary.transfers[0].oldest_debt_date == date(2024, 5, 3)


def test_open_spend_is_pending(db, weekend):
    spend = spend_service.create_spend(db, weekend, "u3", "Museum", 6000)
    spend_service.create_assignments(db, spend, [AssignmentInput("u1"), AssignmentInput("u3")])

    summary = calculate_trip_balances(db, weekend)

    assert summary.pending_total == 6000
    assert summary.balances["u3"].net == -3000


def test_viewers_are_left_out_and_idle_members_kept(db, weekend):
    add_member(db, weekend, "u4", role=MemberRole.VIEWER)
    add_member(db, weekend, "u5", rsvp=RsvpStatus.DECLINED)

    summary = calculate_trip_balances(db, weekend)

    assert "u4" not in summary.balances
    assert summary.balances["u5"].net == 0


def test_epsilon_suppresses_small_transfers(db, weekend):
    summary = calculate_trip_balances(db, weekend, epsilon=500)

    assert [p.transfer.amount for p in summary.transfers] == [3000]


def test_one_unit_debts_are_not_worth_a_transfer(db, trip):
    assert SETTLEMENT_EPSILON == 1
    closed_spend(db, trip, "u1", 1, ["u2"], date(2024, 5, 3))

    summary = calculate_trip_balances(db, trip)

    assert summary.balances["u2"].net == -1
    assert summary.transfers == []


def test_persist_plan(db, weekend):
    created = persist_settlement_plan(db, weekend, "u1")

    assert [(s.from_user_id, s.to_user_id, s.amount) for s in created] == [("u3", "u1", 3000), ("u2", "u1", 500)]
    assert all(s.status == SettlementStatus.PENDING.value for s in created)
    assert created[0].notes == "Debt since 2024-05-03"


def test_persisting_again_replaces_pending_settlements(db, weekend):
    persist_settlement_plan(db, weekend, "u1")
    persist_settlement_plan(db, weekend, "u1")

    assert db.query(Settlement).count() == 2


def test_settlements_with_payments_are_kept(db, weekend):
    first, _ = persist_settlement_plan(db, weekend, "u1")
    record_payment(db, first, 1000, date(2024, 5, 10), "u3")

    persist_settlement_plan(db, weekend, "u1")

    settlements = list_trip_settlements(db, weekend.id)
    assert len(settlements) == 3
    assert first.id in {s.id for s in settlements}


def test_partial_then_full_payment(db, weekend):
    settlement = persist_settlement_plan(db, weekend, "u1")[0]

    record_payment(db, settlement, 1000, date(2024, 5, 10), "u3", payment_method="bank")
    assert settlement.status == SettlementStatus.PARTIALLY_PAID.value

    record_payment(db, settlement, 2000, date(2024, 5, 11), "u1")
    assert settlement.status == SettlementStatus.PAID.value
    assert [p.amount for p in settlement.payments] == [2000, 1000]


@pytest.mark.parametrize("amount", [0, -100])
def test_payment_must_be_positive(db, weekend, amount):
    settlement = persist_settlement_plan(db, weekend, "u1")[0]

    with pytest.raises(ValidationError) as exc:
        record_payment(db, settlement, amount, date(2024, 5, 10), "u3")

    assert exc.value.kind == "InvalidAmount"
    assert settlement.payments == []


def test_back_to_back_payments_settle_in_full(db, weekend):
    settlement_id = persist_settlement_plan(db, weekend, "u1")[1].id

    first = get_settlement_for_update(db, settlement_id)
    record_payment(db, first, 300, date(2024, 5, 10), "u2")
    second = get_settlement_for_update(db, settlement_id)
    record_payment(db, second, 300, date(2024, 5, 11), "u2")

    settlement = get_settlement_for_update(db, settlement_id)
    assert settlement.amount == 500
    assert settlement.status == SettlementStatus.PAID.value
    assert paid_total(settlement) == 600


def test_payment_status_counts_payments_from_other_sessions(db, session_factory, weekend):
    settlement_id = persist_settlement_plan(db, weekend, "u1")[1].id
    other = session_factory()
    try:
        stale = other.query(Settlement).filter(Settlement.id == settlement_id).one()
        assert stale.payments == []

        record_payment(db, get_settlement_for_update(db, settlement_id), 300, date(2024, 5, 10), "u2")
        record_payment(other, stale, 300, date(2024, 5, 11), "u2")

        assert stale.status == SettlementStatus.PAID.value
    finally:
        other.close()
