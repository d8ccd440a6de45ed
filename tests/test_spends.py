from datetime import date
from decimal import Decimal

import pytest

from app import spends as service
from app.balances import SpendStatus
from app.errors import ReconciliationFailed, SpendNotOpen, ValidationError
from app.models import EventLog, SpendAssignment, SpendItem
from app.splits import AssignmentInput, SplitType, summarize


def equal(*user_ids):
    return [AssignmentInput(uid) for uid in user_ids]


def shares_of(spend):
    return {a.user_id: a.normalized_share_amount for a in spend.assignments}


@pytest.fixture
def spend(db, trip):
    return service.create_spend(db, trip, "u1", "Dinner", 10000, spend_date=date(2024, 5, 3))


def test_create_spend_defaults_to_trip_currency(spend):
    assert spend.currency == "GBP"
    assert spend.fx_rate == Decimal("1")
    assert spend.normalized_amount == 10000
    assert spend.status == SpendStatus.OPEN.value


def test_create_spend_normalizes_foreign_amount(db, trip):
    spend = service.create_spend(db, trip, "u2", "Sushi", 1000, currency="jpy", fx_rate=Decimal("0.0053"))

    assert spend.currency == "JPY"
    assert spend.normalized_amount == 530


@pytest.mark.parametrize("amount, fx_rate", [(-1, Decimal("1")), (100, Decimal("0"))])
def test_create_spend_rejects_bad_money(db, trip, amount, fx_rate):
    with pytest.raises(ValidationError) as exc:
        service.create_spend(db, trip, "u1", "Bad", amount, fx_rate=fx_rate)
    assert exc.value.kind == "InvalidAmount"


def test_equal_assignments(db, spend):
    service.create_assignments(db, spend, equal("u1", "u2", "u3"), actor_id="u1")

    assert [a.normalized_share_amount for a in spend.assignments] == [3334, 3333, 3333]
    assert [a.user_id for a in spend.assignments] == ["u1", "u2", "u3"]


def test_create_assignments_merges_with_existing(db, spend):
    service.create_assignments(db, spend, equal("u1"))
    service.create_assignments(db, spend, equal("u2"))

    assert shares_of(spend) == {"u1": 5000, "u2": 5000}


def test_create_assignments_updates_assigned_user_in_place(db, spend):
    service.create_assignments(db, spend, equal("u1", "u2"))
    original_id = spend.assignments[1].id

    service.create_assignments(db, spend, [AssignmentInput("u2", SplitType.EXACT, Decimal("2500"))])

    assert shares_of(spend) == {"u1": 10000, "u2": 2500}
    assert spend.assignments[1].id == original_id
    assert spend.assignments[1].split_type == "EXACT"


def test_rejected_batch_writes_nothing(db, spend):
    service.create_assignments(db, spend, equal("u1", "u2"))

    with pytest.raises(ValidationError) as exc:
        service.create_assignments(db, spend, equal("u3", "u3"))
    assert exc.value.kind == "DuplicateAssignee"

    db.rollback()
    db.refresh(spend)
    assert shares_of(spend) == {"u1": 5000, "u2": 5000}


def test_replace_assignments(db, spend):
    service.create_assignments(db, spend, equal("u1", "u2", "u3"))

    service.replace_assignments(db, spend, [AssignmentInput("u3", SplitType.PERCENTAGE, Decimal("100"))])

    assert shares_of(spend) == {"u3": 10000}
    assert db.query(SpendAssignment).count() == 1


def test_replace_with_empty_set_is_rejected(db, spend):
    with pytest.raises(ValidationError) as exc:
        service.replace_assignments(db, spend, [])
    assert exc.value.kind == "EmptyAssignmentSet"


def test_finalize_rejects_partial_assignment(db, spend):
    service.create_assignments(db, spend, [
        AssignmentInput("u1", SplitType.PERCENTAGE, Decimal("40")),
        AssignmentInput("u2", SplitType.PERCENTAGE, Decimal("40")),
    ])

    with pytest.raises(ReconciliationFailed) as exc:
        service.finalize_spend(db, spend)

    assert "80.0%" in exc.value.message
    assert spend.status == SpendStatus.OPEN.value


def test_forced_finalize_keeps_shares(db, spend):
    service.create_assignments(db, spend, [
        AssignmentInput("u1", SplitType.PERCENTAGE, Decimal("40")),
        AssignmentInput("u2", SplitType.PERCENTAGE, Decimal("40")),
    ])

    service.finalize_spend(db, spend, force=True)

    assert spend.status == SpendStatus.CLOSED.value
    assert shares_of(spend) == {"u1": 4000, "u2": 4000}


def test_finalize_is_idempotent(db, spend):
    service.create_assignments(db, spend, equal("u1", "u2"))
    service.finalize_spend(db, spend)
    service.finalize_spend(db, spend)

    assert spend.status == SpendStatus.CLOSED.value
    finalized = db.query(EventLog).filter(EventLog.event_type == "SPEND_FINALIZED").count()
    assert finalized == 1


def test_reopen_is_idempotent(db, spend):
    service.create_assignments(db, spend, equal("u1", "u2"))
    service.finalize_spend(db, spend)

    service.reopen_spend(db, spend)
    service.reopen_spend(db, spend)

    assert spend.status == SpendStatus.OPEN.value
    reopened = db.query(EventLog).filter(EventLog.event_type == "SPEND_REOPENED").count()
    assert reopened == 1


def test_closed_spend_is_locked(db, spend):
    service.create_assignments(db, spend, equal("u1", "u2"))
    service.finalize_spend(db, spend)

    with pytest.raises(SpendNotOpen):
        service.update_spend(db, spend, description="Changed")
    with pytest.raises(SpendNotOpen):
        service.create_assignments(db, spend, equal("u3"))
    with pytest.raises(SpendNotOpen):
        service.replace_assignments(db, spend, equal("u3"))
    with pytest.raises(SpendNotOpen):
        service.delete_assignment(db, spend, spend.assignments[0])
    with pytest.raises(SpendNotOpen):
        service.delete_spend(db, spend)

    assert spend.description == "Dinner"


def test_amount_change_rederives_shares(db, spend):
    service.create_assignments(db, spend, equal("u1", "u2", "u3"))

    service.update_spend(db, spend, amount=20000)

    assert spend.normalized_amount == 20000
    assert [a.normalized_share_amount for a in spend.assignments] == [6668, 6666, 6666]


def test_currency_change_rederives_shares(db, spend):
    service.create_assignments(db, spend, [
        AssignmentInput("u1", SplitType.EXACT, Decimal("6000")),
        AssignmentInput("u2", SplitType.EXACT, Decimal("4000")),
    ])

    service.update_spend(db, spend, currency="USD", fx_rate=Decimal("0.8"))

    assert spend.normalized_amount == 8000
    assert shares_of(spend) == {"u1": 4800, "u2": 3200}
    assert [a.share_amount for a in spend.assignments] == [6000, 4000]


def test_description_change_leaves_shares_alone(db, spend):
    service.create_assignments(db, spend, equal("u1", "u2"))

    service.update_spend(db, spend, description="Late dinner", notes=None)

    assert spend.description == "Late dinner"
    assert shares_of(spend) == {"u1": 5000, "u2": 5000}


def test_notes_can_be_cleared(db, trip):
    spend = service.create_spend(db, trip, "u1", "Dinner", 10000, notes="Tip included")

    service.update_spend(db, spend, amount=None, description="Late dinner")
    assert spend.notes == "Tip included"
    assert spend.amount == 10000

    service.update_spend(db, spend, notes=None)
    assert spend.notes is None
    assert spend.description == "Late dinner"


def test_delete_assignment_recomputes_the_rest(db, spend):
    service.create_assignments(db, spend, equal("u1", "u2", "u3"))

    service.delete_assignment(db, spend, spend.assignments[2])

    assert shares_of(spend) == {"u1": 5000, "u2": 5000}


def test_delete_last_assignment(db, spend):
    service.create_assignments(db, spend, equal("u1"))

    service.delete_assignment(db, spend, spend.assignments[0])

    assert spend.assignments == []


def test_delete_spend_removes_assignments(db, spend):
    service.create_assignments(db, spend, equal("u1", "u2"))

    service.delete_spend(db, spend, actor_id="u1")

    assert db.query(SpendAssignment).count() == 0
    assert db.query(EventLog).filter(EventLog.event_type == "SPEND_DELETED").count() == 1


def test_list_trip_spends_filters(db, trip, spend):
    other = service.create_spend(db, trip, "u2", "Taxi", 1500)
    service.create_assignments(db, other, equal("u1", "u2"))
    service.finalize_spend(db, other)

    assert [s.id for s in service.list_trip_spends(db, trip.id, status=SpendStatus.CLOSED)] == [other.id]
    assert [s.id for s in service.list_trip_spends(db, trip.id, paid_by_id="u1")] == [spend.id]
    assert len(service.list_trip_spends(db, trip.id)) == 2


def item_named(spend, name):
    return next(i for i in spend.items if i.name == name)


def test_items_set_spend_amount_and_shares(db, spend):
    service.create_spend_item(db, spend, "Pizza", 1200, assigned_user_id="u1", actor_id="u1")
    service.create_spend_item(db, spend, "Wine", 800, assigned_user_id="u2", actor_id="u1")
    service.create_spend_item(db, spend, "Bread", 300, description="Sourdough", assigned_user_id="u1", actor_id="u1")

    assert spend.amount == 2300
    assert spend.normalized_amount == 2300
    assert shares_of(spend) == {"u1": 1500, "u2": 800}
    assert all(a.split_type == "EXACT" and a.item_linked for a in spend.assignments)
    assert summarize(spend.normalized_amount, spend.assignments, spend.items).items_total == 2300
    assert db.query(EventLog).filter(EventLog.event_type == "SPEND_ITEM_CREATED").count() == 3

    service.finalize_spend(db, spend)
    assert spend.status == SpendStatus.CLOSED.value


def test_moving_and_deleting_items(db, spend):
    service.create_spend_item(db, spend, "Pizza", 1200, assigned_user_id="u1")
    service.create_spend_item(db, spend, "Wine", 800, assigned_user_id="u2")

    service.update_spend_item(db, spend, item_named(spend, "Wine"), assigned_user_id="u3", cost=900)
    assert spend.amount == 2100
    assert shares_of(spend) == {"u1": 1200, "u3": 900}

    service.delete_spend_item(db, spend, item_named(spend, "Pizza"))
    assert spend.amount == 900
    assert shares_of(spend) == {"u3": 900}
    assert db.query(SpendItem).count() == 1


def test_unassigning_an_item_drops_its_share(db, spend):
    item = service.create_spend_item(db, spend, "Pizza", 1200, assigned_user_id="u1")

    service.update_spend_item(db, spend, item, assigned_user_id=None, name="Margherita")

    assert item.name == "Margherita"
    assert item.assigned_user_id is None
    assert spend.amount == 1200
    assert spend.assignments == []


def test_manual_assignments_survive_item_changes(db, spend):
    service.create_assignments(db, spend, [AssignmentInput("u3", SplitType.PERCENTAGE, Decimal("50"))])

    service.create_spend_item(db, spend, "Pizza", 1000, assigned_user_id="u1")

    assert shares_of(spend) == {"u3": 500, "u1": 1000}
    manual = next(a for a in spend.assignments if a.user_id == "u3")
    assert manual.split_type == "PERCENTAGE"
    assert not manual.item_linked


def test_item_cost_cannot_be_negative(db, spend):
    with pytest.raises(ValidationError) as exc:
        service.create_spend_item(db, spend, "Refund", -100)

    assert exc.value.kind == "InvalidAmount"
    assert spend.items == []
    assert spend.amount == 10000


def test_closed_spend_items_are_locked(db, spend):
    item = service.create_spend_item(db, spend, "Pizza", 1200, assigned_user_id="u1")
    service.finalize_spend(db, spend)

    with pytest.raises(SpendNotOpen):
        service.create_spend_item(db, spend, "Wine", 800)
    with pytest.raises(SpendNotOpen):
        service.update_spend_item(db, spend, item, cost=100)
    with pytest.raises(SpendNotOpen):
        service.delete_spend_item(db, spend, item)

    assert item.cost == 1200
    assert spend.amount == 1200
