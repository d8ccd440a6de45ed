from decimal import Decimal

import pytest

from app.errors import ReconciliationFailed, ValidationError
from app.splits import (
    AssignmentInput,
    SplitType,
    allocate,
    check_reconciled,
    compute_shares,
    is_reconciled,
    summarize,
)


def equal(*user_ids):
    return [AssignmentInput(uid, SplitType.EQUAL) for uid in user_ids]


@pytest.mark.parametrize("amount", [0, 1, 100, 101, 9999, 12345, 1000003])
@pytest.mark.parametrize("n", range(1, 51))
def test_equal_split_reconciles_exactly(amount, n):
    users = [f"user-{i}" for i in range(n)]
    shares = compute_shares(amount, amount, equal(*users))

    normalized = [s.normalized_share_amount for s in shares]
    assert sum(normalized) == amount
    base, remainder = divmod(amount, n)
    assert normalized == [base + remainder] + [base] * (n - 1)


def test_equal_split_remainder_goes_to_first():
    shares = compute_shares(100, 100, equal("u1", "u2", "u3"))
    assert [s.normalized_share_amount for s in shares] == [34, 33, 33]
    assert [s.share_amount for s in shares] == [34, 33, 33]

    shares = compute_shares(101, 101, equal("u1", "u2", "u3"))
    assert [s.normalized_share_amount for s in shares] == [35, 33, 33]

    shares = compute_shares(1003, 1003, equal("u1", "u2", "u3", "u4", "u5"))
    assert [s.normalized_share_amount for s in shares] == [203, 200, 200, 200, 200]


def test_equal_split_reconciles_in_both_currencies():
    # 10.01 USD converted to 7.92 GBP
    shares = compute_shares(1001, 792, equal("u1", "u2"), fx_rate=Decimal("0.79"), currency="USD", base_currency="GBP")
    assert [s.share_amount for s in shares] == [501, 500]
    assert [s.normalized_share_amount for s in shares] == [396, 396]


def test_percentage_split():
    shares = compute_shares(10000, 10000, [
        AssignmentInput("u1", SplitType.PERCENTAGE, Decimal("25")),
        AssignmentInput("u2", SplitType.PERCENTAGE, Decimal("12.5")),
    ])
    assert [s.normalized_share_amount for s in shares] == [2500, 1250]
    # under-assignment is allowed until finalize
    assert not is_reconciled(10000, shares)


@pytest.mark.parametrize("percent", [Decimal("-1"), Decimal("100.01")])
def test_percentage_out_of_range_is_invalid(percent):
    with pytest.raises(ValidationError) as exc:
        compute_shares(10000, 10000, [AssignmentInput("u1", SplitType.PERCENTAGE, percent)])
    assert exc.value.kind == "InvalidAmount"


def test_exact_split_uses_value_in_spend_currency():
    # 1000 JPY spend, trip in GBP
    shares = compute_shares(1000, 530, [
        AssignmentInput("u1", SplitType.EXACT, Decimal("400")),
        AssignmentInput("u2", SplitType.EXACT, Decimal("600")),
    ], fx_rate=Decimal("0.0053"), currency="JPY", base_currency="GBP")

    assert [s.share_amount for s in shares] == [400, 600]
    assert [s.normalized_share_amount for s in shares] == [212, 318]
    assert is_reconciled(530, shares)


@pytest.mark.parametrize("value", [Decimal("-5"), Decimal("10.5")])
def test_exact_split_must_be_whole_non_negative(value):
    with pytest.raises(ValidationError) as exc:
        compute_shares(1000, 1000, [AssignmentInput("u1", SplitType.EXACT, value)])
    assert exc.value.kind == "InvalidAmount"


def test_shares_split_by_weight():
    shares = compute_shares(900, 900, [
        AssignmentInput("u1", SplitType.SHARES, Decimal("1")),
        AssignmentInput("u2", SplitType.SHARES, Decimal("2")),
    ])
    assert [s.normalized_share_amount for s in shares] == [300, 600]


def test_shares_split_leftover_goes_to_largest_remainder():
    shares = compute_shares(100, 100, [
        AssignmentInput("u1", SplitType.SHARES, Decimal("2")),
        AssignmentInput("u2", SplitType.SHARES, Decimal("1")),
    ])
    assert [s.normalized_share_amount for s in shares] == [67, 33]


def test_shares_must_be_positive():
    with pytest.raises(ValidationError) as exc:
        compute_shares(100, 100, [AssignmentInput("u1", SplitType.SHARES, Decimal("0"))])
    assert exc.value.kind == "InvalidAmount"


def test_split_value_required_for_non_equal():
    with pytest.raises(ValidationError) as exc:
        compute_shares(100, 100, [AssignmentInput("u1", SplitType.PERCENTAGE)])
    assert exc.value.kind == "InvalidAmount"


def test_negative_total_is_invalid():
    with pytest.raises(ValidationError) as exc:
        compute_shares(-100, -100, equal("u1", "u2"))
    assert exc.value.kind == "InvalidAmount"


def test_empty_assignment_set_is_rejected():
    with pytest.raises(ValidationError) as exc:
        compute_shares(100, 100, [])
    assert exc.value.kind == "EmptyAssignmentSet"


def test_duplicate_assignee_is_rejected():
    with pytest.raises(ValidationError) as exc:
        compute_shares(100, 100, [
            AssignmentInput("u1", SplitType.EQUAL),
            AssignmentInput("u1", SplitType.EXACT, Decimal("10")),
        ])
    assert exc.value.kind == "DuplicateAssignee"


def test_mixed_split_types():
    # EQUAL entries split the whole amount, ignoring the EXACT entry, so the
    # batch over-assigns and cannot be finalized without force
    shares = compute_shares(10000, 10000, [
        AssignmentInput("u1", SplitType.EXACT, Decimal("1000")),
        AssignmentInput("u2", SplitType.EQUAL),
        AssignmentInput("u3", SplitType.EQUAL),
    ])
    assert [s.normalized_share_amount for s in shares] == [1000, 5000, 5000]
    assert not is_reconciled(10000, shares)
    with pytest.raises(ReconciliationFailed):
        check_reconciled(10000, shares)


def test_allocate_keeps_every_unit():
    parts = allocate(1000, [Decimal("1"), Decimal("1"), Decimal("1"), Decimal("3")])
    assert sum(parts) == 1000
    assert parts == [167, 167, 166, 500]


def test_reconciliation_tolerates_one_unit_per_assignment():
    shares = compute_shares(1000, 998, equal("u1", "u2"))
    assert is_reconciled(1000, shares)
    assert not is_reconciled(1003, shares)


def test_check_reconciled_rejects_eighty_percent():
    shares = compute_shares(8000, 8000, equal("u1", "u2"))
    with pytest.raises(ReconciliationFailed) as exc:
        check_reconciled(10000, shares)
    assert exc.value.kind == "ReconciliationFailed"
    assert exc.value.assigned_total == 8000
    assert exc.value.tolerance == 2


def test_summarize():
    shares = compute_shares(8000, 8000, equal("u1", "u2"))
    summary = summarize(10000, shares)
    assert summary.assigned_total == 8000
    assert summary.unassigned == 2000
    assert summary.percent_assigned == Decimal("80.00")
    assert not summary.is_fully_assigned

    assert summarize(0, []).percent_assigned == Decimal("0.00")
