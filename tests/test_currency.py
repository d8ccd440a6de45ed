from decimal import Decimal

import pytest

from app.currency import (
    CURRENCY_DECIMALS,
    from_minor_units,
    is_supported,
    minor_unit_precision,
    normalize,
    normalize_minor,
    to_minor_units,
)


def test_precision_comes_from_table():
    assert minor_unit_precision("GBP") == 2
    assert minor_unit_precision("JPY") == 0
    assert minor_unit_precision("KWD") == 3
    assert minor_unit_precision("jpy") == 0


def test_unknown_currency_defaults_to_two_places():
    assert minor_unit_precision("XYZ") == 2
    assert not is_supported("XYZ")


def test_precision_table_is_read_only():
    with pytest.raises(TypeError):
        CURRENCY_DECIMALS["XYZ"] = 4


def test_custom_table_can_be_injected():
    table = {"ABC": 4}
    assert minor_unit_precision("ABC", table) == 4
    assert normalize(Decimal("1.23456"), Decimal("1"), "ABC", table) == Decimal("1.2346")


def test_normalize_rounds_half_up_to_target_precision():
    assert normalize(Decimal("10.005"), Decimal("1"), "GBP") == Decimal("10.01")
    assert normalize(Decimal("90.00"), Decimal("1.0"), "GBP") == Decimal("90.00")
    assert normalize(Decimal("100"), Decimal("0.0053"), "GBP") == Decimal("0.53")
    assert normalize(Decimal("12.50"), Decimal("150.4"), "JPY") == Decimal("1880")


def test_normalize_minor_handles_differing_precisions():
    # 1000 JPY at 0.0053 is 5.30 GBP
    assert normalize_minor(1000, Decimal("0.0053"), "JPY", "GBP") == 530
    # 12.50 USD at 150.4 is 1880 JPY
    assert normalize_minor(1250, Decimal("150.4"), "USD", "JPY") == 1880
    assert normalize_minor(9000, Decimal("1"), "GBP", "GBP") == 9000


def test_minor_unit_conversions():
    assert to_minor_units(Decimal("12.5"), "GBP") == 1250
    assert to_minor_units(Decimal("1234"), "JPY") == 1234
    assert from_minor_units(1250, "GBP") == Decimal("12.50")
    assert from_minor_units(1234, "JPY") == Decimal("1234")
