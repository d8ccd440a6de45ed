"""Currency precision table and base-currency normalization.

Amounts travel through the app as integers in minor units of their
currency. Conversion uses Decimal with round-half-up, never floats.
"""

from decimal import Decimal, ROUND_HALF_UP
from types import MappingProxyType

# ISO 4217 minor-unit precision. Unknown codes fall back to DEFAULT_DECIMALS.
CURRENCY_DECIMALS = MappingProxyType({
    "USD": 2,
    "EUR": 2,
    "GBP": 2,
    "JPY": 0,
    "CAD": 2,
    "AUD": 2,
    "CHF": 2,
    "HKD": 2,
    "SGD": 2,
    "THB": 2,
    "KRW": 0,
    "INR": 2,
    "CNY": 2,
    "NZD": 2,
    "MXN": 2,
    "SEK": 2,
    "NOK": 2,
    "DKK": 2,
    "PLN": 2,
    "CZK": 2,
    "HUF": 2,
    "ISK": 0,
    "VND": 0,
    "CLP": 0,
    "BHD": 3,
    "KWD": 3,
    "OMR": 3,
})
DEFAULT_DECIMALS = 2

SUPPORTED_CURRENCIES = tuple(CURRENCY_DECIMALS)

# Rates are entered manually; without one a spend is taken at par.
DEFAULT_FX_RATE = Decimal("1")


def minor_unit_precision(currency: str, table=CURRENCY_DECIMALS) -> int:
    return table.get(currency.upper(), DEFAULT_DECIMALS)


def is_supported(currency: str, table=CURRENCY_DECIMALS) -> bool:
    return currency.upper() in table


def _quantum(places: int) -> Decimal:
    return Decimal(1).scaleb(-places)


def normalize(amount: Decimal, fx_rate: Decimal, currency: str, table=CURRENCY_DECIMALS) -> Decimal:
    """Return ``amount * fx_rate`` rounded to the minor unit of ``currency``.

    ``currency`` is the currency the result is expressed in (the trip's base
    currency).
    """
    places = minor_unit_precision(currency, table)
    return (Decimal(amount) * Decimal(fx_rate)).quantize(_quantum(places), rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal, currency: str, table=CURRENCY_DECIMALS) -> int:
    """Convert a display amount (e.g. ``Decimal("12.50")``) to minor units."""
    places = minor_unit_precision(currency, table)
    scaled = (Decimal(amount) * (10 ** places)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return int(scaled)


def from_minor_units(amount: int, currency: str, table=CURRENCY_DECIMALS) -> Decimal:
    places = minor_unit_precision(currency, table)
    return Decimal(amount).scaleb(-places)


def normalize_minor(
    amount: int,
    fx_rate: Decimal,
    from_currency: str,
    to_currency: str,
    table=CURRENCY_DECIMALS,
) -> int:
    """Convert minor units of ``from_currency`` into minor units of ``to_currency``.

    The two currencies may have different precisions, e.g. 1000 JPY at a
    rate of 0.0053 becomes 530 GBP pence.
    """
    display_amount = from_minor_units(amount, from_currency, table)
    converted = normalize(display_amount, fx_rate, to_currency, table)
    return to_minor_units(converted, to_currency, table)
