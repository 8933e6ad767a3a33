"""Display helpers: pt-BR currency / date strings and comma-decimal form input."""
import math
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union

from goldpdv.config import CURRENCY_DECIMALS, DISPLAY_PLACEHOLDER, UNIT_COST_DISPLAY_DECIMALS

_CURRENCY_SYMBOLS = {"BRL": "R$", "USD": "US$", "EUR": "€"}


def _is_finite(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def format_currency(
    value: float,
    currency: str = "BRL",
    max_decimals: int = UNIT_COST_DISPLAY_DECIMALS,
) -> str:
    """
    pt-BR money string: thousands with ".", decimals with ",", at least two
    decimals and at most ``max_decimals``.  1234.5 -> "R$ 1.234,50"
    """
    amount = Decimal(str(value)) if _is_finite(value) else Decimal(0)
    amount = amount.quantize(Decimal(1).scaleb(-max_decimals), rounding=ROUND_HALF_UP)
    sign = "-" if amount < 0 else ""

    text = f"{abs(amount):,.{max_decimals}f}"
    int_part, _, frac = text.partition(".")
    frac = frac.rstrip("0").ljust(min(CURRENCY_DECIMALS, max_decimals), "0")
    int_part = int_part.replace(",", ".")

    symbol = _CURRENCY_SYMBOLS.get(currency, currency)
    if frac:
        return f"{sign}{symbol} {int_part},{frac}"
    return f"{sign}{symbol} {int_part}"


def format_currency_2(value: float, currency: str = "BRL") -> str:
    return format_currency(value, currency, max_decimals=CURRENCY_DECIMALS)


def format_currency_or_dash(value: Optional[float], currency: str = "BRL") -> str:
    if not _is_finite(value):
        return DISPLAY_PLACEHOLDER
    return format_currency_2(value, currency)


def format_unit_cost(value: Optional[float], has_quantity: bool, currency: str = "BRL") -> str:
    """Unit figures of an order with no planned quantity show the placeholder."""
    if not has_quantity:
        return DISPLAY_PLACEHOLDER
    return format_currency_or_dash(value, currency)


def format_date(value: Union[str, date, datetime, None]) -> str:
    """Short pt-BR date and time, "19/10/2026, 14:30"."""
    if not value:
        return DISPLAY_PLACEHOLDER
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime(value.year, value.month, value.day)
    else:
        try:
            moment = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return DISPLAY_PLACEHOLDER
    return moment.strftime("%d/%m/%Y, %H:%M")


def parse_decimal_input(text: Optional[str]) -> Optional[float]:
    """
    Form text with a comma decimal separator -> float. Blank is 0.0,
    anything unparsable is None so the previous numeric value is kept.
    """
    if text is None:
        return None
    normalized = text.strip().replace(",", ".", 1)
    if normalized == "":
        return 0.0
    try:
        parsed = float(Decimal(normalized))
    except (InvalidOperation, ValueError):
        return None
    return parsed if math.isfinite(parsed) else None


def format_decimal_input(value: float, places: int = CURRENCY_DECIMALS) -> str:
    """12.5 -> "12,50" for echoing a derived value back into a form field."""
    if not _is_finite(value):
        value = 0.0
    return f"{value:.{places}f}".replace(".", ",")
