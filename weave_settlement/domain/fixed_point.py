"""Fixed-point money helpers.

All amounts travel as integers in raw units (1 UI unit = 10**9 raw).
UI strings are derived with integer division and modulo only.
"""

from decimal import Decimal, InvalidOperation, ROUND_FLOOR

RAW_DECIMALS = 9
RAW_SCALE = 10**RAW_DECIMALS
UI_FRACTION_DIGITS = 6


def parse_ui_amount(value) -> Decimal:
    """Parse a client supplied UI amount (JSON number or numeric string).

    Raises:
        ValueError: value is missing, boolean, not numeric or not finite
    """
    if value is None or isinstance(value, bool):
        raise ValueError("amount is required")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"amount is not a number: {value!r}")
    if not amount.is_finite():
        raise ValueError("amount must be finite")
    return amount


def ui_to_raw(amount: Decimal) -> int:
    """Convert a UI amount to raw units, flooring sub-raw precision."""
    return int((amount * RAW_SCALE).to_integral_value(rounding=ROUND_FLOOR))


def raw_to_ui_whole(raw: int) -> str:
    """Whole UI units, truncated toward zero."""
    sign = "-" if raw < 0 else ""
    return f"{sign}{abs(raw) // RAW_SCALE}"


def raw_to_ui(raw: int, fraction_digits: int = UI_FRACTION_DIGITS) -> str:
    """UI string with up to `fraction_digits` decimals, trailing zeros trimmed."""
    sign = "-" if raw < 0 else ""
    whole, frac = divmod(abs(raw), RAW_SCALE)
    frac_str = str(frac).rjust(RAW_DECIMALS, "0")[:fraction_digits].rstrip("0")
    if frac_str:
        return f"{sign}{whole}.{frac_str}"
    return f"{sign}{whole}"


def parse_raw(value) -> int:
    """Raw amounts come back from the ledger as int, numeric or string."""
    if isinstance(value, bool):
        raise ValueError("raw amount must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, Decimal):
        if value != value.to_integral_value():
            raise ValueError(f"raw amount has a fractional part: {value}")
        return int(value)
    return int(str(value).strip())


def floor_whole_units(amount: Decimal) -> int:
    """Wagers are staked in whole UI units; the fraction is dropped."""
    return int(amount.to_integral_value(rounding=ROUND_FLOOR))
