"""Currency formatting and amount parsing."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation


def format_currency(amount: int | Decimal, symbol: str = "฿", decimals: int = 0) -> str:
    """
    Format an amount in the configured currency.

    Negative amounts get a leading minus before the formatted magnitude,
    e.g. ``-฿1,250``.

    Args:
        amount: Amount in whole currency units
        symbol: Currency symbol placed before the number
        decimals: Number of fraction digits to show

    Returns:
        Formatted amount string
    """
    value = Decimal(amount)
    exponent = Decimal(1).scaleb(-decimals)
    magnitude = abs(value).quantize(exponent, rounding=ROUND_HALF_UP)
    formatted = f"{symbol}{magnitude:,.{decimals}f}"
    return f"-{formatted}" if value < 0 else formatted


def parse_amount(text: str) -> int:
    """
    Parse a user-entered amount such as ``"125000"`` or ``"1,250"``.

    Thousands separators are ignored. The amount must be a whole number;
    positivity is checked by the session layer.

    Raises:
        ValueError: If the text is not a whole number
    """
    normalized = text.replace(",", "").strip()
    try:
        value = Decimal(normalized)
    except InvalidOperation as e:
        raise ValueError(f"Not a number: {text!r}") from e

    if not value.is_finite() or value != value.to_integral_value():
        raise ValueError(f"Not a whole amount: {text!r}")

    return int(value)
