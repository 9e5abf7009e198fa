"""Currency display helpers for minor-unit amounts"""

from decimal import Decimal

# ISO 4217 minor-unit exponents that differ from the usual 2
_ZERO_DECIMAL = {"jpy", "krw", "vnd", "clp", "isk", "huf", "xof", "xaf"}
_THREE_DECIMAL = {"bhd", "jod", "kwd", "omr", "tnd"}

_SYMBOLS = {
    "gbp": "£",
    "eur": "€",
    "usd": "$",
    "jpy": "¥",
    "chf": "CHF ",
}


def minor_unit_exponent(currency: str) -> int:
    """Number of decimal places in the currency's minor unit"""
    code = currency.lower()
    if code in _ZERO_DECIMAL:
        return 0
    if code in _THREE_DECIMAL:
        return 3
    return 2


def to_major_units(amount: int, currency: str) -> Decimal:
    """Convert an integer minor-unit amount to an exact Decimal in major units"""
    return Decimal(amount).scaleb(-minor_unit_exponent(currency))


def format_amount(amount: int, currency: str) -> str:
    """
    Format a minor-unit amount for display.

    Examples:
        format_amount(2500, "gbp") -> "£25.00"
        format_amount(150000, "eur") -> "€1,500.00"
        format_amount(1200, "sek") -> "12.00 SEK"
    """
    exponent = minor_unit_exponent(currency)
    major = to_major_units(amount, currency)
    number = f"{major:,.{exponent}f}"

    symbol = _SYMBOLS.get(currency.lower())
    if symbol is None:
        return f"{number} {currency.upper()}"
    if number.startswith("-"):
        return f"-{symbol}{number[1:]}"
    return f"{symbol}{number}"
