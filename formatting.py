"""Locale-aware money and number formatting."""

from babel.numbers import format_currency, format_decimal

DEFAULT_LOCALE = "id_ID"
DEFAULT_CURRENCY = "IDR"
LOCALES = ["id_ID", "en_US"]
CURRENCIES = ["IDR", "USD", "EUR"]


def format_money(x, cur: str = DEFAULT_CURRENCY, locale: str = DEFAULT_LOCALE) -> str:
    """Whole-unit currency string; ``None`` renders as a dash."""
    if x is None:
        return "—"
    return format_currency(round(x), cur, format="¤#,##0", locale=locale, currency_digits=False)


def format_number(x, decimals: int = 0, locale: str = DEFAULT_LOCALE) -> str:
    pattern = f"#,##0.{'0' * decimals}" if decimals > 0 else "#,##0"
    return format_decimal(x, format=pattern, locale=locale)


def format_percent(x: float, decimals: int = 1, locale: str = DEFAULT_LOCALE) -> str:
    """Format a percentage given on the 0-100 scale."""
    return f"{format_number(x, decimals, locale)}%"
