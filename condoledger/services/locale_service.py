"""Locale formatting for statements.

Amounts and dates written into SOA snapshots for display are formatted with
babel according to ``settings.locale``. The currency is derived from the
locale territory.

Example:
    >>> format_amount(Decimal("1234.5"))
    '₱1,234.50'
"""

import logging
from datetime import date
from decimal import Decimal

from babel import Locale, UnknownLocaleError
from babel.dates import format_date as babel_format_date
from babel.numbers import format_currency as babel_format_currency
from babel.numbers import format_decimal as babel_format_decimal
from babel.numbers import get_territory_currencies

from condoledger.config import settings

logger = logging.getLogger(__name__)

# Default locale if the configured one is invalid
DEFAULT_LOCALE = "en_PH"
DEFAULT_CURRENCY = "PHP"


def _get_locale() -> str:
    """Configured locale with validation and fallback."""
    try:
        Locale.parse(settings.locale)
        return settings.locale
    except (UnknownLocaleError, ValueError) as e:
        logger.warning(f"Invalid LOCALE '{settings.locale}': {e}. Falling back to '{DEFAULT_LOCALE}'")
        return DEFAULT_LOCALE


def _get_currency_from_locale(locale_str: str) -> str:
    """Derive the currency code from the locale territory."""
    try:
        territory = Locale.parse(locale_str).territory
        if territory:
            currencies = get_territory_currencies(territory)
            if currencies:
                return currencies[0]
    except (UnknownLocaleError, ValueError) as e:
        logger.warning(f"Could not derive currency from locale '{locale_str}': {e}")
    return DEFAULT_CURRENCY


# Module-level constants (computed once at import)
LOCALE = _get_locale()
CURRENCY = _get_currency_from_locale(LOCALE)


def format_amount(amount: Decimal, include_symbol: bool = True) -> str:
    """Format a monetary amount for the configured locale.

    Decimals are passed to babel as-is so no binary rounding is involved.
    """
    if include_symbol:
        return babel_format_currency(Decimal(amount), CURRENCY, locale=LOCALE)
    return babel_format_decimal(Decimal(amount), format="#,##0.00", locale=LOCALE)


def format_statement_date(value: date) -> str:
    """Format a date the way it is printed on statements."""
    return babel_format_date(value, format="medium", locale=LOCALE)
