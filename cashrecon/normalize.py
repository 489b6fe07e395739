"""
Primitive normalizers for ledger and statement data.

Every function here is total: bad input yields None, an empty string or a
default value, never an exception. Row parsers rely on that to drop and count
defective rows instead of aborting a whole upload.

Conventions:
- Amounts: float, parentheses mean negative (accounting convention)
- Dates: ISO ``YYYY-MM-DD`` string, empty string when unknown
- References: uppercase with all whitespace removed
- Headers and narratives: lowercase alphanumeric words separated by single spaces
"""

import math
import re
import warnings
from datetime import date, datetime, timedelta, timezone

import numpy as np
import pandas as pd

EXCEL_EPOCH = datetime(1899, 12, 30)
EXCEL_SERIAL_MIN = 10000
EXCEL_SERIAL_MAX = 60000
MIN_PLAUSIBLE_YEAR = 1900

ISO_DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')
YEAR_FIRST_RE = re.compile(r'^\d{4}[/\-.]\d{1,2}[/\-.]\d{1,2}$')
YEAR_LAST_RE = re.compile(r'^\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}$')
DATE_SEPARATOR_RE = re.compile(r'[/\-.]')

ZERO_WIDTH_RE = re.compile(r'[\u200b-\u200d\ufeff]')
WHITESPACE_RE = re.compile(r'\s+')
NON_ALNUM_RE = re.compile(r'[^a-z0-9]+')

DEBIT_KEYWORDS_RE = re.compile(r'(^|\s)(dr|debit|withdraw|payment|charge|expense|outflow)(\s|$)')
CREDIT_KEYWORDS_RE = re.compile(r'(^|\s)(cr|credit|deposit|receipt|income|inflow)(\s|$)')

OPENING_BALANCE_RE = re.compile(
    r'opening balance|beginning balance|brought forward|\bb f\b|opening bal|opening equity'
)

CATEGORY_ALIASES = {
    'revenue': 'revenue',
    'income': 'revenue',
    'sales': 'revenue',
    'cogs': 'cost_of_goods_sold',
    'cost of goods sold': 'cost_of_goods_sold',
    'operating expense': 'operating_expense',
    'opex': 'operating_expense',
    'expense': 'operating_expense',
    'tax': 'tax',
    'other income': 'other_income',
    'other expense': 'other_expense',
    'current asset': 'current_asset',
    'non current asset': 'non_current_asset',
    'fixed asset': 'non_current_asset',
    'current liability': 'current_liability',
    'non current liability': 'non_current_liability',
    'equity': 'equity',
    'operating cash': 'operating_cash',
    'investing cash': 'investing_cash',
    'financing cash': 'financing_cash',
}

_ASSET_RE = re.compile(r'asset|inventory|receivable|prepaid|cash|bank|goodwill|equipment|property|intangible|land')
_NON_CURRENT_ASSET_RE = re.compile(r'equipment|property|goodwill|intangible|land|non current')
_LIABILITY_RE = re.compile(r'liability|payable|accrued|deferred|debt|loan|borrow')
_NON_CURRENT_LIABILITY_RE = re.compile(r'long term|non current|mortgage|term loan')


def _matches(pattern):
    regex = re.compile(pattern)
    return lambda signal: regex.search(signal) is not None


def _both(first, second):
    return lambda signal: first.search(signal) is not None and second.search(signal) is not None


# Evaluated top to bottom against the combined category/account/description/section
# text; the first predicate that holds decides the category.
CATEGORY_RULES = [
    (_matches(r'sales|revenue|income'), 'revenue'),
    (_matches(r'cogs|cost of goods'), 'cost_of_goods_sold'),
    (_matches(r'tax|vat|income tax|deferred tax'), 'tax'),
    (_matches(r'depreciation|salary|wage|rent|utility|marketing|expense|opex'), 'operating_expense'),
    (_matches(r'cash flow operating|operating cash'), 'operating_cash'),
    (_matches(r'cash flow investing|investing cash'), 'investing_cash'),
    (_matches(r'cash flow financing|financing cash'), 'financing_cash'),
    (_both(_ASSET_RE, _NON_CURRENT_ASSET_RE), 'non_current_asset'),
    (_matches(_ASSET_RE.pattern), 'current_asset'),
    (_both(_LIABILITY_RE, _NON_CURRENT_LIABILITY_RE), 'non_current_liability'),
    (_matches(_LIABILITY_RE.pattern), 'current_liability'),
    (_matches(r'equity|capital|retained earnings|owner'), 'equity'),
    (_matches(r'expenditure|expense|cost'), 'operating_expense'),
]

DEFAULT_CATEGORY = 'operating_expense'


def is_missing(value):
    """True for None, NaN and NaT scalars."""
    if value is None:
        return True
    return bool(pd.api.types.is_scalar(value) and pd.isna(value))


def trim_string(value):
    """Text form of a cell value, stripped.

    Missing values become an empty string and integral floats (a numeric column
    read with NaN holes) lose their trailing ``.0``.
    """
    if is_missing(value):
        return ''
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_amount(value):
    """
    Parse an amount cell into a float.

    Args:
        value (str, int, float or None): Raw amount

    Returns:
        float or None: Parsed amount, negative for parenthesized values; None when
        nothing numeric remains
    """
    if is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, np.number)):
        number = float(value)
        return number if math.isfinite(number) else None

    raw = trim_string(value)
    if not raw:
        return None

    parenthesized = raw.startswith('(') and raw.endswith(')')
    cleaned = re.sub(r'[,\s]', '', raw)
    cleaned = re.sub(r'[()]', '', cleaned)
    cleaned = re.sub(r'[^0-9.\-]', '', cleaned)
    if cleaned in ('', '-', '.'):
        return None

    try:
        parsed = float(cleaned)
    except ValueError:
        return None
    if not math.isfinite(parsed):
        return None

    if parenthesized and parsed > 0:
        return -parsed
    return parsed


def to_iso_date(year, month, day):
    """Build ``YYYY-MM-DD`` from components, or '' when they do not form a real date."""
    try:
        return date(int(year), int(month), int(day)).isoformat()
    except (TypeError, ValueError, OverflowError):
        return ''


def _datetime_to_iso(value):
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date().isoformat()


def _parse_generic_date(text):
    with warnings.catch_warnings():
        warnings.simplefilter('ignore')
        try:
            parsed = pd.to_datetime(text, errors='coerce')
        except (TypeError, ValueError, OverflowError):
            return ''
    if is_missing(parsed) or parsed.year < MIN_PLAUSIBLE_YEAR:
        return ''
    return _datetime_to_iso(parsed)


def parse_date(value, default_date=''):
    """
    Convert a date cell to ISO ``YYYY-MM-DD``.

    Handles native date objects, spreadsheet serial numbers, ISO text, year-first
    text and day/month ambiguity (resolved by whichever component exceeds 12).
    Anything else goes through the generic pandas parser (month first).

    Args:
        value: Raw date cell
        default_date (str): Returned when the value is empty or unparseable

    Returns:
        str: ISO date, ``default_date`` or ''
    """
    fallback = default_date or ''
    if is_missing(value) or value == '':
        return fallback
    if isinstance(value, datetime):
        return _datetime_to_iso(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return fallback
    if isinstance(value, (int, float, np.number)):
        serial = float(value)
        if math.isfinite(serial) and EXCEL_SERIAL_MIN <= serial < EXCEL_SERIAL_MAX:
            return (EXCEL_EPOCH + timedelta(days=serial)).date().isoformat()
        return fallback

    text = trim_string(value)
    if not text:
        return fallback

    if ISO_DATE_RE.match(text) or YEAR_FIRST_RE.match(text):
        year, month, day = DATE_SEPARATOR_RE.split(text)
        return to_iso_date(year, month, day) or fallback

    if YEAR_LAST_RE.match(text):
        first, second, year_raw = [part.strip() for part in DATE_SEPARATOR_RE.split(text)]
        a, b, year = int(first), int(second), int(year_raw)
        if len(year_raw) <= 2:
            year += 2000
        if a > 12 and b <= 12:
            return to_iso_date(year, b, a) or fallback
        if b > 12 and a <= 12:
            return to_iso_date(year, a, b) or fallback

    return _parse_generic_date(text) or fallback


def normalize_reference(value):
    return WHITESPACE_RE.sub('', ZERO_WIDTH_RE.sub('', trim_string(value)).upper())


def normalize_header(value):
    return NON_ALNUM_RE.sub(' ', trim_string(value).lower()).strip()


def normalize_category(category, account='', description='', section=''):
    """
    Map free-text classification onto the fixed category taxonomy.

    The category cell is tried against the alias table first. Otherwise the
    category, account, description and section texts are joined into one signal
    and ``CATEGORY_RULES`` is evaluated in order; the default is
    ``operating_expense``.

    Args:
        category (str): Category cell
        account (str): Account name
        description (str): Narrative
        section (str): Statement section cell

    Returns:
        str: One of ``CATEGORY_VALUES``
    """
    normalized_category = normalize_header(category)
    if normalized_category in CATEGORY_ALIASES:
        return CATEGORY_ALIASES[normalized_category]

    parts = [normalized_category, normalize_header(account), normalize_header(description), normalize_header(section)]
    signal = ' '.join(parts).strip()
    for predicate, result in CATEGORY_RULES:
        if predicate(signal):
            return result
    return DEFAULT_CATEGORY


def infer_type_from_keywords(type_raw):
    """'debit', 'credit' or None from a type/direction cell."""
    text = normalize_header(type_raw)
    if DEBIT_KEYWORDS_RE.search(text):
        return 'debit'
    if CREDIT_KEYWORDS_RE.search(text):
        return 'credit'
    return None


def infer_type_from_signal(type_raw, amount_raw):
    """Book-side entry type: keywords first, then sign (negative is a credit)."""
    keyword_type = infer_type_from_keywords(type_raw)
    if keyword_type:
        return keyword_type

    amount = parse_amount(amount_raw)
    if amount is None:
        return None
    if amount < 0:
        return 'credit'
    if amount > 0:
        return 'debit'
    return None


def is_opening_balance_text(value):
    text = normalize_header(value)
    if not text:
        return False
    return OPENING_BALANCE_RE.search(text) is not None
