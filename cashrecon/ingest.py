"""
Ingestion of book (general ledger) and bank statement exports.

Source files come from arbitrary accounting packages and banks, so nothing is
assumed about column names. Each parser:

1. Rejects whole-input problems (no rows, too many rows, no bank date column)
   with a FinanceInputError
2. Detects which header plays which role and merges explicit overrides
3. Normalizes each row, dropping and counting rows that cannot be used
4. Reports warnings and coverage stats alongside the parsed records
"""

import logging
import os
import re
from datetime import date
from typing import Dict, List, Optional, Tuple

import pandas as pd

from cashrecon.errors import FinanceInputError
from cashrecon.models import CATEGORY_VALUES, BankParseResult, BankRow, BookParseResult, BookTransaction
from cashrecon.normalize import (
    infer_type_from_keywords,
    infer_type_from_signal,
    is_missing,
    is_opening_balance_text,
    normalize_category,
    normalize_header,
    normalize_reference,
    parse_amount,
    parse_date,
    trim_string,
)
from cashrecon.utils import get_max_rows, round_money, round_percent

logger = logging.getLogger(__name__)

# Role -> header pattern. A role takes the first header that matches and keeps it.
BOOK_HEADER_PATTERNS = [
    ('date', re.compile(r'date|transaction date|posting date|entry date|value date')),
    ('account', re.compile(r'account|account name|ledger|gl account')),
    ('category', re.compile(r'category|class|bucket')),
    ('section', re.compile(r'section|statement section')),
    ('debit', re.compile(r'(^|\s)(debit|dr|money in|inflow)(\s|$)')),
    ('credit', re.compile(r'(^|\s)(credit|cr|money out|outflow)(\s|$)')),
    ('amount', re.compile(r'amount|net amount|value|fy\d{2,4}\s*amount|signed amount')),
    ('type', re.compile(r'type|debit credit|dr cr|direction')),
    ('description', re.compile(r'description|details|memo|narration|notes|particulars')),
    ('reference', re.compile(r'reference|journal ref|ref no|voucher|document|transaction id|trace|utr|check|cheque')),
]

BANK_HEADER_PATTERNS = [
    ('date', re.compile(r'date|txn date|transaction date|value date|posting date|entry date')),
    ('reference', re.compile(r'reference|journal ref|ref no|voucher|document|transaction id|trace|utr|cheque|check')),
    ('description', re.compile(r'description|narration|details|memo|remarks|particulars|narrative')),
    ('debit', re.compile(r'(^|\s)(debit|withdrawal|payment|money out|dr|charge|fee)(\s|$)')),
    ('credit', re.compile(r'(^|\s)(credit|deposit|receipt|money in|cr|income|interest)(\s|$)')),
    ('amount', re.compile(r'amount|net amount|transaction amount|signed amount')),
    ('type', re.compile(r'transaction type|txn type|entry type|dr cr|debit credit|direction|money in out|in out')),
]

BALANCE_HEADER_RE = re.compile(
    r'balance|running balance|closing balance|available balance|ledger balance|ending balance|final balance'
)
BALANCE_WORD_RE = re.compile(r'\bbalance\b')
BALANCE_BOOST_RE = re.compile(r'running|closing|ending|final|ledger|available|current')
BALANCE_PENALTY_RE = re.compile(r'opening|beginning|start|brought forward|\bb f\b')

BOOK_CAVEATS = [
    'Category inference is heuristic when category column is missing.',
    'Rows without parseable date/account/amount are excluded from downstream reporting.',
]


def _detect_first_match(headers, patterns):
    mapping = {}
    for original in headers:
        header = normalize_header(original)
        for role, pattern in patterns:
            if role not in mapping and pattern.search(header):
                mapping[role] = original
    return mapping


def detect_book_mapping(headers):
    """
    Guess the role of each general-ledger header.

    Args:
        headers (list): Header names in source column order

    Returns:
        dict: role -> original header name, first matching header per role
    """
    return _detect_first_match(headers, BOOK_HEADER_PATTERNS)


def score_balance_header(header):
    """Score a normalized header as the statement's running balance column."""
    score = 0
    if BALANCE_WORD_RE.search(header):
        score += 5
    if BALANCE_BOOST_RE.search(header):
        score += 30
    if BALANCE_PENALTY_RE.search(header):
        score -= 20
    return score


def detect_bank_mapping(headers):
    """
    Guess the role of each bank statement header.

    Every role except ``balance`` uses first-match-wins. The balance column is
    picked across all balance-like headers by ``score_balance_header``, keeping
    the earliest header on equal scores.

    Args:
        headers (list): Header names in source column order

    Returns:
        dict: role -> original header name
    """
    mapping = _detect_first_match(headers, BANK_HEADER_PATTERNS)

    best_balance = None
    best_score = float('-inf')
    for original in headers:
        header = normalize_header(original)
        if not BALANCE_HEADER_RE.search(header):
            continue
        score = score_balance_header(header)
        if score > best_score:
            best_score = score
            best_balance = original

    if best_balance is not None:
        mapping['balance'] = best_balance
    return mapping


def merge_mapping(detected, explicit):
    """Explicit non-empty entries override detected ones role by role."""
    merged = dict(detected)
    for role, header in (explicit or {}).items():
        if header is None or header == '':
            continue
        merged[role] = header
    return merged


def enforce_rows_limit(row_count, label, max_rows=None):
    """
    Reject inputs above the configured row cap.

    Raises:
        FinanceInputError: ``FINANCE_ROWS_LIMIT_EXCEEDED`` with received/max counts
    """
    limit = max_rows if max_rows is not None else get_max_rows()
    if row_count > limit:
        raise FinanceInputError.payload_too_large(
            f"{label} row count exceeds configured limit",
            details={'received': row_count, 'max_rows': limit},
            code='FINANCE_ROWS_LIMIT_EXCEEDED',
        )


def _records_and_headers(rows) -> Tuple[List[Dict], List]:
    """Normalize DataFrame or list-of-dict input into (records, ordered headers)."""
    if rows is None:
        return [], []
    if isinstance(rows, pd.DataFrame):
        headers = list(rows.columns)
        return rows.to_dict(orient='records'), headers
    records = [row or {} for row in rows]
    headers = list(records[0].keys()) if records else []
    return records, headers


def _cell(row, mapping, role):
    """Mapped column value, or the conventional ``role``/``Role`` key when unmapped."""
    header = mapping.get(role)
    if header:
        return row.get(header)
    value = row.get(role)
    if is_missing(value) or value == '':
        value = row.get(role.capitalize())
    return value


def _coverage_pct(count, total):
    return round_percent(count / total * 100) if total else 0


def parse_book_rows(rows, mapping=None, options=None) -> BookParseResult:
    """
    Parse general-ledger rows into BookTransaction records.

    Amount resolution per row: a non-zero debit column (with no credit) wins,
    then a non-zero credit column (with no debit), then a signed amount column
    whose direction comes from the type column keywords or, failing that, the
    sign (negative is a credit).

    Args:
        rows (list of dict or pd.DataFrame): Source rows
        mapping (dict, optional): Explicit role -> header overrides
        options (dict, optional): ``default_date`` used for blank dates (today otherwise)

    Returns:
        BookParseResult: transactions, warnings, mapping used and stats

    Raises:
        FinanceInputError: When there are no rows or too many rows
    """
    options = options or {}
    records, headers = _records_and_headers(rows)
    if not records:
        raise FinanceInputError.bad_request('Book rows are required', code='BOOK_ROWS_REQUIRED')
    enforce_rows_limit(len(records), 'Book')

    m = merge_mapping(detect_book_mapping(headers), mapping)
    default_date = parse_date(options.get('default_date') or '') or date.today().isoformat()
    logger.info(f"Parsing {len(records)} book rows with mapping {m}")

    transactions = []
    warnings = []
    dropped_date = 0
    dropped_amount = 0
    dropped_account = 0

    for index, row in enumerate(records):
        tx_date = parse_date(_cell(row, m, 'date'), default_date)
        if not tx_date:
            dropped_date += 1
            logger.debug(f"Book row {index + 2}: dropped, invalid date")
            continue

        account = trim_string(_cell(row, m, 'account'))
        if not account:
            dropped_account += 1
            logger.debug(f"Book row {index + 2}: dropped, missing account")
            continue

        description = trim_string(_cell(row, m, 'description'))
        reference = normalize_reference(_cell(row, m, 'reference'))

        raw_debit = parse_amount(row.get(m['debit'])) if m.get('debit') else None
        raw_credit = parse_amount(row.get(m['credit'])) if m.get('credit') else None
        raw_amount = parse_amount(_cell(row, m, 'amount'))
        raw_type = _cell(row, m, 'type')

        tx_type = None
        amount = 0.0
        if raw_debit and not raw_credit:
            tx_type = 'debit'
            amount = abs(raw_debit)
        elif raw_credit and not raw_debit:
            tx_type = 'credit'
            amount = abs(raw_credit)
        elif raw_amount:
            tx_type = infer_type_from_signal(raw_type, raw_amount) or ('credit' if raw_amount < 0 else 'debit')
            amount = abs(raw_amount)

        if not tx_type or amount <= 0:
            dropped_amount += 1
            logger.debug(f"Book row {index + 2}: dropped, no usable debit/credit/amount")
            continue

        category = normalize_category(
            _cell(row, m, 'category'),
            account,
            description,
            _cell(row, m, 'section'),
        )

        transactions.append(BookTransaction(
            date=tx_date,
            account=account,
            category=category,
            amount=round_money(amount),
            type=tx_type,
            description=description or None,
            reference=reference or None,
            original_row=index + 2,
        ))

    if dropped_date > 0:
        warnings.append(f"{dropped_date} row(s) were dropped due to invalid date values.")
    if dropped_amount > 0:
        warnings.append(f"{dropped_amount} row(s) were dropped due to missing debit/credit/amount.")
    if dropped_account > 0:
        warnings.append(f"{dropped_account} row(s) were dropped due to missing account name.")
    if not transactions:
        warnings.append('No valid book transactions parsed. Review mapping and source data.')

    reference_count = sum(1 for tx in transactions if tx.reference)
    category_count = sum(1 for tx in transactions if tx.category in CATEGORY_VALUES)
    stats = {
        'source_rows': len(records),
        'parsed_rows': len(transactions),
        'dropped_rows': len(records) - len(transactions),
        'dropped_date': dropped_date,
        'dropped_account': dropped_account,
        'dropped_amount': dropped_amount,
        'reference_coverage_pct': _coverage_pct(reference_count, len(transactions)),
        'category_coverage_pct': _coverage_pct(category_count, len(transactions)),
    }
    logger.info(f"Parsed {stats['parsed_rows']} of {stats['source_rows']} book rows")
    return BookParseResult(transactions=transactions, warnings=warnings, mapping_used=m, stats=stats)


def ingest_book_data(rows, mapping=None, options=None):
    """``parse_book_rows`` plus the caveats shown next to ingested ledgers."""
    parsed = parse_book_rows(rows, mapping=mapping, options=options)
    return {
        'transactions': parsed.transactions,
        'warnings': parsed.warnings,
        'mapping_used': parsed.mapping_used,
        'stats': parsed.stats,
        'caveats': list(BOOK_CAVEATS),
    }


def _bank_debit_credit(debit, credit, raw_amount, type_signal):
    if debit > 0 or credit > 0 or not raw_amount:
        return debit, credit
    inferred = infer_type_from_keywords(type_signal)
    if inferred == 'credit':
        return debit, abs(raw_amount)
    if inferred == 'debit':
        return abs(raw_amount), credit
    # Statement sign convention: money in is positive
    if raw_amount > 0:
        return debit, raw_amount
    return abs(raw_amount), credit


def parse_bank_rows(rows, mapping=None, options=None) -> BankParseResult:
    """
    Parse bank statement rows into BankRow records.

    Args:
        rows (list of dict or pd.DataFrame): Source rows
        mapping (dict, optional): Explicit role -> header overrides
        options (dict, optional): ``default_date`` used for blank dates

    Returns:
        BankParseResult: rows, warnings, mapping used and stats

    Raises:
        FinanceInputError: When there are no rows, too many rows or no date column
    """
    options = options or {}
    records, headers = _records_and_headers(rows)
    if not records:
        raise FinanceInputError.bad_request('Bank rows are required', code='BANK_ROWS_REQUIRED')
    enforce_rows_limit(len(records), 'Bank')

    m = merge_mapping(detect_bank_mapping(headers), mapping)
    if not m.get('date'):
        raise FinanceInputError.bad_request('Bank date column is required', code='BANK_DATE_MAPPING_REQUIRED')

    date_fallback = parse_date(options.get('default_date') or '')
    logger.info(f"Parsing {len(records)} bank rows with mapping {m}")

    bank_rows = []
    warnings = []
    dropped_date = 0
    dropped_amount = 0

    for index, row in enumerate(records):
        row_date = parse_date(row.get(m['date']), date_fallback)
        if not row_date:
            dropped_date += 1
            logger.debug(f"Bank row {index + 2}: dropped, invalid date")
            continue

        description = trim_string(_cell(row, m, 'description'))
        reference = normalize_reference(_cell(row, m, 'reference'))

        debit = abs(parse_amount(row.get(m['debit'])) or 0) if m.get('debit') else 0.0
        credit = abs(parse_amount(row.get(m['credit'])) or 0) if m.get('credit') else 0.0
        raw_amount = parse_amount(_cell(row, m, 'amount'))
        debit, credit = _bank_debit_credit(debit, credit, raw_amount, _cell(row, m, 'type'))

        if debit <= 0 and credit <= 0:
            dropped_amount += 1
            logger.debug(f"Bank row {index + 2}: dropped, zero debit and credit")
            continue

        balance = parse_amount(_cell(row, m, 'balance'))
        bank_rows.append(BankRow(
            date=row_date,
            description=description,
            reference=reference or None,
            debit=round_money(debit),
            credit=round_money(credit),
            balance=None if balance is None else round_money(balance),
            is_opening_balance=is_opening_balance_text(f"{description} {reference}"),
            raw_row=index + 2,
        ))

    if dropped_date > 0:
        warnings.append(f"{dropped_date} row(s) were dropped due to invalid date values.")
    if dropped_amount > 0:
        warnings.append(f"{dropped_amount} row(s) were dropped due to zero debit/credit amounts.")
    if not bank_rows:
        warnings.append('No valid bank rows parsed. Review bank mapping.')

    reference_count = sum(1 for row in bank_rows if row.reference)
    stats = {
        'source_rows': len(records),
        'parsed_rows': len(bank_rows),
        'dropped_rows': len(records) - len(bank_rows),
        'dropped_date': dropped_date,
        'dropped_amount': dropped_amount,
        'reference_coverage_pct': _coverage_pct(reference_count, len(bank_rows)),
    }
    logger.info(f"Parsed {stats['parsed_rows']} of {stats['source_rows']} bank rows")
    return BankParseResult(rows=bank_rows, warnings=warnings, mapping_used=m, stats=stats)


def normalize_book_transaction(entry, index) -> Optional[BookTransaction]:
    """
    Build a BookTransaction from an already-normalized record.

    Used for ledgers that arrive pre-parsed (for example from an earlier ingest).
    Anything other than an explicit ``credit`` type is a debit.

    Args:
        entry (dict): Record with date/account/amount/type and optional fields
        index (int): Position in the source list, used when no row number is given

    Returns:
        BookTransaction or None: None when date, account or amount is missing
    """
    def pick(key):
        value = entry.get(key)
        if is_missing(value) or value == '':
            value = entry.get(key.capitalize())
        return value

    tx_date = parse_date(pick('date'))
    account = trim_string(pick('account'))
    description = trim_string(pick('description'))
    amount = abs(parse_amount(pick('amount')) or 0)
    if not tx_date or not account or not amount:
        return None

    original_row = parse_amount(entry.get('original_row') or entry.get('SourceRow'))
    return BookTransaction(
        date=tx_date,
        account=account,
        category=normalize_category(pick('category'), account, description, pick('section')),
        amount=round_money(amount),
        type='credit' if trim_string(pick('type')).lower() == 'credit' else 'debit',
        description=description or None,
        reference=normalize_reference(pick('reference')) or None,
        original_row=int(original_row) if original_row else index + 2,
    )


def import_csv(file_path):
    """Read a CSV or Excel export into a DataFrame of text cells.

    Args:
        file_path (str or Path): Path to the file

    Returns:
        pd.DataFrame: Raw rows with stripped header names

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the path is a directory, the extension is unsupported or
            the file holds no data
    """
    file_path = str(file_path)
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"File not found: {file_path}")
    if os.path.isdir(file_path):
        raise ValueError("Path is a directory")

    _, ext = os.path.splitext(file_path)
    if ext.lower() not in ['.csv', '.xlsx']:
        raise ValueError("Unsupported file format")
    if os.path.getsize(file_path) == 0:
        raise ValueError(f"File is empty: {file_path}")

    logger.debug(f"Reading file: {file_path}")
    if ext.lower() == '.xlsx':
        df = pd.read_excel(file_path, dtype=str, engine='openpyxl')
    else:
        df = None
        for encoding in ['utf-8', 'utf-8-sig', 'cp1252']:
            try:
                df = pd.read_csv(
                    file_path,
                    header=0,
                    dtype=str,
                    skipinitialspace=True,
                    encoding=encoding,
                )
                logger.debug(f"Successfully read file with encoding: {encoding}")
                break
            except UnicodeDecodeError:
                continue
            except pd.errors.EmptyDataError:
                raise ValueError(f"No data in {file_path}")
        if df is None:
            raise ValueError("Could not read CSV file with any supported encoding")

    df.columns = [str(col).strip() for col in df.columns]
    logger.info(f"Imported {len(df)} rows from {os.path.basename(file_path)}")
    return df
