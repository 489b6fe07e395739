"""
Bank-to-book reconciliation.

Pairs bank statement lines with cash-account ledger entries, explains what is
left over and scores how far the result can be trusted.

Matching passes (each only sees rows the earlier passes left unconsumed):
1. Reference: same normalized reference, amount in cents and direction, closest
   date within 10 calendar days
2. Amount + date: amount within 1 cent, same direction, no conflicting
   references, at most 2 business days apart; first candidate in pool order
3. Near match: amount within 5%, at most 7 calendar days apart, similar
   narrative; always reported as an amount mismatch for review

Leftovers:
- Book debits: deposits in transit
- Book credits: outstanding cheques
- Bank debits: bank charges not yet recorded in the books
- Bank credits: bank credits not yet recorded in the books

Direction is seen from the cash account: a bank credit and a book debit are
both money coming in.
"""

import argparse
import csv
import json
import logging
import pathlib
import re
from datetime import date, timedelta

import numpy as np
import pandas as pd

from cashrecon.ingest import import_csv, normalize_book_transaction, parse_bank_rows, parse_book_rows
from cashrecon.models import (
    AMOUNT_MISMATCH,
    BANK_ONLY,
    BOOK_ONLY,
    MATCHED,
    BookScope,
    MatchItem,
    ReconciliationQuality,
    ReconciliationResult,
    StatementWindow,
)
from cashrecon.normalize import is_opening_balance_text, normalize_header, normalize_reference, parse_date
from cashrecon.summary import generate_report_from_input
from cashrecon.utils import (
    create_output_directories,
    ensure_directory,
    get_max_comparisons,
    round_money,
    round_percent,
    setup_logging,
    to_amount_cents,
)

logger = logging.getLogger(__name__)

BANK_ACCOUNT_NAME_RE = re.compile(
    r'cash|bank|checking|cheque|current account|savings|petty cash|cash equivalents?', re.IGNORECASE
)
CASH_SIGNAL_RE = re.compile(r'cash|bank', re.IGNORECASE)

REFERENCE_MATCH_TOLERANCE_DAYS = 10
DATE_MATCH_TOLERANCE_BUSINESS_DAYS = 2
AMOUNT_EXACT_TOLERANCE_CENTS = 1
AMOUNT_NEAR_TOLERANCE_PCT = 0.05
DATE_NEAR_TOLERANCE_DAYS = 7
NARRATIVE_NEAR_MATCH_MIN_SCORE = 0.2

NARRATIVE_STOP_WORDS = frozenset(['the', 'and', 'for', 'from', 'to', 'with', 'bank', 'payment', 'deposit'])
REFERENCE_TOKEN_RE = re.compile(r'\b[A-Z0-9-]{4,}\b')

RECONCILE_CAVEATS = [
    'Matching priority: Reference+Amount+Direction, then Amount+Direction with ±2 business days, then near-match review.',
    'Opening balance rows are excluded from matching and used only for statement context.',
    'Always verify low-quality reconciliations before publishing financial decisions.',
]


def _to_date(value):
    try:
        return date.fromisoformat(value or '')
    except (TypeError, ValueError):
        return None


def date_diff_days(left, right):
    """Absolute calendar-day distance between two ISO dates (inf if either is invalid)."""
    left_date, right_date = _to_date(left), _to_date(right)
    if left_date is None or right_date is None:
        return float('inf')
    return abs((left_date - right_date).days)


def business_day_diff(left, right):
    """
    Weekdays between two ISO dates.

    Counts the days after the earlier date up to and including the later one,
    skipping Saturdays and Sundays. Holidays are not modeled.
    """
    left_date, right_date = _to_date(left), _to_date(right)
    if left_date is None or right_date is None:
        return float('inf')
    start, end = sorted([left_date, right_date])
    one_day = timedelta(days=1)
    return int(np.busday_count(start + one_day, end + one_day))


def tokenize_narrative(value):
    return [
        token for token in normalize_header(value).split(' ')
        if len(token) >= 3 and token not in NARRATIVE_STOP_WORDS
    ]


def narrative_similarity(left, right):
    """Jaccard overlap of significant narrative tokens (0.0 when either side has none)."""
    left_tokens = set(tokenize_narrative(left))
    right_tokens = set(tokenize_narrative(right))
    if not left_tokens or not right_tokens:
        return 0.0
    return len(left_tokens & right_tokens) / len(left_tokens | right_tokens)


def _reference_tokens(value):
    tokens = REFERENCE_TOKEN_RE.findall(str(value or '').upper())
    normalized = (normalize_reference(token) for token in tokens)
    return {token for token in normalized if len(token) >= 4 and any(ch.isdigit() for ch in token)}


def has_reference_overlap(left, right):
    """True when both texts share an alphanumeric token of 4+ chars containing a digit."""
    left_tokens = _reference_tokens(left)
    right_tokens = _reference_tokens(right)
    if not left_tokens or not right_tokens:
        return False
    return bool(left_tokens & right_tokens)


def get_bank_direction(row):
    if row.credit > 0 and row.debit <= 0:
        return 'in'
    if row.debit > 0 and row.credit <= 0:
        return 'out'
    if row.credit > 0 and row.debit > 0:
        return 'in' if row.credit >= row.debit else 'out'
    return None


def get_book_direction(tx):
    return 'in' if tx.type == 'debit' else 'out'


def has_explicit_reference_conflict(bank_row, book):
    bank_ref = normalize_reference(bank_row.reference)
    book_ref = normalize_reference(book.reference)
    return bool(bank_ref and book_ref and bank_ref != book_ref)


def is_within_date_range(value, start_date, end_date):
    if not value or not start_date or not end_date:
        return False
    return start_date <= value <= end_date


def infer_book_scope(transactions, requested_scope='auto'):
    """
    Select the book transactions that belong to the cash/bank account(s).

    Args:
        transactions (list of BookTransaction): Parsed ledger
        requested_scope (str): Account name, or 'auto' to infer it

    Returns:
        BookScope: scoped transactions, account names used and notes
    """
    notes = []
    if requested_scope and requested_scope != 'auto':
        wanted = normalize_header(requested_scope)
        scoped = [tx for tx in transactions if normalize_header(tx.account) == wanted]
        accounts_used = list(dict.fromkeys(tx.account for tx in scoped))
        if not scoped:
            notes.append(f'Selected account "{requested_scope}" has no transactions in current dataset.')
        return BookScope(scoped=scoped, accounts_used=accounts_used, notes=notes)

    direct = [tx for tx in transactions if BANK_ACCOUNT_NAME_RE.search(tx.account or '')]
    if direct:
        accounts_used = sorted(set(tx.account for tx in direct))
        notes.append(f"Auto scope selected {len(accounts_used)} cash/bank-like account(s).")
        return BookScope(scoped=direct, accounts_used=accounts_used, notes=notes)

    fallback = [
        tx for tx in transactions
        if tx.category == 'operating_cash'
        or (tx.category == 'current_asset' and CASH_SIGNAL_RE.search(tx.account or tx.description or ''))
    ]
    if fallback:
        accounts_used = sorted(set(tx.account for tx in fallback))
        notes.append(
            'Auto scope fallback: using operating cash signals because no explicit bank account names were detected.'
        )
        return BookScope(scoped=fallback, accounts_used=accounts_used, notes=notes)

    notes.append('No book cash/bank transactions were detected for reconciliation scope.')
    return BookScope(scoped=[], accounts_used=[], notes=notes)


class _ComparisonBudget:
    """Counts candidate comparisons in the tolerance passes against an optional cap."""

    def __init__(self, limit):
        self.limit = limit
        self.used = 0

    @property
    def exhausted(self):
        return self.limit is not None and self.used >= self.limit


class _Matcher:
    """Three-pass matcher over fixed bank and book pools for one reconciliation call."""

    def __init__(self, bank_pool, book_pool, max_comparisons=None):
        self.bank_pool = bank_pool
        self.book_pool = book_pool
        self.matched_bank_ids = set()
        self.matched_book_indexes = set()
        self.matched_items = []
        self.amount_mismatches = []
        self.reference_matched_count = 0
        self.amount_date_matched_count = 0
        self.budget = _ComparisonBudget(max_comparisons)

    def _consume(self, bank_row, book_index):
        self.matched_bank_ids.add(bank_row.id)
        self.matched_book_indexes.add(book_index)

    def _open_bank_rows(self):
        for bank_row in self.bank_pool:
            if bank_row.id in self.matched_bank_ids:
                continue
            direction = get_bank_direction(bank_row)
            amount = bank_row.amount
            if not direction or amount <= 0:
                continue
            yield bank_row, direction, amount

    def _open_book_candidates(self, direction, bank_row):
        for index, book in enumerate(self.book_pool):
            if index in self.matched_book_indexes:
                continue
            if self.budget.exhausted:
                return
            self.budget.used += 1
            if get_book_direction(book) != direction:
                continue
            if has_explicit_reference_conflict(bank_row, book):
                continue
            yield index, book

    def match_by_reference(self):
        reference_index = {}
        for index, book in enumerate(self.book_pool):
            reference = normalize_reference(book.reference)
            amount_cents = to_amount_cents(abs(book.amount))
            if not reference or amount_cents <= 0:
                continue
            key = (reference, amount_cents, get_book_direction(book))
            reference_index.setdefault(key, []).append(index)

        for bank_row in self.bank_pool:
            direction = get_bank_direction(bank_row)
            amount = bank_row.amount
            amount_cents = to_amount_cents(amount)
            reference = normalize_reference(bank_row.reference)
            if not direction or not reference or amount_cents <= 0:
                continue

            selected_index = None
            best_day_diff = float('inf')
            for index in reference_index.get((reference, amount_cents, direction), []):
                if index in self.matched_book_indexes:
                    continue
                day_diff = date_diff_days(bank_row.date, self.book_pool[index].date)
                if day_diff > REFERENCE_MATCH_TOLERANCE_DAYS:
                    continue
                if day_diff < best_day_diff:
                    best_day_diff = day_diff
                    selected_index = index
            if selected_index is None:
                continue

            self._consume(bank_row, selected_index)
            self.reference_matched_count += 1
            self.matched_items.append(MatchItem(
                type=MATCHED,
                bank_row=bank_row,
                book_transaction=self.book_pool[selected_index],
                amount=round_money(amount),
                variance=0.0,
            ))

    def match_by_amount_and_date(self):
        for bank_row, direction, amount in self._open_bank_rows():
            amount_cents = to_amount_cents(amount)
            for index, book in self._open_book_candidates(direction, bank_row):
                if abs(to_amount_cents(abs(book.amount)) - amount_cents) > AMOUNT_EXACT_TOLERANCE_CENTS:
                    continue
                if business_day_diff(bank_row.date, book.date) > DATE_MATCH_TOLERANCE_BUSINESS_DAYS:
                    continue

                self._consume(bank_row, index)
                self.amount_date_matched_count += 1
                self.matched_items.append(MatchItem(
                    type=MATCHED,
                    bank_row=bank_row,
                    book_transaction=book,
                    amount=round_money(amount),
                    variance=0.0,
                ))
                break

    def match_near(self):
        for bank_row, direction, amount in self._open_bank_rows():
            bank_text = f"{bank_row.description or ''} {bank_row.reference or ''}".strip()
            for index, book in self._open_book_candidates(direction, bank_row):
                book_amount = abs(book.amount)
                diff_pct = abs(amount - book_amount) / amount if amount else 1
                if diff_pct > AMOUNT_NEAR_TOLERANCE_PCT:
                    continue
                if date_diff_days(bank_row.date, book.date) > DATE_NEAR_TOLERANCE_DAYS:
                    continue

                book_text = f"{book.description or ''} {book.reference or ''} {book.account or ''}".strip()
                # A blank narrative on either side cannot count against the pair
                similar = (
                    narrative_similarity(bank_text, book_text) >= NARRATIVE_NEAR_MATCH_MIN_SCORE
                    or has_reference_overlap(bank_text, book_text)
                    or bank_text == ''
                    or book_text == ''
                )
                if not similar:
                    continue

                self._consume(bank_row, index)
                self.amount_mismatches.append(MatchItem(
                    type=AMOUNT_MISMATCH,
                    bank_row=bank_row,
                    book_transaction=book,
                    amount=round_money(amount),
                    variance=round_money(abs(amount - book_amount)),
                ))
                break

    def bank_only_items(self):
        items = []
        for bank_row in self.bank_pool:
            if bank_row.id in self.matched_bank_ids:
                continue
            amount = round_money(bank_row.debit if bank_row.debit > 0 else bank_row.credit)
            items.append(MatchItem(type=BANK_ONLY, bank_row=bank_row, amount=amount, variance=amount))
        return items

    def book_only_items(self):
        items = []
        for index, book in enumerate(self.book_pool):
            if index in self.matched_book_indexes:
                continue
            amount = round_money(abs(book.amount))
            items.append(MatchItem(type=BOOK_ONLY, book_transaction=book, amount=amount, variance=amount))
        return items


def _reference_coverage_pct(records):
    if not records:
        return 0
    with_reference = sum(1 for record in records if normalize_reference(record.reference))
    return round_percent(with_reference / len(records) * 100)


def score_reliability(bank_reference_coverage_pct, book_reference_coverage_pct,
                      matched_count, bank_pool_size, book_pool_size, difference):
    """
    Heuristic 0-100 confidence in a reconciliation and its verdict.

    This is a signal for reviewers, not a statistical guarantee.

    Returns:
        tuple: (score, verdict) with verdict 'high' (>= 80), 'medium' (>= 55) or 'low'
    """
    score = 100
    if bank_reference_coverage_pct < 80:
        score -= 10
    if book_reference_coverage_pct < 80:
        score -= 10
    if matched_count == 0 and bank_pool_size and book_pool_size:
        score -= 25
    if difference >= 1:
        score -= 10
    score = max(0, min(100, score))

    if score >= 80:
        verdict = 'high'
    elif score >= 55:
        verdict = 'medium'
    else:
        verdict = 'low'
    return score, verdict


def _statement_window(sorted_bank_rows, seed_rows, options):
    start_date = parse_date(options.get('statement_start_date')) or (seed_rows[0].date if seed_rows else '')
    end_date = parse_date(options.get('statement_end_date')) or (seed_rows[-1].date if seed_rows else '')
    if start_date and end_date and start_date > end_date:
        start_date, end_date = end_date, start_date

    statement_date = (
        parse_date(options.get('statement_date'))
        or end_date
        or (sorted_bank_rows[-1].date if sorted_bank_rows else date.today().isoformat())
    )
    return start_date, end_date, statement_date


def _bank_closing_balance(sorted_bank_rows, end_date):
    rows_up_to_end = [row for row in sorted_bank_rows if not end_date or row.date <= end_date]
    for row in reversed(rows_up_to_end):
        if row.balance is not None:
            return row.balance
    return round_money(sum(
        row.credit if row.credit > 0 else -row.debit
        for row in rows_up_to_end
        if not row.is_opening_balance
    ))


def reconcile_bank_and_book(bank_rows, book_transactions, options=None) -> ReconciliationResult:
    """
    Reconcile parsed bank rows against parsed book transactions.

    Inputs are trusted to come from the parsers; nothing is re-validated here.

    Args:
        bank_rows (list of BankRow): Parsed statement lines
        book_transactions (list of BookTransaction): Parsed ledger
        options (dict, optional): ``book_account_scope`` (default 'auto'),
            ``statement_start_date``, ``statement_end_date``, ``statement_date``
            and ``max_comparisons`` (candidate budget for passes 2 and 3; non-positive means none)

    Returns:
        ReconciliationResult: match buckets, balances, quality block and notes
    """
    options = options or {}
    requested_scope = options.get('book_account_scope') or 'auto'
    scope = infer_book_scope(book_transactions, requested_scope)
    notes = list(scope.notes)

    sorted_bank_rows = sorted(bank_rows, key=lambda row: row.date)
    bank_rows_without_opening = [row for row in sorted_bank_rows if not row.is_opening_balance]
    seed_rows = bank_rows_without_opening or sorted_bank_rows
    start_date, end_date, statement_date = _statement_window(sorted_bank_rows, seed_rows, options)
    has_window = bool(start_date and end_date)

    bank_pool = [
        row for row in bank_rows_without_opening
        if not has_window or is_within_date_range(row.date, start_date, end_date)
    ]
    book_rows_up_to_end = [tx for tx in scope.scoped if not end_date or tx.date <= end_date]
    book_pool = [
        tx for tx in book_rows_up_to_end
        if (not has_window or is_within_date_range(tx.date, start_date, end_date))
        and not is_opening_balance_text(f"{tx.account} {tx.description or ''} {tx.reference or ''}")
    ]
    logger.info(f"Matching {len(bank_pool)} bank rows against {len(book_pool)} book transactions")

    max_comparisons = options.get('max_comparisons')
    if max_comparisons is None:
        max_comparisons = get_max_comparisons()
    elif max_comparisons <= 0:
        max_comparisons = None
    matcher = _Matcher(bank_pool, book_pool, max_comparisons=max_comparisons)
    matcher.match_by_reference()
    matcher.match_by_amount_and_date()
    matcher.match_near()
    logger.info(
        f"Matched {matcher.reference_matched_count} by reference, "
        f"{matcher.amount_date_matched_count} by amount/date, "
        f"{len(matcher.amount_mismatches)} near matches"
    )

    bank_only_items = matcher.bank_only_items()
    book_only_items = matcher.book_only_items()
    deposits_in_transit = [item for item in book_only_items if item.book_transaction.type == 'debit']
    outstanding_cheques = [item for item in book_only_items if item.book_transaction.type == 'credit']
    bank_charges_unrecorded = [item for item in bank_only_items if item.bank_row.debit > 0]
    bank_credits_unrecorded = [item for item in bank_only_items if item.bank_row.debit <= 0]

    deposits_in_transit_total = round_money(sum(item.amount for item in deposits_in_transit))
    outstanding_cheques_total = round_money(sum(item.amount for item in outstanding_cheques))
    bank_charges_total = round_money(sum(item.amount for item in bank_charges_unrecorded))
    bank_credits_total = round_money(sum(item.amount for item in bank_credits_unrecorded))

    bank_closing_balance = round_money(_bank_closing_balance(sorted_bank_rows, end_date))
    book_closing_balance = round_money(sum(tx.signed_amount for tx in book_rows_up_to_end))
    adjusted_bank_balance = round_money(bank_closing_balance + deposits_in_transit_total - outstanding_cheques_total)
    adjusted_book_balance = round_money(book_closing_balance + bank_credits_total - bank_charges_total)
    difference = round_money(abs(adjusted_bank_balance - adjusted_book_balance))

    bank_reference_coverage_pct = _reference_coverage_pct(bank_pool)
    book_reference_coverage_pct = _reference_coverage_pct(book_pool)
    reliability_score, verdict = score_reliability(
        bank_reference_coverage_pct,
        book_reference_coverage_pct,
        len(matcher.matched_items),
        len(bank_pool),
        len(book_pool),
        difference,
    )

    if has_window:
        notes.append(f"Statement window applied: {start_date} to {end_date}.")
    if matcher.reference_matched_count > 0:
        notes.append(
            f"{matcher.reference_matched_count} transaction(s) matched on exact Reference + Amount + Direction."
        )
    if matcher.amount_date_matched_count > 0:
        notes.append(
            f"{matcher.amount_date_matched_count} transaction(s) matched on Amount + Direction + "
            f"{DATE_MATCH_TOLERANCE_BUSINESS_DAYS} business-day tolerance."
        )
    if matcher.budget.exhausted:
        notes.append(
            f"Matching comparison budget of {matcher.budget.limit} was exhausted; "
            f"remaining rows were left unmatched."
        )
    if not scope.accounts_used:
        notes.append('No scoped book cash/bank accounts were available; reconciliation confidence is low.')
    if not book_pool:
        notes.append('Book matching pool is empty: verify GL upload, account scope, and Date/Debit/Credit mappings.')
    if difference >= 1:
        notes.append(f"Adjusted balances still differ by {difference:,.2f}.")

    quality = ReconciliationQuality(
        bank_rows_total=len(sorted_bank_rows),
        bank_rows_matching_pool=len(bank_pool),
        book_rows_total=len(scope.scoped),
        book_rows_matching_pool=len(book_pool),
        bank_reference_coverage_pct=bank_reference_coverage_pct,
        book_reference_coverage_pct=book_reference_coverage_pct,
        matched_by_reference=matcher.reference_matched_count,
        matched_by_amount_date_fallback=matcher.amount_date_matched_count,
        near_matches_flagged=len(matcher.amount_mismatches),
        reliability_score=reliability_score,
        verdict=verdict,
    )

    return ReconciliationResult(
        statement_date=statement_date,
        statement_window=StatementWindow(start_date, end_date) if has_window else None,
        bank_closing_balance=bank_closing_balance,
        book_closing_balance=book_closing_balance,
        book_account_scope=requested_scope,
        book_accounts_used=scope.accounts_used,
        deposits_in_transit=deposits_in_transit,
        outstanding_cheques=outstanding_cheques,
        bank_charges_unrecorded=bank_charges_unrecorded,
        bank_credits_unrecorded=bank_credits_unrecorded,
        amount_mismatches=matcher.amount_mismatches,
        matched_items=matcher.matched_items,
        deposits_in_transit_total=deposits_in_transit_total,
        outstanding_cheques_total=outstanding_cheques_total,
        bank_charges_total=bank_charges_total,
        bank_credits_total=bank_credits_total,
        adjusted_bank_balance=adjusted_bank_balance,
        adjusted_book_balance=adjusted_book_balance,
        difference=difference,
        is_reconciled=difference < 1 and not matcher.amount_mismatches,
        total_transactions_matched=len(matcher.matched_items),
        total_transactions_unmatched=len(bank_only_items) + len(book_only_items) + len(matcher.amount_mismatches),
        quality=quality,
        notes=notes,
    )


def reconcile_data(bank_rows=None, book_rows=None, bank_mapping=None, book_mapping=None,
                   book_transactions=None, parsed_bank_rows=None, options=None):
    """
    Parse both sides (unless already parsed) and reconcile them.

    Args:
        bank_rows: Raw statement rows (list of dict or DataFrame)
        book_rows: Raw ledger rows (list of dict or DataFrame)
        bank_mapping (dict, optional): Explicit bank column roles
        book_mapping (dict, optional): Explicit book column roles
        book_transactions (list of dict, optional): Pre-normalized ledger records;
            used instead of ``book_rows`` when at least one is valid
        parsed_bank_rows (list of BankRow, optional): Used instead of ``bank_rows``
        options (dict, optional): Parser and engine options

    Returns:
        dict: ``reconciliation`` result, ``bank_parsing`` and ``book_parsing``
        warnings/stats, and ``caveats``
    """
    options = options or {}

    if parsed_bank_rows is not None:
        bank_parsed_rows, bank_warnings, bank_stats = list(parsed_bank_rows), [], {}
    else:
        parsed_bank = parse_bank_rows(bank_rows, mapping=bank_mapping, options=options)
        bank_parsed_rows, bank_warnings, bank_stats = parsed_bank.rows, parsed_bank.warnings, parsed_bank.stats

    pre_normalized = [
        tx for tx in (normalize_book_transaction(entry, index) for index, entry in enumerate(book_transactions or []))
        if tx is not None
    ]
    if pre_normalized:
        book_parsed, book_warnings = pre_normalized, []
        book_stats = {
            'source_rows': len(pre_normalized),
            'parsed_rows': len(pre_normalized),
            'dropped_rows': 0,
            'reference_coverage_pct': _reference_coverage_pct(pre_normalized),
            'category_coverage_pct': 100,
        }
    else:
        parsed_book = parse_book_rows(book_rows, mapping=book_mapping, options=options)
        book_parsed, book_warnings, book_stats = parsed_book.transactions, parsed_book.warnings, parsed_book.stats

    reconciliation = reconcile_bank_and_book(bank_parsed_rows, book_parsed, options=options)
    return {
        'reconciliation': reconciliation,
        'bank_parsing': {'warnings': bank_warnings, 'stats': bank_stats},
        'book_parsing': {'warnings': book_warnings, 'stats': book_stats},
        'caveats': list(RECONCILE_CAVEATS),
    }


EXPORT_COLUMNS = [
    'match_type', 'bucket', 'amount', 'variance',
    'bank_date', 'bank_description', 'bank_reference', 'bank_debit', 'bank_credit', 'bank_row',
    'book_date', 'book_account', 'book_description', 'book_reference', 'book_type', 'book_amount', 'book_row',
]


def match_items_to_frame(result):
    """
    Flatten every match item of a reconciliation into one DataFrame.

    Args:
        result (ReconciliationResult): Engine output

    Returns:
        pd.DataFrame: One row per item with bank and book columns side by side
    """
    buckets = [
        ('matched', result.matched_items),
        ('amount_mismatch', result.amount_mismatches),
        ('deposit_in_transit', result.deposits_in_transit),
        ('outstanding_cheque', result.outstanding_cheques),
        ('bank_charge_unrecorded', result.bank_charges_unrecorded),
        ('bank_credit_unrecorded', result.bank_credits_unrecorded),
    ]
    records = []
    for bucket, items in buckets:
        for item in items:
            bank, book = item.bank_row, item.book_transaction
            records.append({
                'match_type': item.type,
                'bucket': bucket,
                'amount': item.amount,
                'variance': item.variance,
                'bank_date': bank.date if bank else '',
                'bank_description': bank.description if bank else '',
                'bank_reference': (bank.reference or '') if bank else '',
                'bank_debit': bank.debit if bank else np.nan,
                'bank_credit': bank.credit if bank else np.nan,
                'bank_row': bank.raw_row if bank else np.nan,
                'book_date': book.date if book else '',
                'book_account': book.account if book else '',
                'book_description': (book.description or '') if book else '',
                'book_reference': (book.reference or '') if book else '',
                'book_type': book.type if book else '',
                'book_amount': book.amount if book else np.nan,
                'book_row': book.original_row if book else np.nan,
            })
    if not records:
        return pd.DataFrame(columns=EXPORT_COLUMNS)
    return pd.DataFrame(records, columns=EXPORT_COLUMNS)


def save_reconciliation_results(result, output_path):
    """Save all match items to a CSV (or .xlsx) file.

    Args:
        result (ReconciliationResult): Engine output
        output_path (str or pathlib.Path): File path, or directory for ``all_matches.csv``

    Returns:
        pathlib.Path: The written file
    """
    frame = match_items_to_frame(result)

    output_path = pathlib.Path(output_path)
    if output_path.is_dir() or not output_path.suffix:
        output_path = output_path / "all_matches.csv"
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if output_path.suffix.lower() == '.xlsx':
        with pd.ExcelWriter(output_path, engine='openpyxl') as writer:
            frame.to_excel(writer, sheet_name='Reconciliation', index=False)
    else:
        frame.to_csv(output_path, index=False, quoting=csv.QUOTE_NONNUMERIC)
    logger.debug(f"Wrote {len(frame)} match items to {output_path}")
    return output_path


def format_report_summary(result):
    """Format a plain-text summary of a reconciliation.

    Args:
        result (ReconciliationResult): Engine output

    Returns:
        str: Report lines joined with newlines
    """
    quality = result.quality
    window = result.statement_window
    summary = [
        f"Statement Date: {result.statement_date}",
        f"Statement Window: {window.start_date} to {window.end_date}" if window else "Statement Window: none",
        f"Book Accounts: {', '.join(result.book_accounts_used) or 'none'}",
        f"Matched Transactions: {result.total_transactions_matched}",
        f"Near Matches Flagged: {quality.near_matches_flagged}",
        f"Unmatched Transactions: {result.total_transactions_unmatched}",
        f"Bank Closing Balance: ${result.bank_closing_balance:,.2f}",
        f"Book Closing Balance: ${result.book_closing_balance:,.2f}",
        f"Deposits in Transit: ${result.deposits_in_transit_total:,.2f}",
        f"Outstanding Cheques: ${result.outstanding_cheques_total:,.2f}",
        f"Unrecorded Bank Charges: ${result.bank_charges_total:,.2f}",
        f"Unrecorded Bank Credits: ${result.bank_credits_total:,.2f}",
        f"Adjusted Bank Balance: ${result.adjusted_bank_balance:,.2f}",
        f"Adjusted Book Balance: ${result.adjusted_book_balance:,.2f}",
        f"Difference: ${result.difference:,.2f}",
        f"Reconciled: {'yes' if result.is_reconciled else 'no'}",
        f"Reliability: {quality.reliability_score}/100 ({quality.verdict})",
    ]
    return "\n".join(summary)


def generate_reconciliation_report(result, output_path):
    """Write the text report, followed by the engine notes.

    Args:
        result (ReconciliationResult): Engine output
        output_path (str or pathlib.Path): File path, or directory for ``reconciliation_report.txt``

    Returns:
        pathlib.Path: The written file
    """
    report_lines = [format_report_summary(result)]
    if result.notes:
        report_lines.append("\nNotes:")
        report_lines.extend(f"- {note}" for note in result.notes)
    if not result.matched_items:
        report_lines.append("\nNo matched transactions found")

    output_path = pathlib.Path(output_path)
    if output_path.is_dir() or not output_path.suffix:
        output_path = output_path / "reconciliation_report.txt"
    output_path.parent.mkdir(parents=True, exist_ok=True)
    logger.debug(f"Writing reconciliation report to {output_path}")
    with open(output_path, 'w') as f:
        f.write('\n'.join(report_lines))
    return output_path


def main(argv=None):
    """Command-line entry point."""
    parser = argparse.ArgumentParser(description='Reconcile a bank statement against a general ledger')
    parser.add_argument('--bank', type=str, required=True, help='Bank statement export (.csv or .xlsx)')
    parser.add_argument('--book', type=str, required=True, help='General ledger export (.csv or .xlsx)')
    parser.add_argument('--output', type=str, default=None, help='Output directory (default: DATA_DIR/output)')
    parser.add_argument('--scope', type=str, default='auto', help="Book cash account name, or 'auto'")
    parser.add_argument('--start', type=str, default=None, help='Statement start date')
    parser.add_argument('--end', type=str, default=None, help='Statement end date')
    parser.add_argument('--statement-date', type=str, default=None, help='Statement date')
    parser.add_argument('--summary', action='store_true', help='Also write a financial summary of the ledger')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    args = parser.parse_args(argv)

    setup_logging(debug=args.debug)
    logger.info("Starting reconciliation process")

    try:
        bank_df = import_csv(args.bank)
        book_df = import_csv(args.book)
        options = {
            'book_account_scope': args.scope,
            'statement_start_date': args.start,
            'statement_end_date': args.end,
            'statement_date': args.statement_date,
        }
        outcome = reconcile_data(bank_rows=bank_df, book_rows=book_df, options=options)
        result = outcome['reconciliation']
        for warning in outcome['bank_parsing']['warnings'] + outcome['book_parsing']['warnings']:
            logger.warning(warning)

        output_dir = create_output_directories(args.output) if args.output else ensure_directory('output')
        save_reconciliation_results(result, output_dir)
        generate_reconciliation_report(result, output_dir)

        if args.summary:
            report = generate_report_from_input(rows=book_df, options=options)
            with open(output_dir / 'financial_summary.json', 'w') as f:
                json.dump(report['summary'].to_dict(), f, indent=2)
    except Exception as e:
        logger.error(f"Error during reconciliation: {str(e)}")
        raise

    logger.info(format_report_summary(result))
    return result


if __name__ == '__main__':
    main()
