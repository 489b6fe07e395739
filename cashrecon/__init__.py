"""
cashrecon - bank-to-book reconciliation for cash accounts.

This package provides functionality to:
- Read bank statement and general-ledger exports with arbitrary column names
- Normalize amounts, dates, references and categories
- Match bank lines to book entries (reference, amount/date, near match)
- Compute adjusted balances and a reliability score
- Derive a P&L, balance sheet and cash flow from categorized ledger entries

The normalized records:
- BookTransaction: date, account, category, amount (> 0), type (debit/credit),
  description, reference, original_row
- BankRow: id, date, description, reference, debit, credit, balance,
  is_opening_balance, raw_row
"""

from .errors import FinanceInputError
from .models import (
    CATEGORY_VALUES,
    BankRow,
    BookTransaction,
    FinancialSummary,
    MatchItem,
    ReconciliationResult,
)
from .normalize import (
    parse_amount,
    parse_date,
    normalize_reference,
    normalize_header,
    normalize_category,
)
from .ingest import (
    detect_book_mapping,
    detect_bank_mapping,
    parse_book_rows,
    parse_bank_rows,
    ingest_book_data,
    import_csv,
)
from .reconcile import (
    infer_book_scope,
    reconcile_bank_and_book,
    reconcile_data,
    save_reconciliation_results,
    generate_reconciliation_report,
)
from .summary import (
    generate_financial_summary,
    generate_report_from_input,
)

__all__ = [
    'FinanceInputError',
    'CATEGORY_VALUES',
    'BankRow',
    'BookTransaction',
    'FinancialSummary',
    'MatchItem',
    'ReconciliationResult',
    'parse_amount',
    'parse_date',
    'normalize_reference',
    'normalize_header',
    'normalize_category',
    'detect_book_mapping',
    'detect_bank_mapping',
    'parse_book_rows',
    'parse_bank_rows',
    'ingest_book_data',
    'import_csv',
    'infer_book_scope',
    'reconcile_bank_and_book',
    'reconcile_data',
    'save_reconciliation_results',
    'generate_reconciliation_report',
    'generate_financial_summary',
    'generate_report_from_input',
]
