"""
Record and result types shared by the parsers, the matching engine and the
financial summary.

All records are immutable once built. Dates are ISO ``YYYY-MM-DD`` strings so
window checks can compare them lexically, and money values are floats already
rounded to cents.
"""

import uuid
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

CATEGORY_VALUES = (
    'revenue',
    'cost_of_goods_sold',
    'operating_expense',
    'other_income',
    'other_expense',
    'tax',
    'current_asset',
    'non_current_asset',
    'current_liability',
    'non_current_liability',
    'equity',
    'operating_cash',
    'investing_cash',
    'financing_cash',
)

# Categories whose balance grows on the credit side
CREDIT_NORMAL_CATEGORIES = frozenset([
    'revenue',
    'other_income',
    'current_liability',
    'non_current_liability',
    'equity',
])

MATCHED = 'matched'
AMOUNT_MISMATCH = 'amount_mismatch'
BANK_ONLY = 'bank_only'
BOOK_ONLY = 'book_only'


def new_row_id():
    return uuid.uuid4().hex


@dataclass(frozen=True)
class BookTransaction:
    """One general-ledger entry."""
    date: str
    account: str
    category: str
    amount: float
    type: str
    description: Optional[str] = None
    reference: Optional[str] = None
    original_row: int = 0

    @property
    def signed_amount(self) -> float:
        return abs(self.amount) if self.type == 'debit' else -abs(self.amount)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class BankRow:
    """One bank-statement line.

    ``id`` is random per parse, so it takes no part in equality.
    """
    date: str
    description: str
    debit: float
    credit: float
    reference: Optional[str] = None
    balance: Optional[float] = None
    is_opening_balance: bool = False
    raw_row: int = 0
    id: str = field(default_factory=new_row_id, compare=False)

    @property
    def amount(self) -> float:
        """Amount used for matching: credit when present, else debit."""
        return self.credit if self.credit > 0 else self.debit

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MatchItem:
    """A paired (or one-sided) outcome of reconciliation."""
    type: str
    amount: float
    variance: float
    bank_row: Optional[BankRow] = None
    book_transaction: Optional[BookTransaction] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BookParseResult:
    transactions: List[BookTransaction]
    warnings: List[str]
    mapping_used: Dict[str, str]
    stats: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BankParseResult:
    rows: List[BankRow]
    warnings: List[str]
    mapping_used: Dict[str, str]
    stats: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BookScope:
    scoped: List[BookTransaction]
    accounts_used: List[str]
    notes: List[str]


@dataclass(frozen=True)
class StatementWindow:
    start_date: str
    end_date: str


@dataclass
class ReconciliationQuality:
    bank_rows_total: int
    bank_rows_matching_pool: int
    book_rows_total: int
    book_rows_matching_pool: int
    bank_reference_coverage_pct: float
    book_reference_coverage_pct: float
    matched_by_reference: int
    matched_by_amount_date_fallback: int
    near_matches_flagged: int
    reliability_score: int
    verdict: str


@dataclass
class ReconciliationResult:
    statement_date: str
    statement_window: Optional[StatementWindow]
    bank_closing_balance: float
    book_closing_balance: float
    book_account_scope: str
    book_accounts_used: List[str]
    deposits_in_transit: List[MatchItem]
    outstanding_cheques: List[MatchItem]
    bank_charges_unrecorded: List[MatchItem]
    bank_credits_unrecorded: List[MatchItem]
    amount_mismatches: List[MatchItem]
    matched_items: List[MatchItem]
    deposits_in_transit_total: float
    outstanding_cheques_total: float
    bank_charges_total: float
    bank_credits_total: float
    adjusted_bank_balance: float
    adjusted_book_balance: float
    difference: float
    is_reconciled: bool
    total_transactions_matched: int
    total_transactions_unmatched: int
    quality: ReconciliationQuality
    notes: List[str] = field(default_factory=list)

    @property
    def bank_only(self) -> List[MatchItem]:
        return self.bank_charges_unrecorded + self.bank_credits_unrecorded

    @property
    def book_only(self) -> List[MatchItem]:
        return self.deposits_in_transit + self.outstanding_cheques

    def all_items(self) -> List[MatchItem]:
        return self.matched_items + self.amount_mismatches + self.bank_only + self.book_only

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ProfitAndLoss:
    revenue: float
    other_income: float
    total_revenue: float
    cost_of_goods_sold: float
    operating_expenses: float
    other_expenses: float
    tax: float
    total_expenses: float
    net_income: float
    net_margin_pct: float


@dataclass
class BalanceSheet:
    current_assets: float
    non_current_assets: float
    total_assets: float
    current_liabilities: float
    non_current_liabilities: float
    total_liabilities: float
    equity: float
    liabilities_and_equity: float
    difference: float
    is_balanced: bool


@dataclass
class CashFlow:
    operating_cash: float
    investing_cash: float
    financing_cash: float
    net_cash_change: float


@dataclass
class FinancialSummary:
    company_name: str
    report_period: str
    generated_at: str
    period_start: Optional[str]
    period_end: Optional[str]
    pnl: ProfitAndLoss
    balance_sheet: BalanceSheet
    cash_flow: CashFlow
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
