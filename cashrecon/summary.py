"""
Financial statements derived from categorized book transactions.

Independent of bank matching: every transaction with a known category is
folded into per-category totals, which roll up into a P&L, a balance sheet and
a cash-flow section.
"""

import logging
from datetime import datetime, timezone

from cashrecon.errors import FinanceInputError
from cashrecon.ingest import normalize_book_transaction, parse_book_rows
from cashrecon.models import (
    CATEGORY_VALUES,
    CREDIT_NORMAL_CATEGORIES,
    BalanceSheet,
    CashFlow,
    FinancialSummary,
    ProfitAndLoss,
)
from cashrecon.normalize import trim_string
from cashrecon.utils import round_money, round_percent

logger = logging.getLogger(__name__)

REPORT_CAVEATS = [
    'Report output is generated from parsed transaction-level data and should be reviewed for mapping correctness.',
    'For audited statements, confirm account classifications and manual adjustments externally.',
]


def category_impact(tx):
    """Signed effect of a transaction on its category total.

    Debits add and credits subtract, reversed for credit-normal categories
    (revenue, other income, liabilities, equity).
    """
    abs_amount = abs(float(tx.amount or 0))
    entry_impact = abs_amount if tx.type == 'debit' else -abs_amount
    if tx.category in CREDIT_NORMAL_CATEGORIES:
        return -entry_impact
    return entry_impact


def generate_financial_summary(transactions, company_name='Imported Company', report_period='custom'):
    """
    Build P&L, balance sheet and cash flow from book transactions.

    Args:
        transactions (list of BookTransaction): Categorized ledger entries
        company_name (str): Shown on the report
        report_period (str): Free-text period label

    Returns:
        FinancialSummary: Rolled-up statements and warnings

    Raises:
        FinanceInputError: ``TRANSACTIONS_REQUIRED`` when no transactions are given
    """
    if not transactions:
        raise FinanceInputError.bad_request(
            'Transactions are required to generate financial summary', code='TRANSACTIONS_REQUIRED'
        )

    totals = {category: 0.0 for category in CATEGORY_VALUES}
    dates = set()
    for tx in transactions:
        if tx.category not in totals:
            continue
        totals[tx.category] += category_impact(tx)
        if tx.date:
            dates.add(tx.date)

    total_revenue = round_money(totals['revenue'] + totals['other_income'])
    total_expenses = round_money(
        totals['cost_of_goods_sold'] + totals['operating_expense'] + totals['other_expense'] + totals['tax']
    )
    net_income = round_money(total_revenue - total_expenses)
    total_assets = round_money(totals['current_asset'] + totals['non_current_asset'])
    total_liabilities = round_money(totals['current_liability'] + totals['non_current_liability'])
    total_equity = round_money(totals['equity'])
    balance_sheet_difference = round_money(total_assets - (total_liabilities + total_equity))

    operating_cash = round_money(totals['operating_cash'])
    investing_cash = round_money(totals['investing_cash'])
    financing_cash = round_money(totals['financing_cash'])

    warnings = []
    if abs(balance_sheet_difference) >= 1:
        warnings.append(f"Balance sheet is not balanced. Difference: {balance_sheet_difference:,.2f}.")
    if operating_cash == 0 and investing_cash == 0 and financing_cash == 0:
        warnings.append(
            'Cash flow categories are missing or zero; operating/investing/financing cash totals may be incomplete.'
        )

    sorted_dates = sorted(dates)
    logger.info(f"Summarized {len(transactions)} transactions for {company_name}")

    return FinancialSummary(
        company_name=company_name,
        report_period=report_period,
        generated_at=datetime.now(timezone.utc).isoformat(),
        period_start=sorted_dates[0] if sorted_dates else None,
        period_end=sorted_dates[-1] if sorted_dates else None,
        pnl=ProfitAndLoss(
            revenue=round_money(totals['revenue']),
            other_income=round_money(totals['other_income']),
            total_revenue=total_revenue,
            cost_of_goods_sold=round_money(totals['cost_of_goods_sold']),
            operating_expenses=round_money(totals['operating_expense']),
            other_expenses=round_money(totals['other_expense']),
            tax=round_money(totals['tax']),
            total_expenses=total_expenses,
            net_income=net_income,
            net_margin_pct=round_percent(net_income / total_revenue * 100) if total_revenue else 0,
        ),
        balance_sheet=BalanceSheet(
            current_assets=round_money(totals['current_asset']),
            non_current_assets=round_money(totals['non_current_asset']),
            total_assets=total_assets,
            current_liabilities=round_money(totals['current_liability']),
            non_current_liabilities=round_money(totals['non_current_liability']),
            total_liabilities=total_liabilities,
            equity=total_equity,
            liabilities_and_equity=round_money(total_liabilities + total_equity),
            difference=balance_sheet_difference,
            is_balanced=abs(balance_sheet_difference) < 1,
        ),
        cash_flow=CashFlow(
            operating_cash=operating_cash,
            investing_cash=investing_cash,
            financing_cash=financing_cash,
            net_cash_change=round_money(operating_cash + investing_cash + financing_cash),
        ),
        warnings=warnings,
    )


def generate_report_from_input(transactions=None, rows=None, mapping=None, options=None,
                               company_name=None, report_period=None):
    """
    Summarize either pre-normalized transactions or raw ledger rows.

    Args:
        transactions (list of dict, optional): Normalized records; takes precedence
        rows (list of dict or pd.DataFrame, optional): Raw ledger rows
        mapping (dict, optional): Explicit column roles for ``rows``
        options (dict, optional): Parser options for ``rows``
        company_name (str, optional): Defaults to 'Imported Company'
        report_period (str, optional): Defaults to 'custom'

    Returns:
        dict: ``summary``, ``transaction_count`` and ``caveats``

    Raises:
        FinanceInputError: ``NO_TRANSACTIONS`` when nothing usable was supplied
    """
    parsed = []
    if transactions:
        parsed = [
            tx for tx in (normalize_book_transaction(entry, index) for index, entry in enumerate(transactions))
            if tx is not None
        ]
    elif rows is not None and len(rows) > 0:
        parsed = parse_book_rows(rows, mapping=mapping or {}, options=options or {}).transactions

    if not parsed:
        raise FinanceInputError.bad_request(
            'No valid transactions available for report generation', code='NO_TRANSACTIONS'
        )

    summary = generate_financial_summary(
        parsed,
        company_name=trim_string(company_name) or 'Imported Company',
        report_period=trim_string(report_period) or 'custom',
    )
    return {
        'summary': summary,
        'transaction_count': len(parsed),
        'caveats': list(REPORT_CAVEATS),
    }
