import pytest

from cashrecon.models import BankRow, BookTransaction

WINDOW = {
    'statement_start_date': '2026-01-01',
    'statement_end_date': '2026-01-31',
}


@pytest.fixture
def make_bank_row():
    """Helper fixture to build parsed bank rows"""
    def _make(date, debit=0.0, credit=0.0, reference=None, description='', balance=None,
              is_opening_balance=False, raw_row=2):
        return BankRow(
            date=date,
            description=description,
            debit=debit,
            credit=credit,
            reference=reference,
            balance=balance,
            is_opening_balance=is_opening_balance,
            raw_row=raw_row,
        )
    return _make


@pytest.fixture
def make_book_tx():
    """Helper fixture to build parsed book transactions"""
    def _make(date, amount, type='debit', account='Bank - Checking', reference=None,
              description=None, category='current_asset', original_row=2):
        return BookTransaction(
            date=date,
            account=account,
            category=category,
            amount=amount,
            type=type,
            description=description,
            reference=reference,
            original_row=original_row,
        )
    return _make


@pytest.fixture
def window_options():
    """Statement window covering January 2026."""
    return dict(WINDOW)


@pytest.fixture
def sample_book_rows():
    """General-ledger export with debit/credit columns and a few defective rows."""
    return [
        {'Date': '2026-01-05', 'Account': 'Bank - Checking', 'Description': 'Customer receipt',
         'Reference': 'inv 1001', 'Debit': '500.00', 'Credit': '', 'Category': ''},
        {'Date': '2026/01/09', 'Account': 'Bank - Checking', 'Description': 'Transfer in',
         'Reference': '', 'Debit': '300.00', 'Credit': '', 'Category': ''},
        {'Date': '2026-01-12', 'Account': 'Bank - Checking', 'Description': 'Acme Supplies',
         'Reference': '', 'Debit': '', 'Credit': '(512.00)', 'Category': ''},
        {'Date': '2026-01-28', 'Account': 'Bank - Checking', 'Description': 'Cash sale',
         'Reference': '', 'Debit': '$750.00', 'Credit': '', 'Category': ''},
        {'Date': '2026-01-30', 'Account': 'Bank - Checking', 'Description': 'Cheque to landlord',
         'Reference': 'CHQ7788', 'Debit': '', 'Credit': '120', 'Category': ''},
        {'Date': '2026-01-02', 'Account': 'Sales', 'Description': 'Invoice 1001',
         'Reference': 'INV1001', 'Debit': '', 'Credit': '500.00', 'Category': 'Revenue'},
        {'Date': '2026-01-03', 'Account': '', 'Description': 'No account',
         'Reference': '', 'Debit': '10.00', 'Credit': '', 'Category': ''},
        {'Date': '2026-01-04', 'Account': 'Bank - Checking', 'Description': 'No amount',
         'Reference': '', 'Debit': '', 'Credit': '', 'Category': ''},
    ]


@pytest.fixture
def sample_bank_rows():
    """Bank statement export with a signed amount column and a running balance."""
    return [
        {'Date': '2026-01-01', 'Description': 'Opening Balance', 'Reference': '',
         'Amount': '1000.00', 'Balance': '1000.00'},
        {'Date': '2026-01-05', 'Description': 'Customer receipt', 'Reference': 'INV1001',
         'Amount': '500.00', 'Balance': '1500.00'},
        {'Date': '2026-01-12', 'Description': 'Transfer in', 'Reference': '',
         'Amount': '300.00', 'Balance': '1800.00'},
        {'Date': '2026-01-15', 'Description': 'ACME SUPPLIES', 'Reference': '',
         'Amount': '-500.00', 'Balance': '1300.00'},
        {'Date': '2026-01-20', 'Description': 'Monthly account fee', 'Reference': '',
         'Amount': '-25.00', 'Balance': '1275.00'},
        {'Date': '2026-01-21', 'Description': 'Zero line', 'Reference': '',
         'Amount': '0', 'Balance': '1275.00'},
        {'Date': 'nope', 'Description': 'Bad date', 'Reference': '',
         'Amount': '10', 'Balance': ''},
    ]


@pytest.fixture
def mixed_pools(make_bank_row, make_book_tx):
    """Parsed bank rows and book transactions exercising every matching outcome.

    - Reference match: INV1001 receipt
    - Amount/date match: 300 transfer, Friday in the books, Monday at the bank
    - Near match: 500 at the bank vs 512 in the books
    - Bank only: 25 fee
    - Book only: 750 deposit in transit, 120 outstanding cheque
    - Excluded: opening balance row, revenue account entry
    """
    bank_rows = [
        make_bank_row('2026-01-01', credit=1000.0, description='Opening Balance',
                      is_opening_balance=True, raw_row=2),
        make_bank_row('2026-01-05', credit=500.0, reference='INV1001', description='Customer receipt', raw_row=3),
        make_bank_row('2026-01-12', credit=300.0, description='Transfer in', raw_row=4),
        make_bank_row('2026-01-15', debit=500.0, description='ACME SUPPLIES', raw_row=5),
        make_bank_row('2026-01-20', debit=25.0, description='Monthly account fee', raw_row=6),
    ]
    book_transactions = [
        make_book_tx('2026-01-05', 500.0, 'debit', reference='INV1001', description='Customer receipt',
                     original_row=2),
        make_book_tx('2026-01-09', 300.0, 'debit', description='Transfer in', original_row=3),
        make_book_tx('2026-01-12', 512.0, 'credit', description='Acme Supplies', original_row=4),
        make_book_tx('2026-01-28', 750.0, 'debit', description='Cash sale', original_row=5),
        make_book_tx('2026-01-30', 120.0, 'credit', reference='CHQ7788', description='Cheque to landlord',
                     original_row=6),
        make_book_tx('2026-01-02', 500.0, 'credit', account='Sales', reference='INV1001',
                     category='revenue', original_row=7),
    ]
    return bank_rows, book_transactions
