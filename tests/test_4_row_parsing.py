import pandas as pd
import pytest

from cashrecon.errors import FinanceInputError
from cashrecon.ingest import (
    import_csv,
    ingest_book_data,
    normalize_book_transaction,
    parse_bank_rows,
    parse_book_rows,
)

PARSE_OPTIONS = {'default_date': '2026-01-31'}


class TestBookRowParsing:
    """Test suite for general-ledger row parsing.

    Verifies:
    - Debit/credit column resolution
    - Dropped row counting and warnings
    - Stats and coverage
    """

    def test_parses_valid_rows(self, sample_book_rows):
        result = parse_book_rows(sample_book_rows, options=PARSE_OPTIONS)
        assert len(result.transactions) == 6

        first = result.transactions[0]
        assert first.date == '2026-01-05'
        assert first.account == 'Bank - Checking'
        assert first.type == 'debit'
        assert first.amount == 500.0
        assert first.reference == 'INV1001'
        assert first.category == 'current_asset'
        assert first.original_row == 2

    def test_parenthesized_credit(self, sample_book_rows):
        result = parse_book_rows(sample_book_rows, options=PARSE_OPTIONS)
        acme = result.transactions[2]
        assert acme.type == 'credit'
        assert acme.amount == 512.0

    def test_category_column_is_used(self, sample_book_rows):
        result = parse_book_rows(sample_book_rows, options=PARSE_OPTIONS)
        sales = [tx for tx in result.transactions if tx.account == 'Sales']
        assert len(sales) == 1
        assert sales[0].category == 'revenue'

    def test_dropped_rows(self, sample_book_rows):
        result = parse_book_rows(sample_book_rows, options=PARSE_OPTIONS)
        assert result.stats['source_rows'] == 8
        assert result.stats['parsed_rows'] == 6
        assert result.stats['dropped_rows'] == 2
        assert result.stats['dropped_account'] == 1
        assert result.stats['dropped_amount'] == 1
        assert result.stats['dropped_date'] == 0
        assert '1 row(s) were dropped due to missing account name.' in result.warnings
        assert '1 row(s) were dropped due to missing debit/credit/amount.' in result.warnings

    def test_coverage_stats(self, sample_book_rows):
        result = parse_book_rows(sample_book_rows, options=PARSE_OPTIONS)
        # INV1001, CHQ7788 and the sales INV1001 out of six
        assert result.stats['reference_coverage_pct'] == 50.0
        assert result.stats['category_coverage_pct'] == 100.0

    def test_rows_are_conserved(self, sample_book_rows):
        result = parse_book_rows(sample_book_rows, options=PARSE_OPTIONS)
        stats = result.stats
        assert stats['parsed_rows'] + stats['dropped_rows'] == stats['source_rows']
        assert all(tx.amount > 0 for tx in result.transactions)
        assert all(tx.type in ('debit', 'credit') for tx in result.transactions)

    def test_parsing_is_idempotent(self, sample_book_rows):
        first = parse_book_rows(sample_book_rows, options=PARSE_OPTIONS)
        second = parse_book_rows(sample_book_rows, options=PARSE_OPTIONS)
        assert first.transactions == second.transactions
        assert first.stats == second.stats

    def test_dataframe_input(self, sample_book_rows):
        from_records = parse_book_rows(sample_book_rows, options=PARSE_OPTIONS)
        from_frame = parse_book_rows(pd.DataFrame(sample_book_rows), options=PARSE_OPTIONS)
        assert from_frame.transactions == from_records.transactions

    def test_signed_amount_with_type(self):
        rows = [
            {'Date': '2026-01-05', 'Account': 'Cash', 'Amount': '-200', 'Type': ''},
            {'Date': '2026-01-06', 'Account': 'Cash', 'Amount': '300', 'Type': 'Credit'},
            {'Date': '2026-01-07', 'Account': 'Cash', 'Amount': '150', 'Type': ''},
        ]
        result = parse_book_rows(rows)
        assert [(tx.type, tx.amount) for tx in result.transactions] == [
            ('credit', 200.0),
            ('credit', 300.0),
            ('debit', 150.0),
        ]

    def test_default_date_for_unparseable_dates(self):
        rows = [{'Date': 'not a date', 'Account': 'Cash', 'Amount': '10'}]
        result = parse_book_rows(rows, options=PARSE_OPTIONS)
        assert result.transactions[0].date == '2026-01-31'

    def test_month_only_date_uses_default(self):
        rows = [{'Date': 'Jan', 'Account': 'Cash', 'Amount': '10'}]
        result = parse_book_rows(rows, options=PARSE_OPTIONS)
        assert result.transactions[0].date == '2026-01-31'

    def test_explicit_mapping(self):
        rows = [{'When': '2026-01-05', 'Ledger Name': 'Cash', 'Net': '45.10'}]
        result = parse_book_rows(rows, mapping={'date': 'When', 'amount': 'Net', 'account': 'Ledger Name'})
        assert result.mapping_used['date'] == 'When'
        assert result.transactions[0].date == '2026-01-05'
        assert result.transactions[0].amount == 45.1

    def test_no_valid_rows_warning(self):
        rows = [{'Date': '2026-01-05', 'Account': '', 'Amount': '10'}]
        result = parse_book_rows(rows)
        assert result.transactions == []
        assert 'No valid book transactions parsed. Review mapping and source data.' in result.warnings

    def test_rows_required(self):
        with pytest.raises(FinanceInputError) as excinfo:
            parse_book_rows([])
        assert excinfo.value.code == 'BOOK_ROWS_REQUIRED'
        assert excinfo.value.status_code == 400

    def test_ingest_book_data_caveats(self, sample_book_rows):
        result = ingest_book_data(sample_book_rows, options=PARSE_OPTIONS)
        assert len(result['transactions']) == 6
        assert len(result['caveats']) == 2
        assert result['stats']['parsed_rows'] == 6


class TestBankRowParsing:
    """Test suite for bank statement row parsing.

    Verifies:
    - Signed amount convention (positive is money in)
    - Opening balance flagging
    - Dropped row counting and stats
    """

    def test_parses_valid_rows(self, sample_bank_rows):
        result = parse_bank_rows(sample_bank_rows)
        assert len(result.rows) == 5
        assert result.mapping_used['amount'] == 'Amount'
        assert result.mapping_used['balance'] == 'Balance'

        receipt = result.rows[1]
        assert receipt.date == '2026-01-05'
        assert receipt.credit == 500.0
        assert receipt.debit == 0.0
        assert receipt.reference == 'INV1001'
        assert receipt.balance == 1500.0
        assert receipt.raw_row == 3

    def test_negative_amount_is_debit(self, sample_bank_rows):
        result = parse_bank_rows(sample_bank_rows)
        fee = result.rows[4]
        assert fee.debit == 25.0
        assert fee.credit == 0.0

    def test_opening_balance_flag(self, sample_bank_rows):
        result = parse_bank_rows(sample_bank_rows)
        assert result.rows[0].is_opening_balance
        assert not any(row.is_opening_balance for row in result.rows[1:])

    def test_stats_and_warnings(self, sample_bank_rows):
        result = parse_bank_rows(sample_bank_rows)
        assert result.stats['source_rows'] == 7
        assert result.stats['parsed_rows'] == 5
        assert result.stats['dropped_rows'] == 2
        assert result.stats['dropped_date'] == 1
        assert result.stats['dropped_amount'] == 1
        assert result.stats['reference_coverage_pct'] == 20.0
        assert '1 row(s) were dropped due to invalid date values.' in result.warnings
        assert '1 row(s) were dropped due to zero debit/credit amounts.' in result.warnings

    def test_rows_are_positive(self, sample_bank_rows):
        result = parse_bank_rows(sample_bank_rows)
        for row in result.rows:
            assert row.debit >= 0 and row.credit >= 0
            assert row.debit > 0 or row.credit > 0

    def test_parsing_is_idempotent(self, sample_bank_rows):
        first = parse_bank_rows(sample_bank_rows)
        second = parse_bank_rows(sample_bank_rows)
        assert first.rows == second.rows
        assert [row.id for row in first.rows] != [row.id for row in second.rows]

    def test_type_column_overrides_sign(self):
        rows = [
            {'Date': '2026-01-05', 'Details': 'Card', 'Amount': '250', 'Transaction Type': 'DR'},
            {'Date': '2026-01-06', 'Details': 'Refund', 'Amount': '-40', 'Transaction Type': 'Credit'},
            {'Date': '2026-01-07', 'Details': 'Transfer', 'Amount': '-80', 'Transaction Type': ''},
        ]
        result = parse_bank_rows(rows)
        assert [(row.debit, row.credit) for row in result.rows] == [
            (250.0, 0.0),
            (0.0, 40.0),
            (80.0, 0.0),
        ]

    def test_split_columns(self):
        rows = [
            {'Date': '05/01/2026', 'Narration': 'ATM', 'Withdrawal': '100.00', 'Deposit': ''},
            {'Date': '06/01/2026', 'Narration': 'Salary', 'Withdrawal': '', 'Deposit': '2,000.00'},
        ]
        result = parse_bank_rows(rows)
        assert [(row.debit, row.credit) for row in result.rows] == [(100.0, 0.0), (0.0, 2000.0)]

    def test_rows_required(self):
        with pytest.raises(FinanceInputError) as excinfo:
            parse_bank_rows(None)
        assert excinfo.value.code == 'BANK_ROWS_REQUIRED'

    def test_date_column_required(self):
        with pytest.raises(FinanceInputError) as excinfo:
            parse_bank_rows([{'Description': 'Fee', 'Amount': '-5'}])
        assert excinfo.value.code == 'BANK_DATE_MAPPING_REQUIRED'


class TestRowLimits:
    """Test suite for the configured row cap."""

    def test_book_rows_over_limit(self, monkeypatch):
        monkeypatch.setenv('FINANCE_JOB_MAX_ROWS', '1000')
        rows = [{'Date': '2026-01-05', 'Account': 'Cash', 'Amount': '1'}] * 1001
        with pytest.raises(FinanceInputError) as excinfo:
            parse_book_rows(rows)
        assert excinfo.value.code == 'FINANCE_ROWS_LIMIT_EXCEEDED'
        assert excinfo.value.status_code == 413
        assert excinfo.value.details == {'received': 1001, 'max_rows': 1000}

    def test_bank_rows_at_limit(self, monkeypatch):
        monkeypatch.setenv('FINANCE_JOB_MAX_ROWS', '1000')
        rows = [{'Date': '2026-01-05', 'Amount': '1'}] * 1000
        result = parse_bank_rows(rows)
        assert len(result.rows) == 1000


class TestNormalizedTransactions:
    """Test suite for pre-normalized ledger records."""

    def test_normalize_book_transaction(self):
        tx = normalize_book_transaction(
            {'date': '2026-01-10', 'account': 'Bank', 'amount': -100, 'type': 'credit', 'reference': 'ref 1'},
            0,
        )
        assert tx.amount == 100.0
        assert tx.type == 'credit'
        assert tx.reference == 'REF1'
        assert tx.original_row == 2

    def test_non_credit_type_is_debit(self):
        tx = normalize_book_transaction({'Date': '2026-01-10', 'Account': 'Bank', 'Amount': '75'}, 3)
        assert tx.type == 'debit'
        assert tx.original_row == 5

    def test_incomplete_records(self):
        assert normalize_book_transaction({'date': '2026-01-10', 'amount': 10}, 0) is None
        assert normalize_book_transaction({'date': '', 'account': 'Bank', 'amount': 10}, 0) is None
        assert normalize_book_transaction({'date': '2026-01-10', 'account': 'Bank', 'amount': 0}, 0) is None


class TestFileImport:
    """Test suite for reading CSV and Excel exports."""

    def test_import_csv(self, tmp_path, sample_bank_rows):
        file_path = tmp_path / 'statement.csv'
        pd.DataFrame(sample_bank_rows).to_csv(file_path, index=False)

        df = import_csv(file_path)
        assert list(df.columns) == ['Date', 'Description', 'Reference', 'Amount', 'Balance']
        assert len(df) == 7
        assert df['Amount'].iloc[1] == '500.00'

    def test_import_xlsx(self, tmp_path, sample_book_rows):
        file_path = tmp_path / 'ledger.xlsx'
        pd.DataFrame(sample_book_rows).to_excel(file_path, index=False, engine='openpyxl')

        df = import_csv(file_path)
        assert len(df) == 8
        assert 'Account' in df.columns

    def test_csv_rows_parse_like_records(self, tmp_path, sample_bank_rows):
        file_path = tmp_path / 'statement.csv'
        pd.DataFrame(sample_bank_rows).to_csv(file_path, index=False)

        from_file = parse_bank_rows(import_csv(file_path))
        from_records = parse_bank_rows(sample_bank_rows)
        assert from_file.rows == from_records.rows

    def test_import_errors(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            import_csv(tmp_path / 'missing.csv')

        with pytest.raises(ValueError):
            import_csv(tmp_path)

        text_file = tmp_path / 'notes.txt'
        text_file.write_text('Date,Amount\n2026-01-05,1\n')
        with pytest.raises(ValueError):
            import_csv(text_file)

        empty_file = tmp_path / 'empty.csv'
        empty_file.write_text('')
        with pytest.raises(ValueError):
            import_csv(empty_file)
