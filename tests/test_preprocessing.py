"""Tests for transaction loading and preprocessing."""

import pandas as pd
import pytest

from rfm_segmentation.common import (
    TransactionLoader,
    TransactionPreprocessor,
    normalize_customer_id,
)
from rfm_segmentation.exceptions import MalformedRecordError


def _raw(rows):
    columns = ['customer_id', 'invoice_id', 'invoice_date', 'description', 'quantity', 'unit_price']
    return pd.DataFrame(rows, columns=columns)


class TestColumnStandardization:
    """Test column name handling."""

    def test_online_retail_aliases_are_mapped(self):
        """Original Online Retail headers should map onto the schema."""
        raw = pd.DataFrame({
            'Invoice': ['536365'],
            'StockCode': ['85123A'],
            'Description': ['WHITE HANGING HEART T-LIGHT HOLDER'],
            'Quantity': ['6'],
            'InvoiceDate': ['2010-12-01 08:26'],
            'Price': ['2.55'],
            'Customer ID': ['17850.0'],
        })
        transactions, report = TransactionPreprocessor().prepare(raw)

        assert report.rows_kept == 1
        assert transactions.loc[0, 'customer_id'] == '17850'
        assert transactions.loc[0, 'invoice_id'] == '536365'
        assert transactions.loc[0, 'revenue'] == pytest.approx(15.30)

    def test_missing_column_raises(self):
        """A missing required column is a schema error in any mode."""
        raw = pd.DataFrame({'customer_id': ['1'], 'invoice_date': ['2011-01-01']})
        with pytest.raises(MalformedRecordError, match="Missing required columns"):
            TransactionPreprocessor(strictness='skip').prepare(raw)


class TestMalformedRows:
    """Test the configurable malformed row policy."""

    @pytest.fixture
    def raw_with_bad_rows(self):
        return _raw([
            ['1', 'I1', '2011-01-01', 'ok', '2', '3.0'],
            ['1', 'I2', 'not a date', 'bad date', '1', '1.0'],
            ['2', 'I3', '2011-01-02', 'bad qty', 'two', '1.0'],
            ['2', 'I4', '2011-01-03', 'bad price', '1', 'free'],
            ['2', 'I5', '2011-01-04', 'ok', '1', '5.0'],
        ])

    def test_skip_mode_drops_and_counts(self, raw_with_bad_rows):
        """Skip mode should drop malformed rows and count them."""
        transactions, report = TransactionPreprocessor(strictness='skip').prepare(raw_with_bad_rows)

        assert report.rows_read == 5
        assert report.malformed_skipped == 3
        assert report.rows_kept == 2
        assert sorted(transactions['invoice_id']) == ['I1', 'I5']

    def test_strict_mode_fails_the_load(self, raw_with_bad_rows):
        """Strict mode should raise with the offending rows."""
        with pytest.raises(MalformedRecordError) as exc_info:
            TransactionPreprocessor(strictness='strict').prepare(raw_with_bad_rows)

        assert exc_info.value.count == 3
        assert exc_info.value.rows == [1, 2, 3]

    def test_missing_invoice_date_is_malformed(self):
        """Rows without a date cannot have a recency."""
        raw = _raw([['1', 'I1', None, 'x', '1', '1.0']])
        _, report = TransactionPreprocessor().prepare(raw)
        assert report.malformed_skipped == 1
        assert report.rows_kept == 0

    def test_fractional_quantity_is_malformed(self):
        """Quantities must be whole numbers."""
        raw = _raw([['1', 'I1', '2011-01-01', 'x', '1.5', '1.0']])
        with pytest.raises(MalformedRecordError):
            TransactionPreprocessor(strictness='strict').prepare(raw)

    def test_unknown_strictness_raises(self):
        with pytest.raises(ValueError, match="Unknown strictness"):
            TransactionPreprocessor(strictness='lenient')


class TestDateParsing:
    """Test invoice date parsing across timezone offsets."""

    @pytest.mark.parametrize("strictness", ['skip', 'strict'])
    def test_aware_and_naive_dates_share_one_clock(self, strictness):
        raw = _raw([
            ['1', 'I1', '2011-01-01 10:00+01:00', 'x', '1', '1.0'],
            ['1', 'I2', '2011-01-02 10:00', 'x', '1', '1.0'],
            ['2', 'I3', '2011-01-03 10:00', 'x', '1', '1.0'],
        ])
        transactions, report = TransactionPreprocessor(strictness=strictness).prepare(raw)

        assert report.malformed_skipped == 0
        assert transactions['invoice_date'].tolist() == [
            pd.Timestamp('2011-01-01 09:00'),
            pd.Timestamp('2011-01-02 10:00'),
            pd.Timestamp('2011-01-03 10:00'),
        ]

    @pytest.mark.parametrize("strictness", ['skip', 'strict'])
    def test_different_offsets_are_converted_to_utc(self, strictness):
        raw = _raw([
            ['1', 'I1', '2011-01-01 10:00+01:00', 'x', '1', '1.0'],
            ['1', 'I2', '2011-01-01 10:00-05:00', 'x', '1', '1.0'],
            ['2', 'I3', '2011-01-01 10:00+09:00', 'x', '1', '1.0'],
        ])
        transactions, _ = TransactionPreprocessor(strictness=strictness).prepare(raw)

        assert transactions['invoice_date'].tolist() == [
            pd.Timestamp('2011-01-01 09:00'),
            pd.Timestamp('2011-01-01 15:00'),
            pd.Timestamp('2011-01-01 01:00'),
        ]

    def test_unparseable_date_still_follows_policy(self):
        raw = _raw([
            ['1', 'I1', '2011-01-01 10:00+01:00', 'x', '1', '1.0'],
            ['1', 'I2', 'not a date', 'x', '1', '1.0'],
        ])
        _, report = TransactionPreprocessor(strictness='skip').prepare(raw)
        assert report.malformed_skipped == 1

        with pytest.raises(MalformedRecordError):
            TransactionPreprocessor(strictness='strict').prepare(raw)

    def test_aware_datetime_column(self):
        raw = _raw([['1', 'I1', None, 'x', '1', '1.0']])
        raw['invoice_date'] = pd.to_datetime(['2011-06-01 12:00']).tz_localize('Europe/London')

        transactions, _ = TransactionPreprocessor().prepare(raw)
        assert transactions.loc[0, 'invoice_date'] == pd.Timestamp('2011-06-01 11:00')


class TestAttributionAndRevenue:
    """Test customer attribution and revenue policy."""

    def test_missing_customer_id_excluded(self):
        """Rows without a customer cannot be attributed."""
        raw = _raw([
            ['1', 'I1', '2011-01-01', 'x', '1', '1.0'],
            [None, 'I2', '2011-01-01', 'x', '1', '1.0'],
            ['  ', 'I3', '2011-01-01', 'x', '1', '1.0'],
        ])
        transactions, report = TransactionPreprocessor().prepare(raw)

        assert report.missing_customer_id == 2
        assert list(transactions['customer_id']) == ['1']

    def test_missing_price_zero_fills_revenue(self):
        """Missing revenue counts as zero rather than dropping the row."""
        raw = _raw([
            ['1', 'I1', '2011-01-01', 'x', '3', None],
            ['1', 'I2', '2011-01-02', 'x', None, '2.0'],
        ])
        transactions, report = TransactionPreprocessor().prepare(raw)

        assert report.rows_kept == 2
        assert report.revenue_zero_filled == 2
        assert transactions['revenue'].tolist() == [0.0, 0.0]

    def test_returns_are_kept_with_negative_revenue(self):
        """Negative quantities are returns and reduce revenue."""
        raw = _raw([
            ['1', 'I1', '2011-01-01', 'x', '4', '2.5'],
            ['1', 'C1', '2011-01-02', 'x', '-2', '2.5'],
        ])
        transactions, _ = TransactionPreprocessor().prepare(raw)

        assert transactions['revenue'].tolist() == [10.0, -5.0]
        assert transactions['revenue'].sum() == pytest.approx(5.0)


class TestCustomerIdNormalization:

    @pytest.mark.parametrize("value", [12346, "12346", " 12346 ", "12346.0", 12346.0])
    def test_equivalent_ids(self, value):
        assert normalize_customer_id(value) == "12346"

    def test_missing_id(self):
        assert normalize_customer_id(None) == ""


class TestTransactionLoader:
    """Test file loading."""

    def test_csv_columns_are_read_as_text(self, tmp_path, three_customer_raw):
        path = tmp_path / "transactions.csv"
        three_customer_raw.to_csv(path, index=False)

        raw = TransactionLoader().load(path)

        assert len(raw) == len(three_customer_raw)
        assert raw['quantity'].map(type).eq(str).all()

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            TransactionLoader().load(tmp_path / "missing.csv")

    def test_unsupported_format_raises(self, tmp_path):
        path = tmp_path / "transactions.txt"
        path.write_text("customer_id\n1\n")
        with pytest.raises(ValueError, match="Unsupported format"):
            TransactionLoader().load(path)
