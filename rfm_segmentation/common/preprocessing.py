"""
Transaction Preprocessing Module
================================

Turns a raw transaction frame into validated TransactionRecords:
column standardization, type parsing, malformed-row policy, customer
attribution and revenue calculation.

Usage:
    from rfm_segmentation.common import TransactionPreprocessor

    preprocessor = TransactionPreprocessor(strictness='skip')
    transactions, report = preprocessor.prepare(raw_df)
"""

import pandas as pd
from dataclasses import dataclass, asdict
from typing import Dict, Any, Tuple
from loguru import logger

from rfm_segmentation.config import STRICTNESS_LEVELS
from rfm_segmentation.exceptions import MalformedRecordError

TRANSACTION_COLUMNS = [
    'customer_id', 'invoice_id', 'invoice_date',
    'description', 'quantity', 'unit_price'
]

# Standardized source names mapped onto the canonical schema
COLUMN_ALIASES = {
    'invoice': 'invoice_id',
    'invoiceno': 'invoice_id',
    'invoice_no': 'invoice_id',
    'invoicedate': 'invoice_date',
    'price': 'unit_price',
    'unitprice': 'unit_price',
    'customerid': 'customer_id',
}

MAX_REPORTED_ROWS = 10


def normalize_customer_ids(ids: pd.Series) -> pd.Series:
    """
    Normalize customer ids to stripped strings.

    Float-looking ids written by spreadsheet exports ("12346.0") lose the
    trailing zero fraction; blank ids become missing.
    """
    normalized = ids.astype('string').str.strip()
    normalized = normalized.str.replace(r'\.0+$', '', regex=True)
    return normalized.replace('', pd.NA)


def normalize_customer_id(customer_id: Any) -> str:
    """Normalize a single customer id the same way as ingest does."""
    value = normalize_customer_ids(pd.Series([customer_id], dtype=object)).iloc[0]
    return '' if pd.isna(value) else str(value)


@dataclass(frozen=True)
class LoadReport:
    """Row accounting for one load of the transaction store."""

    rows_read: int
    rows_kept: int
    missing_customer_id: int
    malformed_skipped: int
    revenue_zero_filled: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class TransactionPreprocessor:
    """
    Validates and cleans raw transaction rows.

    Policy:
    - Unparseable dates or numbers (and missing dates) are malformed. In
      'skip' mode they are dropped and counted; in 'strict' mode the whole
      load fails with MalformedRecordError.
    - Rows without a customer_id are excluded, they cannot be attributed.
    - Missing quantity or unit_price gives zero revenue.
    - Negative quantities (returns) are kept and reduce revenue.

    Example:
        >>> preprocessor = TransactionPreprocessor(strictness='strict')
        >>> transactions, report = preprocessor.prepare(raw)
        >>> print(report.rows_kept)
    """

    def __init__(self, strictness: str = 'skip'):
        """
        Initialize TransactionPreprocessor.

        Args:
            strictness: Malformed row policy ('skip' or 'strict')
        """
        if strictness not in STRICTNESS_LEVELS:
            raise ValueError(
                f"Unknown strictness: {strictness}. Expected one of {STRICTNESS_LEVELS}"
            )
        self.strictness = strictness
        logger.info(f"TransactionPreprocessor initialized (strictness={strictness})")

    def standardize_columns(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Standardize column names and map known aliases onto the schema.

        Raises:
            MalformedRecordError: If required columns are missing
        """
        df = df.copy()
        df.columns = (
            df.columns.astype(str)
            .str.strip()
            .str.lower()
            .str.replace(' ', '_')
            .str.replace('[^a-z0-9_]', '', regex=True)
        )

        renames = {
            source: target for source, target in COLUMN_ALIASES.items()
            if source in df.columns and target not in df.columns
        }
        df = df.rename(columns=renames)

        missing = [c for c in TRANSACTION_COLUMNS if c not in df.columns]
        if missing:
            raise MalformedRecordError(f"Missing required columns: {missing}")

        return df[TRANSACTION_COLUMNS]

    def prepare(self, df: pd.DataFrame) -> Tuple[pd.DataFrame, LoadReport]:
        """
        Parse, validate and clean raw transactions.

        Args:
            df: Raw transaction DataFrame

        Returns:
            Tuple of (transactions with a revenue column, load report)

        Raises:
            MalformedRecordError: On schema errors, or on unparseable rows
                in strict mode
        """
        rows_read = len(df)
        df = self.standardize_columns(df)

        invoice_date = self._parse_dates(df['invoice_date'])
        quantity = pd.to_numeric(df['quantity'], errors='coerce')
        unit_price = pd.to_numeric(df['unit_price'], errors='coerce')

        malformed = (
            invoice_date.isna()
            | (df['quantity'].notna() & quantity.isna())
            | (df['unit_price'].notna() & unit_price.isna())
            | (quantity.notna() & (quantity % 1 != 0))
        )
        n_malformed = int(malformed.sum())

        if n_malformed and self.strictness == 'strict':
            rows = df.index[malformed.to_numpy()][:MAX_REPORTED_ROWS].tolist()
            raise MalformedRecordError(
                f"{n_malformed} malformed transaction rows (first rows: {rows})",
                count=n_malformed,
                rows=rows
            )
        if n_malformed:
            logger.warning(f"Skipped {n_malformed} malformed transaction rows")

        transactions = pd.DataFrame({
            'customer_id': normalize_customer_ids(df['customer_id']),
            'invoice_id': df['invoice_id'].astype('string').str.strip(),
            'invoice_date': invoice_date,
            'description': df['description'].astype('string'),
            'quantity': quantity.astype(float),
            'unit_price': unit_price.astype(float),
        })[~malformed]

        missing_customer = transactions['customer_id'].isna()
        n_missing_customer = int(missing_customer.sum())
        if n_missing_customer:
            logger.info(f"Excluded {n_missing_customer} rows without customer_id")
        transactions = transactions[~missing_customer].reset_index(drop=True)

        revenue = transactions['quantity'] * transactions['unit_price']
        n_zero_filled = int(revenue.isna().sum())
        transactions['revenue'] = revenue.fillna(0.0)
        # Only integral quantities survive the malformed filter
        transactions['quantity'] = transactions['quantity'].astype('Int64')

        report = LoadReport(
            rows_read=rows_read,
            rows_kept=len(transactions),
            missing_customer_id=n_missing_customer,
            malformed_skipped=n_malformed,
            revenue_zero_filled=n_zero_filled
        )
        logger.info(f"Prepared {report.rows_kept} of {rows_read} transaction rows")
        return transactions, report

    def _parse_dates(self, dates: pd.Series) -> pd.Series:
        """
        Parse invoice dates, leaving unparseable values as NaT.

        Offset-aware values are converted to naive UTC, so a column mixing
        offsets (or aware and naive values) lands on one clock. Naive values
        are taken as already being on that clock.
        """
        if pd.api.types.is_datetime64_any_dtype(dates):
            parsed = dates
            if parsed.dt.tz is not None:
                parsed = parsed.dt.tz_convert(None)
        else:
            parsed = pd.to_datetime(dates, errors='coerce', format='mixed', utc=True)
            parsed = parsed.dt.tz_convert(None)

        return parsed.astype('datetime64[ns]')
