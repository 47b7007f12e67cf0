"""
RFM Feature Engineering Module
==============================

Reduces line-item transactions to one Recency, Frequency, Monetary
feature vector per customer.

Usage:
    from rfm_segmentation.customer_segmentation import RFMAggregator

    aggregator = RFMAggregator()
    rfm_df, reference_date = aggregator.calculate_rfm(transactions_df)
"""

import pandas as pd
from typing import Optional, Tuple
from loguru import logger

from rfm_segmentation.exceptions import EmptyDatasetError

RFM_COLUMNS = ['recency', 'frequency', 'monetary']


class RFMAggregator:
    """
    Per-customer RFM aggregation.

    Recency is the whole number of days between the reference date and the
    customer's last invoice, Frequency the number of transaction records and
    Monetary the summed revenue.

    Example:
        >>> aggregator = RFMAggregator()
        >>> rfm, ref_date = aggregator.calculate_rfm(transactions)
    """

    def __init__(
        self,
        customer_id: str = 'customer_id',
        date_column: str = 'invoice_date',
        amount_column: str = 'revenue'
    ):
        """
        Initialize RFM Aggregator.

        Args:
            customer_id: Column name for customer ID
            date_column: Column name for transaction date
            amount_column: Column name for transaction revenue
        """
        self.customer_id = customer_id
        self.date_column = date_column
        self.amount_column = amount_column

        logger.info("RFMAggregator initialized")

    def valid_transactions(self, df: pd.DataFrame) -> pd.DataFrame:
        """Return the attributable transactions (customer_id present)."""
        return df[df[self.customer_id].notna()]

    def compute_reference_date(self, df: pd.DataFrame) -> pd.Timestamp:
        """
        Reference date for recency: last invoice date plus one day.

        Raises:
            EmptyDatasetError: If there are no valid transactions
        """
        valid = self.valid_transactions(df)
        if valid.empty:
            raise EmptyDatasetError("No valid transactions to aggregate")

        return pd.Timestamp(valid[self.date_column].max()) + pd.Timedelta(days=1)

    def calculate_rfm(
        self,
        df: pd.DataFrame,
        reference_date: Optional[pd.Timestamp] = None
    ) -> Tuple[pd.DataFrame, pd.Timestamp]:
        """
        Calculate RFM metrics for each customer.

        Args:
            df: Transaction DataFrame
            reference_date: Reference date for recency (default: max date + 1 day)

        Returns:
            Tuple of (DataFrame with one RFM row per customer sorted by
            customer id, the reference date used)

        Raises:
            EmptyDatasetError: If there are no valid transactions

        Example:
            >>> rfm, ref_date = aggregator.calculate_rfm(transactions)
        """
        valid = self.valid_transactions(df)
        if valid.empty:
            raise EmptyDatasetError("No valid transactions to aggregate")

        if reference_date is None:
            reference_date = self.compute_reference_date(valid)
        reference_date = pd.Timestamp(reference_date)

        # Missing revenue contributes nothing rather than dropping the row
        revenue = pd.to_numeric(valid[self.amount_column], errors='coerce').fillna(0.0)

        grouped = valid.assign(_revenue=revenue).groupby(self.customer_id, sort=True)
        rfm = pd.DataFrame({
            'recency': (reference_date - grouped[self.date_column].max()).dt.days,
            'frequency': grouped.size(),
            'monetary': grouped['_revenue'].sum()
        })

        rfm.index.name = 'customer_id'
        rfm = rfm.reset_index()
        rfm['customer_id'] = rfm['customer_id'].astype(str)
        rfm['recency'] = rfm['recency'].astype(int)
        rfm['frequency'] = rfm['frequency'].astype(int)
        rfm['monetary'] = rfm['monetary'].astype(float)

        logger.info(f"Calculated RFM for {len(rfm)} customers (reference date {reference_date.date()})")
        return rfm, reference_date
