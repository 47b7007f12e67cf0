"""
Segment Query Layer
===================

Read-only views over the current segmentation snapshot. Each query takes
the snapshot reference once, so it sees a single consistent load even if a
reload publishes a new snapshot meanwhile. Results are copies.

Usage:
    from rfm_segmentation.serving import SegmentQueryService

    queries = SegmentQueryService(store)
    champions = queries.filter_by_segment("Champions")
    kpis = queries.summary_stats(champions)
"""

from typing import Any, Dict, List

import numpy as np
import pandas as pd

from rfm_segmentation.common import normalize_customer_id
from rfm_segmentation.customer_segmentation import ALL_SEGMENTS, SegmentAnalyzer
from rfm_segmentation.exceptions import NotFoundError

HISTORY_COLUMNS = [
    'invoice_id', 'invoice_date', 'description', 'quantity', 'unit_price', 'revenue'
]


class SegmentQueryService:
    """
    Query layer over a SnapshotStore.

    Nothing here triggers aggregation or clustering; every method is a
    filter or reduction over already materialized tables.

    Example:
        >>> queries = SegmentQueryService(store)
        >>> queries.list_segments()
        ['All', 'At Risk', 'Loyal / Potential', 'Champions']
    """

    def __init__(self, store):
        """
        Initialize SegmentQueryService.

        Args:
            store: SnapshotStore (anything with a current() method)
        """
        self.store = store
        self.analyzer = SegmentAnalyzer()

    def list_segments(self) -> List[str]:
        """Segment labels present in the snapshot, by cluster_id, after "All"."""
        segments = self.store.current().segments
        labels = (
            segments.sort_values('cluster_id', kind='mergesort')['segment_label']
            .drop_duplicates()
            .tolist()
        )
        return [ALL_SEGMENTS] + labels

    def filter_by_segment(self, label: str = ALL_SEGMENTS) -> pd.DataFrame:
        """
        CustomerSegment rows for one segment label.

        "All" returns the whole table; an unknown label returns no rows.
        """
        segments = self.store.current().segments
        if label == ALL_SEGMENTS:
            return segments.copy()
        return segments[segments['segment_label'] == label].reset_index(drop=True)

    def summary_stats(self, subset: pd.DataFrame) -> Dict[str, Any]:
        """
        KPI reductions over a CustomerSegment subset.

        Returns:
            Dictionary with count, total_monetary, avg_monetary and
            avg_frequency (all zero for an empty subset)
        """
        if subset.empty:
            return {
                'count': 0,
                'total_monetary': 0.0,
                'avg_monetary': 0.0,
                'avg_frequency': 0.0
            }

        return {
            'count': int(len(subset)),
            'total_monetary': float(subset['monetary'].sum()),
            'avg_monetary': float(subset['monetary'].mean()),
            'avg_frequency': float(subset['frequency'].mean())
        }

    def segment_overview(self, subset: pd.DataFrame) -> Dict[str, Any]:
        """Customer count and mean recency, frequency and monetary of a subset."""
        if subset.empty:
            return {
                'count': 0,
                'avg_recency': 0.0,
                'avg_frequency': 0.0,
                'avg_monetary': 0.0
            }

        return {
            'count': int(len(subset)),
            'avg_recency': float(subset['recency'].mean()),
            'avg_frequency': float(subset['frequency'].mean()),
            'avg_monetary': float(subset['monetary'].mean())
        }

    def segment_breakdown(self) -> pd.DataFrame:
        """Per-segment counts, revenue share and mean RFM values."""
        return self.analyzer.calculate_segment_value(self.store.current().segments)

    def rfm_distribution(self, subset: pd.DataFrame) -> pd.DataFrame:
        """Long (customer_id, segment_label, metric, value) rows of a subset."""
        return self.analyzer.to_long_format(subset)

    def list_customer_ids(self) -> List[str]:
        """All customer ids in the snapshot, sorted."""
        return sorted(self.store.current().segments['customer_id'].tolist())

    def customer_profile(self, customer_id: Any) -> Dict[str, Any]:
        """
        The CustomerSegment row of one customer.

        Raises:
            NotFoundError: If the customer is not in the snapshot
        """
        segments = self.store.current().segments
        key = normalize_customer_id(customer_id)

        row = segments[segments['customer_id'] == key]
        if row.empty:
            raise NotFoundError(customer_id)

        record = row.iloc[0]
        return {
            'customer_id': str(record['customer_id']),
            'recency': int(record['recency']),
            'frequency': int(record['frequency']),
            'monetary': float(record['monetary']),
            'cluster_id': int(record['cluster_id']),
            'segment_label': str(record['segment_label'])
        }

    def customer_history(self, customer_id: Any) -> pd.DataFrame:
        """
        A customer's transactions, oldest first.

        Returns an empty frame for customers without transactions.
        """
        snapshot = self.store.current()
        positions = snapshot.transaction_index.get(
            normalize_customer_id(customer_id), np.array([], dtype=int)
        )

        history = snapshot.transactions.iloc[positions][HISTORY_COLUMNS]
        history = history.sort_values('invoice_date', kind='mergesort')
        return history.reset_index(drop=True)

    def customer_daily_revenue(self, customer_id: Any) -> pd.DataFrame:
        """
        Summed revenue per calendar day with at least one transaction.

        Returns:
            DataFrame with date and daily_revenue columns, date ascending
        """
        history = self.customer_history(customer_id)
        if history.empty:
            return pd.DataFrame({
                'date': pd.Series(dtype='datetime64[ns]'),
                'daily_revenue': pd.Series(dtype=float)
            })

        daily = (
            history.groupby(history['invoice_date'].dt.normalize())['revenue']
            .sum()
            .sort_index()
        )
        return pd.DataFrame({
            'date': daily.index,
            'daily_revenue': daily.to_numpy(dtype=float)
        })
