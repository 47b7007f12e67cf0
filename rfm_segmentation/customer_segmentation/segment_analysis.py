"""
Segment Analysis Module
=======================

Read-only analysis of a CustomerSegment table: segment sizes, value
breakdown, RFM distributions and tests of whether segments differ.

Usage:
    from rfm_segmentation.customer_segmentation import SegmentAnalyzer

    analyzer = SegmentAnalyzer()
    breakdown = analyzer.calculate_segment_value(segments)
    insights = analyzer.analyze_segments(segments)
"""

import pandas as pd
import numpy as np
from typing import Optional, List, Dict, Any
from scipy import stats
from loguru import logger

from .rfm_features import RFM_COLUMNS


class SegmentAnalyzer:
    """
    Analysis toolkit for customer segments.

    Example:
        >>> analyzer = SegmentAnalyzer()
        >>> insights = analyzer.analyze_segments(segments)
        >>> print(insights['summary'])
    """

    def __init__(self, segment_column: str = 'segment_label'):
        """
        Initialize SegmentAnalyzer.

        Args:
            segment_column: Column containing segment labels
        """
        self.segment_column = segment_column

    def analyze_segments(
        self,
        df: pd.DataFrame,
        value_columns: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        """
        Perform segment analysis.

        Args:
            df: CustomerSegment table
            value_columns: Columns to analyze (default: RFM columns)

        Returns:
            Dictionary with segment sizes, statistics, tests and a text summary
        """
        value_columns = list(value_columns or RFM_COLUMNS)

        return {
            'segment_sizes': self._analyze_segment_sizes(df),
            'segment_statistics': self._calculate_segment_statistics(df, value_columns),
            'statistical_tests': self._perform_statistical_tests(df, value_columns),
            'summary': self._generate_summary(df, value_columns)
        }

    def _analyze_segment_sizes(self, df: pd.DataFrame) -> pd.DataFrame:
        """Analyze segment size distribution."""
        sizes = df[self.segment_column].value_counts().reset_index()
        sizes.columns = ['segment', 'count']
        sizes['percentage'] = sizes['count'] / max(len(df), 1) * 100
        sizes['cumulative_pct'] = sizes['percentage'].cumsum()

        return sizes

    def _calculate_segment_statistics(
        self,
        df: pd.DataFrame,
        value_columns: List[str]
    ) -> pd.DataFrame:
        """Calculate descriptive statistics for each segment and feature."""
        stats_list = []

        for segment in df[self.segment_column].unique():
            segment_data = df[df[self.segment_column] == segment]

            for col in value_columns:
                values = segment_data[col].dropna()

                stats_list.append({
                    'segment': segment,
                    'feature': col,
                    'count': len(values),
                    'mean': values.mean(),
                    'median': values.median(),
                    'std': values.std(ddof=0),
                    'min': values.min(),
                    'max': values.max(),
                    'q25': values.quantile(0.25),
                    'q75': values.quantile(0.75)
                })

        return pd.DataFrame(stats_list)

    def _perform_statistical_tests(
        self,
        df: pd.DataFrame,
        value_columns: List[str]
    ) -> Dict[str, Any]:
        """Kruskal-Wallis test of each feature across segments."""
        test_results = {}

        for col in value_columns:
            groups = [
                df[df[self.segment_column] == seg][col].dropna().values
                for seg in df[self.segment_column].unique()
            ]
            groups = [g for g in groups if len(g) > 0]

            if len(groups) < 2:
                continue

            try:
                h_stat, h_pvalue = stats.kruskal(*groups)
            except ValueError as e:
                # kruskal rejects inputs where every value is identical
                logger.warning(f"Statistical test failed for {col}: {e}")
                continue

            test_results[col] = {
                'kruskal_h_statistic': float(h_stat),
                'kruskal_p_value': float(h_pvalue),
                'significant': bool(h_pvalue < 0.05)
            }

        return test_results

    def _generate_summary(
        self,
        df: pd.DataFrame,
        value_columns: List[str]
    ) -> str:
        """Generate text summary of segment analysis."""
        n_segments = df[self.segment_column].nunique()
        n_customers = len(df)

        summary_parts = [
            "Segment Analysis Summary",
            "=" * 40,
            f"Total customers: {n_customers:,}",
            f"Number of segments: {n_segments}",
            ""
        ]

        sizes = df[self.segment_column].value_counts()
        summary_parts.append("Segment Distribution:")
        for seg, count in sizes.items():
            pct = count / n_customers * 100
            summary_parts.append(f"  {seg}: {count:,} ({pct:.1f}%)")

        if n_customers:
            summary_parts.append("")
            summary_parts.append("Key Segment Differentiators:")
            for col in value_columns:
                segment_means = df.groupby(self.segment_column)[col].mean()
                summary_parts.append(
                    f"  {col}: Highest in {segment_means.idxmax()}, "
                    f"Lowest in {segment_means.idxmin()}"
                )

        return "\n".join(summary_parts)

    def calculate_segment_value(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Per-segment customer count, revenue share and mean RFM values.

        Args:
            df: CustomerSegment table

        Returns:
            DataFrame with one row per segment, ordered by cluster_id when
            available
        """
        columns = [
            'segment_label', 'cluster_id', 'customer_count', 'customer_share',
            'total_revenue', 'revenue_share', 'avg_recency', 'avg_frequency',
            'avg_monetary'
        ]
        if df.empty:
            return pd.DataFrame(columns=columns)

        value_metrics = df.groupby(self.segment_column).agg(
            cluster_id=('cluster_id', 'first'),
            customer_count=('customer_id', 'count'),
            total_revenue=('monetary', 'sum'),
            avg_recency=('recency', 'mean'),
            avg_frequency=('frequency', 'mean'),
            avg_monetary=('monetary', 'mean')
        )

        value_metrics['customer_share'] = value_metrics['customer_count'] / len(df) * 100

        total_revenue = value_metrics['total_revenue'].sum()
        if total_revenue != 0:
            value_metrics['revenue_share'] = value_metrics['total_revenue'] / total_revenue * 100
        else:
            value_metrics['revenue_share'] = 0.0

        value_metrics = value_metrics.reset_index().sort_values('cluster_id')
        return value_metrics[columns].reset_index(drop=True)

    def to_long_format(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Reshape RFM columns into (customer_id, segment_label, metric, value)
        rows, as needed for per-segment distribution plots.
        """
        long = df.melt(
            id_vars=['customer_id', self.segment_column],
            value_vars=list(RFM_COLUMNS),
            var_name='metric',
            value_name='value'
        )
        long['value'] = long['value'].astype(np.float64)
        return long
