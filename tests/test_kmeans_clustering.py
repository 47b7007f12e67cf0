"""Tests for K-Means segmentation and label assignment."""

import numpy as np
import pandas as pd
import pytest

from rfm_segmentation.common import TransactionPreprocessor
from rfm_segmentation.customer_segmentation import (
    RFMAggregator,
    FeatureNormalizer,
    KMeansSegmenter,
    SEGMENT_COLUMNS,
)
from rfm_segmentation.exceptions import InsufficientDataError


def _features(raw):
    transactions, _ = TransactionPreprocessor().prepare(raw)
    rfm, _ = RFMAggregator().calculate_rfm(transactions)
    return rfm, FeatureNormalizer().transform(rfm)


@pytest.fixture
def sample_features(sample_raw):
    return _features(sample_raw)


class TestSegmenterConfiguration:

    def test_invalid_cluster_count(self):
        with pytest.raises(ValueError, match="n_clusters must be positive"):
            KMeansSegmenter(n_clusters=0)

    def test_duplicate_labels_rejected(self):
        with pytest.raises(ValueError, match="unique"):
            KMeansSegmenter(segment_labels=['Low', 'Low', 'High'])

    def test_reserved_all_label_rejected(self):
        with pytest.raises(ValueError, match="reserved"):
            KMeansSegmenter(segment_labels=['All', 'Mid', 'High'])


class TestSegmentation:
    """Test fitting and the CustomerSegment table."""

    def test_three_separated_customers(self, three_customer_raw):
        """Three distinct customers get three distinct clusters and labels."""
        rfm, scaled = _features(three_customer_raw)
        segments = KMeansSegmenter(n_clusters=3, random_state=123).segment(rfm, scaled)

        assert segments['cluster_id'].nunique() == 3
        assert segments['segment_label'].nunique() == 3

        labels = segments.set_index('customer_id')['segment_label']
        assert labels['A'] == 'Champions'
        assert labels['B'] == 'Loyal / Potential'
        assert labels['C'] == 'At Risk'

    def test_segment_table_shape(self, sample_features):
        rfm, scaled = sample_features
        segments = KMeansSegmenter().segment(rfm, scaled)

        assert list(segments.columns) == SEGMENT_COLUMNS
        assert len(segments) == len(rfm)
        assert segments['customer_id'].is_unique
        assert set(segments['customer_id']) == set(rfm['customer_id'])
        assert segments['segment_label'].notna().all()
        assert set(segments['cluster_id']) <= {1, 2, 3}

    def test_same_seed_same_assignments(self, sample_features):
        rfm, scaled = sample_features
        first = KMeansSegmenter(random_state=11).segment(rfm, scaled)
        second = KMeansSegmenter(random_state=11).segment(rfm, scaled)

        pd.testing.assert_frame_equal(first, second)
        assert np.array_equal(
            KMeansSegmenter(random_state=11).fit(scaled, rfm).raw_labels_,
            KMeansSegmenter(random_state=11).fit(scaled, rfm).raw_labels_
        )

    def test_cluster_ids_ranked_by_mean_monetary(self, sample_features):
        rfm, scaled = sample_features
        segmenter = KMeansSegmenter()
        segmenter.segment(rfm, scaled)

        summary = segmenter.get_cluster_summary()
        assert summary['cluster_id'].tolist() == [1, 2, 3]
        assert summary['avg_monetary'].is_monotonic_increasing
        assert summary['segment_label'].tolist() == ['At Risk', 'Loyal / Potential', 'Champions']
        assert summary['size'].sum() == len(rfm)
        assert summary['percentage'].sum() == pytest.approx(100.0)

    def test_monetary_tie_ranks_less_recent_cluster_lower(self):
        """Equal monetary and frequency: the older cluster ranks first."""
        rfm = pd.DataFrame({
            'customer_id': ['recent', 'lapsed', 'big'],
            'recency': [5, 50, 10],
            'frequency': [2, 2, 9],
            'monetary': [100.0, 100.0, 900.0],
        })
        scaled = FeatureNormalizer().transform(rfm)

        segments = KMeansSegmenter().segment(rfm, scaled).set_index('customer_id')

        assert segments.loc['lapsed', 'cluster_id'] == 1
        assert segments.loc['recent', 'cluster_id'] == 2
        assert segments.loc['big', 'cluster_id'] == 3
        assert segments.loc['lapsed', 'segment_label'] == 'At Risk'

    def test_extra_clusters_get_generic_labels(self, sample_features):
        rfm, scaled = sample_features
        segments = KMeansSegmenter(n_clusters=4).segment(rfm, scaled)

        highest = segments[segments['cluster_id'] == 4]['segment_label'].unique()
        assert list(highest) == ['Segment 4']

    def test_custom_labels(self, sample_features):
        rfm, scaled = sample_features
        segments = KMeansSegmenter(n_clusters=2, segment_labels=['Low', 'High']).segment(rfm, scaled)
        assert set(segments['segment_label']) == {'Low', 'High'}

    def test_fewer_customers_than_clusters(self, three_customer_raw):
        rfm, scaled = _features(three_customer_raw)
        with pytest.raises(InsufficientDataError) as exc_info:
            KMeansSegmenter(n_clusters=4).fit(scaled, rfm)
        assert exc_info.value.n_customers == 3
        assert exc_info.value.n_clusters == 4


class TestClusterDiagnostics:

    def test_metrics_defined_for_regular_data(self, sample_features):
        rfm, scaled = sample_features
        segmenter = KMeansSegmenter().fit(scaled, rfm)
        metrics = segmenter.get_cluster_metrics()

        assert metrics['n_clusters'] == 3
        assert metrics['inertia'] > 0
        assert -1.0 <= metrics['silhouette_score'] <= 1.0

    def test_silhouette_undefined_for_singleton_clusters(self, three_customer_raw):
        rfm, scaled = _features(three_customer_raw)
        metrics = KMeansSegmenter().fit(scaled, rfm).get_cluster_metrics()
        assert metrics['silhouette_score'] is None
        assert metrics['inertia'] == pytest.approx(0.0)

    def test_centers_in_original_units(self, three_customer_raw):
        """With one customer per cluster the centers are the customers."""
        transactions, _ = TransactionPreprocessor().prepare(three_customer_raw)
        rfm, _ = RFMAggregator().calculate_rfm(transactions)
        normalizer = FeatureNormalizer()
        scaled = normalizer.transform(rfm)

        segmenter = KMeansSegmenter().fit(scaled, rfm)
        centers = segmenter.get_cluster_centers_original(normalizer.last_statistics)

        assert centers['monetary'].tolist() == pytest.approx([10.0, 500.0, 1000.0])
        assert centers.loc[3, 'recency'] == pytest.approx(1.0)

    def test_unfitted_segmenter_raises(self):
        with pytest.raises(ValueError, match="not fitted"):
            KMeansSegmenter().get_cluster_summary()
