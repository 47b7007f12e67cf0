"""
K-Means Clustering Module
=========================

K-Means clustering of normalized RFM features with deterministic,
rank-based segment labels.

Usage:
    from rfm_segmentation.customer_segmentation import KMeansSegmenter

    segmenter = KMeansSegmenter(n_clusters=3, random_state=123)
    segments = segmenter.segment(rfm_df, scaled_df)
"""

import pandas as pd
import numpy as np
from typing import Optional, List, Dict, Any
from sklearn.cluster import KMeans
from sklearn.metrics import silhouette_score, calinski_harabasz_score, davies_bouldin_score
from loguru import logger

from rfm_segmentation.exceptions import InsufficientDataError
from .rfm_features import RFM_COLUMNS

DEFAULT_SEGMENT_LABELS = ['At Risk', 'Loyal / Potential', 'Champions']

ALL_SEGMENTS = 'All'

SEGMENT_COLUMNS = [
    'customer_id', 'recency', 'frequency', 'monetary', 'cluster_id', 'segment_label'
]


class KMeansSegmenter:
    """
    K-Means clustering for customer segmentation.

    K-Means numbers its clusters arbitrarily, so raw labels are never shown.
    Clusters are ranked by ascending mean monetary value (ties broken by
    ascending mean frequency, then by descending mean recency, so the less
    recently active cluster ranks lower) and the rank becomes both the
    cluster_id (1..K) and the index into segment_labels.

    Example:
        >>> segmenter = KMeansSegmenter(n_clusters=3)
        >>> segments = segmenter.segment(rfm, scaled)
        >>> segmenter.get_cluster_summary()
    """

    def __init__(
        self,
        n_clusters: int = 3,
        init: str = 'k-means++',
        n_init: int = 25,
        max_iter: int = 300,
        random_state: int = 123,
        segment_labels: Optional[List[str]] = None
    ):
        """
        Initialize K-Means Segmenter.

        Args:
            n_clusters: Number of clusters K
            init: Initialization method ('k-means++' or 'random')
            n_init: Number of random restarts, the lowest inertia run wins
            max_iter: Maximum iterations per restart
            random_state: Random seed for reproducibility
            segment_labels: Business labels ordered by ascending mean monetary

        Raises:
            ValueError: On an invalid cluster count or label list
        """
        if n_clusters < 1:
            raise ValueError(f"n_clusters must be positive: {n_clusters}")

        self.n_clusters = n_clusters
        self.init = init
        self.n_init = n_init
        self.max_iter = max_iter
        self.random_state = random_state
        self.segment_labels = self._validate_labels(
            DEFAULT_SEGMENT_LABELS if segment_labels is None else segment_labels
        )

        self.model = None
        self.feature_columns = list(RFM_COLUMNS)
        self.raw_labels_ = None
        self.labels_ = None
        self.cluster_centers_ = None
        self.inertia_ = None
        self.label_map_: Dict[int, str] = {}
        self._cluster_summary = None
        self._X = None

        logger.info("KMeansSegmenter initialized")

    @staticmethod
    def _validate_labels(labels: List[str]) -> List[str]:
        labels = [str(label) for label in labels]
        if len(set(labels)) != len(labels):
            raise ValueError(f"Segment labels must be unique: {labels}")
        if ALL_SEGMENTS in labels:
            raise ValueError(f"'{ALL_SEGMENTS}' is reserved and cannot be a segment label")
        if any(not label.strip() for label in labels):
            raise ValueError("Segment labels must be non-empty")
        return labels

    def fit(
        self,
        scaled: pd.DataFrame,
        features: pd.DataFrame
    ) -> 'KMeansSegmenter':
        """
        Fit K-Means and rank the resulting clusters.

        Args:
            scaled: Normalized RFM features
            features: Raw RFM features in the same row order, used for ranking

        Returns:
            Self for method chaining

        Raises:
            InsufficientDataError: If there are fewer customers than clusters
        """
        n_customers = len(scaled)
        if n_customers < self.n_clusters:
            raise InsufficientDataError(n_customers, self.n_clusters)

        X = scaled[self.feature_columns].to_numpy(dtype=float)

        self.model = KMeans(
            n_clusters=self.n_clusters,
            init=self.init,
            n_init=self.n_init,
            max_iter=self.max_iter,
            random_state=self.random_state
        )
        self.raw_labels_ = self.model.fit_predict(X)
        self.inertia_ = float(self.model.inertia_)
        self._X = X

        rank = self._rank_clusters(features)
        self.labels_ = np.array([rank[label] for label in self.raw_labels_], dtype=int)

        order = sorted(rank, key=rank.get)
        self.cluster_centers_ = self.model.cluster_centers_[order]
        self.label_map_ = {
            cluster_id: self._label_for(cluster_id)
            for cluster_id in sorted(rank.values())
        }
        self._cluster_summary = self._summarize(features)

        n_found = len(rank)
        if n_found < self.n_clusters:
            logger.warning(f"K-Means found only {n_found} distinct clusters of {self.n_clusters}")

        logger.info(f"Fitted K-Means with {self.n_clusters} clusters")
        logger.info(f"Inertia: {self.inertia_:.2f}")

        return self

    def _rank_clusters(self, features: pd.DataFrame) -> Dict[int, int]:
        """Map raw K-Means labels to 1-based ranks by ascending mean monetary."""
        frame = pd.DataFrame({
            'raw': self.raw_labels_,
            'recency': features['recency'].to_numpy(dtype=float),
            'frequency': features['frequency'].to_numpy(dtype=float),
            'monetary': features['monetary'].to_numpy(dtype=float),
        })
        means = frame.groupby('raw')[['recency', 'frequency', 'monetary']].mean()
        means['neg_recency'] = -means['recency']
        means = means.reset_index().sort_values(
            ['monetary', 'frequency', 'neg_recency', 'raw'], kind='mergesort'
        )

        return {int(raw): rank for rank, raw in enumerate(means['raw'], start=1)}

    def _label_for(self, cluster_id: int) -> str:
        if cluster_id <= len(self.segment_labels):
            return self.segment_labels[cluster_id - 1]
        return f'Segment {cluster_id}'

    def assign(self, features: pd.DataFrame) -> pd.DataFrame:
        """
        ClusterAssignment rows for the fitted data.

        Args:
            features: Raw RFM features passed to fit()

        Returns:
            DataFrame with customer_id, cluster_id and segment_label
        """
        if self.labels_ is None:
            raise ValueError("Model not fitted. Call fit() first.")

        return pd.DataFrame({
            'customer_id': features['customer_id'].to_numpy(),
            'cluster_id': self.labels_,
            'segment_label': [self.label_map_[c] for c in self.labels_]
        })

    def segment(
        self,
        features: pd.DataFrame,
        scaled: pd.DataFrame
    ) -> pd.DataFrame:
        """
        Fit and return the CustomerSegment table.

        Args:
            features: Raw RFM features
            scaled: Normalized RFM features in the same row order

        Returns:
            DataFrame with customer_id, recency, frequency, monetary,
            cluster_id and segment_label
        """
        self.fit(scaled, features)

        assignments = self.assign(features)
        segments = features.reset_index(drop=True).merge(
            assignments, on='customer_id', how='left', validate='one_to_one'
        )
        return segments[SEGMENT_COLUMNS]

    def _summarize(self, features: pd.DataFrame) -> pd.DataFrame:
        frame = features[self.feature_columns].reset_index(drop=True).copy()
        frame['cluster_id'] = self.labels_

        summary = frame.groupby('cluster_id').agg(
            size=('recency', 'size'),
            avg_recency=('recency', 'mean'),
            avg_frequency=('frequency', 'mean'),
            avg_monetary=('monetary', 'mean')
        )
        summary['percentage'] = summary['size'] / len(frame) * 100
        summary.insert(0, 'segment_label', [self.label_map_[c] for c in summary.index])

        return summary.reset_index()

    def get_cluster_summary(self) -> pd.DataFrame:
        """
        Per-cluster size, share and mean RFM values, ordered by cluster_id.

        Returns:
            DataFrame with one row per cluster
        """
        if self._cluster_summary is None:
            raise ValueError("Model not fitted. Call fit() first.")
        return self._cluster_summary.copy()

    def get_cluster_metrics(self) -> Dict[str, Any]:
        """
        Calculate clustering quality metrics on the fitted data.

        Silhouette and the other label-based scores are only defined for
        2 <= distinct clusters < customers; otherwise they are None.

        Returns:
            Dictionary of clustering metrics

        Example:
            >>> metrics = segmenter.get_cluster_metrics()
            >>> print(f"Inertia: {metrics['inertia']:.3f}")
        """
        if self.model is None:
            raise ValueError("Model not fitted. Call fit() first.")

        n_found = len(np.unique(self.labels_))
        metrics = {
            'n_clusters': self.n_clusters,
            'inertia': self.inertia_,
            'n_iter': int(self.model.n_iter_),
            'silhouette_score': None,
            'calinski_harabasz': None,
            'davies_bouldin': None
        }

        if 2 <= n_found < len(self.labels_):
            metrics['silhouette_score'] = float(silhouette_score(self._X, self.labels_))
            metrics['calinski_harabasz'] = float(calinski_harabasz_score(self._X, self.labels_))
            metrics['davies_bouldin'] = float(davies_bouldin_score(self._X, self.labels_))

        return metrics

    def get_cluster_centers_original(
        self,
        statistics: Dict[str, Dict[str, float]]
    ) -> pd.DataFrame:
        """
        Get cluster centers in original (unscaled) feature space.

        Args:
            statistics: Per-feature mean/std used for scaling
                (FeatureNormalizer.last_statistics)

        Returns:
            DataFrame with cluster centers indexed by cluster_id
        """
        if self.cluster_centers_ is None:
            raise ValueError("Model not fitted. Call fit() first.")

        means = np.array([statistics[c]['mean'] for c in self.feature_columns])
        stds = np.array([statistics[c]['std'] for c in self.feature_columns])
        centers = self.cluster_centers_ * stds + means

        centers = pd.DataFrame(
            centers,
            columns=self.feature_columns,
            index=pd.Index(range(1, len(centers) + 1), name='cluster_id')
        )
        return centers
