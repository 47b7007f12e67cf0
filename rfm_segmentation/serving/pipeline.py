"""
Segmentation Pipeline
=====================

One batch pass from raw transactions to a SegmentationSnapshot:

    load -> prepare -> RFM aggregation -> normalization -> K-Means -> labels

Usage:
    from rfm_segmentation.serving import SegmentationPipeline

    pipeline = SegmentationPipeline.from_config(config)
    snapshot = pipeline.run("data/online_retail_clean.csv")
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import pandas as pd
from loguru import logger

from rfm_segmentation.common import TransactionLoader, TransactionPreprocessor
from rfm_segmentation.config import DEFAULT_CONFIG
from rfm_segmentation.customer_segmentation import (
    RFMAggregator,
    FeatureNormalizer,
    KMeansSegmenter,
)
from .snapshot import SegmentationSnapshot


class SegmentationPipeline:
    """
    Builds segmentation snapshots.

    A new KMeansSegmenter is created for every run so no fitted state is
    shared between loads.

    Example:
        >>> pipeline = SegmentationPipeline(segmentation={'n_clusters': 4})
        >>> snapshot = pipeline.run(transactions_df)
    """

    def __init__(
        self,
        strictness: str = 'skip',
        segmentation: Optional[Dict[str, Any]] = None,
        loader: Optional[TransactionLoader] = None
    ):
        """
        Initialize SegmentationPipeline.

        Args:
            strictness: Malformed row policy ('skip' or 'strict')
            segmentation: KMeansSegmenter keyword arguments
            loader: Transaction file loader
        """
        self.segmentation = dict(DEFAULT_CONFIG['segmentation'])
        self.segmentation.update(segmentation or {})

        self.loader = loader or TransactionLoader()
        self.preprocessor = TransactionPreprocessor(strictness=strictness)
        self.aggregator = RFMAggregator()
        self.normalizer = FeatureNormalizer()

        # Fail on bad settings at construction, not at the first load
        self._build_segmenter()

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'SegmentationPipeline':
        """Create a pipeline from a configuration dictionary."""
        return cls(
            strictness=config.get('data', {}).get('strictness', 'skip'),
            segmentation=config.get('segmentation', {})
        )

    def _build_segmenter(self) -> KMeansSegmenter:
        return KMeansSegmenter(**self.segmentation)

    def _read(self, source: Union[str, Path, pd.DataFrame]) -> Tuple[pd.DataFrame, str]:
        if isinstance(source, pd.DataFrame):
            return source, '<dataframe>'
        return self.loader.load(source), str(source)

    def run(
        self,
        source: Union[str, Path, pd.DataFrame],
        version: int = 1
    ) -> SegmentationSnapshot:
        """
        Run the full pipeline.

        Args:
            source: Path to a transaction file, or a raw transaction DataFrame
            version: Version number stamped on the snapshot

        Returns:
            Fully materialized SegmentationSnapshot

        Raises:
            EmptyDatasetError: If no usable transactions remain
            InsufficientDataError: If there are fewer customers than clusters
            MalformedRecordError: On schema errors or, in strict mode,
                unparseable rows
        """
        logger.info("Starting Customer Segmentation Pipeline")

        raw, source_name = self._read(source)
        transactions, report = self.preprocessor.prepare(raw)

        features, reference_date = self.aggregator.calculate_rfm(transactions)
        scaled = self.normalizer.transform(features)

        segmenter = self._build_segmenter()
        segments = segmenter.segment(features, scaled)

        snapshot = SegmentationSnapshot(
            version=version,
            source=source_name,
            created_at=datetime.now(),
            reference_date=reference_date,
            transactions=transactions,
            customer_features=features,
            segments=segments,
            cluster_summary=segmenter.get_cluster_summary(),
            cluster_centers=segmenter.get_cluster_centers_original(
                self.normalizer.last_statistics
            ),
            metrics=segmenter.get_cluster_metrics(),
            load_report=report,
            transaction_index={
                str(customer_id): positions
                for customer_id, positions
                in transactions.groupby('customer_id').indices.items()
            }
        )

        logger.info(f"Segmentation complete. {segmenter.n_clusters} clusters identified.")
        return snapshot
