"""
RFM Customer Segmentation
=========================

Recency-Frequency-Monetary customer segmentation from retail transaction
logs, served through a read-only query layer:
- Transaction loading and validation
- RFM aggregation and z-score normalization
- K-Means segmentation with rank-based business labels
- Snapshot store with atomic reload and segment/customer queries

Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "Retail Analytics Team"

from .common import TransactionLoader, TransactionPreprocessor
from .customer_segmentation import RFMAggregator, FeatureNormalizer, KMeansSegmenter, SegmentAnalyzer
from .serving import SegmentationPipeline, SnapshotStore, SegmentQueryService

__all__ = [
    "TransactionLoader",
    "TransactionPreprocessor",
    "RFMAggregator",
    "FeatureNormalizer",
    "KMeansSegmenter",
    "SegmentAnalyzer",
    "SegmentationPipeline",
    "SnapshotStore",
    "SegmentQueryService",
]
