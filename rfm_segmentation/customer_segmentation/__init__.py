"""
Customer Segmentation Module
============================

RFM aggregation, z-score normalization and K-Means segmentation.
"""

from .rfm_features import RFMAggregator, RFM_COLUMNS
from .feature_scaling import FeatureNormalizer
from .kmeans_clustering import KMeansSegmenter, ALL_SEGMENTS, SEGMENT_COLUMNS
from .segment_analysis import SegmentAnalyzer

__all__ = [
    "RFMAggregator",
    "FeatureNormalizer",
    "KMeansSegmenter",
    "SegmentAnalyzer",
    "RFM_COLUMNS",
    "ALL_SEGMENTS",
    "SEGMENT_COLUMNS",
]
