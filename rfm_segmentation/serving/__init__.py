"""
Serving layer: pipeline runs, published snapshots and read-only queries.
"""

from .snapshot import SegmentationSnapshot, SnapshotStore
from .pipeline import SegmentationPipeline
from .queries import SegmentQueryService, HISTORY_COLUMNS

__all__ = [
    "SegmentationSnapshot",
    "SnapshotStore",
    "SegmentationPipeline",
    "SegmentQueryService",
    "HISTORY_COLUMNS",
]
