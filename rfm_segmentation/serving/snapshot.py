"""
Segmentation Snapshots
======================

An immutable bundle of everything one pipeline run derived, and the store
that publishes a new bundle by swapping a single reference.

Readers call ``store.current()`` once per query and keep the snapshot they
got; a concurrent reload never changes it under them. Reloads are
serialized with a lock, and a failed reload leaves the previous snapshot in
place.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd
from loguru import logger

from rfm_segmentation.common import LoadReport
from rfm_segmentation.exceptions import SnapshotUnavailableError


@dataclass(frozen=True)
class SegmentationSnapshot:
    """
    Derived artifacts of one load of the transaction store.

    Attributes:
        version: Monotonic load counter of the publishing store
        source: Description of where the transactions came from
        created_at: When the pipeline run finished
        reference_date: Last invoice date plus one day
        transactions: Validated TransactionRecords with revenue
        customer_features: One RFM row per customer
        segments: CustomerSegment table
        cluster_summary: Per-cluster size and mean RFM values
        cluster_centers: Cluster centroids in raw feature units
        metrics: Clustering quality metrics
        load_report: Row accounting for the load
        transaction_index: customer_id -> row positions in transactions
    """

    version: int
    source: str
    created_at: datetime
    reference_date: pd.Timestamp
    transactions: pd.DataFrame = field(repr=False)
    customer_features: pd.DataFrame = field(repr=False)
    segments: pd.DataFrame = field(repr=False)
    cluster_summary: pd.DataFrame = field(repr=False)
    cluster_centers: pd.DataFrame = field(repr=False)
    metrics: Dict[str, Any]
    load_report: LoadReport
    transaction_index: Dict[str, np.ndarray] = field(repr=False)

    @property
    def n_customers(self) -> int:
        return len(self.segments)

    @property
    def n_transactions(self) -> int:
        return len(self.transactions)

    def describe(self) -> Dict[str, Any]:
        """Plain metadata about the snapshot."""
        return {
            'version': self.version,
            'source': self.source,
            'created_at': self.created_at.isoformat(),
            'reference_date': self.reference_date.isoformat(),
            'n_customers': self.n_customers,
            'n_transactions': self.n_transactions,
            'load_report': self.load_report.to_dict(),
            'metrics': dict(self.metrics),
        }


class SnapshotStore:
    """
    Holds the current snapshot and rebuilds it on reload.

    Example:
        >>> store = SnapshotStore(pipeline, source="data/online_retail_clean.csv")
        >>> store.reload()
        >>> snapshot = store.current()
    """

    def __init__(self, pipeline, source: Any = None):
        """
        Initialize SnapshotStore.

        Args:
            pipeline: SegmentationPipeline used to build snapshots
            source: Default transaction source for reload()
        """
        self.pipeline = pipeline
        self.source = source
        self.last_error: Optional[BaseException] = None

        self._snapshot: Optional[SegmentationSnapshot] = None
        self._version = 0
        self._reload_lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None

    def current(self) -> SegmentationSnapshot:
        """
        Return the published snapshot.

        Raises:
            SnapshotUnavailableError: If no load has succeeded yet
        """
        snapshot = self._snapshot
        if snapshot is None:
            raise SnapshotUnavailableError(self.last_error)
        return snapshot

    def reload(self, source: Any = None) -> SegmentationSnapshot:
        """
        Run the pipeline and publish the result.

        Args:
            source: Transaction source (path or DataFrame); defaults to the
                source of the previous successful load

        Returns:
            The newly published snapshot

        Raises:
            ValueError: If no source is known
            Exception: Whatever the pipeline raised; the previous snapshot
                stays published
        """
        with self._reload_lock:
            source = self.source if source is None else source
            if source is None:
                raise ValueError("No transaction source configured")

            try:
                snapshot = self.pipeline.run(source, version=self._version + 1)
            except Exception as e:
                self.last_error = e
                logger.error(f"Reload failed, keeping snapshot v{self._version}: {e}")
                raise

            self._version = snapshot.version
            self.source = source
            self.last_error = None
            self._snapshot = snapshot

        logger.info(
            f"Published snapshot v{snapshot.version}: "
            f"{snapshot.n_customers} customers, {snapshot.n_transactions} transactions"
        )
        return snapshot
