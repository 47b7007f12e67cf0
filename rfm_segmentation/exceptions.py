"""
Exceptions
==========

Error taxonomy shared by the segmentation pipeline and the query layer.

Pipeline errors (EmptyDatasetError, InsufficientDataError,
MalformedRecordError) abort a load; the previous snapshot stays in service.
NotFoundError is local to a single query.
"""

from typing import List, Optional


class SegmentationError(Exception):
    """Base class for all segmentation errors."""


class EmptyDatasetError(SegmentationError, ValueError):
    """Raised when the transaction store yields no usable records."""


class InsufficientDataError(SegmentationError, ValueError):
    """Raised when there are fewer customers than requested clusters."""

    def __init__(self, n_customers: int, n_clusters: int):
        self.n_customers = n_customers
        self.n_clusters = n_clusters
        super().__init__(
            f"Insufficient data: {n_customers} customers < {n_clusters} clusters requested"
        )


class MalformedRecordError(SegmentationError, ValueError):
    """
    Raised for unparseable transaction rows in strict mode, or when the
    input is missing required columns.

    Attributes:
        count: Number of offending rows (0 for schema errors)
        rows: Index labels of the first offending rows
    """

    def __init__(self, message: str, count: int = 0, rows: Optional[List] = None):
        self.count = count
        self.rows = list(rows or [])
        super().__init__(message)


class NotFoundError(SegmentationError, LookupError):
    """Raised when a customer id is not present in the current snapshot."""

    def __init__(self, customer_id):
        self.customer_id = customer_id
        super().__init__(f"Customer not found: {customer_id}")


class SnapshotUnavailableError(SegmentationError, RuntimeError):
    """Raised when no snapshot has been published yet."""

    def __init__(self, last_error: Optional[BaseException] = None):
        self.last_error = last_error
        message = "No segmentation snapshot loaded"
        if last_error is not None:
            message += f": last load failed with {type(last_error).__name__}: {last_error}"
        super().__init__(message)
