"""
Common utilities for the RFM segmentation service.
"""

from .data_loader import TransactionLoader
from .preprocessing import (
    TransactionPreprocessor,
    LoadReport,
    TRANSACTION_COLUMNS,
    normalize_customer_id,
    normalize_customer_ids,
)

__all__ = [
    "TransactionLoader",
    "TransactionPreprocessor",
    "LoadReport",
    "TRANSACTION_COLUMNS",
    "normalize_customer_id",
    "normalize_customer_ids",
]
