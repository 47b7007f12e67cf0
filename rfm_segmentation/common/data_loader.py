"""
Transaction Loading Module
==========================

Reads raw line-item transaction files into a DataFrame. Parsing and
validation of the individual fields is left to TransactionPreprocessor,
so CSV columns are read as text and nothing is coerced here.

Usage:
    from rfm_segmentation.common import TransactionLoader

    loader = TransactionLoader()
    raw = loader.load("data/online_retail_clean.csv")
"""

import pandas as pd
from pathlib import Path
from typing import Union
from loguru import logger


class TransactionLoader:
    """
    Loader for transaction files in the formats pandas reads natively.

    Attributes:
        supported_formats (list): List of supported file suffixes

    Example:
        >>> loader = TransactionLoader()
        >>> raw = loader.load("transactions.csv")
        >>> print(f"Loaded {len(raw)} records")
    """

    def __init__(self):
        """Initialize TransactionLoader."""
        self.supported_formats = ['.csv', '.parquet', '.json', '.xlsx']
        logger.info("TransactionLoader initialized")

    def load(self, filepath: Union[str, Path], **kwargs) -> pd.DataFrame:
        """
        Load a transaction file, dispatching on its suffix.

        Args:
            filepath: Path to the transaction file
            **kwargs: Additional arguments passed to the pandas reader

        Returns:
            DataFrame with the raw transaction rows

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If file format is unsupported
        """
        filepath = Path(filepath)

        if not filepath.exists():
            raise FileNotFoundError(f"File not found: {filepath}")

        suffix = filepath.suffix.lower()
        if suffix not in self.supported_formats:
            raise ValueError(f"Unsupported format: {filepath.suffix}")

        logger.info(f"Loading transactions from {filepath}")

        if suffix == '.csv':
            df = self.load_csv(filepath, **kwargs)
        elif suffix == '.parquet':
            df = pd.read_parquet(filepath, **kwargs)
        elif suffix == '.xlsx':
            df = pd.read_excel(filepath, dtype=str, **kwargs)
        else:
            df = pd.read_json(filepath, dtype=False, **kwargs)

        logger.info(f"Loaded {len(df)} records with {len(df.columns)} columns")
        return df

    def load_csv(self, filepath: Union[str, Path], **kwargs) -> pd.DataFrame:
        """
        Load a CSV file with every column kept as text.

        Empty cells still come back as NaN so that missing values can be
        told apart from values that fail to parse.

        Args:
            filepath: Path to CSV file
            **kwargs: Additional arguments passed to pd.read_csv

        Returns:
            DataFrame with raw string columns
        """
        read_kwargs = {
            'dtype': str,
            'low_memory': False,
            **kwargs
        }
        return pd.read_csv(filepath, **read_kwargs)

