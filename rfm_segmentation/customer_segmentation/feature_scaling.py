"""
Feature Scaling Module
======================

Z-score normalization of the RFM features with population statistics.

Usage:
    from rfm_segmentation.customer_segmentation import FeatureNormalizer

    normalizer = FeatureNormalizer()
    scaled = normalizer.transform(rfm_df)
"""

import pandas as pd
import numpy as np
from typing import List, Optional, Dict
from sklearn.preprocessing import StandardScaler
from loguru import logger

from rfm_segmentation.exceptions import EmptyDatasetError
from .rfm_features import RFM_COLUMNS


class FeatureNormalizer:
    """
    Stateless z-score transform of RFM features.

    A fresh StandardScaler is fitted on every call, so statistics never
    leak from one load into the next. StandardScaler uses the population
    standard deviation (ddof=0). Zero-variance columns come out as exactly 0.

    Example:
        >>> normalizer = FeatureNormalizer()
        >>> scaled = normalizer.transform(rfm)
        >>> scaled[['recency', 'frequency', 'monetary']].mean()
    """

    def __init__(self, feature_columns: Optional[List[str]] = None):
        """
        Initialize FeatureNormalizer.

        Args:
            feature_columns: Columns to scale (default: recency, frequency, monetary)
        """
        self.feature_columns = list(feature_columns or RFM_COLUMNS)
        self.last_statistics: Dict[str, Dict[str, float]] = {}

    def transform(self, features: pd.DataFrame) -> pd.DataFrame:
        """
        Z-score the feature columns.

        Args:
            features: CustomerFeatures DataFrame

        Returns:
            DataFrame with customer_id (when present) and the scaled columns,
            aligned with the input rows

        Raises:
            EmptyDatasetError: If features has no rows
        """
        if features.empty:
            raise EmptyDatasetError("Cannot normalize an empty feature table")

        X = features[self.feature_columns].to_numpy(dtype=float)

        scaler = StandardScaler()
        X_scaled = scaler.fit_transform(X)

        # Constant columns: exactly zero, not x - mean rounding noise
        constant = np.ptp(X, axis=0) == 0
        X_scaled[:, constant] = 0.0

        self.last_statistics = {
            col: {'mean': float(scaler.mean_[i]), 'std': float(scaler.scale_[i])}
            for i, col in enumerate(self.feature_columns)
        }
        if constant.any():
            logger.debug(
                f"Zero-variance features: {[c for c, k in zip(self.feature_columns, constant) if k]}"
            )

        scaled = pd.DataFrame(X_scaled, columns=self.feature_columns, index=features.index)
        if 'customer_id' in features.columns:
            scaled.insert(0, 'customer_id', features['customer_id'])

        logger.info(f"Scaled {len(self.feature_columns)} columns using standard method")
        return scaled
