"""Missing-value policy applied before any classifier sees the data.

Per-area firing-rate columns are NaN for sessions that did not record the
area, and whole-session neural features are NaN when a session has no
neurons. Classifiers receive no NaNs: `MissingValuePolicy` is fitted on the
training rows only and then applied unchanged to validation and test rows.

1. Drop feature columns whose missing fraction on the training rows exceeds
   `max_missing_frac` (columns that are entirely missing are always dropped).
2. Median-impute what remains (sklearn SimpleImputer).
"""
from typing import List, Optional
import logging
import numpy as np
import pandas as pd
from sklearn.impute import SimpleImputer

from .features import ID_COLUMNS, LABEL_COLUMN

logger = logging.getLogger(__name__)

NON_FEATURE_COLUMNS = ID_COLUMNS + [LABEL_COLUMN]


def feature_columns(table: pd.DataFrame) -> List[str]:
    """All columns except the identifiers and the label, in table order."""
    return [c for c in table.columns if c not in NON_FEATURE_COLUMNS]


class MissingValuePolicy:
    def __init__(self, max_missing_frac: float = 0.5, strategy: str = "median"):
        if not 0.0 <= max_missing_frac <= 1.0:
            raise ValueError(f"max_missing_frac must be in [0, 1], got {max_missing_frac}")
        self.max_missing_frac = max_missing_frac
        self.strategy = strategy
        self.columns_: Optional[List[str]] = None
        self.dropped_: List[str] = []
        self._imputer: Optional[SimpleImputer] = None

    def fit(self, X: pd.DataFrame) -> "MissingValuePolicy":
        X = X.astype(float)
        missing_frac = X.isna().mean(axis=0)
        keep = [c for c in X.columns
                if missing_frac[c] < 1.0 and missing_frac[c] <= self.max_missing_frac]
        self.dropped_ = [c for c in X.columns if c not in keep]
        if not keep:
            raise ValueError('Every feature column exceeds the missing-value threshold')
        if self.dropped_:
            logger.info('Dropping %d sparse feature columns: %s', len(self.dropped_), self.dropped_)
        self.columns_ = keep
        self._imputer = SimpleImputer(strategy=self.strategy)
        self._imputer.fit(X[keep].to_numpy())
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        if self._imputer is None:
            raise RuntimeError('MissingValuePolicy.transform called before fit')
        sub = X.reindex(columns=self.columns_).astype(float)
        filled = self._imputer.transform(sub.to_numpy())
        return pd.DataFrame(filled, columns=self.columns_, index=X.index)

    def fit_transform(self, X: pd.DataFrame) -> pd.DataFrame:
        return self.fit(X).transform(X)

    @property
    def fill_values(self) -> pd.Series:
        """Per-column values used for imputation (training medians)."""
        if self._imputer is None:
            return pd.Series(dtype=float)
        return pd.Series(np.asarray(self._imputer.statistics_, dtype=float), index=self.columns_)
