"""Stratified train/validation split of the integrated trial table.

Each label stratum is shuffled independently with a seeded RandomState and
its first round(train_frac * n) positions go to training. Validation is the
set complement, so no row is dropped or duplicated. The partition depends
only on the table's row order and the seed.
"""
from typing import Tuple
import numpy as np
import pandas as pd

from .features import LABEL_COLUMN


def stratified_split_indices(
    labels: np.ndarray, train_frac: float = 0.8, random_state: int = 0
) -> Tuple[np.ndarray, np.ndarray]:
    """Positional train/validation indices stratified on `labels`.

    Returns (train_idx, valid_idx), both sorted ascending.
    """
    if not 0.0 < train_frac < 1.0:
        raise ValueError(f"train_frac must be in (0, 1), got {train_frac}")
    y = np.asarray(labels)
    rng = np.random.RandomState(random_state)
    train_parts = []
    for cls in np.unique(y):
        idxs = np.where(y == cls)[0]
        rng.shuffle(idxs)
        n_train = int(np.floor(train_frac * len(idxs) + 0.5))
        train_parts.append(idxs[:n_train])
    if train_parts:
        train_idx = np.sort(np.concatenate(train_parts))
    else:
        train_idx = np.array([], dtype=int)
    valid_idx = np.setdiff1d(np.arange(len(y)), train_idx, assume_unique=True)
    return train_idx, valid_idx


def train_validation_split(
    table: pd.DataFrame,
    train_frac: float = 0.8,
    random_state: int = 0,
    label: str = LABEL_COLUMN,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Split `table` into (train, valid) frames, stratified on `label`."""
    train_idx, valid_idx = stratified_split_indices(
        table[label].to_numpy(), train_frac=train_frac, random_state=random_state
    )
    return table.iloc[train_idx], table.iloc[valid_idx]
