"""Integration of per-session feature rows into one fixed-schema table.

The schema is derived in two passes: the first collects every column the
feature extractor produced for any session (this is what decides the brain
area columns), the second reindexes each session's rows against that fixed
column list. Absent columns are filled with NaN, never zero.
"""
from pathlib import Path
from typing import Iterable, List, Optional, Sequence
import logging
import numpy as np
import pandas as pd

from .features import (
    AREA_PREFIX,
    ID_COLUMNS,
    LABEL_COLUMN,
    NEURAL_COLUMNS,
    STIMULUS_COLUMNS,
    extract_trial_features,
)
from .session import Session

logger = logging.getLogger(__name__)

BASE_COLUMNS = ID_COLUMNS + STIMULUS_COLUMNS + NEURAL_COLUMNS


class EmptyCorpusError(RuntimeError):
    """No session (or no trial row) survived loading; nothing can be modeled."""


def unified_columns(frames: Iterable[pd.DataFrame]) -> List[str]:
    """Union of all columns across frames, in canonical order.

    Base columns first, then the per-area rate columns sorted by name, then
    any other extra column in first-seen order, then the label.
    """
    seen = []
    for df in frames:
        for c in df.columns:
            if c not in seen:
                seen.append(c)
    areas = sorted(c for c in seen if c.startswith(AREA_PREFIX))
    extras = [c for c in seen if c not in BASE_COLUMNS and c not in areas and c != LABEL_COLUMN]
    return BASE_COLUMNS + areas + extras + [LABEL_COLUMN]


def integrate_sessions(sessions: Sequence[Session]) -> pd.DataFrame:
    """Concatenate the per-trial rows of every session under one schema.

    Rows are sorted by (session_id, trial_id); the split downstream relies
    on that order together with its seed. With no sessions an empty table
    carrying the base schema is returned and a warning is logged.
    """
    frames = [extract_trial_features(s) for s in sessions]
    if not frames:
        logger.warning('No sessions to integrate; returning an empty table')
        return pd.DataFrame(columns=BASE_COLUMNS + [LABEL_COLUMN])

    columns = unified_columns(frames)
    aligned = [df.reindex(columns=columns) for df in frames]
    table = pd.concat(aligned, axis=0, ignore_index=True)
    table = table.sort_values(["session_id", "trial_id"], kind="stable").reset_index(drop=True)
    n_area = sum(c.startswith(AREA_PREFIX) for c in columns)
    logger.info('Integrated %d trials from %d sessions (%d brain-area columns)',
                len(table), len(frames), n_area)
    return table


def require_rows(table: pd.DataFrame) -> pd.DataFrame:
    """Raise EmptyCorpusError when the integrated table has no rows."""
    if table is None or len(table) == 0:
        raise EmptyCorpusError('Integrated feature table is empty; no sessions loaded successfully')
    return table


def save_feature_table(table: pd.DataFrame, path: str) -> str:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    table.to_csv(p, index=False)
    return str(p)


def load_feature_table(path: str) -> pd.DataFrame:
    """Read a pre-integrated feature table written by `save_feature_table`.

    Column names are lower-cased; the base columns and the label must be
    present. Rows are re-sorted by (session_id, trial_id).
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Feature table not found: {path}")
    table = pd.read_csv(p)
    table.columns = [str(c).strip().lower() for c in table.columns]
    missing = [c for c in BASE_COLUMNS + [LABEL_COLUMN] if c not in table.columns]
    if missing:
        raise ValueError(f"Feature table {path} lacks required columns {missing}")
    table["mouse_name"] = table["mouse_name"].astype(str)
    return table.sort_values(["session_id", "trial_id"], kind="stable").reset_index(drop=True)


def align_to_training_schema(
    frame: pd.DataFrame,
    train_columns: Sequence[str],
    label: Optional[str] = LABEL_COLUMN,
) -> pd.DataFrame:
    """Align a held-out frame to the columns a model was trained on.

    Column names are lower-cased, every training column the frame lacks is
    added as NaN, and only the columns common to both are kept, in training
    order. The label is kept only if the frame carries it.
    """
    out = frame.copy()
    out.columns = [str(c).strip().lower() for c in out.columns]
    train_columns = [str(c).strip().lower() for c in train_columns]
    has_label = label is not None and label in out.columns

    for c in train_columns:
        if c == label:
            continue
        if c not in out.columns:
            out[c] = np.nan

    common = [c for c in train_columns if c in out.columns and (c != label or has_label)]
    dropped = [c for c in out.columns if c not in common]
    if dropped:
        logger.debug('Dropping columns absent from the training schema: %s', dropped)
    return out[common]
