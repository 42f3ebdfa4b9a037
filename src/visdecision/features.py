"""Per-trial feature extraction from one session.

Every trial yields one row with
- identifiers: session_id, trial_id (1-based within the session), mouse_name
- stimulus features: contrast_left, contrast_right, contrast_diff, contrast_sum
- neural features over the post-stimulus window: total_spikes,
  avg_firing_rate (spikes / (neurons * seconds)), peak_firing_time
- one `rate_<area>` column per brain area recorded in the session
- the label `feedback` (+1 success, -1 failure)

Neural features are NaN, not zero, when the session has no neurons (or no
neurons in a given area): "not recorded" must stay distinguishable from
"recorded, no spikes".
"""
from typing import Iterable, List
import numpy as np
import pandas as pd

from .session import Session

ID_COLUMNS = ["session_id", "trial_id", "mouse_name"]
STIMULUS_COLUMNS = ["contrast_left", "contrast_right", "contrast_diff", "contrast_sum"]
NEURAL_COLUMNS = ["avg_firing_rate", "total_spikes", "peak_firing_time"]
LABEL_COLUMN = "feedback"
AREA_PREFIX = "rate_"


def brain_area_column(area: str) -> str:
    return f"{AREA_PREFIX}{str(area).strip().lower()}"


def brain_area_columns(areas: Iterable[str]) -> List[str]:
    """Sorted, de-duplicated per-area column names."""
    return sorted({brain_area_column(a) for a in areas})


def peak_bin_times(spks: np.ndarray, window_start: float, bin_size: float) -> np.ndarray:
    """Start time of the bin with the most spikes summed over neurons, per trial.

    spks: trials x neurons x bins. np.argmax returns the first maximum, so
    ties resolve to the earliest bin.
    """
    population = spks.sum(axis=1)  # trials x bins
    peak_idx = np.argmax(population, axis=1)
    return window_start + peak_idx * bin_size


def extract_trial_features(session: Session) -> pd.DataFrame:
    """Build the per-trial feature rows for one session."""
    n_trials = session.n_trials
    duration = session.window_duration
    left = np.asarray(session.contrast_left, dtype=float)
    right = np.asarray(session.contrast_right, dtype=float)

    cols = {
        "session_id": np.full(n_trials, session.session_id, dtype=int),
        "trial_id": np.arange(1, n_trials + 1, dtype=int),
        "mouse_name": np.full(n_trials, session.mouse_name, dtype=object),
        "contrast_left": left,
        "contrast_right": right,
        "contrast_diff": left - right,
        "contrast_sum": left + right,
    }

    if session.n_neurons == 0 or session.n_bins == 0:
        cols["avg_firing_rate"] = np.full(n_trials, np.nan)
        cols["total_spikes"] = np.full(n_trials, np.nan)
        cols["peak_firing_time"] = np.full(n_trials, np.nan)
    else:
        per_neuron = session.spks.sum(axis=2)  # trials x neurons
        total = per_neuron.sum(axis=1)
        cols["avg_firing_rate"] = total / (session.n_neurons * duration)
        cols["total_spikes"] = total
        cols["peak_firing_time"] = peak_bin_times(session.spks, session.window[0], session.bin_size)

        area_cols = np.array([brain_area_column(a) for a in session.brain_area])
        for col in sorted(set(area_cols)):
            mask = area_cols == col
            cols[col] = per_neuron[:, mask].sum(axis=1) / (int(mask.sum()) * duration)

    cols[LABEL_COLUMN] = np.asarray(session.feedback_type, dtype=int)
    return pd.DataFrame(cols)
