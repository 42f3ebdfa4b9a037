"""Session dataclass for visdecision

A `Session` holds one recording day for one mouse: trial-level stimulus and
outcome vectors, the brain area of every recorded neuron, and binned spike
counts in the post-stimulus window. Sessions are read-only once built.
"""
from dataclasses import dataclass, field
from typing import Tuple
import numpy as np


DEFAULT_WINDOW = (0.0, 0.4)


def _readonly(arr: np.ndarray) -> np.ndarray:
    arr = np.array(arr, copy=True)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class Session:
    session_id: int
    mouse_name: str
    date_exp: str
    brain_area: np.ndarray
    feedback_type: np.ndarray
    contrast_left: np.ndarray
    contrast_right: np.ndarray
    spks: np.ndarray  # trials x neurons x bins
    window: Tuple[float, float] = field(default=DEFAULT_WINDOW)

    def __post_init__(self):
        object.__setattr__(self, "brain_area", _readonly(np.asarray(self.brain_area, dtype=str)))
        object.__setattr__(self, "feedback_type", _readonly(np.asarray(self.feedback_type, dtype=int)))
        object.__setattr__(self, "contrast_left", _readonly(np.asarray(self.contrast_left, dtype=float)))
        object.__setattr__(self, "contrast_right", _readonly(np.asarray(self.contrast_right, dtype=float)))
        object.__setattr__(self, "spks", _readonly(np.asarray(self.spks, dtype=float)))
        object.__setattr__(self, "window", (float(self.window[0]), float(self.window[1])))

    @property
    def n_trials(self) -> int:
        return int(len(self.feedback_type))

    @property
    def n_neurons(self) -> int:
        return int(len(self.brain_area))

    @property
    def n_bins(self) -> int:
        return int(self.spks.shape[2]) if self.spks.ndim == 3 else 0

    @property
    def window_duration(self) -> float:
        return self.window[1] - self.window[0]

    @property
    def bin_size(self) -> float:
        if self.n_bins == 0:
            return float("nan")
        return self.window_duration / self.n_bins
