import numpy as np
import pytest

from visdecision.io import session_from_record

CONTRASTS = np.array([0.0, 0.25, 0.5, 1.0])


def make_record(n_trials=20, areas=("VISp", "CA1"), n_bins=40, mouse="Cori",
                date="2016-12-14", seed=0, rate=0.3):
    """Synthetic session record in per-trial layout (neurons x bins per trial)."""
    rng = np.random.RandomState(seed)
    return {
        "mouse_name": mouse,
        "date_exp": date,
        "brain_area": list(areas),
        "feedback_type": rng.choice([-1, 1], size=n_trials),
        "contrast_left": rng.choice(CONTRASTS, size=n_trials),
        "contrast_right": rng.choice(CONTRASTS, size=n_trials),
        "spks": [rng.poisson(rate, size=(len(areas), n_bins)) for _ in range(n_trials)],
    }


@pytest.fixture
def record_factory():
    return make_record


@pytest.fixture
def session_factory():
    def _make(session_id=1, **kwargs):
        return session_from_record(make_record(**kwargs), session_id)
    return _make
