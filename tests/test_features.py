import numpy as np
import pytest

from visdecision.features import brain_area_column, brain_area_columns, extract_trial_features
from visdecision.io import session_from_record


def _hand_session():
    rec = {
        "mouse_name": "Hench",
        "date_exp": "2017-06-15",
        "brain_area": ["VISp", "CA1"],
        "feedback_type": [1, -1],
        "contrast_left": [1.0, 0.25],
        "contrast_right": [0.0, 0.5],
        "spks": [
            np.array([[0, 2, 0, 1], [1, 2, 0, 0]]),
            np.array([[1, 0, 0, 1], [0, 0, 1, 0]]),
        ],
    }
    return session_from_record(rec, 7)


def test_hand_computed_features():
    df = extract_trial_features(_hand_session())
    assert list(df["trial_id"]) == [1, 2]
    assert (df["session_id"] == 7).all()
    assert list(df["total_spikes"]) == [6, 3]
    assert df["avg_firing_rate"].tolist() == pytest.approx([7.5, 3.75])
    # trial 2 ties bins 0, 2 and 3; the earliest wins
    assert df["peak_firing_time"].tolist() == pytest.approx([0.1, 0.0])
    assert df["rate_visp"].tolist() == pytest.approx([7.5, 5.0])
    assert df["rate_ca1"].tolist() == pytest.approx([7.5, 2.5])
    assert list(df["feedback"]) == [1, -1]


def test_contrast_identities(session_factory):
    df = extract_trial_features(session_factory(n_trials=50))
    assert np.array_equal(df["contrast_diff"], df["contrast_left"] - df["contrast_right"])
    assert np.array_equal(df["contrast_sum"], df["contrast_left"] + df["contrast_right"])
    assert np.allclose(df["contrast_diff"] + 2 * df["contrast_right"], df["contrast_sum"])


def test_zero_neuron_session_keeps_rows(session_factory):
    df = extract_trial_features(session_factory(n_trials=6, areas=()))
    assert len(df) == 6
    assert df[["avg_firing_rate", "total_spikes", "peak_firing_time"]].isna().all().all()
    assert not df[["contrast_left", "contrast_right", "feedback"]].isna().any().any()
    assert not any(c.startswith("rate_") for c in df.columns)


def test_silent_area_is_zero_not_missing(session_factory):
    df = extract_trial_features(session_factory(n_trials=4, rate=0.0))
    assert (df["rate_visp"] == 0).all()
    assert (df["total_spikes"] == 0).all()
    assert (df["peak_firing_time"] == 0).all()


def test_area_column_names():
    assert brain_area_column(" VISp ") == "rate_visp"
    assert brain_area_columns(["CA1", "VISp", "ca1"]) == ["rate_ca1", "rate_visp"]
