import numpy as np
import pandas as pd
import pytest

from visdecision.session import Session
from visdecision.summary import mouse_summary, session_info, stimulus_summary, summarize_session


def _session(sid, mouse, feedback, areas=("VISp", "CA1", "CA1")):
    n = len(feedback)
    return Session(sid, mouse, "2017-01-01", list(areas), feedback,
                   np.zeros(n), np.zeros(n), np.zeros((n, len(areas), 4)))


def test_summarize_session_counts():
    info = summarize_session(_session(1, "Cori", [1, 1, -1, 1]))
    assert info["n_trials"] == 4
    assert info["success_rate"] == pytest.approx(0.75)
    assert info["n_neurons"] == 3
    assert info["unique_brain_areas"] == 2


def test_zero_trial_session_raises_and_is_excluded():
    empty = _session(2, "Cori", [])
    with pytest.raises(ZeroDivisionError):
        summarize_session(empty)
    info = session_info([_session(1, "Cori", [1, -1]), empty])
    assert list(info["session_id"]) == [1]
    assert not info["success_rate"].isna().any()
    assert ((info["success_rate"] >= 0) & (info["success_rate"] <= 1)).all()


def test_mouse_summary_is_unweighted():
    sessions = [
        _session(1, "Cori", [1] * 10),
        _session(2, "Cori", [-1] * 30),
        _session(3, "Forssmann", [1, -1]),
    ]
    out = mouse_summary(session_info(sessions)).set_index("mouse_name")
    # 10 successes out of 40 trials would give 0.25 if weighted by trials
    assert out.loc["Cori", "success_rate"] == pytest.approx(0.5)
    assert out.loc["Cori", "n_trials"] == pytest.approx(20.0)
    assert out.loc["Cori", "n_sessions"] == 2
    assert out.loc["Forssmann", "success_rate"] == pytest.approx(0.5)


def test_stimulus_summary():
    table = pd.DataFrame({
        "contrast_left": [0.0, 0.0, 1.0, 1.0, 1.0],
        "contrast_right": [0.0, 0.0, 0.5, 0.5, 0.5],
        "feedback": [1, -1, 1, 1, -1],
    })
    out = stimulus_summary(table).set_index(["contrast_left", "contrast_right"])
    assert out.loc[(0.0, 0.0), "n_trials"] == 2
    assert out.loc[(1.0, 0.5), "success_rate"] == pytest.approx(2 / 3)
