"""Descriptive summaries at session, mouse and stimulus-condition level.

Functions
- summarize_session(session): one JSON-serializable dict per session
- session_info(sessions): DataFrame of per-session summaries
- mouse_summary(info): unweighted per-mouse means of the session metrics
- stimulus_summary(table): trial counts and success rate per contrast pair
"""
from typing import Any, Dict, Iterable
import logging
import numpy as np
import pandas as pd

from .session import Session

logger = logging.getLogger(__name__)

SESSION_METRICS = ["n_trials", "success_rate", "n_neurons", "unique_brain_areas"]


def summarize_session(session: Session) -> Dict[str, Any]:
    """Return a JSON-serializable summary dict for a session.

    Raises ZeroDivisionError for a session without trials.
    """
    n_trials = int(len(session.feedback_type))
    n_success = int(np.sum(np.asarray(session.feedback_type) == 1))
    if n_trials == 0:
        raise ZeroDivisionError(f"session {session.session_id} has no trials")
    return {
        "session_id": int(session.session_id),
        "mouse_name": session.mouse_name,
        "date_exp": session.date_exp,
        "n_trials": n_trials,
        "success_rate": n_success / n_trials,
        "n_neurons": int(len(session.brain_area)),
        "unique_brain_areas": int(len(set(session.brain_area))),
    }


def session_info(sessions: Iterable[Session]) -> pd.DataFrame:
    """Per-session summary table; sessions without trials are reported and left out."""
    rows = []
    for s in sessions:
        try:
            rows.append(summarize_session(s))
        except ZeroDivisionError as exc:
            logger.warning('Excluding session from summary: %s', exc)
    columns = ["session_id", "mouse_name", "date_exp"] + SESSION_METRICS
    return pd.DataFrame(rows, columns=columns)


def mouse_summary(info: pd.DataFrame) -> pd.DataFrame:
    """Mean of each per-session metric grouped by mouse.

    Every session counts once regardless of how many trials it holds; a
    50-trial session and a 500-trial session weigh the same.
    """
    if info.empty:
        return pd.DataFrame(columns=["mouse_name", "n_sessions"] + SESSION_METRICS)
    grouped = info.groupby("mouse_name", sort=True)
    out = grouped[SESSION_METRICS].mean()
    out.insert(0, "n_sessions", grouped.size())
    return out.reset_index()


def stimulus_summary(table: pd.DataFrame) -> pd.DataFrame:
    """Trial count and success rate for every (contrast_left, contrast_right) pair."""
    if table.empty:
        return pd.DataFrame(columns=["contrast_left", "contrast_right", "n_trials", "success_rate"])
    grouped = table.groupby(["contrast_left", "contrast_right"], sort=True)["feedback"]
    out = pd.DataFrame({
        "n_trials": grouped.size(),
        "success_rate": grouped.apply(lambda fb: float(np.mean(fb == 1))),
    })
    return out.reset_index()
