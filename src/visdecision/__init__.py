"""visdecision package

Session loading, per-trial feature extraction, cross-session integration and
trial-outcome modeling for the mouse visual decision-making recordings.
Heavier pieces (pipeline, report) are imported explicitly:

    from visdecision.pipeline import run_pipeline
    from visdecision.report import write_report
"""

from .session import Session
from .io import SessionIntegrityError, load_session, load_sessions, session_from_record
from .features import extract_trial_features
from .integrate import EmptyCorpusError, integrate_sessions, align_to_training_schema

__all__ = [
    "Session",
    "SessionIntegrityError",
    "EmptyCorpusError",
    "load_session",
    "load_sessions",
    "session_from_record",
    "extract_trial_features",
    "integrate_sessions",
    "align_to_training_schema",
]
