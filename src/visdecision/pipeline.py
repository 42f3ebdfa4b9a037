"""End-to-end batch pipeline: sessions -> feature table -> model -> scores.

All session-level work (loading, summarising, feature extraction) finishes
before the table is sorted and split; the split and every model fit take
the seed from the configuration explicitly.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
import logging
import pandas as pd

from .classifier import ModelArtifact, OutcomeClassifier, RandomForestOutcomeClassifier, train_model
from .config import PipelineConfig
from .evaluate import evaluate_predictions
from .features import ID_COLUMNS, LABEL_COLUMN, extract_trial_features
from .integrate import (
    EmptyCorpusError,
    integrate_sessions,
    load_feature_table,
    require_rows,
)
from .io import load_sessions
from .preprocess import MissingValuePolicy
from .session import Session
from .split import train_validation_split
from .summary import mouse_summary, session_info, stimulus_summary

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    table: pd.DataFrame
    session_info: pd.DataFrame
    mouse_summary: pd.DataFrame
    stimulus_summary: pd.DataFrame
    train: pd.DataFrame
    valid: pd.DataFrame
    artifact: ModelArtifact
    valid_predictions: pd.DataFrame
    metrics: Dict[str, Any]
    final_artifact: Optional[ModelArtifact] = None
    test_predictions: pd.DataFrame = field(default_factory=pd.DataFrame)
    test_metrics: Optional[Dict[str, Any]] = None

    @property
    def importance(self) -> pd.DataFrame:
        return self.artifact.importance


def default_classifier(config: PipelineConfig) -> RandomForestOutcomeClassifier:
    return RandomForestOutcomeClassifier(
        n_estimators=config.n_estimators, random_state=config.seed, n_jobs=config.n_jobs
    )


def predict_frame(artifact: ModelArtifact, frame: pd.DataFrame) -> pd.DataFrame:
    """Identifier columns plus `predicted` (and `feedback` when the frame has it)."""
    out = frame[[c for c in ID_COLUMNS if c in frame.columns]].copy()
    out["predicted"] = artifact.predict(frame)
    if LABEL_COLUMN in frame.columns:
        out[LABEL_COLUMN] = frame[LABEL_COLUMN].to_numpy()
    return out


def held_out_feature_table(test_sessions: Sequence[Session]) -> pd.DataFrame:
    """Feature rows of held-out sessions, each session under its own columns."""
    frames = [extract_trial_features(s) for s in test_sessions]
    if not frames:
        return pd.DataFrame()
    return pd.concat(frames, axis=0, ignore_index=True)


def run_pipeline(
    config: PipelineConfig,
    classifier: Optional[OutcomeClassifier] = None,
    sessions: Optional[List[Session]] = None,
    test_sessions: Optional[List[Session]] = None,
) -> PipelineResult:
    """Run the whole analysis described by `config`.

    `sessions` / `test_sessions` bypass loading from disk when given.
    Raises EmptyCorpusError before any training when no trial survives.
    """
    if config.feature_table and sessions is None:
        logger.info('Reading pre-integrated feature table %s', config.feature_table)
        table = load_feature_table(config.feature_table)
        info = session_info([])
    else:
        if sessions is None:
            try:
                files = config.resolve_session_files()
            except FileNotFoundError as exc:
                raise EmptyCorpusError(f"{exc}; aborting before training") from exc
            logger.info('Loading %d session records', len(files))
            sessions = load_sessions(files, window=config.window)
        if not sessions:
            raise EmptyCorpusError('No sessions loaded successfully; aborting before training')
        info = session_info(sessions)
        table = integrate_sessions(sessions)
    require_rows(table)

    train, valid = train_validation_split(table, train_frac=config.train_frac, random_state=config.seed)
    logger.info('Split %d rows into %d train / %d validation (seed=%d)',
                len(table), len(train), len(valid), config.seed)

    classifier = classifier if classifier is not None else default_classifier(config)
    artifact = train_model(train, classifier, MissingValuePolicy(config.max_missing_frac))
    valid_pred = predict_frame(artifact, valid)
    metrics = evaluate_predictions(
        valid[LABEL_COLUMN].to_numpy(), valid_pred["predicted"].to_numpy(),
        confidence=config.confidence, ci_method=config.ci_method,
    )
    logger.info('Validation accuracy %.3f [%.3f, %.3f]',
                metrics["accuracy"], metrics["accuracy_ci_low"], metrics["accuracy_ci_high"])

    result = PipelineResult(
        table=table,
        session_info=info,
        mouse_summary=mouse_summary(info),
        stimulus_summary=stimulus_summary(table),
        train=train,
        valid=valid,
        artifact=artifact,
        valid_predictions=valid_pred,
        metrics=metrics,
    )

    if test_sessions is None and config.test_files:
        # held-out ids continue after the highest training id
        first_id = int(table["session_id"].max()) + 1
        test_sessions = load_sessions(config.test_files, window=config.window, start_id=first_id)
    if test_sessions:
        if config.refit_full:
            final = train_model(table, classifier, MissingValuePolicy(config.max_missing_frac))
        else:
            final = artifact
        test_table = held_out_feature_table(test_sessions)
        result.final_artifact = final
        result.test_predictions = predict_frame(final, test_table)
        if LABEL_COLUMN in test_table.columns:
            result.test_metrics = evaluate_predictions(
                test_table[LABEL_COLUMN].to_numpy(), result.test_predictions["predicted"].to_numpy(),
                confidence=config.confidence, ci_method=config.ci_method,
            )
            logger.info('Test accuracy %.3f on %d trials', result.test_metrics["accuracy"], len(test_table))
    return result
