"""Outcome classifiers and the trained-model artifact.

The learning algorithm is injected: anything with `fit(X, y)` returning a
fitted model that offers `predict(X)` and `importances()` can be used.

- RandomForestOutcomeClassifier: sklearn random forest, importances are the
  mean decrease in impurity.
- ContrastRuleClassifier: deterministic stimulus-only rule (+1 iff the two
  contrasts differ), handy as a wiring check and as a baseline.

`train_model` wires a classifier to a `MissingValuePolicy` and returns a
`ModelArtifact` that can score any frame aligned to the training schema.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence
import logging
import numpy as np
import pandas as pd
from sklearn.ensemble import RandomForestClassifier

from .evaluate import LABELS, rank_feature_importances
from .features import LABEL_COLUMN
from .integrate import align_to_training_schema
from .preprocess import MissingValuePolicy, feature_columns

logger = logging.getLogger(__name__)


class FittedModel(Protocol):
    feature_names: List[str]

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        ...

    def importances(self) -> np.ndarray:
        ...


class OutcomeClassifier(Protocol):
    def fit(self, X: pd.DataFrame, y: Sequence[int]) -> FittedModel:
        ...


def _check_inputs(X: pd.DataFrame, y: Optional[Sequence[int]] = None):
    if X.isna().to_numpy().any():
        bad = list(X.columns[X.isna().any(axis=0)])
        raise ValueError(f"Missing values reached the classifier in columns {bad}; apply a MissingValuePolicy first")
    if y is not None:
        labels = set(np.unique(np.asarray(y)).tolist())
        if not labels <= set(LABELS):
            raise ValueError(f"Labels must be in {LABELS}, got {sorted(labels)}")


class SklearnFittedModel:
    def __init__(self, estimator, feature_names: List[str]):
        self.estimator = estimator
        self.feature_names = list(feature_names)

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        X = X.reindex(columns=self.feature_names)
        _check_inputs(X)
        return np.asarray(self.estimator.predict(X.to_numpy()), dtype=int)

    def importances(self) -> np.ndarray:
        return np.asarray(self.estimator.feature_importances_, dtype=float)


class RandomForestOutcomeClassifier:
    """Random forest with a fixed seed (500 trees by default)."""

    def __init__(self, n_estimators: int = 500, random_state: int = 0, n_jobs: Optional[int] = None, **params):
        self.n_estimators = n_estimators
        self.random_state = random_state
        self.n_jobs = n_jobs
        self.params = params

    def fit(self, X: pd.DataFrame, y: Sequence[int]) -> SklearnFittedModel:
        _check_inputs(X, y)
        est = RandomForestClassifier(
            n_estimators=self.n_estimators,
            random_state=self.random_state,
            n_jobs=self.n_jobs,
            **self.params,
        )
        est.fit(X.to_numpy(), np.asarray(y, dtype=int))
        return SklearnFittedModel(est, list(X.columns))


class ContrastRuleModel:
    RULE_COLUMNS = ("contrast_left", "contrast_right")

    def __init__(self, feature_names: List[str]):
        self.feature_names = list(feature_names)

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        left = X["contrast_left"].to_numpy(dtype=float)
        right = X["contrast_right"].to_numpy(dtype=float)
        return np.where(left != right, 1, -1)

    def importances(self) -> np.ndarray:
        return np.array([0.5 if c in self.RULE_COLUMNS else 0.0 for c in self.feature_names])


class ContrastRuleClassifier:
    """Predict success iff the left and right contrasts differ."""

    def fit(self, X: pd.DataFrame, y: Sequence[int]) -> ContrastRuleModel:
        missing = [c for c in ContrastRuleModel.RULE_COLUMNS if c not in X.columns]
        if missing:
            raise ValueError(f"ContrastRuleClassifier needs columns {missing}")
        return ContrastRuleModel(list(X.columns))


@dataclass
class ModelArtifact:
    model: FittedModel
    policy: MissingValuePolicy
    input_columns: List[str]
    importance: pd.DataFrame = field(default_factory=pd.DataFrame)

    @property
    def feature_names(self) -> List[str]:
        return list(self.model.feature_names)

    def prepare(self, frame: pd.DataFrame) -> pd.DataFrame:
        """Align `frame` to the training schema and apply the missing-value policy."""
        aligned = align_to_training_schema(frame, self.input_columns, label=None)
        return self.policy.transform(aligned)

    def predict(self, frame: pd.DataFrame) -> np.ndarray:
        return self.model.predict(self.prepare(frame))


def train_model(
    train: pd.DataFrame,
    classifier: OutcomeClassifier,
    policy: Optional[MissingValuePolicy] = None,
    label: str = LABEL_COLUMN,
) -> ModelArtifact:
    """Fit `policy` and `classifier` on the training rows."""
    if len(train) == 0:
        raise ValueError('Cannot train on an empty table')
    policy = policy if policy is not None else MissingValuePolicy()
    cols = feature_columns(train)
    X = policy.fit_transform(train[cols])
    y = train[label].to_numpy(dtype=int)
    logger.info('Training %s on %d rows x %d features', type(classifier).__name__, X.shape[0], X.shape[1])
    model = classifier.fit(X, y)
    importance = rank_feature_importances(model.feature_names, model.importances())
    return ModelArtifact(model=model, policy=policy, input_columns=cols, importance=importance)
