"""Scoring of outcome predictions and feature-importance ranking.

Conventions
- Labels are -1 (failure) and +1 (success); +1 is the positive class.
- The confusion matrix has predicted classes on the rows and true classes
  on the columns, both ordered (-1, +1).
- Accuracy carries a 95% binomial confidence interval, Clopper-Pearson
  ("exact") by default or Wilson on request.
"""
from typing import Any, Dict, Sequence
import numpy as np
import pandas as pd
from scipy import stats
from sklearn.metrics import cohen_kappa_score, confusion_matrix

LABELS = (-1, 1)


def confusion_table(y_true: Sequence[int], y_pred: Sequence[int]) -> pd.DataFrame:
    """2x2 counts, rows = predicted, columns = true."""
    cm = confusion_matrix(np.asarray(y_true), np.asarray(y_pred), labels=list(LABELS))
    return pd.DataFrame(
        cm.T,
        index=pd.Index(LABELS, name="predicted"),
        columns=pd.Index(LABELS, name="true"),
    )


def _ratio(num: int, den: int) -> float:
    return float(num) / den if den > 0 else float("nan")


def accuracy_ci(n_correct: int, n_total: int, confidence: float = 0.95, method: str = "exact"):
    """Binomial confidence interval on accuracy; method 'exact' or 'wilson'."""
    if n_total == 0:
        return float("nan"), float("nan")
    ci = stats.binomtest(int(n_correct), int(n_total)).proportion_ci(
        confidence_level=confidence, method=method
    )
    return float(ci.low), float(ci.high)


def evaluate_predictions(
    y_true: Sequence[int],
    y_pred: Sequence[int],
    confidence: float = 0.95,
    ci_method: str = "exact",
) -> Dict[str, Any]:
    """Accuracy, CI, sensitivity/specificity and a few agreement statistics.

    sensitivity is the recall of the +1 class, specificity the recall of
    the -1 class. Ratios with an empty denominator are NaN.
    """
    y_true = np.asarray(y_true)
    y_pred = np.asarray(y_pred)
    if y_true.shape != y_pred.shape:
        raise ValueError(f"y_true {y_true.shape} and y_pred {y_pred.shape} differ in shape")
    table = confusion_table(y_true, y_pred)
    tp = int(table.loc[1, 1])
    tn = int(table.loc[-1, -1])
    fp = int(table.loc[1, -1])
    fn = int(table.loc[-1, 1])
    n = int(len(y_true))
    correct = tp + tn

    ci_low, ci_high = accuracy_ci(correct, n, confidence=confidence, method=ci_method)
    sensitivity = _ratio(tp, tp + fn)
    specificity = _ratio(tn, tn + fp)

    # no-information rate: accuracy of always predicting the majority class
    if n > 0:
        nir = max(np.mean(y_true == 1), np.mean(y_true == -1))
        p_acc_gt_nir = float(stats.binomtest(correct, n, p=nir, alternative="greater").pvalue) if nir < 1 else float("nan")
    else:
        nir = float("nan")
        p_acc_gt_nir = float("nan")
    if n > 0 and len(np.unique(np.concatenate([y_true, y_pred]))) > 1:
        kappa = float(cohen_kappa_score(y_true, y_pred, labels=list(LABELS)))
    else:
        kappa = float("nan")

    return {
        "n": n,
        "confusion_matrix": table,
        "accuracy": _ratio(correct, n),
        "accuracy_ci_low": ci_low,
        "accuracy_ci_high": ci_high,
        "ci_method": ci_method,
        "confidence": confidence,
        "sensitivity": sensitivity,
        "specificity": specificity,
        "balanced_accuracy": float(np.nanmean([sensitivity, specificity])) if n > 0 else float("nan"),
        "kappa": kappa,
        "no_information_rate": float(nir),
        "p_accuracy_gt_nir": p_acc_gt_nir,
    }


def metrics_to_json(metrics: Dict[str, Any]) -> Dict[str, Any]:
    """JSON-friendly copy of `evaluate_predictions` output."""
    out = {}
    for k, v in metrics.items():
        if isinstance(v, pd.DataFrame):
            out[k] = {
                "rows": "predicted",
                "columns": "true",
                "labels": list(LABELS),
                "counts": v.to_numpy().tolist(),
            }
        elif isinstance(v, (np.floating, float)):
            out[k] = None if np.isnan(v) else float(v)
        elif isinstance(v, np.integer):
            out[k] = int(v)
        else:
            out[k] = v
    return out


def rank_feature_importances(names: Sequence[str], scores: Sequence[float]) -> pd.DataFrame:
    """Features sorted by importance, descending; ties keep column order."""
    names = list(names)
    scores = np.asarray(scores, dtype=float)
    if len(names) != len(scores):
        raise ValueError(f"{len(names)} feature names but {len(scores)} importance scores")
    df = pd.DataFrame({"feature": names, "importance": scores})
    df = df.sort_values("importance", ascending=False, kind="stable").reset_index(drop=True)
    df.insert(0, "rank", np.arange(1, len(df) + 1))
    return df
