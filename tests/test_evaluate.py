import math

import numpy as np
import pytest

from visdecision.evaluate import (
    accuracy_ci,
    confusion_table,
    evaluate_predictions,
    metrics_to_json,
    rank_feature_importances,
)

Y_TRUE = [1, 1, 1, -1, -1]
Y_PRED = [1, 1, -1, -1, 1]


def test_confusion_rows_are_predicted():
    table = confusion_table(Y_TRUE, Y_PRED)
    assert table.index.name == "predicted"
    assert table.columns.name == "true"
    assert table.loc[1, 1] == 2   # TP
    assert table.loc[1, -1] == 1  # FP
    assert table.loc[-1, 1] == 1  # FN
    assert table.loc[-1, -1] == 1  # TN
    assert table.to_numpy().sum() == 5


def test_metrics():
    m = evaluate_predictions(Y_TRUE, Y_PRED)
    assert m["accuracy"] == pytest.approx(0.6)
    assert m["sensitivity"] == pytest.approx(2 / 3)
    assert m["specificity"] == pytest.approx(0.5)
    assert m["balanced_accuracy"] == pytest.approx((2 / 3 + 0.5) / 2)
    assert m["accuracy_ci_low"] < 0.6 < m["accuracy_ci_high"]
    assert m["no_information_rate"] == pytest.approx(0.6)
    assert 0.0 <= m["p_accuracy_gt_nir"] <= 1.0


def test_wilson_interval_matches_formula():
    k, n = 30, 50
    z = 1.959963984540054
    p = k / n
    denom = 1 + z ** 2 / n
    center = (p + z ** 2 / (2 * n)) / denom
    half = z * math.sqrt(p * (1 - p) / n + z ** 2 / (4 * n ** 2)) / denom
    low, high = accuracy_ci(k, n, method="wilson")
    assert low == pytest.approx(center - half, rel=1e-6)
    assert high == pytest.approx(center + half, rel=1e-6)


def test_exact_interval_is_wider_than_wilson_at_extremes():
    low_exact, _ = accuracy_ci(49, 50, method="exact")
    low_wilson, _ = accuracy_ci(49, 50, method="wilson")
    assert low_exact < low_wilson


def test_empty_denominators_are_nan():
    m = evaluate_predictions([1, 1], [1, 1])
    assert m["accuracy"] == 1.0
    assert np.isnan(m["specificity"])
    assert np.isnan(m["kappa"])
    js = metrics_to_json(m)
    assert js["specificity"] is None
    assert js["confusion_matrix"]["counts"] == [[0, 0], [0, 2]]


def test_rank_is_stable_on_ties():
    ranked = rank_feature_importances(["a", "b", "c", "d"], [0.1, 0.3, 0.1, 0.3])
    assert ranked["feature"].tolist() == ["b", "d", "a", "c"]
    assert ranked["rank"].tolist() == [1, 2, 3, 4]
    assert ranked["importance"].is_monotonic_decreasing


def test_rank_length_mismatch():
    with pytest.raises(ValueError):
        rank_feature_importances(["a"], [0.1, 0.2])
