import numpy as np
import pandas as pd
import pytest

from visdecision.integrate import (
    BASE_COLUMNS,
    align_to_training_schema,
    integrate_sessions,
    load_feature_table,
    require_rows,
    save_feature_table,
    EmptyCorpusError,
)


@pytest.fixture
def sessions(session_factory):
    return [
        session_factory(session_id=1, n_trials=12, areas=("VISp", "CA1"), seed=1),
        session_factory(session_id=2, n_trials=7, areas=("VISp", "MOs", "MOs"), seed=2, mouse="Lederberg"),
        session_factory(session_id=4, n_trials=5, areas=(), seed=3),
    ]


def test_row_count_and_order(sessions):
    table = integrate_sessions(list(reversed(sessions)))
    assert len(table) == sum(s.n_trials for s in sessions)
    keys = list(zip(table["session_id"], table["trial_id"]))
    assert keys == sorted(keys)
    assert not table.duplicated(["session_id", "trial_id"]).any()


def test_union_schema_with_missing_not_zero(sessions):
    table = integrate_sessions(sessions)
    assert list(table.columns[:len(BASE_COLUMNS)]) == BASE_COLUMNS
    assert table.columns[-1] == "feedback"
    assert {"rate_visp", "rate_ca1", "rate_mos"} <= set(table.columns)
    s2 = table[table["session_id"] == 2]
    assert s2["rate_ca1"].isna().all()
    assert s2["rate_mos"].notna().all()
    s4 = table[table["session_id"] == 4]
    assert s4["avg_firing_rate"].isna().all()
    assert s4["rate_visp"].isna().all()
    assert s4["contrast_sum"].notna().all()


def test_empty_input_warns_and_abort_is_explicit():
    table = integrate_sessions([])
    assert len(table) == 0
    assert "feedback" in table.columns
    with pytest.raises(EmptyCorpusError):
        require_rows(table)


def test_feature_table_round_trip(tmp_path, sessions):
    table = integrate_sessions(sessions)
    path = save_feature_table(table, str(tmp_path / "features.csv"))
    loaded = load_feature_table(path)
    assert list(loaded.columns) == list(table.columns)
    assert len(loaded) == len(table)
    assert loaded["rate_ca1"].isna().sum() == table["rate_ca1"].isna().sum()


def test_feature_table_requires_columns(tmp_path):
    p = tmp_path / "bad.csv"
    pd.DataFrame({"session_id": [1], "feedback": [1]}).to_csv(p, index=False)
    with pytest.raises(ValueError):
        load_feature_table(str(p))


def test_schema_intersection_against_training():
    test = pd.DataFrame({"A": [1.0, 2.0], "c": [3.0, 4.0], "D": [5.0, 6.0]})
    aligned = align_to_training_schema(test, ["a", "b", "c", "feedback"])
    assert list(aligned.columns) == ["a", "b", "c"]
    assert "d" not in aligned.columns
    assert aligned["b"].isna().all()
    assert aligned["a"].tolist() == [1.0, 2.0]


def test_schema_alignment_keeps_label_when_present():
    test = pd.DataFrame({"a": [1.0], "Feedback": [-1]})
    aligned = align_to_training_schema(test, ["a", "b", "feedback"])
    assert list(aligned.columns) == ["a", "b", "feedback"]
    assert aligned["feedback"].tolist() == [-1]
    assert np.isnan(aligned["b"].iloc[0])
