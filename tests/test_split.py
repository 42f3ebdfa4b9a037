import numpy as np
import pandas as pd
import pytest

from visdecision.split import stratified_split_indices, train_validation_split


def _table(n=400, p=0.7, seed=0):
    rng = np.random.RandomState(seed)
    return pd.DataFrame({
        "session_id": np.repeat([1, 2], n // 2),
        "trial_id": np.tile(np.arange(1, n // 2 + 1), 2),
        "feedback": np.where(rng.rand(n) < p, 1, -1),
    })


def test_partition_is_complete_and_disjoint():
    table = _table()
    train_idx, valid_idx = stratified_split_indices(table["feedback"].to_numpy(), 0.8, random_state=3)
    assert len(train_idx) + len(valid_idx) == len(table)
    assert len(np.intersect1d(train_idx, valid_idx)) == 0
    assert np.array_equal(np.union1d(train_idx, valid_idx), np.arange(len(table)))


def test_same_seed_same_partition():
    table = _table()
    a = train_validation_split(table, random_state=141)
    b = train_validation_split(table, random_state=141)
    assert a[0].index.equals(b[0].index)
    assert a[1].index.equals(b[1].index)
    c = train_validation_split(table, random_state=142)
    assert not a[0].index.equals(c[0].index)


@pytest.mark.parametrize("p", [0.3, 0.5, 0.71])
@pytest.mark.parametrize("n", [100, 257, 1000])
def test_label_balance_preserved(n, p):
    table = _table(n=n - n % 2, p=p, seed=n)
    overall = (table["feedback"] == 1).mean()
    train, valid = train_validation_split(table, train_frac=0.8, random_state=0)
    assert abs((train["feedback"] == 1).mean() - overall) <= 0.02 + 1e-9
    assert abs((valid["feedback"] == 1).mean() - overall) <= 0.02 + 1e-9
    assert len(train) == pytest.approx(0.8 * len(table), abs=2)


def test_bad_fraction():
    with pytest.raises(ValueError):
        stratified_split_indices(np.array([1, -1]), train_frac=1.0)
