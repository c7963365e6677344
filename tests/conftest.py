import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest


def make_dataset(n_negative, n_positive, n_features=4, shift=1.5, seed=0):
    """Gaussian blobs: positives shifted by `shift` along every feature."""
    rng = np.random.RandomState(seed)
    X_neg = rng.normal(0.0, 1.0, size=(n_negative, n_features))
    X_pos = rng.normal(shift, 1.0, size=(n_positive, n_features))
    X = pd.DataFrame(
        np.vstack([X_neg, X_pos]),
        columns=[f"f{i}" for i in range(n_features)],
    )
    y = pd.Series([0] * n_negative + [1] * n_positive, name="label")

    # Shuffle rows so classes are interleaved
    order = rng.permutation(len(y))
    return X.iloc[order].reset_index(drop=True), y.iloc[order].reset_index(drop=True)


@pytest.fixture
def dataset_factory():
    return make_dataset


@pytest.fixture
def raw_frame():
    """Raw frame with id, string labels, a missing value and a constant column."""
    X, y = make_dataset(180, 20, n_features=3, seed=1)
    df = X.copy()
    df.insert(0, "id", [f"acct-{i}" for i in range(len(df))])
    df["constant"] = 7.0
    df.loc[3, "f0"] = np.nan
    df["label"] = np.where(y == 1, "ransomware", "benign")
    return df


@pytest.fixture
def raw_csv(tmp_path, raw_frame):
    path = tmp_path / "accounts.csv"
    raw_frame.to_csv(path, index=False)
    return str(path)
