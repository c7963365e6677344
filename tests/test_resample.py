import numpy as np
import pandas as pd
import pytest

from risk_threshold.errors import InsufficientDataError, ResamplingError
from risk_threshold.resample import ConditionalResampler


def test_prevalence_at_trigger_is_untouched(dataset_factory):
    X, y = dataset_factory(950, 50)
    resampler = ConditionalResampler(minority_trigger=0.05, seed=42)
    X_r, y_r = resampler.fit_resample(X, y)

    assert X_r is X
    assert y_r is y
    assert resampler.report_.resampled is False
    assert resampler.report_.prevalence == pytest.approx(0.05)
    assert resampler.report_.n_after == 1000


def test_rare_minority_is_rebalanced(dataset_factory):
    X, y = dataset_factory(990, 10)
    resampler = ConditionalResampler(seed=42)
    X_r, y_r = resampler.fit_resample(X, y)

    n_min = int((y_r == 1).sum())
    n_maj = int((y_r == 0).sum())
    assert resampler.report_.resampled is True
    assert n_min >= 10
    assert n_maj == 990
    assert n_min / n_maj == pytest.approx(0.5, abs=0.02)
    assert len(X_r) == len(y_r)
    assert list(X_r.columns) == list(X.columns)


def test_original_rows_are_kept(dataset_factory):
    X, y = dataset_factory(495, 5)
    X_r, y_r = ConditionalResampler(seed=0).fit_resample(X, y)
    np.testing.assert_allclose(X_r.iloc[: len(X)].values, X.values)
    assert y_r.iloc[: len(y)].tolist() == y.tolist()


def test_resampling_is_seeded(dataset_factory):
    X, y = dataset_factory(990, 10)
    X_a, _ = ConditionalResampler(seed=7).fit_resample(X, y)
    X_b, _ = ConditionalResampler(seed=7).fit_resample(X, y)
    pd.testing.assert_frame_equal(X_a, X_b)


def test_synthetic_rows_lie_between_minority_samples(dataset_factory):
    X, y = dataset_factory(990, 10)
    X_r, _ = ConditionalResampler(seed=3).fit_resample(X, y)
    minority = X[y == 1]
    synthetic = X_r.iloc[len(X):]
    assert (synthetic.min() >= minority.min() - 1e-9).all()
    assert (synthetic.max() <= minority.max() + 1e-9).all()


def test_single_minority_sample_cannot_be_interpolated(dataset_factory):
    X, y = dataset_factory(999, 1)
    with pytest.raises(ResamplingError) as exc:
        ConditionalResampler().fit_resample(X, y)
    assert exc.value.n_minority == 1
    assert isinstance(exc.value, InsufficientDataError)


def test_two_minority_samples_are_enough(dataset_factory):
    X, y = dataset_factory(998, 2)
    X_r, y_r = ConditionalResampler(k_neighbors=5).fit_resample(X, y)
    assert int((y_r == 1).sum()) == 499
