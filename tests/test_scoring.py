import warnings

import numpy as np
import pytest

from risk_threshold import scoring
from risk_threshold.errors import ConvergenceWarning
from risk_threshold.folds import FoldAssigner
from risk_threshold.scoring import CalibratedScorer, build_base_estimator, score_fold


@pytest.fixture
def folded(dataset_factory):
    X, y = dataset_factory(160, 40, seed=4)
    fold_ids = FoldAssigner(n_folds=4, seed=0).assign(X, y)
    return X, y, fold_ids


def test_every_row_scored_once_by_held_out_model(folded):
    X, y, fold_ids = folded
    scorer = CalibratedScorer()
    scores = scorer.score_all(X, y, fold_ids)

    assert [s.fold for s in scores] == [1, 2, 3, 4]
    covered = np.concatenate([s.test_index for s in scores])
    assert sorted(covered.tolist()) == list(range(len(y)))
    for s in scores:
        assert (fold_ids[s.test_index] == s.fold).all()
        assert s.n_train == int((fold_ids != s.fold).sum())
        assert s.converged
        assert not s.failed

    oof = scorer.out_of_fold(scores, len(y))
    assert np.isfinite(oof).all()
    assert ((oof >= 0) & (oof <= 1)).all()


def test_probabilities_rank_positives_higher(folded):
    X, y, fold_ids = folded
    scorer = CalibratedScorer()
    oof = scorer.out_of_fold(scorer.score_all(X, y, fold_ids), len(y))
    assert oof[y.values == 1].mean() > oof[y.values == 0].mean()


def test_convergence_failure_is_soft(folded):
    X, y, fold_ids = folded
    params = dict(base_estimator="logistic", calibration_cv=3, max_iter=1, seed=0)

    with pytest.warns(ConvergenceWarning, match="Fold 2"):
        result = score_fold(X, y, fold_ids, 2, params)

    assert result.converged is False
    assert not result.failed
    assert np.isfinite(result.probabilities).all()


def test_fitting_error_marks_fold_failed(folded, monkeypatch):
    X, y, fold_ids = folded

    def broken(*args, **kwargs):
        raise ValueError("solver exploded")

    monkeypatch.setattr(scoring, "build_calibrated_model", broken)
    result = CalibratedScorer().score_fold(X, y, fold_ids, 3)

    assert result.failed
    assert result.error == "solver exploded"
    oof = CalibratedScorer.out_of_fold([result], len(y))
    assert np.isnan(oof).all()


def test_parallel_scoring_matches_sequential(folded):
    X, y, fold_ids = folded
    sequential = CalibratedScorer(n_jobs=1)
    parallel = CalibratedScorer(n_jobs=2)
    a = sequential.out_of_fold(sequential.score_all(X, y, fold_ids), len(y))
    b = parallel.out_of_fold(parallel.score_all(X, y, fold_ids), len(y))
    np.testing.assert_allclose(a, b)


def test_each_fold_gets_its_own_model(folded, monkeypatch):
    X, y, fold_ids = folded
    built = []
    original = scoring.build_calibrated_model

    def tracking(*args, **kwargs):
        model = original(*args, **kwargs)
        built.append(model)
        return model

    monkeypatch.setattr(scoring, "build_calibrated_model", tracking)
    CalibratedScorer().score_all(X, y, fold_ids)

    assert len(built) == 4
    assert len({id(m) for m in built}) == 4


def test_xgboost_base_estimator(folded):
    X, y, fold_ids = folded
    scorer = CalibratedScorer(base_estimator="xgboost")
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        result = scorer.score_fold(X, y, fold_ids, 1)
    assert not result.failed
    assert ((result.probabilities >= 0) & (result.probabilities <= 1)).all()


def test_unknown_base_estimator():
    with pytest.raises(ValueError):
        build_base_estimator("svm")


def test_fit_final_uses_all_rows(folded):
    X, y, _ = folded
    model = CalibratedScorer().fit_final(X, y)
    proba = model.predict_proba(X)[:, 1]
    assert proba.shape == (len(y),)
