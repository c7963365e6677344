import numpy as np
import pandas as pd
import pytest

from risk_threshold.data_prep import (
    FeaturePreprocessor,
    encode_labels,
    missing_value_count,
    prepare_features_and_target,
)
from risk_threshold.errors import InsufficientDataError


def test_encode_labels_benign_sentinel():
    labels = pd.Series(["benign", "ransomware", "trojan", "benign"], name="label")
    encoded = encode_labels(labels, "benign")
    assert encoded.tolist() == [0, 1, 1, 0]
    assert encoded.name == "label"


def test_encode_labels_is_idempotent():
    once = encode_labels(pd.Series(["benign", "x", "y", "benign"]), "benign")
    twice = encode_labels(once, 0)
    pd.testing.assert_series_equal(once, twice)


def test_encode_labels_numeric_column_with_string_sentinel():
    assert encode_labels(pd.Series([1, 0, 1]), "1").tolist() == [0, 1, 0]


def test_prepare_drops_id_and_coerces(raw_frame):
    raw_frame["f1"] = raw_frame["f1"].astype(object)
    raw_frame.loc[5, "f1"] = "n/a"
    X, y = prepare_features_and_target(raw_frame, "label", "benign", "id")

    assert "id" not in X.columns
    assert "label" not in X.columns
    assert set(y.unique()) == {0, 1}
    assert int(y.sum()) == 20
    assert np.isnan(X.loc[5, "f1"])
    assert all(dtype == float for dtype in X.dtypes)


def test_prepare_missing_label_column(raw_frame):
    with pytest.raises(InsufficientDataError) as exc:
        prepare_features_and_target(raw_frame, label_column="target")
    assert exc.value.column == "target"


def test_preprocessor_output_is_clean(raw_frame):
    X, _ = prepare_features_and_target(raw_frame)
    X.loc[10:20, "f2"] = np.nan

    pre = FeaturePreprocessor()
    X_out = pre.fit_transform(X)

    assert missing_value_count(X_out) == 0
    assert "constant" not in X_out.columns
    assert pre.dropped_columns_ == ["constant"]
    assert len(X_out) == len(X)
    assert np.allclose(X_out.mean(axis=0), 0.0, atol=1e-9)
    assert np.allclose(X_out.std(axis=0, ddof=0), 1.0)
    assert (X_out.var(axis=0) > 0).all()


def test_preprocessor_uses_median_for_imputation():
    X = pd.DataFrame({"a": [1.0, 2.0, np.nan, 100.0], "b": [0.0, 1.0, 0.0, 1.0]})
    pre = FeaturePreprocessor()
    pre.fit_transform(X)
    imputer = pre.pipeline_.named_steps["imputer"]
    assert imputer.statistics_[0] == 2.0


def test_preprocessor_all_missing_column():
    X = pd.DataFrame({"a": [1.0, 2.0, 3.0], "empty": [np.nan, np.nan, np.nan]})
    with pytest.raises(InsufficientDataError) as exc:
        FeaturePreprocessor().fit_transform(X)
    assert exc.value.column == "empty"


def test_preprocessor_all_constant_columns():
    X = pd.DataFrame({"a": [1.0, 1.0, 1.0], "b": [5.0, 5.0, 5.0]})
    with pytest.raises(InsufficientDataError, match="non-zero variance"):
        FeaturePreprocessor().fit_transform(X)


def test_preprocessor_infinite_values_name_the_column():
    X = pd.DataFrame({"a": [1.0, np.inf, 3.0], "b": [0.0, 1.0, 2.0]})
    with pytest.raises(InsufficientDataError, match="infinite") as exc:
        FeaturePreprocessor().fit_transform(X)
    assert exc.value.column == "a"
    assert exc.value.context()["column"] == "a"


def test_preprocessor_transform_reuses_fit():
    X = pd.DataFrame({"a": [1.0, 2.0, 3.0, 4.0], "b": [2.0, 2.0, 2.0, 2.0]})
    pre = FeaturePreprocessor()
    pre.fit_transform(X)
    out = pre.transform(pd.DataFrame({"a": [np.nan], "b": [9.0]}))
    assert list(out.columns) == ["a"]
    # Median 2.5 equals the column mean, so it standardizes to 0
    assert out.iloc[0, 0] == pytest.approx(0.0)


def test_transform_before_fit():
    with pytest.raises(RuntimeError):
        FeaturePreprocessor().transform(pd.DataFrame({"a": [1.0]}))
