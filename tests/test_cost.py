import numpy as np
import pytest

from risk_threshold.cost import confusion_counts, misclassification_cost


@pytest.mark.parametrize("labels", [[0, 0, 0], [1, 1], [0, 1, 1, 0, 1], []])
def test_perfect_prediction_costs_nothing(labels):
    assert misclassification_cost(labels, labels) == 0.0


def test_false_negatives_cost_ten_times_more():
    y_true = [0, 1, 1, 0]
    y_pred = [1, 0, 1, 0]  # one FP, one FN
    assert misclassification_cost(y_true, y_pred) == 11.0
    assert misclassification_cost(y_true, y_pred, fp_weight=2.0, fn_weight=1000.0) == 1002.0


def test_cost_is_monotone_in_each_error_type():
    y_true = np.array([0, 0, 0, 1, 1, 1])
    base = np.array([0, 0, 0, 1, 1, 1])

    more_fp = base.copy()
    more_fp[0] = 1
    more_fp_2 = more_fp.copy()
    more_fp_2[1] = 1
    assert misclassification_cost(y_true, base) < misclassification_cost(y_true, more_fp)
    assert misclassification_cost(y_true, more_fp) < misclassification_cost(y_true, more_fp_2)

    more_fn = base.copy()
    more_fn[3] = 0
    assert misclassification_cost(y_true, base) < misclassification_cost(y_true, more_fn)


def test_confusion_counts_single_class():
    counts = confusion_counts([0, 0, 0], [0, 1, 0])
    assert counts == {"tn": 2, "fp": 1, "fn": 0, "tp": 0}


def test_length_mismatch():
    with pytest.raises(ValueError):
        misclassification_cost([0, 1], [0])


def test_empty_vectors_have_zero_counts():
    assert confusion_counts([], []) == {"tn": 0, "fp": 0, "fn": 0, "tp": 0}
    assert misclassification_cost(np.array([], dtype=int), np.array([], dtype=int)) == 0.0
