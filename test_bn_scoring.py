from math import log

import numpy as np
import pandas as pd
import pytest

from bn_factors import ckde_logl, discrete_logl, k2_local_score, linear_gaussian_logl
from bn_model import DiscreteBN, GaussianBN, NodeType, SemiparametricBN
from bn_scoring import (BIC, CVLikelihood, HoldoutLikelihood, K2Score, ValidatedLikelihood, cardinalities,
                        holdout_indices, infer_bn_type, kfold_indices, load_discrete_data)


@pytest.fixture
def discrete_df():
    rng = np.random.default_rng(1)
    x = rng.integers(1, 3, size=400)
    y = np.where(rng.random(400) < 0.9, x, 3 - x)
    z = rng.integers(1, 4, size=400)
    return pd.DataFrame({"X": x, "Y": y, "Z": z})


@pytest.fixture
def nonlinear_df():
    rng = np.random.default_rng(2)
    x = rng.uniform(-2, 2, size=400)
    y = x ** 2 + 0.3 * rng.normal(size=400)
    return pd.DataFrame({"X": x, "Y": y})


def test_load_discrete_data(tmp_path):
    path = tmp_path / "small.csv"
    path.write_text("a,b\n1,2\n2,2\n")
    df = load_discrete_data(str(path))
    assert list(df.columns) == ["a", "b"]
    assert cardinalities(df) == {"a": 2, "b": 1}


def test_k2_by_hand():
    df = pd.DataFrame({"X": [1, 1, 2]})
    # lgamma(2) - lgamma(5) + lgamma(3) + lgamma(2)
    assert k2_local_score(df, "X", [], {"X": 2}) == pytest.approx(log(2) - log(24))


def test_discrete_logl_laplace_smoothing():
    train = pd.DataFrame({"X": [1, 1, 2]})
    test = pd.DataFrame({"X": [1, 2]})
    assert discrete_logl(train, test, "X", [], 2) == pytest.approx(log(3 / 5) + log(2 / 5))


def test_discrete_logl_unseen_parent_configuration():
    train = pd.DataFrame({"P": [1, 1], "X": [1, 2]})
    test = pd.DataFrame({"P": [2], "X": [1]})
    assert discrete_logl(train, test, "X", ["P"], 2) == pytest.approx(log(1 / 2))


def test_k2_and_bic_prefer_true_parent(discrete_df):
    for score in (K2Score(discrete_df), BIC(discrete_df)):
        assert score.local_score_parents(NodeType.DISCRETE, "Y", ["X"]) > \
            score.local_score_parents(NodeType.DISCRETE, "Y", [])
        assert score.local_score_parents(NodeType.DISCRETE, "Z", ["X"]) < \
            score.local_score_parents(NodeType.DISCRETE, "Z", [])


def test_score_is_sum_of_local_scores(discrete_df):
    score = K2Score(discrete_df)
    bn = DiscreteBN(discrete_df.columns, [("X", "Y")])
    assert score.score(bn) == pytest.approx(sum(score.local_score(bn, n) for n in bn.nodes))


def test_gaussian_bic(nonlinear_df):
    rng = np.random.default_rng(3)
    a = rng.normal(size=300)
    df = pd.DataFrame({"A": a, "B": a + 0.5 * rng.normal(size=300)})
    score = BIC(df)
    assert score.local_score_parents(NodeType.LINEAR_GAUSSIAN, "B", ["A"]) > \
        score.local_score_parents(NodeType.LINEAR_GAUSSIAN, "B", [])
    with pytest.raises(ValueError):
        score.local_score_parents(NodeType.CKDE, "B", [])


def test_ckde_beats_linear_gaussian_on_nonlinear_data(nonlinear_df):
    train, test = nonlinear_df.iloc[:300], nonlinear_df.iloc[300:]
    ckde = ckde_logl(train, test, "Y", ["X"])
    lg = linear_gaussian_logl(train, test, "Y", ["X"])
    assert np.isfinite(ckde)
    assert ckde > lg


def test_kfold_indices_partition():
    seen = []
    for train, test in kfold_indices(23, 5, seed=0):
        assert set(train).isdisjoint(test)
        assert len(train) + len(test) == 23
        seen.extend(test)
    assert sorted(seen) == list(range(23))
    with pytest.raises(ValueError):
        list(kfold_indices(3, 5))


def test_holdout_indices():
    train, test = holdout_indices(50, 0.2, seed=0)
    assert len(test) == 10 and len(train) == 40
    assert set(train).isdisjoint(test)
    with pytest.raises(ValueError):
        holdout_indices(50, 1.5)


def test_infer_bn_type(discrete_df, nonlinear_df):
    assert infer_bn_type(discrete_df) == "discrete"
    assert infer_bn_type(nonlinear_df) == "gaussian"
    with pytest.raises(ValueError):
        infer_bn_type(pd.DataFrame({"a": [1, 2], "b": [0.5, 1.5]}))


def test_cv_and_holdout_likelihood(nonlinear_df):
    cv = CVLikelihood(nonlinear_df, k=5, seed=0)
    assert len(cv.folds) == 5
    holdout = HoldoutLikelihood(nonlinear_df, test_ratio=0.25, seed=0)
    assert len(holdout.test_data) == 100
    for score in (cv, holdout):
        assert score.local_score_parents(NodeType.CKDE, "Y", ["X"]) > \
            score.local_score_parents(NodeType.LINEAR_GAUSSIAN, "Y", ["X"])


def test_validated_likelihood_separates_paths(nonlinear_df):
    score = ValidatedLikelihood(nonlinear_df, test_ratio=0.2, k=5, seed=0)
    bn = SemiparametricBN(["X", "Y"], [("X", "Y")])
    assert score.local_score(bn, "Y") == pytest.approx(score.cv.local_score(bn, "Y"))
    assert score.vlocal_score(bn, "Y") == pytest.approx(score.holdout.local_score(bn, "Y"))
    assert score.vscore(bn) == pytest.approx(score.vlocal_score(bn, "X") + score.vlocal_score(bn, "Y"))
    assert len(score.cv.data) == 320


def test_compatibility(discrete_df):
    assert K2Score(discrete_df).compatible_bn(DiscreteBN(["X"]))
    assert not K2Score(discrete_df).compatible_bn(GaussianBN(["X"]))
    assert not BIC(discrete_df).compatible_bn(SemiparametricBN(["X"]))
    assert ValidatedLikelihood(discrete_df, k=3, seed=0).compatible_bn(SemiparametricBN(["X"]))


def test_ckde_singular_bandwidth_names_node():
    df = pd.DataFrame({"X": np.linspace(0, 1, 50), "C": np.ones(50)})
    with pytest.raises(ValueError, match="node C"):
        ckde_logl(df, df, "C", [])
    with pytest.raises(ValueError, match="node C"):
        ckde_logl(df, df, "C", ["X"])


def test_splits_reproducible_with_seed():
    first = [test for _, test in kfold_indices(30, 3, seed=7)]
    second = [test for _, test in kfold_indices(30, 3, seed=7)]
    assert all(np.array_equal(a, b) for a, b in zip(first, second))
    assert np.array_equal(holdout_indices(30, 0.3, seed=7)[1], holdout_indices(30, 0.3, seed=7)[1])
