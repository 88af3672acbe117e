"""Decomposable scores: score(model) is the sum of per-node local scores."""
import logging
from typing import Dict, List

import numpy as np
import pandas as pd
from sklearn.model_selection import KFold, train_test_split

from bn_factors import discrete_bic, gaussian_bic, k2_local_score, local_logl
from bn_model import NodeType

logger = logging.getLogger(__name__)


def load_discrete_data(path: str) -> pd.DataFrame:
    df = pd.read_csv(path)
    for c in df.columns:
        df[c] = df[c].astype(int)
    return df


def load_continuous_data(path: str) -> pd.DataFrame:
    df = pd.read_csv(path)
    for c in df.columns:
        df[c] = pd.to_numeric(df[c], errors="coerce")
    return df.dropna().astype(float)


def cardinalities(df: pd.DataFrame) -> Dict[str, int]:
    return {col: int(df[col].nunique()) for col in df.columns}


def infer_bn_type(df: pd.DataFrame) -> str:
    """'discrete' for all-integer/categorical columns, 'gaussian' for all-float columns."""
    is_float = [pd.api.types.is_float_dtype(df[c]) for c in df.columns]
    if all(is_float):
        return "gaussian"
    if not any(is_float):
        return "discrete"
    raise ValueError("Mixed discrete and continuous columns are not supported.")


def kfold_indices(n: int, k: int, seed=None):
    """Yield (train_idx, test_idx) pairs of a shuffled k-fold split of range(n)."""
    if k < 2 or k > n:
        raise ValueError(f"Number of folds must be in [2, {n}], got {k}.")
    kf = KFold(n_splits=k, shuffle=True, random_state=seed)
    for train_idx, test_idx in kf.split(np.arange(n)):
        yield train_idx, test_idx


def holdout_indices(n: int, test_ratio: float, seed=None):
    if not 0 < test_ratio < 1:
        raise ValueError(f"test_ratio must be in (0, 1), got {test_ratio}.")
    train_idx, test_idx = train_test_split(np.arange(n), test_size=test_ratio, random_state=seed)
    return np.sort(train_idx), np.sort(test_idx)


class Score:
    """Decomposable score: score(model) = sum of local_score(model, node)."""

    compatible_node_types = (NodeType.DISCRETE, NodeType.LINEAR_GAUSSIAN, NodeType.CKDE)

    def __init__(self, df: pd.DataFrame):
        self.data = df
        self.r = cardinalities(df)

    def local_score(self, model, node) -> float:
        return self.local_score_parents(model.node_type(node), node, model.parents(node))

    def local_score_parents(self, node_type: NodeType, node: str, parents: List[str]) -> float:
        raise NotImplementedError

    def score(self, model) -> float:
        return float(sum(self.local_score(model, n) for n in model.nodes))

    def compatible_bn(self, model) -> bool:
        return all(t in self.compatible_node_types for t in model.allowed_node_types)

    def __str__(self):
        return type(self).__name__


class ValidatedScore(Score):
    """Score with a second, held-out evaluation path used only to accept or reject moves."""

    def vlocal_score(self, model, node) -> float:
        return self.vlocal_score_parents(model.node_type(node), node, model.parents(node))

    def vlocal_score_parents(self, node_type: NodeType, node: str, parents: List[str]) -> float:
        raise NotImplementedError

    def vscore(self, model) -> float:
        return float(sum(self.vlocal_score(model, n) for n in model.nodes))


class K2Score(Score):
    """Bayesian Dirichlet score with uniform prior for discrete networks."""

    compatible_node_types = (NodeType.DISCRETE,)

    def local_score_parents(self, node_type, node, parents):
        return k2_local_score(self.data, node, list(parents), self.r)


class BIC(Score):
    compatible_node_types = (NodeType.DISCRETE, NodeType.LINEAR_GAUSSIAN)

    def local_score_parents(self, node_type, node, parents):
        if node_type == NodeType.DISCRETE:
            return discrete_bic(self.data, node, list(parents), self.r)
        if node_type == NodeType.LINEAR_GAUSSIAN:
            return gaussian_bic(self.data, node, list(parents))
        raise ValueError(f"BIC is not defined for {NodeType(node_type).value} nodes.")


class CVLikelihood(Score):
    """k-fold cross-validated log-likelihood."""

    def __init__(self, df, k=10, seed=None):
        super().__init__(df)
        self.k = k
        self.seed = seed
        self.folds = [(df.iloc[tr].reset_index(drop=True), df.iloc[te].reset_index(drop=True))
                      for tr, te in kfold_indices(len(df), k, seed)]

    def local_score_parents(self, node_type, node, parents):
        return float(sum(local_logl(node_type, train, test, node, parents, self.r)
                         for train, test in self.folds))

    def __str__(self):
        return f"CVLikelihood(k={self.k})"


class HoldoutLikelihood(Score):
    """Log-likelihood of the test split under the distribution learned on the training split."""

    def __init__(self, df, test_ratio=0.2, seed=None):
        super().__init__(df)
        self.test_ratio = test_ratio
        train_idx, test_idx = holdout_indices(len(df), test_ratio, seed)
        self.training_data = df.iloc[train_idx].reset_index(drop=True)
        self.test_data = df.iloc[test_idx].reset_index(drop=True)

    def local_score_parents(self, node_type, node, parents):
        return local_logl(node_type, self.training_data, self.test_data, node, parents, self.r)

    def __str__(self):
        return f"HoldoutLikelihood(test_ratio={self.test_ratio})"


class ValidatedLikelihood(ValidatedScore):
    """
    Cross-validated likelihood on the training split drives the search;
    the holdout likelihood of the test split validates it.
    """

    def __init__(self, df, test_ratio=0.2, k=10, seed=None):
        super().__init__(df)
        self.holdout = HoldoutLikelihood(df, test_ratio=test_ratio, seed=seed)
        self.cv = CVLikelihood(self.holdout.training_data, k=k, seed=seed)
        #cardinalities from the full data, so both splits see every state
        self.holdout.r = self.r
        self.cv.r = self.r
        logger.debug("ValidatedLikelihood: %d training rows, %d validation rows",
                     len(self.holdout.training_data), len(self.holdout.test_data))

    def local_score_parents(self, node_type, node, parents):
        return self.cv.local_score_parents(node_type, node, parents)

    def vlocal_score_parents(self, node_type, node, parents):
        return self.holdout.local_score_parents(node_type, node, parents)

    def __str__(self):
        return f"ValidatedLikelihood({self.holdout}, {self.cv})"


SCORES = {
    "k2": K2Score,
    "bic": BIC,
    "cv-lik": CVLikelihood,
    "holdout-lik": HoldoutLikelihood,
    "validated-lik": ValidatedLikelihood,
}
