"""Local log-likelihoods: fit `node | parents` on train, sum the log-density over test."""
from math import lgamma, log, pi
from typing import Dict, List

import numpy as np
import pandas as pd

from bn_model import NodeType

KDE_CHUNK = 1024


def _logsumexp(a: np.ndarray, axis: int) -> np.ndarray:
    m = np.max(a, axis=axis, keepdims=True)
    m = np.where(np.isfinite(m), m, 0.0)
    out = np.log(np.sum(np.exp(a - m), axis=axis)) + np.squeeze(m, axis=axis)
    return out


def _counts(df: pd.DataFrame, columns: List[str], name: str) -> pd.DataFrame:
    return df.groupby(columns).size().rename(name).reset_index()


def discrete_logl(train: pd.DataFrame, test: pd.DataFrame, node: str, parents: List[str],
                  cardinality: int, alpha: float = 1.0) -> float:
    """Multinomial CPT with additive (Laplace) smoothing, so unseen configurations keep finite likelihood."""
    cols = parents + [node]
    n_ijk = test[cols].merge(_counts(train, cols, "n_ijk"), on=cols, how="left")["n_ijk"]
    n_ijk = n_ijk.fillna(0).to_numpy(dtype=float)

    if parents:
        n_ij = test[parents].merge(_counts(train, parents, "n_ij"), on=parents, how="left")["n_ij"]
        n_ij = n_ij.fillna(0).to_numpy(dtype=float)
    else:
        n_ij = np.full(len(test), float(len(train)))

    return float(np.sum(np.log(n_ijk + alpha) - np.log(n_ij + alpha * cardinality)))


def discrete_bic(df: pd.DataFrame, node: str, parents: List[str], r: Dict[str, int]) -> float:
    """Maximum-likelihood multinomial log-likelihood minus the BIC penalty."""
    cols = parents + [node]
    n_ijk = _counts(df, cols, "n_ijk")
    if parents:
        n_ij = n_ijk.groupby(parents)["n_ijk"].transform("sum").to_numpy(dtype=float)
    else:
        n_ij = np.full(len(n_ijk), float(len(df)))
    counts = n_ijk["n_ijk"].to_numpy(dtype=float)
    loglik = float(np.sum(counts * (np.log(counts) - np.log(n_ij))))

    q_i = 1
    for p in parents:
        q_i *= r[p]
    num_params = (r[node] - 1) * q_i
    return loglik - 0.5 * log(len(df)) * num_params


def k2_local_score(df: pd.DataFrame, node: str, parents: List[str], r: Dict[str, int]) -> float:
    """
    Bayesian Dirichlet score with a uniform prior (every pseudo-count equal to 1).
    Parent configurations absent from the data contribute 0, so only observed ones are visited.
    """
    r_i = r[node]
    alpha_ij = r_i
    cols = parents + [node]
    n_ijk = _counts(df, cols, "n_ijk")
    if parents:
        n_ij = n_ijk.groupby(parents)["n_ijk"].sum().to_numpy()
    else:
        n_ij = np.array([len(df)])

    score = 0.0
    for N_ij in n_ij:
        score += lgamma(alpha_ij) - lgamma(alpha_ij + int(N_ij))
    for N_ijk in n_ijk["n_ijk"].to_numpy():
        score += lgamma(1 + int(N_ijk)) - lgamma(1)
    return float(score)


def _design_matrix(df: pd.DataFrame, parents: List[str]) -> np.ndarray:
    X = np.ones((len(df), len(parents) + 1))
    if parents:
        X[:, 1:] = df[parents].to_numpy(dtype=float)
    return X


def linear_gaussian_fit(df: pd.DataFrame, node: str, parents: List[str], ddof: int = None):
    """Least-squares fit of node = beta_0 + sum(beta_i * parent_i) + N(0, variance)."""
    X = _design_matrix(df, parents)
    y = df[node].to_numpy(dtype=float)
    beta, *_ = np.linalg.lstsq(X, y, rcond=None)
    resid = y - X @ beta
    if ddof is None:
        ddof = len(beta)
    dof = max(len(y) - ddof, 1)
    variance = float(resid @ resid) / dof
    return beta, max(variance, np.finfo(float).tiny)


def linear_gaussian_logl(train: pd.DataFrame, test: pd.DataFrame, node: str, parents: List[str]) -> float:
    beta, variance = linear_gaussian_fit(train, node, parents)
    resid = test[node].to_numpy(dtype=float) - _design_matrix(test, parents) @ beta
    return float(np.sum(-0.5 * log(2 * pi * variance) - resid ** 2 / (2 * variance)))


def gaussian_bic(df: pd.DataFrame, node: str, parents: List[str]) -> float:
    beta, variance = linear_gaussian_fit(df, node, parents, ddof=0)
    resid = df[node].to_numpy(dtype=float) - _design_matrix(df, parents) @ beta
    loglik = float(np.sum(-0.5 * log(2 * pi * variance) - resid ** 2 / (2 * variance)))
    num_params = len(parents) + 2
    return loglik - 0.5 * log(len(df)) * num_params


def scott_bandwidth(data: np.ndarray) -> np.ndarray:
    """Normal reference rule: H = n^(-2/(d+4)) * Cov."""
    n, d = data.shape
    cov = np.atleast_2d(np.cov(data, rowvar=False))
    return cov * n ** (-2.0 / (d + 4))


def _kde_logpdf(train: np.ndarray, test: np.ndarray, bandwidth: np.ndarray) -> np.ndarray:
    n, d = train.shape
    cholesky = np.linalg.cholesky(bandwidth)
    log_norm = -0.5 * d * log(2 * pi) - np.sum(np.log(np.diag(cholesky))) - log(n)
    #whitened coordinates: the Gaussian kernel becomes isotropic
    inv_chol = np.linalg.inv(cholesky)
    train_w = train @ inv_chol.T
    test_w = test @ inv_chol.T

    out = np.empty(len(test))
    for start in range(0, len(test), KDE_CHUNK):
        block = test_w[start:start + KDE_CHUNK]
        sq = np.sum((block[:, None, :] - train_w[None, :, :]) ** 2, axis=2)
        out[start:start + KDE_CHUNK] = _logsumexp(-0.5 * sq, axis=1)
    return out + log_norm


def ckde_logl(train: pd.DataFrame, test: pd.DataFrame, node: str, parents: List[str]) -> float:
    """
    Conditional KDE: log f(node, parents) - log f(parents).
    The parents' density uses the parent block of the joint bandwidth matrix.
    """
    cols = [node] + parents
    train_x = train[cols].to_numpy(dtype=float)
    test_x = test[cols].to_numpy(dtype=float)
    bandwidth = scott_bandwidth(train_x)
    try:
        np.linalg.cholesky(bandwidth)
    except np.linalg.LinAlgError as e:
        raise ValueError(f"CKDE bandwidth of node {node} given {parents} is singular "
                         f"(constant or collinear columns).") from e

    joint = _kde_logpdf(train_x, test_x, bandwidth)
    if not parents:
        return float(np.sum(joint))

    marginal = _kde_logpdf(train_x[:, 1:], test_x[:, 1:], bandwidth[1:, 1:])
    return float(np.sum(joint - marginal))


def local_logl(node_type: NodeType, train: pd.DataFrame, test: pd.DataFrame, node: str,
               parents: List[str], r: Dict[str, int] = None) -> float:
    """Dispatch on the node's distribution family."""
    parents = list(parents)
    if node_type == NodeType.DISCRETE:
        return discrete_logl(train, test, node, parents, r[node])
    if node_type == NodeType.LINEAR_GAUSSIAN:
        return linear_gaussian_logl(train, test, node, parents)
    if node_type == NodeType.CKDE:
        return ckde_logl(train, test, node, parents)
    raise ValueError(f"Unknown node type {node_type}.")
