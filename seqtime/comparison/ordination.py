#!/usr/bin/env python3
"""Ordination of community data and of comparison tables.

pca               - principal component analysis on the covariance or
                    correlation matrix (pairwise-complete observations)
pcoa              - principal coordinate analysis of the samples of a time
                    series on Bray-Curtis (or Euclidean) dissimilarities
ordinate_results  - PCA of selected compare_ts columns, one point per experiment
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np
import pandas as pd

from seqtime.properties.dissimilarity import bray_matrix

MAXAUTOCOR_COLUMNS = ("maxautocorbin1", "maxautocorbin2", "maxautocorbin3", "maxautocorbin4")


@dataclass
class PCAResult:
    projection: np.ndarray  # 2 x n, x projected on the selected components
    V: np.ndarray           # eigenvectors, column-wise
    d: np.ndarray           # eigenvalues, decreasing
    var_percent: np.ndarray  # percentage of total variation per component


@dataclass
class PCoAResult:
    coordinates: np.ndarray  # samples x k
    eigenvalues: np.ndarray
    var_percent: np.ndarray


def _sorted_eigh(m: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    d, V = np.linalg.eigh(m)
    order = np.argsort(d)[::-1]
    return d[order], V[:, order]


def pca(x, use_cor: bool = False, components: Sequence[int] = (1, 2)) -> PCAResult:
    """PCA of x (objects x variables).

    The correlation basis is recommended when x is already standardized.
    Components are 1-based. Observations with missing values are excluded
    pairwise, per variable pair. An undefined covariance/correlation matrix
    (e.g. a constant column with use_cor) gives NaN eigenvalues and vectors.
    """
    x = np.asarray(x, dtype=float)
    if x.ndim != 2 or x.shape[1] < 2:
        raise ValueError("PCA needs a matrix with at least two columns")
    if len(components) != 2:
        raise ValueError("Two components are required for the projection")
    df = pd.DataFrame(x)
    m = (df.corr() if use_cor else df.cov()).to_numpy()
    p = x.shape[1]
    if np.isfinite(m).all():
        d, V = _sorted_eigh(m)
    else:
        d = np.full(p, np.nan)
        V = np.full((p, p), np.nan)
    total = d.sum()
    var_percent = d / total * 100
    c1, c2 = components
    V_project = np.column_stack([V[:, c1 - 1], V[:, c2 - 1]])
    projection = V_project.T @ x.T
    return PCAResult(projection=projection, V=V, d=d, var_percent=var_percent)


def _euclid_matrix(x: np.ndarray) -> np.ndarray:
    cols = np.asarray(x, float).T
    diff = cols[:, None, :] - cols[None, :, :]
    return np.sqrt(np.nansum(diff ** 2, axis=2))


def pcoa(x, metric: str = "braycurtis", k: int = 2) -> PCoAResult:
    """Classical multidimensional scaling of the columns (samples) of x."""
    if metric == "braycurtis":
        dist = bray_matrix(x)
    elif metric == "euclidean":
        dist = _euclid_matrix(x)
    else:
        raise ValueError(f"Unsupported dissimilarity: {metric} (expected braycurtis or euclidean)")
    n = dist.shape[0]
    J = np.eye(n) - np.ones((n, n)) / n
    B = -0.5 * J @ (dist ** 2) @ J
    d, V = _sorted_eigh(B)
    positive = d > 1e-12
    coords = V[:, :k] * np.sqrt(np.where(positive[:k], d[:k], 0.0))
    var_percent = np.where(positive, d, 0.0) / d[positive].sum() * 100 if positive.any() else np.full(n, np.nan)
    return PCoAResult(coordinates=coords, eigenvalues=d, var_percent=var_percent)


def ordinate_results(table: pd.DataFrame, columns: Sequence[str] = MAXAUTOCOR_COLUMNS,
                     components: Sequence[int] = (1, 2)) -> pd.DataFrame:
    """Standardize the chosen columns of a compare_ts table and project the
    experiments on two principal components."""
    missing = [c for c in columns if c not in table.columns]
    if missing:
        raise ValueError(f"Missing column in comparison table: {', '.join(missing)}")
    mat = table[list(columns)].apply(pd.to_numeric, errors="coerce")
    scaled = (mat - mat.mean()) / mat.std()
    res = pca(scaled.to_numpy(), use_cor=True, components=components)
    c1, c2 = components
    out = pd.DataFrame({"id": table["id"].to_numpy()})
    for col in ("algorithm", "interval"):
        if col in table.columns:
            out[col] = table[col].to_numpy()
    out[f"PC{c1}"] = res.projection[0]
    out[f"PC{c2}"] = res.projection[1]
    return out
