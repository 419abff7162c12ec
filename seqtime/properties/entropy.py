#!/usr/bin/env python3
"""Empirical joint entropy of community samples.

Each sample (column of the time series) is one observation of the joint
state of all taxa; the entropy is that of the empirical distribution of the
distinct states, in nats. Continuous-valued generators are discretized into
equal-width bins first.
"""
from __future__ import annotations

import math

import numpy as np
import pandas as pd

CONTINUOUS_ALGORITHMS = {"glv", "ricker", "davida", "davidb"}


def discretize_equalwidth(data: np.ndarray, nbins: int | None = None) -> np.ndarray:
    """Bin each column of data (observations x variables) into nbins equal-width
    bins; the default is the cube root of the number of observations."""
    data = np.asarray(data, dtype=float)
    if nbins is None:
        nbins = max(1, int(math.floor(data.shape[0] ** (1.0 / 3.0) + 1e-9)))
    out = np.zeros(data.shape, dtype=int)
    for j in range(data.shape[1]):
        col = data[:, j]
        lo = np.nanmin(col); hi = np.nanmax(col)
        if not np.isfinite(lo) or hi == lo:
            continue
        edges = np.linspace(lo, hi, nbins + 1)
        out[:, j] = np.clip(np.digitize(col, edges[1:-1]), 0, nbins - 1)
    return out


def empirical_entropy(data: np.ndarray) -> float:
    """Entropy of the distinct rows of data."""
    data = np.asarray(data)
    if data.shape[0] == 0:
        return math.nan
    counts = pd.DataFrame(data).value_counts().to_numpy(dtype=float)
    p = counts / counts.sum()
    return float(-np.sum(p * np.log(p)))


def discretized_entropy(ts: np.ndarray, algorithm: str | None = None) -> float:
    samples = np.asarray(ts, dtype=float).T
    if algorithm in CONTINUOUS_ALGORITHMS:
        samples = discretize_equalwidth(samples)
    return empirical_entropy(samples)
