#!/usr/bin/env python3
"""Memory of taxon time series: Hurst exponent, maximal autocorrelation and
the binning of taxa by either of them."""
from __future__ import annotations

import math
import warnings
from collections import OrderedDict
from typing import Dict, List, Sequence

import nolds
import numpy as np

from .regression import ols_fit

MEMORY_METHODS = ("hurst", "autocor")
MIN_WINDOW = 8


def autocorrelation(x, max_lag: int) -> np.ndarray:
    """Sample autocorrelation for lags 0..max_lag (acf convention: biased
    covariance over the lag-0 variance)."""
    x = np.asarray(x, dtype=float)
    x = x[np.isfinite(x)]
    n = x.size
    out = np.full(max_lag + 1, np.nan)
    if n < 2:
        return out
    v = x - x.mean()
    c0 = float(np.dot(v, v)) / n
    if c0 == 0:
        return out
    for lag in range(0, min(max_lag, n - 1) + 1):
        out[lag] = float(np.dot(v[: n - lag], v[lag:])) / n / c0
    return out


def max_autocorrelation(x, max_lag: int | None = None) -> float:
    n = int(np.isfinite(np.asarray(x, dtype=float)).sum())
    if n < 3:
        return math.nan
    if max_lag is None:
        max_lag = max(1, int(math.floor(10 * math.log10(n))))
    acf = autocorrelation(x, min(max_lag, n - 1))[1:]
    if not np.isfinite(acf).any():
        return math.nan
    return float(np.nanmax(acf))


def hurst_exponent(x) -> float:
    """Hurst exponent by rescaled range (R/S) analysis, nolds.hurst_rs with the
    Anis-Lloyd-Peters small-sample correction.

    Window sizes are log-spaced between 8 and n/2. Series shorter than 18
    samples or constant series give NaN.
    """
    x = np.asarray(x, dtype=float)
    x = x[np.isfinite(x)]
    n = x.size
    if n < 2 * MIN_WINDOW or float(np.std(x)) == 0.0:
        return math.nan
    sizes = np.unique(np.floor(np.logspace(np.log10(MIN_WINDOW), np.log10(n // 2), num=10)).astype(int))
    if sizes.size < 2:
        return math.nan
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        h = nolds.hurst_rs(x, nvals=sizes, fit="poly")
    return float(h)


def _fmt(v: float) -> str:
    return "%g" % v


def memory_bin_names(thresholds: Sequence[float], method: str = "hurst") -> List[str]:
    """Bin names from lowest to highest memory, e.g. hurstnegInf0.5, hurst0.50.7,
    hurst0.70.9, hurst0.9Inf."""
    edges = ["negInf"] + [_fmt(t) for t in thresholds] + ["Inf"]
    return [f"{method}{lo}{hi}" for lo, hi in zip(edges[:-1], edges[1:])]


def bin_by_memory(ts: np.ndarray, thresholds: Sequence[float] = (0.5, 0.7, 0.9),
                  method: str = "hurst") -> Dict[str, List[int]]:
    """Assign taxa (row indices) to len(thresholds)+1 ordered bins.

    Bin k holds the taxa whose memory value v satisfies t[k-1] <= v < t[k];
    taxa with an undefined value are not assigned.
    """
    if method not in MEMORY_METHODS:
        raise ValueError(f"Unsupported memory method: {method}")
    ts = np.asarray(ts, dtype=float)
    names = memory_bin_names(thresholds, method)
    bins: Dict[str, List[int]] = OrderedDict((name, []) for name in names)
    measure = hurst_exponent if method == "hurst" else max_autocorrelation
    edges = [-math.inf] + [float(t) for t in thresholds] + [math.inf]
    for i, row in enumerate(ts):
        v = measure(row)
        if not np.isfinite(v):
            continue
        for name, lo, hi in zip(names, edges[:-1], edges[1:]):
            if lo <= v < hi:
                bins[name].append(i)
                break
    return bins


def autocor_vs_taxon_num(ts: np.ndarray, lag: int = 1) -> Dict[str, float]:
    """Slope of the mean lag autocorrelation of the k most abundant taxa vs k."""
    ts = np.asarray(ts, dtype=float)
    if ts.shape[0] < 3:
        return {"slope": math.nan, "adjR2": math.nan}
    order = np.argsort(-np.nanmean(ts, axis=1), kind="mergesort")
    acfs = np.array([autocorrelation(ts[i], lag)[lag] for i in order])
    counts = np.arange(1, len(acfs) + 1)
    mean_acf = np.full(len(acfs), np.nan)
    running = 0.0; seen = 0
    for k, a in enumerate(acfs):
        if np.isfinite(a):
            running += a; seen += 1
        if seen:
            mean_acf[k] = running / seen
    fit = ols_fit(counts, mean_acf)
    return {"slope": fit["slope"], "adjR2": fit["adjR2"]}
