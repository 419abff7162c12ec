#!/usr/bin/env python3
"""Ordinary least squares for one predictor, with the summary numbers the
property estimators report (slope, overall F-test p-value, adjusted R2)."""
from __future__ import annotations

import math
from typing import Dict

import numpy as np
from scipy import stats

_EPS_DIV = 1e-12


def ols_fit(x, y) -> Dict[str, float]:
    """Fit y = a + b*x on the finite pairs of x and y.

    Returns NaN entries when fewer than 3 finite pairs remain or x is constant.
    """
    x = np.asarray(x, float)
    y = np.asarray(y, float)
    mask = np.isfinite(x) & np.isfinite(y)
    n = int(mask.sum())
    out = {"intercept": math.nan, "slope": math.nan, "pval": math.nan, "r2": math.nan, "adjR2": math.nan, "n": n}
    if n < 3:
        return out
    xv = x[mask]; yv = y[mask]
    if float(np.std(xv)) < _EPS_DIV:
        return out
    X = np.c_[np.ones_like(xv), xv]
    beta_hat, *_ = np.linalg.lstsq(X, yv, rcond=None)
    a, b = float(beta_hat[0]), float(beta_hat[1])
    yhat = X @ beta_hat
    rss = float(np.sum((yv - yhat) ** 2))
    tss = float(np.sum((yv - np.mean(yv)) ** 2))
    df_res = n - 2
    out["intercept"] = a
    out["slope"] = b
    if tss <= 0:
        return out
    r2 = 1.0 - rss / tss
    out["r2"] = r2
    out["adjR2"] = 1.0 - (1.0 - r2) * (n - 1) / df_res
    if rss <= _EPS_DIV * tss:
        out["pval"] = 0.0
    else:
        fstat = (tss - rss) / (rss / df_res)
        out["pval"] = float(stats.f.sf(fstat, 1, df_res))
    return out
