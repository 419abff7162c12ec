#!/usr/bin/env python3
"""Taylor's law: the power-law relation between the mean and the variance of
each taxon, var(Y) = a * mean(Y)^b.

The power b is the slope in log scale:
  log(var(Y)) = log(a) + b * log(mean(Y))

A pseudo count is added before taking logs so that taxa with zero mean or
zero variance (e.g. extinct taxa) stay in the fit.

Reference: L.R. Taylor (1961). Aggregation, variance and the mean.
Nature 189, 732-735.
"""
from __future__ import annotations

import math
import warnings
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd

from .regression import ols_fit

TAYLOR_TYPES = ("taylor", "mean.var", "boxplot")


@dataclass
class TaylorFitResult:
    slope: float = math.nan
    pval: float = math.nan
    adj_r2: float = math.nan
    logmeans: Optional[np.ndarray] = None
    logvars: Optional[np.ndarray] = None
    means: Optional[np.ndarray] = None
    variances: Optional[np.ndarray] = None
    summary: Optional[pd.DataFrame] = None


def row_moments(x: np.ndarray):
    """Per-row mean and sample variance (ddof=1), NaN entries ignored."""
    x = np.asarray(x, dtype=float)
    with warnings.catch_warnings():
        # all-missing rows give NaN, which is what callers expect
        warnings.simplefilter("ignore", RuntimeWarning)
        means = np.nanmean(x, axis=1)
        variances = np.nanvar(x, axis=1, ddof=1)
    return means, variances


def row_summary(x: np.ndarray) -> pd.DataFrame:
    x = np.asarray(x, dtype=float)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        q = np.nanpercentile(x, [0, 25, 50, 75, 100], axis=1)
    return pd.DataFrame({"taxon": np.arange(x.shape[0]), "min": q[0], "q1": q[1],
                         "median": q[2], "q3": q[3], "max": q[4]})


def taylor(x: np.ndarray, type: str = "taylor", pseudo: float = 0.0) -> TaylorFitResult:
    """Mean/variance relationship of the rows (taxa) of x.

    type:
      taylor   - power law fitted to log mean vs log variance (slope, p-value of
                 the F statistic, adjusted R2 and the log vectors are returned)
      mean.var - raw means and variances, no fit
      boxplot  - per-taxon distribution summary, no fit
    """
    if type not in TAYLOR_TYPES:
        raise ValueError(f"Unsupported Taylor type: {type} (expected one of {', '.join(TAYLOR_TYPES)})")
    x = np.asarray(x, dtype=float)
    if type == "boxplot":
        return TaylorFitResult(summary=row_summary(x))

    means, variances = row_moments(x)
    if type == "mean.var":
        return TaylorFitResult(means=means, variances=variances)

    with np.errstate(divide="ignore", invalid="ignore"):
        logvars = np.log(variances + pseudo)
        logmeans = np.log(means + pseudo)
    fit = ols_fit(logmeans, logvars)
    return TaylorFitResult(slope=fit["slope"], pval=fit["pval"], adj_r2=fit["adjR2"],
                           logmeans=logmeans, logvars=logvars, means=means, variances=variances)
