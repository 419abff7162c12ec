#!/usr/bin/env python3
"""Community change over time.

time_decay: dissimilarity between sample pairs as a function of the time
interval separating them. var_evol: how the taxon variance grows as the
observation window is extended.
"""
from __future__ import annotations

import math
import warnings
from typing import Dict

import numpy as np

from .dissimilarity import bray_curtis
from .regression import ols_fit


def _fit_summary(x, y) -> Dict[str, float]:
    fit = ols_fit(x, y)
    return {"slope": fit["slope"], "pval": fit["pval"], "adjR2": fit["adjR2"]}


def time_decay(ts: np.ndarray, logdissim: bool = True, logtime: bool = True) -> Dict[str, float]:
    ts = np.asarray(ts, dtype=float)
    n = ts.shape[1]
    intervals = []
    dissims = []
    for i in range(n):
        for j in range(i + 1, n):
            intervals.append(j - i)
            dissims.append(bray_curtis(ts[:, i], ts[:, j]))
    if not intervals:
        return {"slope": math.nan, "pval": math.nan, "adjR2": math.nan}
    x = np.asarray(intervals, float)
    y = np.asarray(dissims, float)
    with np.errstate(divide="ignore", invalid="ignore"):
        if logtime:
            x = np.log(x)
        if logdissim:
            # identical samples have zero dissimilarity; they drop out of the fit
            y = np.log(y)
    return _fit_summary(x, y)


def var_evol(ts: np.ndarray) -> Dict[str, float]:
    ts = np.asarray(ts, dtype=float)
    n = ts.shape[1]
    times = []
    variances = []
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        for t in range(2, n + 1):
            times.append(t)
            variances.append(float(np.nanmean(np.nanvar(ts[:, :t], axis=1, ddof=1))))
    if not times:
        return {"slope": math.nan, "pval": math.nan, "adjR2": math.nan}
    with np.errstate(divide="ignore", invalid="ignore"):
        return _fit_summary(np.log(np.asarray(times, float)), np.log(np.asarray(variances, float)))
