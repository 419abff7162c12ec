#!/usr/bin/env python3
from __future__ import annotations

import math

import numpy as np


def bray_curtis(u, v) -> float:
    u = np.asarray(u, float); v = np.asarray(v, float)
    su = float(np.nansum(u)); sv = float(np.nansum(v))
    den = su + sv
    if den == 0:
        return math.nan
    num = float(np.nansum(np.minimum(u, v)))
    return 1 - 2 * num / den


def bray_matrix(x: np.ndarray) -> np.ndarray:
    """Square Bray-Curtis matrix between the columns (samples) of x."""
    x = np.asarray(x, float)
    n = x.shape[1]
    m = np.zeros((n, n))
    for i in range(n):
        for j in range(i + 1, n):
            m[i, j] = m[j, i] = bray_curtis(x[:, i], x[:, j])
    return m
