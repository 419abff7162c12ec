#!/usr/bin/env python3
"""Summary statistics of a species interaction matrix A (A[i, j] is the
effect of species j on species i). Diagonal entries (self-interactions) are
ignored."""
from __future__ import annotations

import math

import numpy as np


def _off_diagonal(A: np.ndarray) -> np.ndarray:
    A = np.asarray(A, dtype=float)
    if A.ndim != 2 or A.shape[0] != A.shape[1]:
        raise ValueError(f"Interaction matrix must be square, got shape {A.shape}")
    return A[~np.eye(A.shape[0], dtype=bool)]


def get_pep(A: np.ndarray) -> float:
    """Percentage of positive edges among the non-zero off-diagonal entries."""
    off = _off_diagonal(A)
    pos = int(np.sum(off > 0))
    neg = int(np.sum(off < 0))
    if pos + neg == 0:
        return math.nan
    return pos / (pos + neg) * 100


def get_connectance(A: np.ndarray) -> float:
    """Realized off-diagonal interactions over all N*(N-1) possible ones."""
    off = _off_diagonal(A)
    if off.size == 0:
        return math.nan
    return int(np.count_nonzero(off)) / off.size
