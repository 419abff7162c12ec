#!/usr/bin/env python3
"""io_utils.py

Small helpers shared by the comparison modules: logging setup, NA coercion,
tab-separated matrix readers and sample normalization.

Experiment folders follow the generator layout:
  <input_folder>/settings/<id>_settings/<id>_settings.txt
  <input_folder>/settings/<id>_settings/<id>_interactionmatrix.txt
  <input_folder>/timeseries/<id>_timeseries/<id>_timeseries.txt
"""
from __future__ import annotations

import logging
import math
import os
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

NA_TOKENS = {"", "na", "nan", "none", "null"}


def setup_logging(level: str = "INFO") -> logging.Logger:
    lvl = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=lvl, format="%(asctime)s %(levelname)s %(message)s", datefmt="%H:%M:%S")
    return logging.getLogger("seqtime")


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def float_or_nan(x: Any) -> float:
    if x is None or isinstance(x, bool):
        return math.nan
    if isinstance(x, (int, float, np.integer, np.floating)):
        return float(x)
    s = str(x).strip()
    if s.lower() in NA_TOKENS:
        return math.nan
    try:
        return float(s)
    except ValueError:
        return math.nan


def read_matrix(path: str | Path) -> np.ndarray:
    """Read a headerless tab-separated numeric matrix (rows = taxa)."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(str(p))
    df = pd.read_csv(p, sep="\t", header=None)
    # trailing tabs produce an all-empty last column
    df = df.dropna(axis=1, how="all")
    return df.apply(pd.to_numeric, errors="coerce").to_numpy(dtype=float)


def normalize(x: np.ndarray) -> np.ndarray:
    """Divide each sample (column) by its sum; all-zero samples stay zero."""
    x = np.asarray(x, dtype=float)
    sums = np.nansum(x, axis=0)
    out = np.zeros_like(x)
    nz = sums > 0
    out[:, nz] = x[:, nz] / sums[nz]
    return out
