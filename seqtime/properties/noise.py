#!/usr/bin/env python3
"""Noise-type identification from the slope of the periodogram.

For each taxon the spectral density is estimated with a periodogram and the
slope of log(spectrum) vs log(frequency) is fitted. White noise has a flat
spectrum (slope 0), pink noise 1/f (slope -1), brown noise 1/f^2 (slope -2)
and black noise falls off faster still.
"""
from __future__ import annotations

import math
from typing import Dict, List

import numpy as np
from scipy import signal

from .regression import ols_fit

NOISE_TYPES = ("white", "pink", "brown", "black")
MIN_SAMPLES = 4


def daniell_smooth(spec: np.ndarray, span: int = 3) -> np.ndarray:
    """Modified Daniell smoother: moving average with half weights at both ends."""
    if span < 3 or spec.size < span:
        return spec
    m = span // 2
    kernel = np.ones(2 * m + 1)
    kernel[0] = kernel[-1] = 0.5
    kernel /= kernel.sum()
    padded = np.pad(spec, m, mode="reflect")
    return np.convolve(padded, kernel, mode="valid")


def spectral_slope(x, smooth: bool = True, detrend: bool = True) -> float:
    x = np.asarray(x, dtype=float)
    x = x[np.isfinite(x)]
    if x.size < MIN_SAMPLES or float(np.std(x)) == 0.0:
        return math.nan
    freqs, spec = signal.periodogram(x, detrend="linear" if detrend else "constant")
    # drop the zero frequency
    freqs = freqs[1:]; spec = spec[1:]
    if smooth:
        spec = daniell_smooth(spec)
    keep = spec > 0
    if keep.sum() < 3:
        return math.nan
    return ols_fit(np.log(freqs[keep]), np.log(spec[keep]))["slope"]


def classify_slope(slope: float, epsilon: float = 0.2, predef: bool = False):
    """Noise type for a spectral slope, or None if it fits no category.

    predef uses fixed boundaries: white (-0.5, 0.5], pink (-1.5, -0.5],
    brown (-2.5, -1.5], black <= -2.5. Otherwise a slope is white, pink or
    brown if it is within epsilon of 0, -1 or -2 and black if it is below
    -3 + epsilon.
    """
    if slope is None or not np.isfinite(slope):
        return None
    if predef:
        if -0.5 < slope <= 0.5:
            return "white"
        if -1.5 < slope <= -0.5:
            return "pink"
        if -2.5 < slope <= -1.5:
            return "brown"
        if slope <= -2.5:
            return "black"
        return None
    if abs(slope) <= epsilon:
        return "white"
    if abs(slope + 1.0) <= epsilon:
        return "pink"
    if abs(slope + 2.0) <= epsilon:
        return "brown"
    if slope <= -3.0 + epsilon:
        return "black"
    return None


def identify_noisetypes(ts: np.ndarray, abund_threshold: float = 0.0, epsilon: float = 0.2,
                        smooth: bool = True, predef: bool = False, detrend: bool = True) -> Dict[str, List[int]]:
    """Row indices of ts per noise type.

    Taxa with a mean abundance at or below abund_threshold, constant taxa and
    taxa that fit no category are left unclassified.
    """
    ts = np.asarray(ts, dtype=float)
    out: Dict[str, List[int]] = {nt: [] for nt in NOISE_TYPES}
    for i, row in enumerate(ts):
        if not np.nanmean(row) > abund_threshold:
            continue
        nt = classify_slope(spectral_slope(row, smooth=smooth, detrend=detrend), epsilon=epsilon, predef=predef)
        if nt is not None:
            out[nt].append(i)
    return out
