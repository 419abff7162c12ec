#!/usr/bin/env python3
"""Species abundance distribution and rank-abundance (RAD) analysis.

- fit_distrib: best continuous distribution for the abundances (lognormal,
  gamma, Weibull, exponential) by AIC.
- fit_rad: best rank-abundance model for the ranked counts (broken stick,
  preemption, lognormal, Zipf, Zipf-Mandelbrot), fitted as Poisson models
  by maximum likelihood, chosen by AIC.
- fit_neutral: Ewens estimate of the fundamental biodiversity number theta
  from species number S and individual number J, and the probability of
  observing exactly S species under that theta.

Scores are Akaike weights of the selected candidate (1 means no competitor
comes close).
"""
from __future__ import annotations

import logging
import math
import warnings
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple

import numpy as np
from scipy import optimize, special, stats

logger = logging.getLogger("seqtime.rad")

# linear predictors are capped before exponentiation
_LOG_MAX = 700.0
# exact species-count distribution up to this many individuals
_EXACT_J_MAX = 20000

DISTRIBUTIONS = {
    "lognormal": stats.lognorm,
    "gamma": stats.gamma,
    "weibull": stats.weibull_min,
    "exponential": stats.expon,
}


@dataclass
class RadResult:
    abundances: np.ndarray = field(default_factory=lambda: np.zeros(0))
    distrib: Optional[str] = None
    score: float = math.nan
    model: Optional[str] = None
    model_score: float = math.nan
    theta: float = math.nan
    thetaprob: float = math.nan


def akaike_best(aics: Dict[str, float]) -> Tuple[Optional[str], float]:
    finite = {k: v for k, v in aics.items() if np.isfinite(v)}
    if not finite:
        return None, math.nan
    best = min(finite, key=finite.get)
    delta = np.array([v - finite[best] for v in finite.values()])
    weights = np.exp(-0.5 * delta)
    return best, float(1.0 / weights.sum())


# ------------------ abundance distributions ------------------

def fit_abundance_distribution(x) -> Tuple[Optional[str], float]:
    x = np.asarray(x, float)
    x = x[np.isfinite(x) & (x > 0)]
    if x.size < 3 or np.unique(x).size < 2:
        return None, math.nan
    aics: Dict[str, float] = {}
    for name, dist in DISTRIBUTIONS.items():
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", RuntimeWarning)
                params = dist.fit(x, floc=0)
                ll = float(np.sum(dist.logpdf(x, *params)))
        except (ValueError, RuntimeError, FloatingPointError) as e:
            logger.debug("Fitting %s failed: %s", name, e)
            continue
        k = len(params) - 1  # location fixed at 0
        aics[name] = 2 * k - 2 * ll
    return akaike_best(aics)


# ------------------ rank-abundance models ------------------

def _poisson_nll(y: np.ndarray, log_mu: np.ndarray) -> float:
    log_mu = np.minimum(log_mu, _LOG_MAX)
    return float(np.sum(np.exp(log_mu) - y * log_mu + special.gammaln(y + 1)))


def broken_stick(S: int, J: float) -> np.ndarray:
    inv = 1.0 / np.arange(1, S + 1)
    tail = np.cumsum(inv[::-1])[::-1]
    return J / S * tail


def _fit_glm(y: np.ndarray, covariate: np.ndarray) -> float:
    """Poisson log-link fit of y on one covariate; returns the negative log-likelihood."""
    start = np.polyfit(covariate, np.log(y), 1)[::-1]
    res = optimize.minimize(lambda b: _poisson_nll(y, b[0] + b[1] * covariate), start, method="Nelder-Mead")
    return float(res.fun)


def rad_models(y: np.ndarray) -> Dict[str, Tuple[float, int]]:
    """Negative log-likelihood and parameter count per RAD model for counts
    ranked in decreasing order."""
    S = y.size
    J = float(y.sum())
    ranks = np.arange(1, S + 1, dtype=float)
    out: Dict[str, Tuple[float, int]] = {}

    out["null"] = (_poisson_nll(y, np.log(broken_stick(S, J))), 0)

    def preempt_nll(a: float) -> float:
        return _poisson_nll(y, math.log(J) + math.log(a) + (ranks - 1) * math.log1p(-a))

    pre = optimize.minimize_scalar(preempt_nll, bounds=(1e-9, 1 - 1e-9), method="bounded")
    out["preemption"] = (float(pre.fun), 1)

    z = stats.norm.ppf(1 - (ranks - 0.5) / S)
    out["lognormal"] = (_fit_glm(y, z), 2)
    out["zipf"] = (_fit_glm(y, np.log(ranks)), 2)

    def mandelbrot_nll(b: np.ndarray) -> float:
        return _poisson_nll(y, b[0] + b[1] * np.log(ranks + math.exp(b[2])))

    c0, g0 = np.polyfit(np.log(ranks + 1.0), np.log(y), 1)[::-1]
    mb = optimize.minimize(mandelbrot_nll, np.array([c0, g0, 0.0]), method="Nelder-Mead")
    out["mandelbrot"] = (float(mb.fun), 3)
    return out


def fit_rad_model(y) -> Tuple[Optional[str], float]:
    y = np.asarray(y, float)
    y = np.sort(y[np.isfinite(y) & (y > 0)])[::-1]
    if y.size < 4:
        return None, math.nan
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        fits = rad_models(y)
    return akaike_best({name: 2 * k + 2 * nll for name, (nll, k) in fits.items()})


# ------------------ neutral model ------------------

def expected_species(theta: float, J: float) -> float:
    """Expected species number of a neutral sample of J individuals."""
    return theta * (special.digamma(theta + J) - special.digamma(theta))


def ewens_theta(S: int, J: int) -> float:
    if S <= 1 or S >= J:
        return math.nan
    f: Callable[[float], float] = lambda t: expected_species(t, J) - S
    hi = 1.0
    while f(hi) < 0:
        hi *= 2.0
    return float(optimize.brentq(f, 1e-10, hi))


def species_count_probability(S: int, J: int, theta: float) -> float:
    """P(K = S) for the species number K of a neutral sample: K is a sum of
    independent Bernoulli(theta / (theta + i)), i = 0..J-1."""
    if not np.isfinite(theta) or J < 1:
        return math.nan
    p = theta / (theta + np.arange(J, dtype=float))
    if J > _EXACT_J_MAX:
        mean = float(p.sum()); sd = math.sqrt(float(np.sum(p * (1 - p))))
        if sd == 0:
            return 1.0 if round(mean) == S else 0.0
        return float(stats.norm.cdf((S + 0.5 - mean) / sd) - stats.norm.cdf((S - 0.5 - mean) / sd))
    dist = np.zeros(S + 1)
    dist[0] = 1.0
    for pi in p:
        dist[1:] = dist[1:] * (1 - pi) + dist[:-1] * pi
        dist[0] *= (1 - pi)
    return float(dist[S])


# ------------------ entry point ------------------

def rad(x, remove_zeros: bool = True, fit_distrib: bool = False, fit_rad: bool = False,
        fit_neutral: bool = False) -> RadResult:
    """Rank-abundance analysis of a sample vector, or of a taxon x sample
    matrix whose samples are pooled (summed per taxon)."""
    x = np.asarray(x, dtype=float)
    if x.ndim == 2:
        x = np.nansum(x, axis=1)
    x = x[np.isfinite(x)]
    if remove_zeros:
        x = x[x > 0]
    res = RadResult(abundances=np.sort(x)[::-1])
    if fit_distrib:
        res.distrib, res.score = fit_abundance_distribution(x)
    if fit_rad:
        res.model, res.model_score = fit_rad_model(x)
    if fit_neutral:
        counts = np.rint(x)
        counts = counts[counts > 0]
        S = int(counts.size)
        J = int(counts.sum())
        res.theta = ewens_theta(S, J)
        res.thetaprob = species_count_probability(S, J, res.theta)
    return res
