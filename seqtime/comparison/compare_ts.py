#!/usr/bin/env python3
"""Community time series comparison.

Computes the properties of community time series stored by the generators
(one settings folder and one time series folder per experiment identifier)
and assembles them with the experiment parameters into one table row per
experiment:

  compare_ts             - experiment parameters + time series properties
  collect_distributions  - abundances at the last sample, keyed "exp<id>"
  collect_timeseries     - the (normalized, sliced) time series, keyed "exp<id>"

Noise types are computed with smoothing. Entropy and the neutrality test are
pluggable: pass an estimator / test callable, or None to report NA.
"""
from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from seqtime.properties.decay import time_decay, var_evol
from seqtime.properties.interaction import get_connectance, get_pep
from seqtime.properties.memory import autocor_vs_taxon_num, bin_by_memory, memory_bin_names
from seqtime.properties.noise import identify_noisetypes
from seqtime.properties.rad import rad
from seqtime.properties.taylor import taylor

from .io_utils import float_or_nan, normalize, read_matrix
from .settings import ExperimentSettings, read_settings

INTERACTION_ALGORITHMS = ("ricker", "soc", "soi", "glv")
INDIVIDUAL_ALGORITHMS = ("soc", "hubbell")
# generators whose abundances are not counts
SCALED_ALGORITHMS = ("ricker", "glv")
ROUNDED_ALGORITHMS = ("davida", "davidb")
TAYLOR_PSEUDO = 1e-7

Window = Sequence[Optional[float]]
EntropyEstimator = Callable[[np.ndarray, Optional[str]], float]
NeutralityTest = Callable[[np.ndarray], float]


class ConfigurationError(ValueError):
    """Invalid combination of comparison options."""


class SliceError(ValueError):
    """A time window that cannot be clamped to the available samples."""


@dataclass(frozen=True)
class ExperimentRecord:
    id: str
    samplenum: int
    taxonnum: int
    algorithm: Optional[str]
    interval: float = math.nan
    initabundmode: Any = None
    pep: float = math.nan
    connectance: float = math.nan
    sigma: float = math.nan
    theta: float = math.nan
    m: float = math.nan
    individuals: float = math.nan
    deaths: float = math.nan
    entropy: float = math.nan
    taylorslope: float = math.nan
    taylorr2: float = math.nan
    black: float = math.nan
    brown: float = math.nan
    pink: float = math.nan
    white: float = math.nan
    maxautocorbin1: float = math.nan
    maxautocorbin2: float = math.nan
    maxautocorbin3: float = math.nan
    maxautocorbin4: float = math.nan
    lowhurst: float = math.nan
    middlehurst: float = math.nan
    highhurst: float = math.nan
    veryhighhurst: float = math.nan
    timedecayslope: float = math.nan
    timedecayr2: float = math.nan
    varevolslope: float = math.nan
    varevolr2: float = math.nan
    autoslope: float = math.nan
    neutral: float = math.nan
    raddistrib: Optional[str] = None
    radmodel: Optional[str] = None
    radfitscore: float = math.nan
    radmodelscore: float = math.nan
    thetaprob: float = math.nan


RESULT_COLUMNS = [f.name for f in fields(ExperimentRecord)]


@dataclass(frozen=True)
class ExperimentFolders:
    settings: Path
    timeseries: Optional[Path] = None
    modif: Optional[Path] = None
    modif_tag: str = ""


# ------------------ validation ------------------

def _check_window_shape(window: Optional[Window], name: str) -> None:
    if window is None:
        return
    if len(window) not in (1, 2):
        raise ConfigurationError(f"{name} needs a start and an end point or a single number of last samples, got {list(window)}")
    if len(window) == 1 and (_is_na(window[0]) or float(window[0]) < 1):
        raise ConfigurationError(f"{name} as a number of last samples must be at least 1, got {window[0]}")


def validate_options(slice_def: Optional[Window] = None, rad_slice_def: Optional[Window] = None,
                     hurst_bins: Sequence[float] = (0.5, 0.7, 0.9),
                     maxautocor_bins: Sequence[float] = (0.3, 0.5, 0.8),
                     norm: bool = False, neutrality_test: Optional[NeutralityTest] = None) -> None:
    """Reject invalid option combinations before any file is touched."""
    if neutrality_test is not None and not norm:
        raise ConfigurationError("Data are supposed to be normalized for the neutrality test.")
    if len(hurst_bins) != 3:
        raise ConfigurationError("Three Hurst bin thresholds required!")
    if len(maxautocor_bins) != 3:
        raise ConfigurationError("Three maximal autocorrelation bin thresholds required!")
    if slice_def is not None and rad_slice_def is not None:
        raise ConfigurationError("rad_slice_def and slice_def cannot be used together.")
    _check_window_shape(slice_def, "slice_def")


def resolve_folders(input_folder: str | Path, modif_folder: Optional[str | Path] = None,
                    modif: str = "") -> ExperimentFolders:
    if not input_folder:
        raise FileNotFoundError("Please provide the input folder!")
    root = Path(input_folder)
    if not root.exists():
        raise FileNotFoundError(f"The input folder {root} does not exist!")
    settings_dir = root / "settings"
    if not settings_dir.exists():
        raise FileNotFoundError(f"The input folder {root} does not have a settings subfolder!")
    if modif_folder:
        modif_dir = Path(modif_folder)
        if not modif_dir.exists():
            raise FileNotFoundError(f"The folder with modified time series {modif_dir} does not exist!")
        return ExperimentFolders(settings=settings_dir, modif=modif_dir, modif_tag=modif)
    ts_dir = root / "timeseries"
    if not ts_dir.exists():
        raise FileNotFoundError(f"The input folder {root} does not have a timeseries subfolder!")
    return ExperimentFolders(settings=settings_dir, timeseries=ts_dir)


# ------------------ windows ------------------

def _is_na(v: Any) -> bool:
    return v is None or (isinstance(v, float) and math.isnan(v))


def resolve_window(n_samples: int, window: Window, exp_id: str = "", label: str = "the slice",
                   logger: Optional[logging.Logger] = None, clamp_late_start: bool = False) -> Tuple[int, int]:
    """1-based inclusive (start, stop) of window within n_samples samples.

    (start, stop) selects that range, a missing stop meaning the last sample;
    (T,) selects the last T samples. Bounds outside the series are clamped with
    a warning. A window that starts after the last sample falls back to the
    first sample when clamp_late_start is set and raises SliceError otherwise;
    a window that ends before it starts raises SliceError.
    """
    logger = logger or logging.getLogger("seqtime.compare")
    if len(window) == 1:
        if _is_na(window[0]):
            raise SliceError(f"Time series {exp_id}: the number of last samples for {label} is missing!")
        last = int(window[0])
        if last < 1:
            raise SliceError(f"Time series {exp_id}: the number of last samples for {label} must be positive, got {last}!")
        start, stop = n_samples - last + 1, n_samples
        if start < 1:
            logger.warning("Time series %s has less samples (namely %d) than the %d last samples requested for %s! The first sample is used instead.",
                           exp_id, n_samples, last, label)
            start = 1
        return start, stop

    start = 1 if _is_na(window[0]) else int(window[0])
    stop = n_samples if _is_na(window[1]) else int(window[1])
    if start < 1:
        logger.warning("Time series %s: start point %d for %s is before the first sample! The first sample is used instead.",
                       exp_id, start, label)
        start = 1
    if start > n_samples and clamp_late_start:
        logger.warning("Time series %s has less samples (namely %d) than the given start point %d for %s! The first sample is used instead.",
                       exp_id, n_samples, start, label)
        start = 1
    if start > n_samples:
        raise SliceError(f"Time series {exp_id} has less samples (namely {n_samples}) than the given start point {start} for {label}!")
    if stop > n_samples:
        logger.warning("Time series %s has less samples (namely %d) than the given end point %d for %s! The last sample (%d) is used instead.",
                       exp_id, n_samples, stop, label, n_samples)
        stop = n_samples
    if stop < start:
        raise SliceError(f"Time series {exp_id}: end point {stop} for {label} is before the start point {start}!")
    return start, stop


def take_window(ts: np.ndarray, window: Window, exp_id: str = "", label: str = "the slice",
                logger: Optional[logging.Logger] = None, clamp_late_start: bool = False) -> np.ndarray:
    start, stop = resolve_window(ts.shape[1], window, exp_id=exp_id, label=label, logger=logger,
                                 clamp_late_start=clamp_late_start)
    return ts[:, start - 1:stop]


# ------------------ loading ------------------

def load_settings(folders: ExperimentFolders, exp_id: str) -> ExperimentSettings:
    exp_dir = folders.settings / f"{exp_id}_settings"
    if not exp_dir.exists():
        raise FileNotFoundError(f"The settings folder does not have a subfolder for experiment {exp_id} ({exp_dir})!")
    if folders.timeseries is not None:
        ts_dir = folders.timeseries / f"{exp_id}_timeseries"
        if not ts_dir.exists():
            raise FileNotFoundError(f"The time series folder does not have a subfolder for experiment {exp_id} ({ts_dir})!")
    return read_settings(exp_dir / f"{exp_id}_settings.txt")


def interaction_matrix_path(folders: ExperimentFolders, exp_id: str, settings: ExperimentSettings) -> Path:
    # shared-matrix experiments read the matrix of their source experiment
    source_id = settings.source_experiment_id or exp_id
    return folders.settings / f"{source_id}_settings" / f"{source_id}_interactionmatrix.txt"


def timeseries_path(folders: ExperimentFolders, exp_id: str) -> Path:
    if folders.modif is not None:
        return folders.modif / f"{exp_id}_{folders.modif_tag}_timeseries.txt"
    return folders.timeseries / f"{exp_id}_timeseries" / f"{exp_id}_timeseries.txt"


def load_timeseries(folders: ExperimentFolders, exp_id: str, logger: logging.Logger) -> np.ndarray:
    path = timeseries_path(folders, exp_id)
    if not path.exists():
        raise FileNotFoundError(f"The time series file {path} for experiment {exp_id} does not exist!")
    logger.info("Reading time series from: %s", path)
    return read_matrix(path)


def _prepare_timeseries(raw: np.ndarray, exp_id: str, norm: bool, slice_def: Optional[Window],
                        logger: logging.Logger) -> np.ndarray:
    ts = normalize(raw) if norm else raw
    if slice_def is not None:
        ts = take_window(ts, slice_def, exp_id=exp_id, label="the slice", logger=logger, clamp_late_start=True)
    logger.info("Read time series with %d taxa and %d samples.", ts.shape[0], ts.shape[1])
    return ts


def integer_counts(x: np.ndarray, algorithm: Optional[str]) -> np.ndarray:
    """Rescale abundances to integer counts for generators that do not produce counts."""
    if algorithm in SCALED_ALGORITHMS:
        return np.rint(x * 1000)
    if algorithm in ROUNDED_ALGORITHMS:
        return np.rint(x)
    return x


def _percent(members: Sequence[int], n_taxa: int) -> float:
    if n_taxa == 0:
        return math.nan
    one_perc = n_taxa / 100
    return len(members) / one_perc


def _param(value: Optional[float], algorithm: Optional[str], algorithms: Sequence[str]) -> float:
    return float_or_nan(value) if algorithm in algorithms else math.nan


# ------------------ operations ------------------

def compare_ts(input_folder: str | Path, exp_ids: Sequence[Any],
               modif_folder: Optional[str | Path] = None, modif: str = "",
               slice_def: Optional[Window] = None, epsilon: float = 0.2, predef: bool = False,
               detrend: bool = True, norm: bool = False,
               hurst_bins: Sequence[float] = (0.5, 0.7, 0.9),
               maxautocor_bins: Sequence[float] = (0.3, 0.5, 0.8),
               time_decay_slice: Optional[Window] = (1, 50),
               var_evol_slice: Optional[Window] = None,
               rad_slice_def: Optional[Window] = None,
               entropy_estimator: Optional[EntropyEstimator] = None,
               neutrality_test: Optional[NeutralityTest] = None,
               logger: Optional[logging.Logger] = None) -> pd.DataFrame:
    """Experiment parameters and time series properties, one row per identifier.

    Args:
        input_folder: folder with the settings/ and timeseries/ subfolders
        exp_ids: experiment identifiers, processed in order
        modif_folder: folder with sliced or noisy variants of the time series
            (<id>_<modif>_timeseries.txt); settings still come from input_folder
        slice_def: (start, stop) or (T,) window of the series to analyse;
            time_decay_slice and var_evol_slice refer to the result of it
        epsilon, predef, detrend: noise type identification options
        norm: divide each sample by its sum (disables entropy)
        hurst_bins, maxautocor_bins: three thresholds each, giving four bins
        time_decay_slice: window for the time decay
        var_evol_slice: window for the variance evolution (None: not computed)
        rad_slice_def: window of raw counts for the rank-abundance analysis;
            cannot be combined with slice_def
        entropy_estimator: callable(ts, algorithm) -> entropy, or None
        neutrality_test: callable(normalized ts) -> p-value, or None; needs norm
    """
    logger = logger or logging.getLogger("seqtime.compare")
    validate_options(slice_def=slice_def, rad_slice_def=rad_slice_def, hurst_bins=hurst_bins,
                     maxautocor_bins=maxautocor_bins, norm=norm, neutrality_test=neutrality_test)
    folders = resolve_folders(input_folder, modif_folder, modif)

    if entropy_estimator is None and not norm:
        logger.info("No entropy estimator given; entropy of non-normalized time series is not computed.")
    hurst_names = memory_bin_names(hurst_bins, "hurst")
    autocor_names = memory_bin_names(maxautocor_bins, "autocor")

    records: List[ExperimentRecord] = []
    for exp_id in (str(e) for e in exp_ids):
        logger.info("Processing identifier %s", exp_id)
        settings = load_settings(folders, exp_id)
        algorithm = settings.algorithm

        pep = connectance = math.nan
        if algorithm in INTERACTION_ALGORITHMS:
            path_a = interaction_matrix_path(folders, exp_id, settings)
            if not path_a.exists():
                raise FileNotFoundError(f"The interaction matrix {path_a} for experiment {exp_id} does not exist!")
            logger.info("Reading interaction matrix from: %s", path_a)
            A = read_matrix(path_a)
            pep = round(get_pep(A), 2)
            connectance = get_connectance(A)

        raw = load_timeseries(folders, exp_id, logger)
        # raw counts for the rank-abundance analysis, taken before normalization
        rad_slice = None
        if rad_slice_def is not None:
            if len(rad_slice_def) == 2:
                rad_slice = take_window(raw, rad_slice_def, exp_id=exp_id, label="RAD properties", logger=logger,
                                        clamp_late_start=True)
            else:
                logger.warning("The RAD slice of %s is not defined correctly!", exp_id)
        last_sample = raw[:, -1]
        ts = _prepare_timeseries(raw, exp_id, norm, slice_def, logger)
        n_taxa = ts.shape[0]

        ent = math.nan
        if not norm and entropy_estimator is not None:
            ent = float(entropy_estimator(ts, algorithm))

        neutral = math.nan
        if neutrality_test is not None:
            neutral = float(neutrality_test(ts))

        autoslope = autocor_vs_taxon_num(ts, lag=1)["slope"]
        hursts = bin_by_memory(ts, thresholds=hurst_bins, method="hurst")
        autocors = bin_by_memory(ts, thresholds=maxautocor_bins, method="autocor")
        taylor_res = taylor(ts, type="taylor", pseudo=TAYLOR_PSEUDO)
        noisetypes = identify_noisetypes(ts, abund_threshold=0, epsilon=epsilon, smooth=True,
                                         predef=predef, detrend=detrend)

        raddistrib = radmodel = None
        radfitscore = radmodelscore = math.nan
        if rad_slice is not None:
            counts = integer_counts(rad_slice, algorithm)
            rad_res = rad(counts, remove_zeros=True, fit_distrib=True, fit_rad=True, fit_neutral=True)
            raddistrib, radfitscore = rad_res.distrib, rad_res.score
            radmodel, radmodelscore = rad_res.model, rad_res.model_score
            thetaprob = rad_res.thetaprob
        else:
            # no RAD slice: neutral model fitted to the last sample
            thetaprob = rad(integer_counts(last_sample, algorithm), remove_zeros=True, fit_neutral=True).thetaprob

        varevol = {"slope": math.nan, "adjR2": math.nan}
        if var_evol_slice is not None:
            if len(var_evol_slice) == 2:
                varevol = var_evol(take_window(ts, var_evol_slice, exp_id=exp_id, label="variance evolution", logger=logger))
            else:
                logger.warning("The variance evolution slice of %s is not defined correctly!", exp_id)

        timedecay = {"slope": math.nan, "adjR2": math.nan}
        if time_decay_slice is not None and len(time_decay_slice) == 2:
            timedecay = time_decay(take_window(ts, time_decay_slice, exp_id=exp_id, label="the time decay", logger=logger),
                                   logdissim=True, logtime=True)
        else:
            logger.warning("The time decay slice of %s is not defined correctly!", exp_id)

        records.append(ExperimentRecord(
            id=exp_id,
            samplenum=int(ts.shape[1]),
            taxonnum=int(n_taxa),
            algorithm=algorithm,
            interval=float_or_nan(settings.sampling_frequency),
            initabundmode=settings.init_abundance_mode,
            pep=pep,
            connectance=connectance,
            sigma=_param(settings.sigma, algorithm, ("ricker",)),
            theta=_param(settings.theta, algorithm, ("dm",)),
            m=_param(settings.immigration_rate, algorithm, ("hubbell",)),
            individuals=_param(settings.individual_count, algorithm, INDIVIDUAL_ALGORITHMS),
            deaths=_param(settings.deathrate, algorithm, ("hubbell",)),
            entropy=ent,
            taylorslope=taylor_res.slope,
            taylorr2=taylor_res.adj_r2,
            black=_percent(noisetypes["black"], n_taxa),
            brown=_percent(noisetypes["brown"], n_taxa),
            pink=_percent(noisetypes["pink"], n_taxa),
            white=_percent(noisetypes["white"], n_taxa),
            maxautocorbin1=_percent(autocors[autocor_names[0]], n_taxa),
            maxautocorbin2=_percent(autocors[autocor_names[1]], n_taxa),
            maxautocorbin3=_percent(autocors[autocor_names[2]], n_taxa),
            maxautocorbin4=_percent(autocors[autocor_names[3]], n_taxa),
            lowhurst=_percent(hursts[hurst_names[0]], n_taxa),
            middlehurst=_percent(hursts[hurst_names[1]], n_taxa),
            highhurst=_percent(hursts[hurst_names[2]], n_taxa),
            veryhighhurst=_percent(hursts[hurst_names[3]], n_taxa),
            timedecayslope=timedecay["slope"],
            timedecayr2=timedecay["adjR2"],
            varevolslope=varevol["slope"],
            varevolr2=varevol["adjR2"],
            autoslope=autoslope,
            neutral=neutral,
            raddistrib=raddistrib,
            radmodel=radmodel,
            radfitscore=radfitscore,
            radmodelscore=radmodelscore,
            thetaprob=thetaprob,
        ))

    return pd.DataFrame([asdict(r) for r in records], columns=RESULT_COLUMNS)


def _collect(input_folder, exp_ids, modif_folder, modif, norm, slice_def, logger, last_only: bool) -> Dict[str, np.ndarray]:
    logger = logger or logging.getLogger("seqtime.compare")
    _check_window_shape(slice_def, "slice_def")
    folders = resolve_folders(input_folder, modif_folder, modif)
    out: Dict[str, np.ndarray] = {}
    for exp_id in (str(e) for e in exp_ids):
        logger.info("Processing identifier %s", exp_id)
        load_settings(folders, exp_id)
        ts = _prepare_timeseries(load_timeseries(folders, exp_id, logger), exp_id, norm, slice_def, logger)
        out[f"exp{exp_id}"] = ts[:, -1].copy() if last_only else ts
    return out


def collect_distributions(input_folder: str | Path, exp_ids: Sequence[Any],
                          modif_folder: Optional[str | Path] = None, modif: str = "",
                          norm: bool = False, slice_def: Optional[Window] = None,
                          logger: Optional[logging.Logger] = None) -> Dict[str, np.ndarray]:
    """Abundances at the last (selected) sample of each experiment."""
    return _collect(input_folder, exp_ids, modif_folder, modif, norm, slice_def, logger, last_only=True)


def collect_timeseries(input_folder: str | Path, exp_ids: Sequence[Any],
                       modif_folder: Optional[str | Path] = None, modif: str = "",
                       norm: bool = False, slice_def: Optional[Window] = None,
                       logger: Optional[logging.Logger] = None) -> Dict[str, np.ndarray]:
    """The time series of each experiment, normalized and sliced as requested."""
    return _collect(input_folder, exp_ids, modif_folder, modif, norm, slice_def, logger, last_only=False)
