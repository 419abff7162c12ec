#!/usr/bin/env python3
"""
Command line entry point for the time series comparison.

Examples:
  seqtime-compare --input-folder runs/ --ids 1,2,3 --out results/comparison.tsv
  seqtime-compare --input-folder runs/ --ids 1,2 --mode distribs --out results/distribs.tsv
  seqtime-compare --config compare.toml

A TOML config maps long-option names to values, e.g.
  input_folder = "runs"
  ids = [1, 2, 3]
  norm = true
  time_decay_slice = [1, 50]
"""
from __future__ import annotations

import argparse
import os
import sys
from typing import List, Optional

import pandas as pd

from seqtime.properties.entropy import discretized_entropy

from .compare_ts import collect_distributions, collect_timeseries, compare_ts
from .io_utils import ensure_dir, float_or_nan, setup_logging
from .ordination import MAXAUTOCOR_COLUMNS, ordinate_results
from .results import write_results

try:
    import tomllib as _toml  # py311+
except ModuleNotFoundError:
    try:
        import tomli as _toml  # type: ignore[import-not-found]  # py<311
    except ModuleNotFoundError:
        _toml = None

FLAG_KEYS = {"predef", "no_detrend", "norm", "no_entropy"}
LISTY_KEYS = {"ids", "slice", "hurst_bins", "maxautocor_bins", "time_decay_slice", "var_evol_slice", "rad_slice", "pca_columns"}


def parse_csv_list(s: Optional[str]) -> Optional[List[str]]:
    if not s:
        return None
    out = [part.strip() for part in s.split(",") if part.strip()]
    return out or None


def parse_window(s: Optional[str]) -> Optional[List[Optional[float]]]:
    """'1,50' -> [1, 50]; '1,NA' -> [1, None]; '20' -> [20] (last 20 samples)."""
    parts = parse_csv_list(s)
    if parts is None:
        return None
    out: List[Optional[float]] = []
    for part in parts:
        v = float_or_nan(part)
        if v != v:
            if part.strip().lower() not in {"na", "nan", "none", "null"}:
                raise ValueError(f"Invalid window bound: {part}")
            out.append(None)
        else:
            out.append(v)
    return out


def parse_floats(s: Optional[str]) -> Optional[List[float]]:
    parts = parse_csv_list(s)
    return [float(p) for p in parts] if parts else None


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Compare properties of community time series")
    ap.add_argument("--input-folder", help="Folder with settings/ and timeseries/ subfolders")
    ap.add_argument("--ids", help="Comma-separated experiment identifiers")
    ap.add_argument("--mode", default="table", choices=["table", "distribs", "timeseries"],
                    help="table: properties per experiment; distribs: last samples; timeseries: the series")
    ap.add_argument("--modif-folder", default=None, help="Folder with sliced/noisy time series")
    ap.add_argument("--modif", default="", help="Shared name of the modified time series (e.g. sliced, pois)")
    ap.add_argument("--slice", default=None, help="Window 'start,end' (end NA = last sample) or 'T' for the last T samples")
    ap.add_argument("--epsilon", type=float, default=0.2, help="Allowed deviation from the expected noise slope")
    ap.add_argument("--predef", action="store_true", help="Predefined slope boundaries for noise types")
    ap.add_argument("--no-detrend", action="store_true", help="Do not remove linear trends before the periodogram")
    ap.add_argument("--norm", action="store_true", help="Divide each sample by its sum (disables entropy)")
    ap.add_argument("--hurst-bins", default="0.5,0.7,0.9")
    ap.add_argument("--maxautocor-bins", default="0.3,0.5,0.8")
    ap.add_argument("--time-decay-slice", default="1,50")
    ap.add_argument("--var-evol-slice", default=None)
    ap.add_argument("--rad-slice", default=None, help="Window of raw counts for rank-abundance fits (not with --slice)")
    ap.add_argument("--no-entropy", action="store_true", help="Skip the entropy of non-normalized series")
    ap.add_argument("--out", default="results/comparison/compare_ts.tsv",
                    help="Output TSV (table, distribs) or folder (timeseries)")
    ap.add_argument("--pca-out", default=None, help="Optional TSV with the PCA of the comparison table")
    ap.add_argument("--pca-columns", default=",".join(MAXAUTOCOR_COLUMNS))
    ap.add_argument("--log-level", default="INFO")
    ap.add_argument("--config", help="TOML config file mapping long-option names to values")
    return ap


def _without_config(argv: List[str]) -> List[str]:
    out: List[str] = []
    skip = False
    for a in argv:
        if skip:
            skip = False
        elif a == "--config":
            skip = True
        elif not a.startswith("--config="):
            out.append(a)
    return out


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    argv = sys.argv[1:] if argv is None else list(argv)
    ap = build_parser()
    # first parse just to see if --config was given
    args_pre, _unknown = ap.parse_known_args(argv)
    if not args_pre.config:
        args = ap.parse_args(argv)
    else:
        if _toml is None:
            raise RuntimeError("TOML configs need Python 3.11+ (tomllib) or `pip install tomli` on older Pythons.")
        with open(args_pre.config, "rb") as f:
            cfg = _toml.load(f)
        # convert TOML keys -> CLI args so argparse still does type/choice handling
        cli: List[str] = []
        for k, v in cfg.items():
            key = f"--{k.replace('_', '-')}"
            if k in FLAG_KEYS:
                if bool(v):
                    cli.append(key)
            else:
                if isinstance(v, list) and k in LISTY_KEYS:
                    v = ",".join("NA" if x is None else str(x) for x in v)
                cli.extend([key, str(v)])
        # explicit command line options win over the config file
        args = ap.parse_args(cli + _without_config(argv))
    if not args.input_folder or not args.ids:
        ap.error("--input-folder and --ids are required (on the command line or in the config)")
    return args


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    logger = setup_logging(args.log_level)
    ids = parse_csv_list(args.ids) or []
    slice_def = parse_window(args.slice)

    if args.mode == "distribs":
        distribs = collect_distributions(args.input_folder, ids, modif_folder=args.modif_folder, modif=args.modif,
                                         norm=args.norm, slice_def=slice_def, logger=logger)
        table = pd.DataFrame({name: pd.Series(v) for name, v in distribs.items()})
        write_results(table, args.out)
        logger.info("Wrote %d distributions to %s", len(distribs), args.out)
        return

    if args.mode == "timeseries":
        series = collect_timeseries(args.input_folder, ids, modif_folder=args.modif_folder, modif=args.modif,
                                    norm=args.norm, slice_def=slice_def, logger=logger)
        ensure_dir(args.out)
        for name, ts in series.items():
            pd.DataFrame(ts).to_csv(os.path.join(args.out, f"{name}_timeseries.tsv"), sep="\t", index=False, header=False)
        logger.info("Wrote %d time series to %s", len(series), args.out)
        return

    table = compare_ts(
        args.input_folder, ids,
        modif_folder=args.modif_folder, modif=args.modif,
        slice_def=slice_def,
        epsilon=args.epsilon, predef=args.predef, detrend=not args.no_detrend, norm=args.norm,
        hurst_bins=parse_floats(args.hurst_bins) or [],
        maxautocor_bins=parse_floats(args.maxautocor_bins) or [],
        time_decay_slice=parse_window(args.time_decay_slice),
        var_evol_slice=parse_window(args.var_evol_slice),
        rad_slice_def=parse_window(args.rad_slice),
        entropy_estimator=None if args.no_entropy else discretized_entropy,
        logger=logger,
    )
    write_results(table, args.out)
    logger.info("Wrote comparison of %d experiments to %s", len(table), args.out)

    if args.pca_out:
        pcs = ordinate_results(table, columns=parse_csv_list(args.pca_columns) or list(MAXAUTOCOR_COLUMNS))
        write_results(pcs, args.pca_out)
        logger.info("Wrote PCA coordinates to %s", args.pca_out)


if __name__ == "__main__":
    main()
