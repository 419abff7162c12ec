#!/usr/bin/env python3
"""Post-processing of compare_ts tables before they are plotted or shared."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List

import numpy as np
import pandas as pd

GENERATOR_LABELS = {
    "soi": "SOI",
    "hubbell": "Hubbell",
    "davida": "Stool A",
    "davidb": "Stool B",
    "dm": "DM",
    "glv": "gLV",
    "ricker": "Ricker",
}


def customize_generator_names(names: Iterable[str]) -> List[str]:
    return [GENERATOR_LABELS.get(n, n) for n in names]


def filter_results(table: pd.DataFrame, skip_intervals: bool = False, skip_high_deathrate: bool = False,
                   skip_generators: Iterable[str] = ()) -> pd.DataFrame:
    """Keep only interval-1 experiments, experiments with fewer than 1000
    deaths (NA counts as 0) and/or drop the given generators."""
    keep = np.ones(len(table), dtype=bool)
    if skip_intervals:
        keep &= pd.to_numeric(table["interval"], errors="coerce").to_numpy() == 1
    if skip_high_deathrate:
        deaths = pd.to_numeric(table["deaths"], errors="coerce").fillna(0).to_numpy()
        keep &= deaths < 1000
    skip = set(skip_generators)
    if skip:
        keep &= ~table["algorithm"].isin(skip).to_numpy()
    return table.loc[keep].reset_index(drop=True)


def write_results(table: pd.DataFrame, path: str | Path) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    table.to_csv(p, sep="\t", index=False, na_rep="")
