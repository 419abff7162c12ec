#!/usr/bin/env python3
"""Experiment settings files.

Generator runs leave one `<id>_settings.txt` per experiment with lines such as

    Algorithm="ricker"
    sigma=0.05
    Sampling_frequency=1
    Input_experiment_identifier=NA
    init_abundance_mode <- 5

The file is read as data: each `key = value` (or `key <- value`) line is
parsed into a string, number, boolean, list (`c(...)`) or None (NA/NULL).
Nothing in it is evaluated.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger("seqtime.settings")

_ASSIGN = re.compile(r"^\s*([A-Za-z_.][A-Za-z0-9_.]*)\s*(?:<-|=)\s*(.*?)\s*;?\s*$")
_NUMBER = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")

# settings keys written by the generators -> schema field
KEY_ALIASES = {
    "algorithm": "algorithm",
    "sampling_frequency": "sampling_frequency",
    "interval": "sampling_frequency",
    "sigma": "sigma",
    "theta": "theta",
    "immigration_rate_hubbell": "immigration_rate",
    "immigration_rate": "immigration_rate",
    "m": "immigration_rate",
    "deathrate_hubbell": "deathrate",
    "deathrate": "deathrate",
    "i": "individual_count",
    "individuals": "individual_count",
    "individual_count": "individual_count",
    "init_abundance_mode": "init_abundance_mode",
    "input_experiment_identifier": "source_experiment_id",
    "source_experiment_id": "source_experiment_id",
}


@dataclass(frozen=True)
class ExperimentSettings:
    algorithm: Optional[str] = None
    sampling_frequency: Optional[float] = None
    sigma: Optional[float] = None
    theta: Optional[float] = None
    immigration_rate: Optional[float] = None
    deathrate: Optional[float] = None
    individual_count: Optional[float] = None
    init_abundance_mode: Any = None
    source_experiment_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


def _strip_comment(line: str) -> str:
    out = []
    quote = None
    for ch in line:
        if quote:
            if ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch == "#":
            break
        out.append(ch)
    return "".join(out)


def parse_value(raw: str) -> Any:
    s = raw.strip()
    if s == "":
        return None
    if len(s) >= 2 and s[0] == s[-1] and s[0] in "\"'":
        return s[1:-1]
    if s.upper() in {"NA", "NULL", "NAN", "NA_REAL_", "NA_CHARACTER_"}:
        return None
    if s in {"TRUE", "T", "True", "true"}:
        return True
    if s in {"FALSE", "F", "False", "false"}:
        return False
    if s.startswith("c(") and s.endswith(")"):
        inner = s[2:-1].strip()
        return [parse_value(p) for p in inner.split(",")] if inner else []
    if _NUMBER.match(s):
        if re.match(r"^[+-]?\d+$", s):
            return int(s)
        return float(s)
    return s


def parse_settings_text(text: str) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for lineno, line in enumerate(text.splitlines(), start=1):
        line = _strip_comment(line).strip()
        if not line:
            continue
        m = _ASSIGN.match(line)
        if not m:
            logger.debug("Ignoring settings line %d: %r", lineno, line)
            continue
        values[m.group(1)] = parse_value(m.group(2))
    return values


def _as_float(v: Any) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        return float(v)
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


def _as_source_id(v: Any) -> Optional[str]:
    # FALSE and NA both mean "no source experiment"
    if v is None or v is False:
        return None
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v)


def settings_from_values(values: Dict[str, Any]) -> ExperimentSettings:
    fields: Dict[str, Any] = {}
    extra: Dict[str, Any] = {}
    for key, value in values.items():
        target = KEY_ALIASES.get(key.lower())
        if target is None or target in fields:
            extra[key] = value
        else:
            fields[target] = value
    algorithm = fields.get("algorithm")
    return ExperimentSettings(
        algorithm=str(algorithm).lower() if algorithm is not None else None,
        sampling_frequency=_as_float(fields.get("sampling_frequency")),
        sigma=_as_float(fields.get("sigma")),
        theta=_as_float(fields.get("theta")),
        immigration_rate=_as_float(fields.get("immigration_rate")),
        deathrate=_as_float(fields.get("deathrate")),
        individual_count=_as_float(fields.get("individual_count")),
        init_abundance_mode=fields.get("init_abundance_mode"),
        source_experiment_id=_as_source_id(fields.get("source_experiment_id")),
        extra=extra,
    )


def read_settings(path: str | Path) -> ExperimentSettings:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"The settings file {p} does not exist!")
    return settings_from_values(parse_settings_text(p.read_text(encoding="utf-8")))
