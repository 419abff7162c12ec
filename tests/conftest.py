"""Pytest fixtures: synthetic abundance matrices and generator-style experiment folders."""

from pathlib import Path

import numpy as np
import pytest

DM_SETTINGS = 'Algorithm="dm"\ntheta=0.1\nSampling_frequency=1\ninit_abundance_mode=5\n'
RICKER_SETTINGS = 'Algorithm="ricker"\nsigma=0.05\nSampling_frequency=1\nInput_experiment_identifier=NA\n'
HUBBELL_SETTINGS = ('Algorithm="hubbell"\nimmigration_rate_Hubbell=0.02\ndeathrate_Hubbell=100\n'
                    'I=1000\nSampling_frequency=5\n')

INTERACTION_MATRIX = np.array([
    [-1.0, 0.5, 0.0],
    [-0.3, -1.0, 0.2],
    [0.0, 0.0, -1.0],
])


def write_matrix(path: Path, m: np.ndarray) -> None:
    np.savetxt(path, np.asarray(m, dtype=float), delimiter="\t", fmt="%.10g")


@pytest.fixture
def poisson_ts():
    """20 taxa x 30 samples of Poisson counts: variance equals mean (Taylor slope 1)."""
    rng = np.random.default_rng(1)
    means = np.logspace(np.log10(5), np.log10(500), 20)
    return rng.poisson(means[:, None], size=(20, 30)).astype(float)


@pytest.fixture
def powerlaw_ts():
    """50 taxa x 200 samples from gamma distributions with variance = 2 * mean^1.5."""
    rng = np.random.default_rng(7)
    means = np.logspace(0, 3, 50)
    variances = 2 * means ** 1.5
    shape = means ** 2 / variances
    scale = variances / means
    return rng.gamma(shape[:, None], scale[:, None], size=(50, 200))


@pytest.fixture
def input_folder(tmp_path):
    root = tmp_path / "runs"
    (root / "settings").mkdir(parents=True)
    (root / "timeseries").mkdir()
    return root


@pytest.fixture
def make_experiment(input_folder):
    """Write settings (and optional interaction matrix) and a time series for one id."""

    def _make(exp_id, settings, ts, interaction=None):
        sdir = input_folder / "settings" / f"{exp_id}_settings"
        sdir.mkdir()
        (sdir / f"{exp_id}_settings.txt").write_text(settings)
        if interaction is not None:
            write_matrix(sdir / f"{exp_id}_interactionmatrix.txt", interaction)
        tdir = input_folder / "timeseries" / f"{exp_id}_timeseries"
        tdir.mkdir()
        write_matrix(tdir / f"{exp_id}_timeseries.txt", ts)
        return input_folder

    return _make
