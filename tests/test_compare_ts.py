"""Tests for the experiment aggregator (compare_ts and the collect_* operations)."""

import logging
import math

import numpy as np
import pytest

from conftest import (DM_SETTINGS, HUBBELL_SETTINGS, INTERACTION_MATRIX, RICKER_SETTINGS,
                      write_matrix)
from seqtime.comparison.compare_ts import (RESULT_COLUMNS, ConfigurationError, SliceError,
                                           collect_distributions, collect_timeseries, compare_ts,
                                           resolve_window)
from seqtime.properties.entropy import discretized_entropy
from seqtime.properties.rad import DISTRIBUTIONS


class TestEndToEnd:
    def test_dm_experiment(self, make_experiment, poisson_ts):
        root = make_experiment("exp1", DM_SETTINGS, poisson_ts)
        table = compare_ts(root, ["exp1"])
        assert len(table) == 1
        row = table.iloc[0]
        assert row["id"] == "exp1"
        assert row["algorithm"] == "dm"
        assert row["theta"] == pytest.approx(0.1)
        assert abs(row["taylorslope"] - 1.0) < 0.15
        assert math.isnan(row["sigma"])
        assert math.isnan(row["connectance"])
        assert math.isnan(row["pep"])
        assert row["samplenum"] == 30
        assert row["taxonnum"] == 20

    def test_noise_and_bin_percentages_are_bounded(self, make_experiment, poisson_ts):
        root = make_experiment("1", DM_SETTINGS, poisson_ts)
        row = compare_ts(root, ["1"]).iloc[0]
        noise = row[["white", "pink", "brown", "black"]].astype(float)
        assert (noise >= 0).all() and noise.sum() <= 100 + 1e-9
        autocor = row[["maxautocorbin1", "maxautocorbin2", "maxautocorbin3", "maxautocorbin4"]].astype(float)
        assert autocor.sum() <= 100 + 1e-9
        assert 0.0 <= row["thetaprob"] <= 1.0


class TestAlignment:
    def test_every_column_has_one_entry_per_id(self, make_experiment, poisson_ts):
        make_experiment("1", RICKER_SETTINGS, poisson_ts / 1000, interaction=INTERACTION_MATRIX)
        make_experiment("2", HUBBELL_SETTINGS, poisson_ts)
        root = make_experiment("3", DM_SETTINGS, poisson_ts)
        table = compare_ts(root, ["1", "2", "3"])

        assert list(table.columns) == RESULT_COLUMNS
        for col in table.columns:
            assert len(table[col]) == 3
        assert table["id"].tolist() == ["1", "2", "3"]
        assert table["algorithm"].tolist() == ["ricker", "hubbell", "dm"]

    def test_algorithm_specific_parameters(self, make_experiment, poisson_ts):
        make_experiment("1", RICKER_SETTINGS, poisson_ts / 1000, interaction=INTERACTION_MATRIX)
        make_experiment("2", HUBBELL_SETTINGS, poisson_ts)
        root = make_experiment("3", DM_SETTINGS, poisson_ts)
        table = compare_ts(root, ["1", "2", "3"])

        assert table.loc[0, "sigma"] == pytest.approx(0.05)
        assert table.loc[0, "pep"] == pytest.approx(66.67)
        assert table.loc[0, "connectance"] == pytest.approx(0.5)
        assert np.isnan(table.loc[1:, "sigma"].astype(float)).all()
        assert table.loc[1, "m"] == pytest.approx(0.02)
        assert table.loc[1, "deaths"] == pytest.approx(100)
        assert table.loc[1, "individuals"] == pytest.approx(1000)
        assert table.loc[1, "interval"] == pytest.approx(5)
        assert math.isnan(table.loc[2, "m"])
        assert math.isnan(table.loc[0, "theta"])

    def test_no_ids_gives_empty_table_with_columns(self, input_folder):
        table = compare_ts(input_folder, [])
        assert len(table) == 0
        assert list(table.columns) == RESULT_COLUMNS

    def test_interaction_matrix_from_source_experiment(self, make_experiment, poisson_ts):
        make_experiment("1", RICKER_SETTINGS, poisson_ts / 1000, interaction=INTERACTION_MATRIX)
        shared = RICKER_SETTINGS.replace("Input_experiment_identifier=NA", "Input_experiment_identifier=1")
        root = make_experiment("2", shared, poisson_ts / 1000)
        table = compare_ts(root, ["2"])
        assert table.loc[0, "connectance"] == pytest.approx(0.5)


class TestValidation:
    def test_rad_and_slice_are_exclusive_before_io(self, tmp_path):
        with pytest.raises(ConfigurationError):
            compare_ts(tmp_path / "does-not-exist", ["1"], slice_def=(1, 10), rad_slice_def=(1, None))

    def test_three_hurst_thresholds(self, input_folder):
        with pytest.raises(ConfigurationError, match="Hurst"):
            compare_ts(input_folder, ["1"], hurst_bins=(0.5, 0.7))

    def test_three_autocorrelation_thresholds(self, input_folder):
        with pytest.raises(ConfigurationError, match="autocorrelation"):
            compare_ts(input_folder, ["1"], maxautocor_bins=(0.3, 0.5, 0.8, 0.9))

    def test_neutrality_needs_normalization(self, input_folder):
        with pytest.raises(ConfigurationError, match="normalized"):
            compare_ts(input_folder, ["1"], neutrality_test=lambda ts: 0.5, norm=False)

    def test_missing_input_folder(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            compare_ts(tmp_path / "nowhere", ["1"])

    def test_missing_experiment_aborts_batch(self, make_experiment, poisson_ts):
        root = make_experiment("1", DM_SETTINGS, poisson_ts)
        with pytest.raises(FileNotFoundError, match="9"):
            compare_ts(root, ["1", "9"])

    def test_missing_interaction_matrix(self, make_experiment, poisson_ts):
        root = make_experiment("1", RICKER_SETTINGS, poisson_ts / 1000)
        with pytest.raises(FileNotFoundError, match="interactionmatrix"):
            compare_ts(root, ["1"])


class TestSlices:
    def test_slice_end_is_clamped_with_warning(self, make_experiment, poisson_ts, caplog):
        root = make_experiment("1", DM_SETTINGS, poisson_ts[:, :10])
        with caplog.at_level(logging.WARNING, logger="seqtime.compare"):
            table = compare_ts(root, ["1"], slice_def=(1, 50))
        assert table.loc[0, "samplenum"] == 10
        assert any("end point 50" in r.getMessage() and "1" in r.getMessage() for r in caplog.records)

    def test_last_samples_form(self, make_experiment, poisson_ts):
        root = make_experiment("1", DM_SETTINGS, poisson_ts)
        table = compare_ts(root, ["1"], slice_def=(5,))
        assert table.loc[0, "samplenum"] == 5

    def test_open_end(self, make_experiment, poisson_ts):
        root = make_experiment("1", DM_SETTINGS, poisson_ts)
        table = compare_ts(root, ["1"], slice_def=(11, None))
        assert table.loc[0, "samplenum"] == 20

    def test_resolve_window(self, caplog):
        assert resolve_window(10, (1, 50), exp_id="x") == (1, 10)
        assert resolve_window(10, (3, float("nan"))) == (3, 10)
        assert resolve_window(10, (4,)) == (7, 10)
        with caplog.at_level(logging.WARNING, logger="seqtime.compare"):
            assert resolve_window(10, (20,), exp_id="x") == (1, 10)
        assert caplog.records

    def test_window_past_the_end_is_fatal_for_analysis_windows(self):
        with pytest.raises(SliceError):
            resolve_window(10, (11, None))
        with pytest.raises(SliceError):
            resolve_window(10, (6, 4))
        with pytest.raises(SliceError):
            resolve_window(10, (None,))

    def test_late_start_falls_back_to_first_sample(self, caplog):
        with caplog.at_level(logging.WARNING, logger="seqtime.compare"):
            assert resolve_window(10, (11, None), exp_id="x", clamp_late_start=True) == (1, 10)
            assert resolve_window(10, (15, 20), exp_id="x", clamp_late_start=True) == (1, 10)
        assert any("start point 11" in r.getMessage() for r in caplog.records)

    def test_slice_starting_after_the_end_is_clamped(self, make_experiment, poisson_ts, caplog):
        root = make_experiment("1", DM_SETTINGS, poisson_ts[:, :10])
        with caplog.at_level(logging.WARNING, logger="seqtime.compare"):
            table = compare_ts(root, ["1"], slice_def=(15, None))
        assert table.loc[0, "samplenum"] == 10
        assert any("start point 15" in r.getMessage() for r in caplog.records)

    @pytest.mark.parametrize("window", [(None,), (float("nan"),), (0,)])
    def test_invalid_last_samples_rejected_before_io(self, tmp_path, window):
        with pytest.raises(ConfigurationError, match="last samples"):
            compare_ts(tmp_path / "does-not-exist", ["1"], slice_def=window)
        with pytest.raises(ConfigurationError):
            collect_timeseries(tmp_path / "does-not-exist", ["1"], slice_def=window)

    def test_variance_evolution_start_beyond_series(self, make_experiment, poisson_ts):
        root = make_experiment("1", DM_SETTINGS, poisson_ts)
        with pytest.raises(SliceError, match="variance evolution"):
            compare_ts(root, ["1"], var_evol_slice=(40, None))

    def test_variance_evolution_computed(self, make_experiment, poisson_ts):
        root = make_experiment("1", DM_SETTINGS, poisson_ts)
        table = compare_ts(root, ["1"], var_evol_slice=(1, None))
        assert np.isfinite(table.loc[0, "varevolslope"])

    def test_missing_time_decay_slice_gives_na(self, make_experiment, poisson_ts, caplog):
        root = make_experiment("1", DM_SETTINGS, poisson_ts)
        with caplog.at_level(logging.WARNING, logger="seqtime.compare"):
            table = compare_ts(root, ["1"], time_decay_slice=None)
        assert math.isnan(table.loc[0, "timedecayslope"])
        assert any("time decay" in r.getMessage() for r in caplog.records)


class TestRad:
    def test_rad_slice_starting_after_the_end(self, make_experiment, poisson_ts, caplog):
        root = make_experiment("1", DM_SETTINGS, poisson_ts[:, :10])
        with caplog.at_level(logging.WARNING, logger="seqtime.compare"):
            row = compare_ts(root, ["1"], rad_slice_def=(15, None)).iloc[0]
        assert row["raddistrib"] is not None
        assert 0.0 <= row["thetaprob"] <= 1.0
        assert any("RAD properties" in r.getMessage() for r in caplog.records)

    def test_rad_slice_fits(self, make_experiment, poisson_ts):
        root = make_experiment("1", DM_SETTINGS, poisson_ts)
        row = compare_ts(root, ["1"], rad_slice_def=(1, None)).iloc[0]
        assert row["raddistrib"] in DISTRIBUTIONS
        assert row["radmodel"] in {"null", "preemption", "lognormal", "zipf", "mandelbrot"}
        assert 0 < row["radfitscore"] <= 1
        assert 0 < row["radmodelscore"] <= 1
        assert 0.0 <= row["thetaprob"] <= 1.0

    def test_malformed_rad_slice_gives_na(self, make_experiment, poisson_ts, caplog):
        root = make_experiment("1", DM_SETTINGS, poisson_ts)
        with caplog.at_level(logging.WARNING, logger="seqtime.compare"):
            row = compare_ts(root, ["1"], rad_slice_def=(5,)).iloc[0]
        assert row["raddistrib"] is None
        assert math.isnan(row["radfitscore"])
        assert np.isfinite(row["thetaprob"])
        assert any("RAD" in r.getMessage() for r in caplog.records)


class TestPluggableEstimators:
    def test_entropy_not_computed_without_estimator(self, make_experiment, poisson_ts):
        root = make_experiment("1", DM_SETTINGS, poisson_ts)
        assert math.isnan(compare_ts(root, ["1"]).loc[0, "entropy"])

    def test_entropy_estimator(self, make_experiment, poisson_ts):
        root = make_experiment("1", DM_SETTINGS, poisson_ts)
        seen = []

        def estimator(ts, algorithm):
            seen.append(algorithm)
            return 1.25

        assert compare_ts(root, ["1"], entropy_estimator=estimator).loc[0, "entropy"] == 1.25
        assert seen == ["dm"]

    def test_bundled_entropy_estimator(self, make_experiment, poisson_ts):
        root = make_experiment("1", DM_SETTINGS, poisson_ts)
        ent = compare_ts(root, ["1"], entropy_estimator=discretized_entropy).loc[0, "entropy"]
        assert 0 < ent <= math.log(30) + 1e-9

    def test_entropy_skipped_for_normalized_series(self, make_experiment, poisson_ts):
        root = make_experiment("1", DM_SETTINGS, poisson_ts)
        table = compare_ts(root, ["1"], norm=True, entropy_estimator=lambda ts, alg: 1.0)
        assert math.isnan(table.loc[0, "entropy"])

    def test_neutrality_test_gets_normalized_series(self, make_experiment, poisson_ts):
        root = make_experiment("1", DM_SETTINGS, poisson_ts)
        sums = []

        def neutrality(ts):
            sums.append(ts.sum(axis=0))
            return 0.42

        table = compare_ts(root, ["1"], norm=True, neutrality_test=neutrality)
        assert table.loc[0, "neutral"] == 0.42
        np.testing.assert_allclose(sums[0], 1.0)


class TestCollect:
    def test_distributions_are_last_samples(self, make_experiment, poisson_ts):
        make_experiment("1", DM_SETTINGS, poisson_ts)
        root = make_experiment("2", HUBBELL_SETTINGS, poisson_ts[:, :12])
        distribs = collect_distributions(root, ["1", "2"])
        assert list(distribs) == ["exp1", "exp2"]
        np.testing.assert_allclose(distribs["exp1"], poisson_ts[:, -1])
        np.testing.assert_allclose(distribs["exp2"], poisson_ts[:, 11])

    def test_normalized_distributions(self, make_experiment, poisson_ts):
        root = make_experiment("1", DM_SETTINGS, poisson_ts)
        assert collect_distributions(root, ["1"], norm=True)["exp1"].sum() == pytest.approx(1.0)

    def test_timeseries(self, make_experiment, poisson_ts):
        root = make_experiment("1", DM_SETTINGS, poisson_ts)
        series = collect_timeseries(root, ["1"], slice_def=(1, 10))
        assert series["exp1"].shape == (20, 10)

    def test_modified_timeseries_folder(self, make_experiment, poisson_ts, tmp_path):
        root = make_experiment("1", DM_SETTINGS, poisson_ts)
        modif_dir = tmp_path / "sliced"
        modif_dir.mkdir()
        write_matrix(modif_dir / "1_sliced_timeseries.txt", poisson_ts[:, :12])
        series = collect_timeseries(root, ["1"], modif_folder=modif_dir, modif="sliced")
        assert series["exp1"].shape == (20, 12)
        table = compare_ts(root, ["1"], modif_folder=modif_dir, modif="sliced")
        assert table.loc[0, "samplenum"] == 12
