import pytest

from conftest import HUBBELL_SETTINGS, RICKER_SETTINGS
from seqtime.comparison.settings import parse_settings_text, parse_value, read_settings, settings_from_values


@pytest.mark.parametrize("raw, expected", [
    ('"ricker"', "ricker"),
    ("'glv'", "glv"),
    ("NA", None),
    ("NULL", None),
    ("TRUE", True),
    ("F", False),
    ("5", 5),
    ("0.05", 0.05),
    ("1e-3", 0.001),
    ("c(1, 2, NA)", [1, 2, None]),
    ("uniform", "uniform"),
])
def test_parse_value(raw, expected):
    assert parse_value(raw) == expected


def test_parse_settings_text_is_data_only():
    text = ('# generator run\nAlgorithm <- "soc"  # trailing comment\n'
            'note = "a # in quotes"\nsystem("rm -rf /")\nI=200;\n')
    values = parse_settings_text(text)
    assert values == {"Algorithm": "soc", "note": "a # in quotes", "I": 200}


def test_legacy_keys_map_to_fields():
    s = settings_from_values(parse_settings_text(HUBBELL_SETTINGS))
    assert s.algorithm == "hubbell"
    assert s.immigration_rate == 0.02
    assert s.deathrate == 100.0
    assert s.individual_count == 1000.0
    assert s.sampling_frequency == 5.0
    assert s.sigma is None


def test_source_experiment_id():
    assert settings_from_values({"Input_experiment_identifier": None}).source_experiment_id is None
    assert settings_from_values({"Input_experiment_identifier": False}).source_experiment_id is None
    assert settings_from_values({"Input_experiment_identifier": 3}).source_experiment_id == "3"
    assert settings_from_values({"Input_experiment_identifier": 3.0}).source_experiment_id == "3"


def test_unknown_keys_are_kept():
    s = settings_from_values({"Algorithm": "GLV", "noise": "pois", "sigma": "NA"})
    assert s.algorithm == "glv"
    assert s.extra == {"noise": "pois"}
    assert s.sigma is None


def test_read_settings(tmp_path):
    path = tmp_path / "1_settings.txt"
    path.write_text(RICKER_SETTINGS)
    s = read_settings(path)
    assert s.algorithm == "ricker"
    assert s.sigma == pytest.approx(0.05)
    assert s.source_experiment_id is None
    with pytest.raises(FileNotFoundError):
        read_settings(tmp_path / "2_settings.txt")
