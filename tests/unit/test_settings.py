import json

import pytest

from sitiocompare.indicators import METRIC_GROUPS
from sitiocompare.settings import ComparisonLimits, EngineSettings, limits_from_dict, load_limits, load_settings


def test_default_limits():
    limits = ComparisonLimits()
    assert (limits.max_sitios, limits.max_years) == (4, 5)


@pytest.mark.parametrize("bad", [0, -1, True, "4", 2.5])
def test_limits_must_be_positive_ints(bad):
    with pytest.raises(ValueError):
        ComparisonLimits(max_sitios=bad)


def test_limits_from_camel_case():
    limits = limits_from_dict({"maxSitios": 6})
    assert limits == ComparisonLimits(max_sitios=6, max_years=5)


def test_load_limits(tmp_path):
    path = tmp_path / "limits.json"
    path.write_text(json.dumps({"max_sitios": 3, "max_years": 2}), encoding="utf-8")
    assert load_limits(str(path)) == ComparisonLimits(max_sitios=3, max_years=2)


def test_load_settings(tmp_path):
    assert load_settings() == EngineSettings()
    assert load_settings().default_metric_groups == METRIC_GROUPS

    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"maxYears": 3, "default_year": "2024",
                                "default_metric_groups": ["utilities"]}), encoding="utf-8")
    settings = load_settings(str(path))
    assert settings.limits.max_years == 3
    assert settings.default_year == 2024
    assert settings.default_metric_groups == ("utilities",)


def test_unknown_default_group(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"default_metric_groups": ["weather"]}), encoding="utf-8")
    with pytest.raises(ValueError, match="weather"):
        load_settings(str(path))
