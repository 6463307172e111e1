"""Tests for crop reference data and derived agronomy facts."""
import pytest

from fieldreports.analysis.crops import (
    CropType,
    GENERIC_INSTRUCTIONS,
    WHEAT_INSTRUCTIONS,
    crop_instructions,
    estimate_growth_stage,
    farming_region,
    fertilizer_adequacy,
    get_profile,
    standardize_fertilizer,
    yield_comparison,
)


@pytest.mark.parametrize("name, expected", [
    ("Maize", CropType.MAIZE),
    ("  WHEAT ", CropType.WHEAT),
    ("barley", CropType.BARLEY),
    ("Paprika", CropType.OTHER),
    ("", CropType.OTHER),
    (None, CropType.OTHER),
])
def test_crop_type_parse(name, expected):
    assert CropType.parse(name) == expected


def test_unknown_crop_uses_default_profile():
    assert get_profile("Paprika") == get_profile(None)
    assert get_profile("Paprika").season_days == 120


def test_crop_instructions():
    assert crop_instructions(" Wheat ") == WHEAT_INSTRUCTIONS
    assert crop_instructions("Maize") == GENERIC_INSTRUCTIONS.format(crop="maize")
    assert "paprika" in crop_instructions("Paprika")


@pytest.mark.parametrize("crop, days, stage", [
    ("maize", 10, "Early vegetative (emergence to V3)"),
    ("maize", 60, "Late vegetative to tasseling (V9 to VT)"),
    ("maize", 200, "Physiological maturity"),
    ("wheat", 50, "Stem extension"),
    ("paprika", 10, "Early vegetative"),
    ("paprika", 60, "Reproductive"),
    ("paprika", 200, "Harvest ready"),
])
def test_estimate_growth_stage(crop, days, stage):
    assert estimate_growth_stage(crop, days) == stage


def test_fertilizer_adequacy():
    result = fertilizer_adequacy({
        "crop_type": "Maize",
        "basal_fertilizer": "d",
        "basal_fertilizer_amount": 150,
        "top_dressing": "AN",
        "top_dressing_amount": 50,
    })

    assert result["basal_fertilizer"] == "Compound D"
    assert result["basal_recommended"] == 200
    assert result["basal_adequacy"] == "Somewhat inadequate"
    assert result["top_dressing"] == "Ammonium Nitrate"
    assert result["top_adequacy"] == "Inadequate"

    empty = fertilizer_adequacy({"crop_type": "Maize"})
    assert empty["basal_fertilizer"] is None
    assert empty["basal_adequacy"] == "Unknown"


def test_standardize_fertilizer():
    assert standardize_fertilizer("compound c") == "Compound C"
    assert standardize_fertilizer(" Gypsum ") == "Gypsum"
    assert standardize_fertilizer("  ") is None


@pytest.mark.parametrize("last_yield, unit, tons_per_ha", [
    (4000, "kg/ha", 4.0),
    (80, "bags", 4.0),
    (4, "t/ha", 4),
    (4, "tons", 4),
    (40, None, 4.0),
])
def test_yield_comparison_units(last_yield, unit, tons_per_ha):
    result = yield_comparison({
        "crop_type": "Maize",
        "field_size": 10,
        "last_yield": last_yield,
        "last_yield_unit": unit,
    })
    assert result["tons_per_ha"] == tons_per_ha
    assert result["performance"] == "Above average"


def test_yield_comparison_missing():
    assert yield_comparison({"crop_type": "Maize"}) is None


def test_farming_region():
    assert farming_region(-17.82, 31.05)["region"] == "Natural Region II"
    assert farming_region(-19.5, 32.6)["region"] == "Natural Region I"
    assert farming_region(-20.1, 28.6)["region"] == "Natural Region IV"
    assert farming_region(None, 31.05)["region"] == "Unknown region"
