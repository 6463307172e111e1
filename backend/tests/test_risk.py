"""Tests for the field risk score."""
from datetime import date, timedelta

from fieldreports.analysis.risk import calculate_risk_score, risk_category


def _record(**overrides):
    record = {
        "pest_infestation": "No",
        "pest_control": "Scouting and spraying",
        "signs_of_diseases": "No",
        "weed_pressure": "Low",
        "backup_power_available": "Yes",
        "fire_guard_present": "Yes",
        "field_size": 10,
        "last_loss_area": None,
    }
    record.update(overrides)
    return record


def _weather(daily_rain, days=30):
    start = date(2024, 11, 1)
    return {
        "historical": [
            {"date": start + timedelta(days=n), "precipitation": daily_rain} for n in range(days)
        ]
    }


def test_baseline_only():
    risk = calculate_risk_score(_record())
    assert risk.score == 50
    assert risk.category == "Medium"
    assert risk.factors == []


def test_pest_and_missing_infrastructure_scores_very_high():
    risk = calculate_risk_score(_record(
        pest_infestation="Yes",
        backup_power_available="No",
        fire_guard_present="No",
    ))

    assert risk.score == 85
    assert risk.category == "Very High"
    assert [(f.label, f.points) for f in risk.factors] == [
        ("Pest infestation present", 15),
        ("No backup power for irrigation", 10),
        ("No fire guard established", 10),
    ]
    assert risk.as_dict()["factors"] == [
        "Pest infestation present (+15)",
        "No backup power for irrigation (+10)",
        "No fire guard established (+10)",
    ]


def test_score_is_capped_at_100():
    risk = calculate_risk_score(
        _record(
            pest_infestation="Yes",
            signs_of_diseases="Yes",
            weed_pressure="High",
            backup_power_available=None,
            fire_guard_present="No",
            last_loss_area=5,
        ),
        weather=_weather(0.1),
    )

    assert sum(f.points for f in risk.factors) + 50 > 100
    assert risk.score == 100
    assert risk.category == "Very High"


def test_missing_pest_control_only_counts_without_infestation():
    assert calculate_risk_score(_record(pest_control=None)).score == 55
    assert calculate_risk_score(_record(pest_control=None, pest_infestation="Yes")).score == 65


def test_loss_ratio_bands():
    assert calculate_risk_score(_record(last_loss_area=2)).score == 55
    assert calculate_risk_score(_record(last_loss_area=4)).score == 60
    assert calculate_risk_score(_record(last_loss_area=0.5)).score == 50


def test_rainfall_bands():
    assert calculate_risk_score(_record(), weather=_weather(0.5)).score == 65
    assert calculate_risk_score(_record(), weather=_weather(1.5)).score == 58
    assert calculate_risk_score(_record(), weather=_weather(3.0)).score == 50
    assert calculate_risk_score(_record(), weather=_weather(10.0)).score == 60
    assert calculate_risk_score(_record(), weather={"historical": []}).score == 50


def test_risk_category_thresholds():
    assert risk_category(80) == "Very High"
    assert risk_category(79) == "High"
    assert risk_category(60) == "High"
    assert risk_category(40) == "Medium"
    assert risk_category(20) == "Low"
    assert risk_category(19) == "Very Low"
