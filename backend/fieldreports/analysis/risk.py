"""Deterministic field risk score."""
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List

BASELINE_SCORE = 50
MAX_SCORE = 100

CATEGORY_THRESHOLDS = (
    (80, "Very High"),
    (60, "High"),
    (40, "Medium"),
    (20, "Low"),
)


@dataclass
class RiskFactor:
    """One contribution to the risk score."""
    label: str
    points: int

    def __str__(self):
        return f"{self.label} (+{self.points})"


@dataclass
class RiskScore:
    score: int
    category: str
    factors: List[RiskFactor] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "category": self.category,
            "factors": [str(f) for f in self.factors],
        }


def _answer(value) -> str:
    return str(value).strip().lower() if value is not None else ""


def is_yes(value) -> bool:
    return _answer(value) in ("yes", "y", "true", "1")


def is_no_or_missing(value) -> bool:
    return _answer(value) in ("", "no", "n", "false", "0", "none")


def risk_category(score: int) -> str:
    for threshold, category in CATEGORY_THRESHOLDS:
        if score >= threshold:
            return category
    return "Very Low"


def loss_ratio(record: Dict[str, Any]) -> Optional[float]:
    """Share of the field lost last season, or None if not recorded."""
    lost = record.get("last_loss_area")
    size = record.get("field_size")
    if not lost or not size:
        return None
    return float(lost) / float(size)


def _weather_factors(weather: Optional[Dict[str, Any]]) -> List[RiskFactor]:
    if not weather or not weather.get("historical"):
        return []

    days = weather["historical"]
    total_rain = sum(d.get("precipitation") or 0 for d in days)
    window = len(days)

    factors = []
    if total_rain < 20:
        factors.append(RiskFactor(f"Low rainfall in the past {window} days", 15))
    elif total_rain < 50:
        factors.append(RiskFactor(f"Below average rainfall in the past {window} days", 8))

    if total_rain > 200:
        factors.append(RiskFactor(f"Excessive rainfall in the past {window} days", 10))
    return factors


def calculate_risk_score(record: Dict[str, Any], weather: Optional[Dict[str, Any]] = None) -> RiskScore:
    """
    Score field risk from 0 to 100, starting at a baseline of 50.

    Args:
        record: Field details joined with farm infrastructure
        weather: Weather data with a ``historical`` list of day records

    Returns:
        RiskScore with the capped score, its category and every contribution
    """
    factors: List[RiskFactor] = []

    if is_yes(record.get("pest_infestation")):
        factors.append(RiskFactor("Pest infestation present", 15))
    elif is_no_or_missing(record.get("pest_control")):
        factors.append(RiskFactor("No pest control measures", 5))

    if is_yes(record.get("signs_of_diseases")):
        factors.append(RiskFactor("Disease symptoms present", 15))

    weeds = _answer(record.get("weed_pressure"))
    if weeds == "high":
        factors.append(RiskFactor("High weed pressure", 10))
    elif weeds == "medium":
        factors.append(RiskFactor("Medium weed pressure", 5))

    if is_no_or_missing(record.get("backup_power_available")):
        factors.append(RiskFactor("No backup power for irrigation", 10))

    if is_no_or_missing(record.get("fire_guard_present")):
        factors.append(RiskFactor("No fire guard established", 10))

    ratio = loss_ratio(record)
    if ratio is not None:
        if ratio > 0.3:
            factors.append(RiskFactor("Significant loss area from last season", 10))
        elif ratio > 0.1:
            factors.append(RiskFactor("Moderate loss area from last season", 5))

    factors.extend(_weather_factors(weather))

    score = min(BASELINE_SCORE + sum(f.points for f in factors), MAX_SCORE)
    return RiskScore(score=score, category=risk_category(score), factors=factors)
