"""Prompt construction for narrative generation.

Prompts are built only from the facts passed in (including ``today``), so the
same facts always produce byte-identical prompts.
"""
import re
from datetime import date
from enum import Enum
from typing import Optional, Dict, Any, List

from .crops import crop_instructions, estimate_growth_stage, fertilizer_adequacy, yield_comparison, farming_region
from .formatting import format_long_date, parse_date, round1
from .risk import is_yes, loss_ratio
from ..weather import summarize_days

NOT_SPECIFIED = "Not specified"
NOT_CAPTURED = "Not captured"

# Days of recent weather summarized in prompts
WEATHER_WINDOW_DAYS = 7


class IrrigationClass(str, Enum):
    RAINFED = "rainfed"
    IRRIGATED = "irrigated"
    UNSPECIFIED = "unspecified"


RAINFED_METHODS = {"rainfed", "rain-fed", "rain fed", "dryland", "none"}
IRRIGATION_KEYWORDS = ("drip", "sprinkler", "pivot", "flood", "furrow", "basin", "overhead", "micro", "irrigat")
# "No irrigation", "not irrigated", "non-irrigated"
NEGATED_IRRIGATION_RE = re.compile(r"\b(?:no|not|non)[-\s]?irrigat")

RAINFALL_INSTRUCTIONS = {
    IrrigationClass.RAINFED: (
        "This field is rainfed. Assess whether recent and forecast rainfall is adequate for the crop "
        "at its current stage, and call out moisture stress risk explicitly."
    ),
    IrrigationClass.IRRIGATED: (
        "This field is irrigated. Do not frame crop performance as dependent on rainfall; focus on "
        "irrigation scheduling, water management and excess-rain effects such as waterlogging or disease."
    ),
    IrrigationClass.UNSPECIFIED: (
        "The irrigation status of this field is not recorded. Describe rainfall conditions without "
        "assuming whether the field is irrigated."
    ),
}

TRIGGER_FOCUS = {
    "new_field": "A new field has been registered. Give a baseline assessment for the season ahead.",
    "field_update": "Field records were updated. Focus on what the latest data changes.",
    "growth_stage_change": "The crop has moved to a new growth stage. Focus on the needs of this stage.",
    "loss_event": "A crop loss has been reported. Focus on the extent, likely causes and recovery options.",
    "weather_alert": "A weather alert was raised for this field. Focus on weather exposure and mitigation.",
    "pest_disease": "A pest or disease problem was reported. Focus on identification, control and spread.",
    "scheduled": "This is a routine periodic report. Summarize overall field status.",
}


def _text(value, default: str = NOT_SPECIFIED) -> str:
    if value is None:
        return default
    value = str(value).strip()
    return value or default


def classify_irrigation(record: Dict[str, Any]) -> IrrigationClass:
    """Rainfed, irrigated (method or farm infrastructure), or unspecified."""
    method = _text(record.get("irrigation_method"), "").lower()
    if method in RAINFED_METHODS or NEGATED_IRRIGATION_RE.search(method):
        return IrrigationClass.RAINFED
    if any(keyword in method for keyword in IRRIGATION_KEYWORDS):
        return IrrigationClass.IRRIGATED
    if is_yes(record.get("irrigation_infrastructure_available")):
        return IrrigationClass.IRRIGATED
    return IrrigationClass.UNSPECIFIED


def risk_factors(record: Dict[str, Any]) -> List[str]:
    """Risk factors recorded for a field, in a fixed order."""
    factors = []

    level = _text(record.get("pest_infestation_level"), "").lower()
    if level not in ("", "none", "no"):
        factors.append(f"pest infestation ({level})")
    elif is_yes(record.get("pest_infestation")):
        factors.append("pest infestation")

    if record.get("disease_occurrence") or is_yes(record.get("signs_of_diseases")):
        factors.append("disease symptoms")
    if record.get("drought_affected"):
        factors.append("drought")
    if record.get("flood_affected"):
        factors.append("flooding")
    if record.get("hail_affected"):
        factors.append("hail damage")

    ratio = loss_ratio(record)
    if ratio:
        factors.append(f"prior-season loss of {ratio * 100:.1f}% of the field")
    return factors


def weather_lines(weather: Optional[Dict[str, Any]]) -> List[str]:
    """Recent and forecast weather summary lines; empty when no weather is available."""
    if not weather or not weather.get("historical"):
        return []

    recent = summarize_days(weather["historical"][-WEATHER_WINDOW_DAYS:])
    lines = [
        "Weather:",
        f"- Rainfall (last {recent['days']} days): {recent['total_rainfall']:.1f} mm",
        f"- Temperature range (last {recent['days']} days): "
        f"{_text(recent['min_temp'])}°C to {_text(recent['max_temp'])}°C",
    ]

    ahead = summarize_days(weather.get("forecast") or [])
    if ahead:
        lines.append(
            f"- Forecast (next {ahead['days']} days): {ahead['total_rainfall']:.1f} mm rainfall, "
            f"{_text(ahead['min_temp'])}°C to {_text(ahead['max_temp'])}°C"
        )
    return lines


def field_facts(record: Dict[str, Any], weather: Optional[Dict[str, Any]], today: date) -> str:
    """Fact block shared by every narrative prompt."""
    crop = _text(record.get("crop_type"))
    size = round1(record.get("field_size"))
    planted = parse_date(record.get("planting_date"))
    stage = _text(record.get("current_growth_stage"), NOT_CAPTURED)
    irrigation = classify_irrigation(record)
    region = farming_region(record.get("latitude"), record.get("longitude"))

    lines = [
        "Field information:",
        f"- Crop type: {crop}",
        f"- Variety: {_text(record.get('variety'))}",
        f"- Field size: {f'{size} hectares' if size is not None else NOT_SPECIFIED}",
        f"- Soil type: {_text(record.get('soil_type'))}",
    ]

    if planted:
        days = (today - planted).days
        lines.append(f"- Planting date: {format_long_date(planted)} ({days} days ago)")
    else:
        lines.append(f"- Planting date: {NOT_SPECIFIED}")

    lines.append(f"- Growth stage: {stage}")
    if stage == NOT_CAPTURED and planted:
        estimate = estimate_growth_stage(record.get("crop_type"), (today - planted).days)
        lines.append(f"- Estimated stage from planting date: {estimate}")

    lines.append(f"- Irrigation method: {_text(record.get('irrigation_method'))} ({irrigation.value})")
    lines.append(f"- Farming region: {region['region']} ({region['description']})")

    fertilizer = fertilizer_adequacy(record)
    lines.append("")
    lines.append("Field management:")
    lines.append(
        f"- Basal fertilizer: {_text(fertilizer['basal_fertilizer'])} "
        f"({fertilizer['basal_amount']} kg/ha), adequacy: {fertilizer['basal_adequacy']}"
    )
    lines.append(
        f"- Top dressing: {_text(fertilizer['top_dressing'])} "
        f"({fertilizer['top_amount']} kg/ha), adequacy: {fertilizer['top_adequacy']}"
    )

    comparison = yield_comparison(record)
    if comparison:
        lines.append(
            f"- Last season yield: {comparison['tons_per_ha']} t/ha, {comparison['performance'].lower()} "
            f"({comparison['vs_average']}x the regional average of {comparison['average_yield']} t/ha)"
        )

    factors = risk_factors(record)
    if factors:
        lines.append(f"- Risk factors: {', '.join(factors)}")

    weather_block = weather_lines(weather)
    if weather_block:
        lines.append("")
        lines.extend(weather_block)

    return "\n".join(lines)


def build_analysis_prompt(
    record: Dict[str, Any],
    weather: Optional[Dict[str, Any]],
    trigger_type: str,
    today: date,
) -> str:
    """Prompt for the field condition analysis."""
    irrigation = classify_irrigation(record)
    sections = [
        "Write an agronomic analysis of the following field for its farmer in Zimbabwe.",
        TRIGGER_FOCUS.get(trigger_type, TRIGGER_FOCUS["field_update"]),
        "",
        field_facts(record, weather, today),
        "",
        RAINFALL_INSTRUCTIONS[irrigation],
        "",
        crop_instructions(record.get("crop_type")),
        "",
        "Cover current field conditions, fertilizer adequacy for this growth stage, the main risks "
        "and yield outlook. Keep it to three or four short paragraphs. Use only the facts above.",
    ]
    return "\n".join(sections)


def build_recommendations_prompt(
    record: Dict[str, Any],
    weather: Optional[Dict[str, Any]],
    trigger_type: str,
    today: date,
) -> str:
    """Prompt for the action list."""
    irrigation = classify_irrigation(record)
    sections = [
        "Give practical recommendations for the farmer of the following field in Zimbabwe.",
        TRIGGER_FOCUS.get(trigger_type, TRIGGER_FOCUS["field_update"]),
        "",
        field_facts(record, weather, today),
        "",
        RAINFALL_INSTRUCTIONS[irrigation],
        "",
        crop_instructions(record.get("crop_type")),
        "",
        "Write a numbered list of five to seven specific actions for the next two to four weeks, "
        "with quantities and timing where the data supports them.",
    ]
    return "\n".join(sections)
