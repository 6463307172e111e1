"""Turns an EnrichedReportContext into flat, render-ready report data."""
from datetime import datetime
from typing import Optional, Dict, Any, List

from .assembler import EnrichedReportContext
from .crops import fertilizer_adequacy, yield_comparison, farming_region
from .formatting import (
    format_long_date,
    narrative_to_html,
    planting_date_range,
    round1,
    round_coordinate,
)
from .risk import calculate_risk_score
from ..weather import summarize_days

REPORT_TITLES = {
    "new_field": "New Field Report",
    "field_update": "Field Update Report",
    "growth_stage_change": "Growth Stage Report",
    "loss_event": "Crop Loss Report",
    "weather_alert": "Weather Alert Report",
    "pest_disease": "Pest & Disease Report",
    "scheduled": "Weekly Field Report",
}

ALERT_TRIGGERS = {"loss_event", "weather_alert", "pest_disease"}

# Field columns that hold hectares or yields
AREA_AND_YIELD_KEYS = (
    "field_size",
    "last_loss_area",
    "last_yield",
    "expected_yield_per_hectare",
    "actual_yield_per_hectare",
)
DATE_KEYS = ("planting_date", "expected_harvest_date")


def _format_field(record: Dict[str, Any]) -> Dict[str, Any]:
    formatted = dict(record)
    for key in AREA_AND_YIELD_KEYS:
        if key in formatted:
            formatted[key] = round1(formatted[key])
    for key in DATE_KEYS:
        if key in formatted:
            formatted[key] = format_long_date(formatted[key])
    for key in ("latitude", "longitude"):
        if key in formatted:
            formatted[key] = round_coordinate(formatted[key])
    formatted.pop("created_at", None)
    return formatted


def _format_statistics(stats: Dict[str, Any]) -> Dict[str, Any]:
    if not stats:
        return {}
    formatted = dict(stats)
    for key in ("total_area", "avg_field_size", "avg_expected_yield"):
        formatted[key] = round1(stats.get(key))
    for key in ("earliest_planting", "latest_planting"):
        formatted[key] = format_long_date(stats.get(key))
    return formatted


def _format_crops(crops: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    rows = []
    for crop in crops:
        row = _format_statistics(crop)
        row["varieties"] = ", ".join(crop.get("varieties") or []) or None
        rows.append(row)
    return rows


def _weather_section(weather: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not weather:
        return None

    def day_rows(days):
        return [
            {
                "date": format_long_date(d["date"]),
                "temp_max": round1(d.get("temp_max")),
                "temp_min": round1(d.get("temp_min")),
                "precipitation": round1(d.get("precipitation")),
            }
            for d in days
        ]

    return {
        "historical_summary": summarize_days(weather.get("historical") or []),
        "forecast_summary": summarize_days(weather.get("forecast") or []),
        "forecast": day_rows(weather.get("forecast") or []),
        "insights": weather.get("insights") or [],
    }


class ReportCompositor:
    """Merges gathered facts and narrative into one structure for templating."""

    def __init__(self, app_url: str = ""):
        self.app_url = app_url

    def compose(self, context: EnrichedReportContext, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.utcnow()
        record = context.field_details
        trigger_type = context.item.trigger_type

        risk = calculate_risk_score(record, context.weather)

        planting_range = None
        if len(context.farm_fields) > 1:
            date_range = planting_date_range(context.farm_fields)
            if date_range:
                planting_range = {
                    "earliest": format_long_date(date_range[0]),
                    "latest": format_long_date(date_range[1]),
                }

        comparison = yield_comparison(record)

        return {
            "queue_item_id": context.item.id,
            "trigger_type": trigger_type,
            "report_title": REPORT_TITLES.get(trigger_type, "Field Report"),
            "is_alert": trigger_type in ALERT_TRIGGERS,
            "priority": context.item.priority,
            "report_date": format_long_date(now),
            "app_url": self.app_url,
            "recipient": {
                "user_id": record.get("user_id"),
                "email": record.get("email"),
                "name": " ".join(
                    part for part in (record.get("first_name"), record.get("last_name")) if part
                ) or None,
            },
            "farm_name": record.get("farm_name"),
            "farmer_name": record.get("farmer_name"),
            "field": _format_field(record),
            "farm_fields": [_format_field(f) for f in context.farm_fields],
            "farm_statistics": _format_statistics(context.farm_statistics),
            "crop_analysis": _format_crops(context.crop_analysis),
            "planting_range": planting_range,
            "region": farming_region(record.get("latitude"), record.get("longitude")),
            "fertilizer": fertilizer_adequacy(record),
            "yield_comparison": comparison,
            "weather": _weather_section(context.weather),
            "weather_note": context.weather_note,
            "analysis_html": narrative_to_html(context.analysis),
            "recommendations_html": narrative_to_html(context.recommendations),
            "narrative_fallback": context.analysis_fallback or context.recommendations_fallback,
            "risk": risk.as_dict(),
        }
