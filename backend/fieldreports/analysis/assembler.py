"""Gathers everything a report needs for one queue item."""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Dict, Any, List, Callable

from ..exceptions import MandatoryDataError
from .prompts import build_analysis_prompt, build_recommendations_prompt

logger = logging.getLogger(__name__)


ANALYSIS_FALLBACK = (
    "An automated analysis could not be generated for this report. The field details, "
    "risk assessment and weather summary below were compiled from your latest records.\n\n"
    "Review the risk factors listed in this report and contact your extension officer "
    "if you need help interpreting them."
)

RECOMMENDATIONS_FALLBACK = (
    "1. Scout the field weekly for pests, disease and weeds, and record what you find.\n"
    "2. Check that basal and top-dressing fertilizer rates match the recommendation for your crop.\n"
    "3. Keep fire guards and drainage channels maintained.\n"
    "4. Update your field records after any loss or change in growth stage so the next report is accurate."
)


@dataclass
class EnrichedReportContext:
    """Facts gathered for a single processing attempt. Never shared between attempts."""

    item: Any
    field_details: Dict[str, Any]
    farm_fields: List[Dict[str, Any]] = field(default_factory=list)
    farm_statistics: Dict[str, Any] = field(default_factory=dict)
    crop_analysis: List[Dict[str, Any]] = field(default_factory=list)
    weather: Optional[Dict[str, Any]] = None
    weather_note: Optional[str] = None
    analysis: str = ""
    recommendations: str = ""
    analysis_fallback: bool = False
    recommendations_fallback: bool = False
    today: date = field(default_factory=date.today)


class EnrichmentAssembler:
    """
    Builds an EnrichedReportContext for a queue item.

    The trigger field (joined with its farm and user) is mandatory; every
    other source is best-effort and degrades to an empty value on failure.
    """

    def __init__(self, store, weather_client=None, narrative_client=None, max_workers: int = 4):
        self.store = store
        self.weather_client = weather_client
        self.narrative_client = narrative_client
        self.max_workers = max_workers

    def assemble(self, item, today: Optional[date] = None) -> EnrichedReportContext:
        """
        Gather field data, weather and narrative for one queue item.

        Raises:
            MandatoryDataError: the field, its farm or its user could not be loaded
        """
        today = today or date.today()

        try:
            details = self.store.get_field_details(item.field_id)
        except Exception as e:
            raise MandatoryDataError(f"Failed to load field {item.field_id}: {e}") from e
        if not details:
            raise MandatoryDataError(f"Field {item.field_id} not found or missing farm/user")

        context = EnrichedReportContext(item=item, field_details=details, today=today)
        farm_id = details["farm_id"]

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            farm_fields = pool.submit(self._best_effort, "farm fields", self.store.get_farm_fields, [], farm_id)
            statistics = pool.submit(self._best_effort, "farm statistics", self.store.get_farm_statistics, {}, farm_id)
            crops = pool.submit(self._best_effort, "crop analysis", self.store.get_crop_analysis, [], farm_id)
            weather = pool.submit(self._fetch_weather, details, today)

            context.farm_fields = farm_fields.result()
            context.farm_statistics = statistics.result()
            context.crop_analysis = crops.result()
            context.weather, context.weather_note = weather.result()

        self._generate_narrative(context, item.trigger_type)
        return context

    def _best_effort(self, label: str, fetch: Callable, default, *args):
        try:
            return fetch(*args)
        except Exception as e:
            logger.warning(f"Could not load {label}, continuing without it: {e}")
            return default

    def _fetch_weather(self, details: Dict[str, Any], today: date):
        latitude = details.get("latitude")
        longitude = details.get("longitude")

        if latitude is None or longitude is None:
            return None, "Weather data unavailable: the field has no GPS coordinates."
        if self.weather_client is None:
            return None, "Weather data unavailable: no weather service configured."

        try:
            return self.weather_client.fetch(latitude, longitude, today=today), None
        except Exception as e:
            logger.warning(f"Weather fetch failed for field {details.get('id')}: {e}")
            return None, "Weather data unavailable: the weather service could not be reached."

    def _generate_narrative(self, context: EnrichedReportContext, trigger_type: str):
        analysis_prompt = build_analysis_prompt(context.field_details, context.weather, trigger_type, context.today)
        recommendations_prompt = build_recommendations_prompt(
            context.field_details, context.weather, trigger_type, context.today
        )

        with ThreadPoolExecutor(max_workers=2) as pool:
            analysis = pool.submit(self._narrate, "analysis", analysis_prompt, ANALYSIS_FALLBACK)
            recommendations = pool.submit(
                self._narrate, "recommendations", recommendations_prompt, RECOMMENDATIONS_FALLBACK
            )
            context.analysis, context.analysis_fallback = analysis.result()
            context.recommendations, context.recommendations_fallback = recommendations.result()

    def _narrate(self, label: str, prompt: str, fallback: str):
        if self.narrative_client is None:
            return fallback, True
        try:
            return self.narrative_client.generate(prompt), False
        except Exception as e:
            logger.warning(f"Narrative generation ({label}) failed, using fallback text: {e}")
            return fallback, True
