"""Weather gateway backed by the Open-Meteo forecast API."""
import logging
from datetime import date
from typing import Optional, Dict, Any, List

import httpx

from .config import Settings
from .exceptions import WeatherError

logger = logging.getLogger(__name__)

DAILY_VARIABLES = [
    "temperature_2m_max",
    "temperature_2m_min",
    "precipitation_sum",
    "et0_fao_evapotranspiration",
]


def summarize_days(days: List[Dict[str, Any]]) -> Optional[Dict[str, float]]:
    """Rainfall total and temperature extremes over a run of day records."""
    if not days:
        return None

    max_temps = [d["temp_max"] for d in days if d.get("temp_max") is not None]
    min_temps = [d["temp_min"] for d in days if d.get("temp_min") is not None]
    rain = [d["precipitation"] for d in days if d.get("precipitation") is not None]

    return {
        "days": len(days),
        "total_rainfall": round(sum(rain), 1),
        "min_temp": round(min(min_temps), 1) if min_temps else None,
        "max_temp": round(max(max_temps), 1) if max_temps else None,
        "avg_max_temp": round(sum(max_temps) / len(max_temps), 1) if max_temps else None,
        "avg_min_temp": round(sum(min_temps) / len(min_temps), 1) if min_temps else None,
    }


def derive_insights(historical: List[Dict[str, Any]], forecast: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Plain-language observations on recent and upcoming weather."""
    insights = []

    past = summarize_days(historical)
    if past:
        if past["total_rainfall"] < 10:
            insights.append({
                "type": "dry_spell",
                "message": f"Only {past['total_rainfall']} mm of rain in the past {past['days']} days.",
            })
        elif past["total_rainfall"] > 150:
            insights.append({
                "type": "wet_spell",
                "message": f"{past['total_rainfall']} mm of rain in the past {past['days']} days; watch for waterlogging.",
            })
        if past["avg_max_temp"] is not None and past["avg_max_temp"] > 32:
            insights.append({
                "type": "heat",
                "message": f"Average daily maximum of {past['avg_max_temp']}°C is unusually high.",
            })

    ahead = summarize_days(forecast)
    if ahead:
        if ahead["min_temp"] is not None and ahead["min_temp"] <= 2:
            insights.append({
                "type": "frost",
                "message": f"Forecast minimum of {ahead['min_temp']}°C; frost is possible.",
            })
        if ahead["total_rainfall"] > 50:
            insights.append({
                "type": "heavy_rain",
                "message": f"{ahead['total_rainfall']} mm of rain expected over the next {ahead['days']} days.",
            })

    return insights


class WeatherClient:
    """Fetches a historical and forward-looking daily window for a location."""

    def __init__(self, settings: Settings, http_client: Optional[httpx.Client] = None):
        self.api_url = settings.weather_api_url
        self.timezone = settings.weather_timezone
        self.past_days = settings.weather_past_days
        self.forecast_days = settings.weather_forecast_days
        self.http_client = http_client or httpx.Client(timeout=30.0)

    def fetch(self, latitude: float, longitude: float, today: Optional[date] = None) -> Dict[str, Any]:
        """
        Fetch daily weather around today for the given coordinates.

        Returns a dict with ``historical`` (days up to and including today),
        ``forecast`` (days after today) and derived ``insights``.

        Raises:
            WeatherError: the request failed or the response was malformed
        """
        try:
            response = self.http_client.get(
                self.api_url,
                params={
                    "latitude": latitude,
                    "longitude": longitude,
                    "daily": ",".join(DAILY_VARIABLES),
                    "timezone": self.timezone,
                    "past_days": self.past_days,
                    "forecast_days": self.forecast_days,
                },
            )
            response.raise_for_status()
            days = self._parse_daily(response.json())
        except httpx.HTTPError as e:
            raise WeatherError(f"Weather request failed: {e}") from e
        except (KeyError, TypeError, ValueError) as e:
            raise WeatherError(f"Malformed weather response: {e}") from e

        today = today or date.today()
        historical = [d for d in days if d["date"] <= today]
        forecast = [d for d in days if d["date"] > today]

        return {
            "historical": historical,
            "forecast": forecast,
            "insights": derive_insights(historical, forecast),
        }

    def _parse_daily(self, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        daily = data["daily"]
        dates = daily["time"]
        columns = {name: daily.get(name) or [None] * len(dates) for name in DAILY_VARIABLES}

        return [
            {
                "date": date.fromisoformat(day),
                "temp_max": columns["temperature_2m_max"][i],
                "temp_min": columns["temperature_2m_min"][i],
                "precipitation": columns["precipitation_sum"][i],
                "et0": columns["et0_fao_evapotranspiration"][i],
            }
            for i, day in enumerate(dates)
        ]

    def close(self):
        self.http_client.close()
