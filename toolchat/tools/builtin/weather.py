"""Weather tool — current conditions via weatherapi.com."""
import logging

from ...config import Settings
from ...errors import UpstreamHTTPError
from ..http import request_json
from ..registry import register_tool, ToolParam

logger = logging.getLogger(__name__)


@register_tool(
    "get_weather",
    description="Get the weather for a given location",
    params=[
        ToolParam("location", description="The location to get the weather for"),
    ],
    category="info",
)
async def get_weather(location: str, settings: Settings, **kwargs) -> str:
    api_key = settings.require("weather_api_key")

    try:
        data = await request_json(
            "Weather API",
            "GET",
            f"{settings.weather_api_base_url}/current.json",
            settings,
            params={"q": location, "lang": "en", "key": api_key},
        )
    except UpstreamHTTPError as e:
        if e.status_code in (400, 404):
            return f"Could not find weather information for {location}: {e.args[0]}"
        return f"Error getting the weather for {location}: {e}"

    current = data.get("current") or {}
    condition = (current.get("condition") or {}).get("text", "unknown")
    logger.info(f"Weather API response was {condition}")

    place = data.get("location") or {}
    name = ", ".join(p for p in (place.get("name"), place.get("country")) if p) or location

    text = f"The weather in {name} is {condition}"
    details = []
    if current.get("temp_c") is not None:
        details.append(f"temperature {current['temp_c']}°C (feels like {current.get('feels_like_c', '?')}°C)")
    if current.get("humidity") is not None:
        details.append(f"humidity {current['humidity']}%")
    if current.get("wind_kph") is not None:
        details.append(f"wind {current['wind_kph']} km/h {current.get('wind_dir', '')}".rstrip())
    if details:
        text += ", " + ", ".join(details)
    return text + "."
