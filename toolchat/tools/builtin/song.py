"""Song generation tool — text prompt to generated music clips."""
import logging

from ...config import Settings
from ...errors import UpstreamHTTPError
from ..http import request_json
from ..registry import register_tool, ToolParam

logger = logging.getLogger(__name__)


def format_clips(clips: list) -> str:
    if not clips:
        return "The song service did not return any clips."
    lines = [f"Generated {len(clips)} clip(s):"]
    for i, clip in enumerate(clips, 1):
        title = clip.get("title") or "Untitled"
        status = clip.get("status", "unknown")
        lines.append(f"{i}. {title} [{status}]")
        if clip.get("tags"):
            lines.append(f"   Style: {clip['tags']}")
        if clip.get("audio_url"):
            lines.append(f"   Audio: {clip['audio_url']}")
        if clip.get("id"):
            lines.append(f"   ID: {clip['id']}")
    return "\n".join(lines)


@register_tool(
    "generate_song",
    description="Generate a song from a text description. Returns links to the generated audio clips.",
    params=[
        ToolParam("prompt", description="What the song should be about, or its lyrics"),
        ToolParam("style", description="Musical style or genre tags, e.g. 'upbeat synthwave'", required=False),
        ToolParam("make_instrumental", type="boolean",
                  description="Generate music without vocals", required=False),
    ],
    category="media",
)
async def generate_song(prompt: str, settings: Settings, style: str = "",
                        make_instrumental: bool = False, **kwargs) -> str:
    base_url = settings.require("song_api_base_url").rstrip("/")
    headers = {"Content-Type": "application/json"}
    if settings.song_api_key:
        headers["Authorization"] = f"Bearer {settings.song_api_key}"

    body = {"prompt": prompt, "make_instrumental": make_instrumental, "wait_audio": True}
    if style:
        body["tags"] = style

    try:
        data = await request_json("Song API", "POST", f"{base_url}/api/generate", settings,
                                  headers=headers, json_body=body)
    except UpstreamHTTPError as e:
        return f"Error generating song: {e}"

    clips = data if isinstance(data, list) else data.get("clips") or data.get("data") or []
    logger.info(f"Song API returned {len(clips)} clip(s)")
    return format_clips(clips)
