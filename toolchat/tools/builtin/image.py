"""Image generation tool — OpenAI-compatible images endpoint."""
import logging

from ...config import Settings
from ...errors import ConfigurationError, UpstreamHTTPError
from ..http import request_json
from ..registry import register_tool, ToolParam

logger = logging.getLogger(__name__)

SIZES = ["1024x1024", "1792x1024", "1024x1792"]


@register_tool(
    "generate_image",
    description="Generate an image from a text description. Returns a link to the generated image.",
    params=[
        ToolParam("prompt", description="A detailed description of the image to generate"),
        ToolParam("size", description="Image dimensions", required=False, enum=SIZES),
    ],
    category="media",
)
async def generate_image(prompt: str, settings: Settings, size: str = "1024x1024", **kwargs) -> str:
    api_key = settings.image_api_key or settings.openai_api_key
    if not api_key:
        raise ConfigurationError("IMAGE_API_KEY not found in environment variables")

    try:
        data = await request_json(
            "Image API",
            "POST",
            f"{settings.image_api_base_url.rstrip('/')}/images/generations",
            settings,
            headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
            json_body={"model": settings.image_model, "prompt": prompt, "n": 1, "size": size},
        )
    except UpstreamHTTPError as e:
        return f"Error generating image: {e}"

    images = data.get("data", [])
    if not images:
        return "The image service did not return any images."

    lines = []
    for img in images:
        if img.get("url"):
            lines.append(f"Image URL: {img['url']}")
        elif img.get("b64_json"):
            lines.append("Image returned inline as base64 (no URL available).")
        if img.get("revised_prompt"):
            lines.append(f"Revised prompt: {img['revised_prompt']}")
    logger.info(f"Image API returned {len(images)} image(s)")
    return "\n".join(lines)
