"""Process-wide settings, read once from the environment (and an optional .env)."""
import logging
import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# Env vars take precedence over the .env file
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


def _sanitize_ascii(val: str) -> str:
    """Strip non-ASCII characters from config values (prevents encoding errors)"""
    return val.encode('ascii', errors='ignore').decode('ascii').strip()


def _env(name: str, default: str = ""):
    return Field(default_factory=lambda: _sanitize_ascii(os.getenv(name, default)))


def _env_int(name: str, default: int):
    return Field(default_factory=lambda: int(os.getenv(name, str(default))))


def _env_float(name: str, default: float):
    return Field(default_factory=lambda: float(os.getenv(name, str(default))))


# Field name -> env var, used in error messages
ENV_NAMES = {
    "openai_api_key": "OPENAI_API_KEY",
    "weather_api_key": "WEATHER_API_KEY",
    "song_api_key": "SONG_API_KEY",
    "song_api_base_url": "SONG_API_BASE_URL",
    "confluence_base_url": "CONFLUENCE_BASE_URL",
    "confluence_email": "CONFLUENCE_EMAIL",
    "confluence_api_token": "CONFLUENCE_API_TOKEN",
    "image_api_key": "IMAGE_API_KEY",
    "postman_api_key": "POSTMAN_API_KEY",
}


class Settings(BaseModel):
    # Model provider (any OpenAI-compatible endpoint)
    openai_api_key: str = _env("OPENAI_API_KEY")
    openai_base_url: str = _env("OPENAI_BASE_URL", "https://api.openai.com/v1")
    model: str = _env("TOOLCHAT_MODEL", "gpt-4o-mini")
    temperature: float = _env_float("TOOLCHAT_TEMPERATURE", 0.5)
    max_tokens: int = _env_int("TOOLCHAT_MAX_TOKENS", 1024)
    system_prompt: str = Field(default_factory=lambda: os.getenv("TOOLCHAT_SYSTEM_PROMPT", "").strip())

    # Agent loop; 0 disables the turn guard
    max_turns: int = _env_int("TOOLCHAT_MAX_TURNS", 25)

    # Tool output is cut to this many characters before it reaches the model
    tool_output_limit: int = _env_int("TOOL_OUTPUT_LIMIT", 100000)
    http_timeout: float = _env_float("HTTP_TIMEOUT", 30.0)

    # Weather (weatherapi.com)
    weather_api_key: str = _env("WEATHER_API_KEY")
    weather_api_base_url: str = _env("WEATHER_API_BASE_URL", "https://api.weatherapi.com/v1")

    # Song generation
    song_api_key: str = _env("SONG_API_KEY")
    song_api_base_url: str = _env("SONG_API_BASE_URL")

    # Confluence Cloud
    confluence_base_url: str = _env("CONFLUENCE_BASE_URL")
    confluence_email: str = _env("CONFLUENCE_EMAIL")
    confluence_api_token: str = _env("CONFLUENCE_API_TOKEN")

    # Image generation; empty key falls back to openai_api_key
    image_api_key: str = _env("IMAGE_API_KEY")
    image_api_base_url: str = _env("IMAGE_API_BASE_URL", "https://api.openai.com/v1")
    image_model: str = _env("IMAGE_MODEL", "dall-e-3")

    # Postman API Platform
    postman_api_key: str = _env("POSTMAN_API_KEY")
    postman_base_url: str = _env("POSTMAN_BASE_URL", "https://api.getpostman.com")
    postman_team_domain: str = _env("POSTMAN_TEAM_DOMAIN", "go.postman.co")

    # HTTP/SSE server
    host: str = _env("TOOLCHAT_HOST", "0.0.0.0")
    port: int = _env_int("TOOLCHAT_PORT", 8000)

    model_config = {"frozen": True}

    def require(self, field_name: str) -> str:
        """Return a credential, or raise ConfigurationError naming its env var."""
        val = getattr(self, field_name)
        if not val:
            env_name = ENV_NAMES.get(field_name, field_name.upper())
            raise ConfigurationError(f"{env_name} not found in environment variables")
        return val

    def masked(self, field_name: str) -> str:
        val = getattr(self, field_name)
        return '***' + val[-4:] if len(val) > 4 else 'EMPTY'


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = Settings()
    logger.info(f"Config: model {settings.model} @ {settings.openai_base_url} "
                f"(key={settings.masked('openai_api_key')})")
    return settings
