from pathlib import Path
from typing import Optional, Sequence, Union

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from keyprobe.core.exceptions.exceptions import ConfigurationError
from keyprobe.schemas.credential import Credential
from keyprobe.schemas.probe import ChatProbeConfig, SpeechProbeConfig
from keyprobe.utils.log import app_logger


DEFAULT_BASE_URL = "https://api.openai.com/v1"

# checked in order, relative to the working directory
ENV_CANDIDATES = (
    ".env",
    "../.env",
    "../../.env",
    "backend/.env",
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(frozen=True, extra="ignore")

    # Api keys
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = DEFAULT_BASE_URL

    # Probe payloads
    PROBE_TIMEOUT: float = Field(10.0, gt=0)
    CHAT_MODEL: str = "gpt-4o-mini"
    CHAT_MAX_TOKENS: int = Field(10, gt=0)
    TTS_MODEL: str = "tts-1-hd"
    TTS_VOICE: str = "shimmer"
    TTS_RESPONSE_FORMAT: str = "pcm"
    TTS_SPEED: float = Field(1.0, ge=0.25, le=4.0)

    LOG_LEVEL: str = "WARNING"

    def chat_config(self) -> ChatProbeConfig:
        return ChatProbeConfig(model=self.CHAT_MODEL, max_tokens=self.CHAT_MAX_TOKENS)

    def speech_config(self) -> SpeechProbeConfig:
        return SpeechProbeConfig(
            model=self.TTS_MODEL,
            voice=self.TTS_VOICE,
            response_format=self.TTS_RESPONSE_FORMAT,
            speed=self.TTS_SPEED,
        )


def find_env_file(explicit: Union[str, Path, None] = None,
                  base_dir: Union[str, Path, None] = None,
                  candidates: Sequence[str] = ENV_CANDIDATES) -> Optional[Path]:
    """Return the first existing .env file, or None.

    An explicit path must exist; otherwise the candidates are tried in order
    relative to `base_dir` (the working directory by default).
    """
    if explicit is not None:
        path = Path(explicit)
        if not path.is_file():
            raise ConfigurationError(f"env file not found: {path}")
        return path

    root = Path(base_dir) if base_dir is not None else Path.cwd()
    for candidate in candidates:
        path = root / candidate
        if path.is_file():
            return path
    return None


def load_settings(env_file: Union[str, Path, None] = None, **overrides) -> Settings:
    """Load the env file (if any) into the process environment and build settings.

    Variables already present in the environment win over the file.
    """
    if env_file is not None:
        load_dotenv(env_file, override=False)
        app_logger.info("settings.env_loaded", path=str(env_file))
    else:
        app_logger.debug("settings.env_missing")

    try:
        return Settings(**overrides)
    except ValueError as e:
        raise ConfigurationError(f"invalid configuration: {e}") from e


def load_credential(settings: Settings) -> Credential:
    return Credential.of(settings.OPENAI_API_KEY)
