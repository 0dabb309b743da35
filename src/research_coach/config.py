# settings read once at process start and passed into the services
import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel

DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_TTS_VOICE = "en-US-JennyNeural"
DEFAULT_TTS_RATE = "0%"


class Settings(BaseModel):
    """Credentials and locations for one running instance"""

    openai_api_key: Optional[str] = None
    openai_model: str = DEFAULT_OPENAI_MODEL
    openai_base_url: str = DEFAULT_OPENAI_BASE_URL
    azure_speech_key: Optional[str] = None
    azure_speech_region: Optional[str] = None
    tts_voice: str = DEFAULT_TTS_VOICE
    data_dir: Path = Path("data")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables (blank values count as missing)"""
        env = os.environ if environ is None else environ

        def read(name: str) -> Optional[str]:
            value = (env.get(name) or "").strip()
            return value or None

        return cls(
            openai_api_key=read("OPENAI_API_KEY"),
            openai_model=read("OPENAI_MODEL") or DEFAULT_OPENAI_MODEL,
            openai_base_url=read("OPENAI_BASE_URL") or DEFAULT_OPENAI_BASE_URL,
            azure_speech_key=read("AZURE_SPEECH_KEY"),
            azure_speech_region=read("AZURE_SPEECH_REGION"),
            tts_voice=read("TTS_VOICE") or DEFAULT_TTS_VOICE,
            data_dir=Path(read("RESEARCH_COACH_DATA_DIR") or "data"),
        )
