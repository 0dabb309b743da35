# text-to-speech through the azure speech rest api
import logging
from typing import Optional
from xml.sax.saxutils import escape, quoteattr

import requests

from .errors import ProviderError, ServerConfigurationError

logger = logging.getLogger(__name__)

OUTPUT_FORMAT = "audio-16khz-32kbitrate-mono-mp3"
USER_AGENT = "pre-entrance-research-app"


class AzureSpeechService:
    """Turns plain text into mp3 bytes with one synthesis request"""

    def __init__(
        self,
        key: Optional[str],
        region: Optional[str],
        default_voice: str = "en-US-JennyNeural",
        session: Optional[requests.Session] = None,
    ):
        self.key = key
        self.region = region
        self.default_voice = default_voice
        self.session = session or requests.Session()

    def ensure_configured(self):
        if not self.key or not self.region:
            raise ServerConfigurationError("AZURE_SPEECH_KEY / AZURE_SPEECH_REGION not set")

    @property
    def endpoint(self) -> str:
        return f"https://{self.region}.tts.speech.microsoft.com/cognitiveservices/v1"

    def build_ssml(self, text: str, voice: Optional[str] = None, rate: Optional[str] = None) -> str:
        voice = voice or self.default_voice
        rate = rate or "0%"
        body = escape(text, {'"': "&quot;", "'": "&apos;"})
        return (
            '<speak version="1.0" xml:lang="en-US">'
            f"<voice name={quoteattr(voice)}>"
            f"<prosody rate={quoteattr(rate)}>"
            f"{body}"
            "</prosody>"
            "</voice>"
            "</speak>"
        )

    def synthesize(self, text: str, voice: Optional[str] = None, rate: Optional[str] = None) -> bytes:
        """Return mp3 audio for text; voice and rate fall back to the defaults"""
        self.ensure_configured()

        ssml = self.build_ssml(text, voice, rate)
        headers = {
            "Ocp-Apim-Subscription-Key": self.key,
            "Content-Type": "application/ssml+xml",
            "X-Microsoft-OutputFormat": OUTPUT_FORMAT,
            "User-Agent": USER_AGENT,
        }

        try:
            response = self.session.post(self.endpoint, data=ssml.encode("utf-8"), headers=headers)
        except requests.exceptions.RequestException as e:
            logger.error(f"TTS request failed: {str(e)}")
            raise ProviderError("TTS server error") from e

        if response.status_code != 200:
            logger.error(f"Azure TTS error: {response.status_code} {response.text[:200]}")
            raise ProviderError("Azure TTS failed")

        return response.content
