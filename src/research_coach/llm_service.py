# llm service using the openai chat completions api for text generation
import requests
import logging
from typing import List, Dict, Optional

from .errors import ProviderError, ServerConfigurationError

logger = logging.getLogger(__name__)

# service for interacting with the openai chat completions endpoint
class OpenAIChatService:
    """Chat completion client: one blocking request per call, no retry, no streaming"""

    # initialize service with explicit credentials
    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

    # fail before any network call when the key is missing
    def ensure_configured(self):
        if not self.api_key:
            raise ServerConfigurationError("OPENAI_API_KEY is not set")

    # send the conversation and return the assistant reply text
    def generate_chat_completion(self, messages: List[Dict[str, str]], temperature: float = 0.3) -> str:
        """Generate chat completion using OpenAI"""
        self.ensure_configured()

        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
        }

        try:
            response = self.session.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Error talking to OpenAI: {str(e)}")
            raise ProviderError("Server error talking to OpenAI") from e

        if response.status_code != 200:
            message = self._error_message(response)
            logger.error(f"OpenAI API error: {response.status_code} - {message}")
            raise ProviderError(message)

        try:
            result = response.json()
        except ValueError as e:
            logger.error(f"OpenAI returned a non-JSON body: {response.text[:200]}")
            raise ProviderError("OpenAI returned an unreadable response") from e

        # extract generated text from the first choice
        choices = result.get("choices") or [{}]
        content = (choices[0].get("message") or {}).get("content")
        return (content or "").strip()

    # pull the provider's own message out of an error response
    def _error_message(self, response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return f"OpenAI error ({response.status_code})"
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        return f"OpenAI error ({response.status_code})"
