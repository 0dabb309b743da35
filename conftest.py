"""shared fixtures for the research coach tests"""

import sys
from pathlib import Path

import pytest

# add the project root to python path so we can import backend modules
sys.path.insert(0, str(Path(__file__).parent))

from src.research_coach.config import Settings
from src.research_coach.research_service import ResearchAssistantService
from src.research_coach.topic_store import TopicStore


class FakeLLM:
    """Stands in for OpenAIChatService; replies are handed out in order"""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def ensure_configured(self):
        pass

    def generate_chat_completion(self, messages, temperature=0.3):
        self.calls.append({"messages": messages, "temperature": temperature})
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeSpeech:
    def __init__(self, audio=b"ID3-fake-mp3"):
        self.audio = audio
        self.calls = []

    def ensure_configured(self):
        pass

    def synthesize(self, text, voice=None, rate=None):
        self.calls.append({"text": text, "voice": voice, "rate": rate})
        return self.audio


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def speech():
    return FakeSpeech()


@pytest.fixture
def service(llm, speech):
    return ResearchAssistantService(llm, speech)


@pytest.fixture
def store(tmp_path):
    return TopicStore(tmp_path)


@pytest.fixture
def make_client(tmp_path, store):
    """Build a TestClient around any service (defaults to the fake llm/speech pair)"""
    from fastapi.testclient import TestClient
    from src.research_coach.api import create_app

    def _make(service):
        app = create_app(settings=Settings(data_dir=tmp_path), service=service, store=store)
        return TestClient(app)

    return _make


@pytest.fixture
def client(make_client, service):
    return make_client(service)
