#!/usr/bin/env python3
"""
test script for the research coach api
drives every endpoint through the fastapi test client with fake ai services
"""

import json
from unittest.mock import MagicMock

import requests

from conftest import FakeLLM, FakeSpeech
from src.research_coach.llm_service import OpenAIChatService
from src.research_coach.research_service import ResearchAssistantService
from src.research_coach.speech_service import AzureSpeechService


def test_imports():
    """test if all modules can be imported"""
    from src.research_coach.api import app, create_app
    from src.research_coach.cli import app as cli_app
    from src.research_coach.interpreter import ResponseInterpreter
    from src.research_coach.workspace import Stage3Workspace

    assert app is not None and cli_app is not None


def test_health_and_api_info(client):
    assert client.get("/health").json()["status"] == "healthy"

    response = client.get("/api")
    assert response.status_code == 200
    assert response.json()["endpoints"]["explain"] == "/api/explain"
    assert response.headers["X-Schema-Version"] == "1"


# ============================================================================
# method, body and credential checks
# ============================================================================

def test_wrong_method_is_405(client, llm):
    for path in ["/api/explain", "/api/generate-article-plan", "/api/tts"]:
        response = client.get(path)
        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}
    assert llm.calls == []


def test_missing_fields_are_400_without_calling_the_ai(client, llm):
    cases = [
        ("/api/explain", {}, "Missing text"),
        ("/api/explain", {"text": "   "}, "Missing text"),
        ("/api/generate-research-questions", {"keywords": "coffee"}, "Missing topic"),
        ("/api/generate-article-plan", {"topic": "Coffee shops"}, "Missing topic or researchTopic"),
        ("/api/generate-article", {"title": "Coffee culture"}, "Missing required fields: title, researchTopic"),
        ("/api/generate-stage4", {"articleTitles": ["A"]}, "Missing topicTitle or researchQuestion"),
    ]
    for path, body, message in cases:
        response = client.post(path, json=body)
        assert response.status_code == 400, path
        assert response.json() == {"error": message}
    assert llm.calls == []


def test_unparseable_body_is_400(client, llm):
    response = client.post("/api/explain", content=b"not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid request")
    assert llm.calls == []


def test_article_index_out_of_range_is_400(client, llm):
    response = client.post("/api/generate-article", json={"title": "T", "researchTopic": "R", "index": 12})
    assert response.status_code == 400
    assert llm.calls == []


def test_missing_openai_key_is_500_before_any_network_call(make_client):
    session = MagicMock()
    service = ResearchAssistantService(
        OpenAIChatService(api_key=None, session=session),
        AzureSpeechService(key=None, region=None, session=MagicMock()),
    )
    client = make_client(service)

    response = client.post("/api/explain", json={"text": "ubiquitous"})
    assert response.status_code == 500
    assert response.json() == {"error": "OPENAI_API_KEY is not set"}
    session.post.assert_not_called()


def test_missing_azure_credentials_is_500_before_any_network_call(make_client):
    session = MagicMock()
    service = ResearchAssistantService(FakeLLM(), AzureSpeechService(key=None, region="eastus", session=session))
    client = make_client(service)

    response = client.post("/api/tts", json={"text": "Hello"})
    assert response.status_code == 500
    assert "AZURE_SPEECH_KEY" in response.json()["error"]
    session.post.assert_not_called()


def test_provider_error_message_is_passed_through(make_client):
    session = MagicMock()
    session.post.return_value = MagicMock(status_code=401)
    session.post.return_value.json.return_value = {"error": {"message": "Incorrect API key provided"}}
    service = ResearchAssistantService(OpenAIChatService(api_key="sk-test", session=session), FakeSpeech())
    client = make_client(service)

    response = client.post("/api/generate-research-questions", json={"topic": "Coffee shops"})
    assert response.status_code == 500
    assert response.json() == {"error": "Incorrect API key provided"}


def test_transport_failure_is_500(make_client):
    session = MagicMock()
    session.post.side_effect = requests.exceptions.ConnectionError("connection refused")
    service = ResearchAssistantService(OpenAIChatService(api_key="sk-test", session=session), FakeSpeech())
    client = make_client(service)

    response = client.post("/api/explain", json={"text": "ubiquitous"})
    assert response.status_code == 500
    assert response.json() == {"error": "Server error talking to OpenAI"}


def test_unexpected_failure_is_generic_500(make_client):
    client = make_client(ResearchAssistantService(FakeLLM(RuntimeError("boom")), FakeSpeech()))
    response = client.post("/api/explain", json={"text": "ubiquitous"})
    assert response.status_code == 500
    assert response.json() == {"error": "Server error talking to the AI provider"}


# ============================================================================
# ai helpers
# ============================================================================

def test_explain(client, llm):
    llm.replies.append('{"en": "found everywhere", "ja": "どこにでもある"}')
    response = client.post("/api/explain", json={"text": "ubiquitous"})

    assert response.status_code == 200
    assert response.json() == {"en": "found everywhere", "ja": "どこにでもある"}
    assert response.headers["X-Schema-Version"] == "1"
    assert llm.calls[0]["temperature"] == 0.2
    assert "ubiquitous" in llm.calls[0]["messages"][-1]["content"]


def test_explain_plain_text_reply(client, llm):
    llm.replies.append("It means you can find it everywhere.")
    response = client.post("/api/explain", json={"text": "ubiquitous"})
    assert response.json() == {"en": "It means you can find it everywhere.", "ja": ""}


def test_research_questions_capped_at_five(client, llm):
    llm.replies.append(json.dumps({"questions": [f"Question {i}?" for i in range(7)]}))
    response = client.post("/api/generate-research-questions", json={"topic": "Coffee shops", "keywords": "students"})

    assert response.status_code == 200
    assert response.json()["questions"] == [f"Question {i}?" for i in range(5)]
    assert llm.calls[0]["temperature"] == 0.7


def test_research_questions_default_when_nothing_usable(client, llm):
    llm.replies.append("Sorry, I can't do that.")
    response = client.post("/api/generate-research-questions", json={"topic": "Coffee shops"})
    assert response.json() == {"questions": ["What are some important questions about Coffee shops?"]}


def test_article_plan_keeps_at_most_ten_titles(client, llm):
    titles = [f"Title {i}" for i in range(12)]
    llm.replies.append(json.dumps({"research_plan": "Read about cafes.", "titles": titles}))
    response = client.post("/api/generate-article-plan", json={
        "topic": "Coffee shops",
        "keywords": "students, price",
        "researchTopic": "Why do students choose certain coffee shops?",
    })

    body = response.json()
    assert response.status_code == 200
    assert body["research_plan"] == "Read about cafes."
    assert body["titles"] == titles[:10]


def test_article_plan_defaults(client, llm):
    llm.replies.append("")
    response = client.post("/api/generate-article-plan", json={"topic": "Coffee shops", "researchTopic": "Why?"})

    body = response.json()
    assert body["research_plan"] == 'The student will research "Why?" by reading articles about Coffee shops and related topics.'
    assert body["titles"] == ["Reading about Coffee shops - basic background"]


def test_generate_article_echoes_index(client, llm):
    llm.replies.append('{"full": "Full text.", "simple": "Easy text."}')
    response = client.post("/api/generate-article", json={
        "title": "Coffee culture", "researchTopic": "Why do students like cafes?", "index": 3,
    })

    assert response.status_code == 200
    assert response.json() == {"index": 3, "full": "Full text.", "simple": "Easy text."}
    assert llm.calls[0]["temperature"] == 0.4


def test_generate_stage4(client, llm):
    llm.replies.append("SLIDE_IDEA\nSlide 1: Title\n\nNARRATION\nHello everyone.")
    response = client.post("/api/generate-stage4", json={
        "topicTitle": "Coffee shops",
        "researchQuestion": "Why do students like cafes?",
        "articleTitles": ["Coffee culture", " ", "Study spaces"],
        "glossaryAll": "latte - coffee with milk",
    })

    assert response.status_code == 200
    assert response.json() == {"slideIdea": "Slide 1: Title", "narration": "Hello everyone."}
    prompt = llm.calls[0]["messages"][-1]["content"]
    assert "1. Coffee culture" in prompt
    assert "2. Study spaces" in prompt
    assert llm.calls[0]["temperature"] == 0.3


def test_tts_returns_mp3(client, speech):
    response = client.post("/api/tts", json={"text": "Hello everyone", "voice": "en-US-GuyNeural"})

    assert response.status_code == 200
    assert response.headers["content-type"] == "audio/mpeg"
    assert response.headers["cache-control"] == "no-store"
    assert response.content == b"ID3-fake-mp3"
    assert speech.calls == [{"text": "Hello everyone", "voice": "en-US-GuyNeural", "rate": None}]


def test_tts_missing_text(client, speech):
    response = client.post("/api/tts", json={"voice": "en-US-GuyNeural"})
    assert response.status_code == 400
    assert speech.calls == []


# ============================================================================
# topics
# ============================================================================

def _create(client, **overrides):
    body = {
        "user_id": "student-1",
        "title": "Coffee shops",
        "research_topic": "Why do students like cafes?",
        "article_plan": {"research_plan": "Read ten articles.", "titles": ["Coffee culture", "Study spaces"]},
    }
    body.update(overrides)
    return client.post("/api/topics", json=body)


def test_topic_lifecycle(client):
    response = _create(client)
    assert response.status_code == 201
    topic = response.json()
    topic_id = topic["id"]
    assert topic["article_plan"]["titles"] == ["Coffee culture", "Study spaces"]
    assert topic["stage3_data"] == {}

    listed = client.get("/api/topics", params={"owner": "student-1"}).json()
    assert [t["id"] for t in listed] == [topic_id]
    assert client.get("/api/topics", params={"owner": "someone-else"}).json() == []

    entry = {"full": "Full.", "simple": "Easy.", "summary": "Mine.", "keyFindings": "Cheap.", "glossary": "latte"}
    response = client.put(f"/api/topics/{topic_id}/stage3/0", json=entry)
    assert response.status_code == 200
    assert response.json()["stage3_data"]["0"]["summary"] == "Mine."

    response = client.put(f"/api/topics/{topic_id}/stage4", json={"slideIdea": "Slides", "narration": "Talk"})
    stage4 = response.json()["stage4_data"]
    assert stage4["slideIdea"] == "Slides"
    assert stage4["updatedAt"]

    request_body = client.get(f"/api/topics/{topic_id}/stage4/request").json()
    assert request_body["articleTitles"] == ["Coffee culture", "Study spaces"]
    assert request_body["glossaryAll"] == "latte"

    draft = client.get(f"/api/topics/{topic_id}/stage4/draft").json()
    assert "Slide 1: Title (Research Question)" in draft["slideIdea"]
    assert "- Cheap." in draft["slideIdea"]


def test_create_topic_requires_title_and_question(client):
    response = _create(client, title=" ")
    assert response.status_code == 400
    assert response.json() == {"error": "Please fill in the topic title and final research question"}


def test_topic_of_another_owner_is_not_found(client):
    topic_id = _create(client).json()["id"]
    assert client.get(f"/api/topics/{topic_id}", params={"owner": "student-1"}).status_code == 200
    assert client.get(f"/api/topics/{topic_id}", params={"owner": "student-2"}).status_code == 404


def test_unknown_topic_is_404(client):
    response = client.get("/api/topics/does-not-exist")
    assert response.status_code == 404
    assert response.json() == {"error": "Topic not found: does-not-exist"}


def test_stage3_index_out_of_range_is_400(client):
    topic_id = _create(client).json()["id"]
    response = client.put(f"/api/topics/{topic_id}/stage3/10", json={"summary": "x"})
    assert response.status_code == 400


def test_listing_topics_requires_owner(client):
    assert client.get("/api/topics").status_code == 400


def test_article_plan_update(client):
    topic_id = _create(client, article_plan=None).json()["id"]
    response = client.put(f"/api/topics/{topic_id}/article-plan", json={"research_plan": " Plan ", "titles": ["A", ""]})
    assert response.json()["article_plan"] == {"research_plan": "Plan", "titles": ["A"]}


def test_unreadable_topic_row_answers_with_error_body(client, store):
    topic_id = _create(client).json()["id"]
    (store.topics_dir / f"{topic_id}.json").write_text('{"id": "', encoding="utf-8")

    response = client.get(f"/api/topics/{topic_id}")
    assert response.status_code == 500
    assert response.headers["content-type"] == "application/json"
    assert response.json() == {"error": f"Stored topic could not be read: {topic_id}"}


def test_unexpected_route_failure_answers_with_error_body(tmp_path, store, service, monkeypatch):
    from fastapi.testclient import TestClient
    from src.research_coach.api import create_app
    from src.research_coach.config import Settings

    def broken(owner):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(store, "list_topics", broken)
    app = create_app(settings=Settings(data_dir=tmp_path), service=service, store=store)
    client = TestClient(app, raise_server_exceptions=False)

    response = client.get("/api/topics", params={"owner": "student-1"})
    assert response.status_code == 500
    assert response.json() == {"error": "Server error"}


# ============================================================================
# command line client
# ============================================================================

def test_cli_tts_writes_mp3(tmp_path, service, monkeypatch):
    from typer.testing import CliRunner
    from src.research_coach import cli

    monkeypatch.setattr(cli, "_service", lambda: service)
    output = tmp_path / "speech.mp3"

    result = CliRunner().invoke(cli.app, ["tts", "Hello everyone", "--output", str(output)])
    assert result.exit_code == 0
    assert output.read_bytes() == b"ID3-fake-mp3"


def test_cli_reports_file_errors_and_exits_1(tmp_path, service, monkeypatch):
    from typer.testing import CliRunner
    from src.research_coach import cli

    monkeypatch.setattr(cli, "_service", lambda: service)
    output = tmp_path / "missing-dir" / "speech.mp3"

    result = CliRunner().invoke(cli.app, ["tts", "Hello everyone", "--output", str(output)])
    assert result.exit_code == 1
    assert "Error:" in result.output
    assert not isinstance(result.exception, OSError)
