# research assistant service: validate -> configure -> prompt -> invoke -> interpret
import logging
from typing import List, Dict, Optional

from .config import Settings
from .errors import ClientInputError
from .interpreter import (
    ARTICLE_INTERPRETER, ARTICLE_PLAN_INTERPRETER, EXPLAIN_INTERPRETER,
    RESEARCH_QUESTIONS_INTERPRETER, STAGE4_INTERPRETER
)
from .llm_service import OpenAIChatService
from .models import (
    ARTICLE_COUNT, QUESTION_COUNT,
    ExplainRequest, ExplainResponse,
    ResearchQuestionsRequest, ResearchQuestionsResponse,
    ArticlePlanRequest, ArticlePlanResponse,
    ArticleRequest, ArticleResponse,
    Stage4Request, Stage4Response,
    TTSRequest,
)
from . import prompts
from .speech_service import AzureSpeechService

logger = logging.getLogger(__name__)


def require(value: Optional[str], message: str) -> str:
    """Return the trimmed value or reject the request as a client error"""
    value = (value or "").strip()
    if not value:
        raise ClientInputError(message)
    return value


# one pipeline per ai helper used by the four stages
class ResearchAssistantService:
    def __init__(self, llm_service: OpenAIChatService, speech_service: AzureSpeechService):
        self.llm_service = llm_service
        self.speech_service = speech_service

    @classmethod
    def from_settings(cls, settings: Settings) -> "ResearchAssistantService":
        llm_service = OpenAIChatService(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
        )
        speech_service = AzureSpeechService(
            key=settings.azure_speech_key,
            region=settings.azure_speech_region,
            default_voice=settings.tts_voice,
        )
        return cls(llm_service, speech_service)

    # send one conversation and log the raw reply for diagnostics
    def _complete(self, label: str, messages: List[Dict[str, str]], temperature: float) -> str:
        raw = self.llm_service.generate_chat_completion(messages, temperature=temperature)
        logger.info(f"Raw AI reply ({label}): {raw}")
        return raw

    def explain(self, request: ExplainRequest) -> ExplainResponse:
        """'What does it mean?': simple English paraphrase and Japanese translation"""
        text = require(request.text, "Missing text")
        self.llm_service.ensure_configured()

        raw = self._complete("explain", prompts.build_explain_messages(text), prompts.EXPLAIN_TEMPERATURE)
        return ExplainResponse(**EXPLAIN_INTERPRETER.interpret(raw))

    def generate_research_questions(self, request: ResearchQuestionsRequest) -> ResearchQuestionsResponse:
        """Stage 1: five candidate research questions for a topic"""
        topic = require(request.topic, "Missing topic")
        self.llm_service.ensure_configured()

        messages = prompts.build_research_questions_messages(topic, request.keywords)
        raw = self._complete("research questions", messages, prompts.RESEARCH_QUESTIONS_TEMPERATURE)

        questions = RESEARCH_QUESTIONS_INTERPRETER.interpret(raw)["questions"][:QUESTION_COUNT]
        if not questions:
            questions = [f"What are some important questions about {topic}?"]
        return ResearchQuestionsResponse(questions=questions)

    def generate_article_plan(self, request: ArticlePlanRequest) -> ArticlePlanResponse:
        """Stage 2: research plan paragraph and up to ten article titles"""
        if not (request.topic or "").strip() or not (request.researchTopic or "").strip():
            raise ClientInputError("Missing topic or researchTopic")
        topic = request.topic.strip()
        research_topic = request.researchTopic.strip()
        self.llm_service.ensure_configured()

        messages = prompts.build_article_plan_messages(topic, research_topic, request.keywords)
        raw = self._complete("article plan", messages, prompts.ARTICLE_PLAN_TEMPERATURE)

        fields = ARTICLE_PLAN_INTERPRETER.interpret(raw)
        research_plan = fields["research_plan"]
        titles = fields["titles"][:ARTICLE_COUNT]

        if not research_plan:
            research_plan = (
                f'The student will research "{research_topic}" by reading articles '
                f"about {topic} and related topics."
            )
        if not titles:
            titles = [f"Reading about {topic} - basic background"]
        elif len(titles) < ARTICLE_COUNT:
            logger.warning(f"Article plan returned {len(titles)} titles instead of {ARTICLE_COUNT}")

        return ArticlePlanResponse(research_plan=research_plan, titles=titles)

    def generate_article(self, request: ArticleRequest) -> ArticleResponse:
        """Stage 3: full and simplified versions of one article"""
        if not (request.title or "").strip() or not (request.researchTopic or "").strip():
            raise ClientInputError("Missing required fields: title, researchTopic")
        if request.index is not None and not 0 <= request.index < ARTICLE_COUNT:
            raise ClientInputError(f"index must be between 0 and {ARTICLE_COUNT - 1}")
        self.llm_service.ensure_configured()

        messages = prompts.build_article_messages(request.title.strip(), request.researchTopic.strip())
        raw = self._complete("article", messages, prompts.ARTICLE_TEMPERATURE)

        fields = ARTICLE_INTERPRETER.interpret(raw)
        return ArticleResponse(index=request.index, full=fields["full"], simple=fields["simple"])

    def generate_stage4(self, request: Stage4Request) -> Stage4Response:
        """Stage 4: slide outline and narration from the student's notes and articles"""
        if not request.topicTitle.strip() and not request.researchQuestion.strip():
            raise ClientInputError("Missing topicTitle or researchQuestion")
        self.llm_service.ensure_configured()

        messages = prompts.build_stage4_messages(
            topic_title=request.topicTitle.strip(),
            research_question=request.researchQuestion.strip(),
            article_titles=[t.strip() for t in request.articleTitles if t and t.strip()],
            key_findings=request.keyFindingsAll,
            summaries=request.summariesAll,
            glossary=request.glossaryAll,
            articles=request.articlesAll,
        )
        raw = self._complete("stage4", messages, prompts.STAGE4_TEMPERATURE)
        return Stage4Response(**STAGE4_INTERPRETER.interpret(raw))

    def synthesize_speech(self, request: TTSRequest) -> bytes:
        """Read text aloud; returns mp3 bytes"""
        text = require(request.text, "Missing text")
        self.speech_service.ensure_configured()
        return self.speech_service.synthesize(text, voice=request.voice, rate=request.rate)
