# fastapi web api for the research workflow ai helpers and topic storage
from fastapi import FastAPI, APIRouter, Request, Query
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
import logging
from typing import List, Optional

from . import __version__
from .config import Settings
from .errors import MethodNotAllowedError, ProviderError, ResearchCoachError
from .models import (
    SCHEMA_VERSION,
    ExplainRequest, ExplainResponse,
    ResearchQuestionsRequest, ResearchQuestionsResponse,
    ArticlePlanRequest, ArticlePlanResponse,
    ArticleRequest, ArticleResponse,
    Stage4Request, Stage4Response,
    TTSRequest,
    ArticlePlan, Stage3Entry, Topic, TopicCreateRequest,
)
from .research_service import ResearchAssistantService
from .topic_store import TopicStore
from .workspace import build_slide_draft, build_stage4_request

# configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# stamp every /api/ response with the response schema version
class SchemaVersionMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        if request.url.path.startswith("/api"):
            response.headers["X-Schema-Version"] = SCHEMA_VERSION
        return response


# error responses are always {"error": "..."}
async def handle_app_error(request: Request, exc: ResearchCoachError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def handle_http_error(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 405:
        message = MethodNotAllowedError.default_message
    else:
        message = str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"error": message}, headers=getattr(exc, "headers", None))


# anything the routes did not turn into an app error still answers with the error body
async def handle_unexpected_error(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {str(exc)}", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": ResearchCoachError.default_message})


async def handle_validation_error(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    detail = errors[0].get("msg", "Invalid request body") if errors else "Invalid request body"
    logger.warning(f"Rejected request to {request.url.path}: {detail}")
    return JSONResponse(status_code=400, content={"error": f"Invalid request: {detail}"})


router = APIRouter(prefix="/api")


def _service(request: Request) -> ResearchAssistantService:
    return request.app.state.service


def _store(request: Request) -> TopicStore:
    return request.app.state.store


# run one ai pipeline; anything unexpected becomes a generic 500
def _run(label: str, call, *args):
    try:
        return call(*args)
    except ResearchCoachError as e:
        logger.error(f"{label} API error: {e.message}")
        raise
    except Exception as e:
        logger.error(f"{label} API error: {str(e)}", exc_info=True)
        raise ProviderError("Server error talking to the AI provider")


# ============================================================================
# AI HELPERS
# ============================================================================

@router.post("/explain", response_model=ExplainResponse)
def explain(body: ExplainRequest, request: Request):
    """Simple English paraphrase and Japanese translation of selected text"""
    return _run("Explain", _service(request).explain, body)


@router.post("/generate-research-questions", response_model=ResearchQuestionsResponse)
def generate_research_questions(body: ResearchQuestionsRequest, request: Request):
    return _run("Research questions", _service(request).generate_research_questions, body)


@router.post("/generate-article-plan", response_model=ArticlePlanResponse)
def generate_article_plan(body: ArticlePlanRequest, request: Request):
    return _run("Article plan", _service(request).generate_article_plan, body)


@router.post("/generate-article", response_model=ArticleResponse)
def generate_article(body: ArticleRequest, request: Request):
    return _run("Generate article", _service(request).generate_article, body)


@router.post("/generate-stage4", response_model=Stage4Response)
def generate_stage4(body: Stage4Request, request: Request):
    return _run("Stage 4", _service(request).generate_stage4, body)


@router.post("/tts")
def text_to_speech(body: TTSRequest, request: Request):
    """Read text aloud; answers with mp3 bytes"""
    audio = _run("TTS", _service(request).synthesize_speech, body)
    return Response(content=audio, media_type="audio/mpeg", headers={"Cache-Control": "no-store"})


# ============================================================================
# TOPICS
# ============================================================================

@router.post("/topics", response_model=Topic, status_code=201)
def create_topic(body: TopicCreateRequest, request: Request):
    return _store(request).create_topic(body.user_id, body.title, body.research_topic, body.article_plan)


@router.get("/topics", response_model=List[Topic])
def list_topics(request: Request, owner: str = Query(...)):
    return _store(request).list_topics(owner)


@router.get("/topics/{topic_id}", response_model=Topic)
def get_topic(topic_id: str, request: Request, owner: Optional[str] = None):
    return _store(request).get_topic(topic_id, owner)


@router.put("/topics/{topic_id}/article-plan", response_model=Topic)
def update_article_plan(topic_id: str, body: ArticlePlan, request: Request):
    return _store(request).update_article_plan(topic_id, body)


@router.put("/topics/{topic_id}/stage3/{index}", response_model=Topic)
def update_stage3_entry(topic_id: str, index: int, body: Stage3Entry, request: Request):
    return _store(request).update_stage3_entry(topic_id, index, body)


@router.put("/topics/{topic_id}/stage4", response_model=Topic)
def update_stage4(topic_id: str, body: Stage4Response, request: Request):
    return _store(request).update_stage4(topic_id, body.slideIdea, body.narration)


@router.get("/topics/{topic_id}/stage4/request", response_model=Stage4Request)
def get_stage4_request(topic_id: str, request: Request):
    """Body for /api/generate-stage4 assembled from the topic's stage 3 notes"""
    return build_stage4_request(_store(request).get_topic(topic_id))


@router.get("/topics/{topic_id}/stage4/draft", response_model=Stage4Response)
def get_stage4_draft(topic_id: str, request: Request):
    """Slide draft built from the student's notes without calling the AI"""
    return build_slide_draft(_store(request).get_topic(topic_id))


@router.get("")
def api_info():
    """API information endpoint"""
    return {
        "message": "Pre-entrance research API",
        "version": __version__,
        "schema_version": SCHEMA_VERSION,
        "endpoints": {
            "explain": "/api/explain",
            "research_questions": "/api/generate-research-questions",
            "article_plan": "/api/generate-article-plan",
            "article": "/api/generate-article",
            "stage4": "/api/generate-stage4",
            "tts": "/api/tts",
            "topics": "/api/topics",
        },
    }


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[ResearchAssistantService] = None,
    store: Optional[TopicStore] = None,
) -> FastAPI:
    """Build the application; credentials come from settings, never from ambient lookups"""
    settings = settings or Settings.from_env()

    app = FastAPI(
        title="Pre-Entrance Research API",
        description="AI helpers for a four-stage student research workflow",
        version=__version__,
    )

    # add cors middleware to allow the browser client on another origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SchemaVersionMiddleware)

    app.add_exception_handler(ResearchCoachError, handle_app_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.state.settings = settings
    app.state.service = service or ResearchAssistantService.from_settings(settings)
    app.state.store = store or TopicStore(settings.data_dir)

    app.include_router(router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "service": "research-coach"}

    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set; AI endpoints will answer 500")

    return app


app = create_app()
