# pydantic models for requests, responses and the stored topic record
from typing import List, Dict, Optional

from pydantic import BaseModel, field_validator

# articles per topic; stage 3 entries are keyed by index 0..ARTICLE_COUNT-1
ARTICLE_COUNT = 10
QUESTION_COUNT = 5

# bumped whenever one of the ai response shapes below changes
SCHEMA_VERSION = "1"


def check_article_index(index: int) -> int:
    if index < 0 or index >= ARTICLE_COUNT:
        raise ValueError(f"article index must be between 0 and {ARTICLE_COUNT - 1}")
    return index


# request bodies: every field is optional here, blank checks happen in the service
class ExplainRequest(BaseModel):
    text: Optional[str] = None


class ResearchQuestionsRequest(BaseModel):
    topic: Optional[str] = None
    keywords: Optional[str] = None


class ArticlePlanRequest(BaseModel):
    topic: Optional[str] = None
    keywords: Optional[str] = None
    researchTopic: Optional[str] = None


class ArticleRequest(BaseModel):
    title: Optional[str] = None
    researchTopic: Optional[str] = None
    index: Optional[int] = None


class Stage4Request(BaseModel):
    topicTitle: str = ""
    researchQuestion: str = ""
    articleTitles: List[str] = []
    keyFindingsAll: str = ""
    summariesAll: str = ""
    glossaryAll: str = ""
    articlesAll: str = ""


class TTSRequest(BaseModel):
    text: Optional[str] = None
    voice: Optional[str] = None
    rate: Optional[str] = None


# response bodies (schema version 1)
class ExplainResponse(BaseModel):
    en: str = ""
    ja: str = ""


class ResearchQuestionsResponse(BaseModel):
    questions: List[str] = []


class ArticlePlanResponse(BaseModel):
    research_plan: str = ""
    titles: List[str] = []


class ArticleResponse(BaseModel):
    index: Optional[int] = None
    full: str = ""
    simple: str = ""


class Stage4Response(BaseModel):
    slideIdea: str = ""
    narration: str = ""


# stored topic record and its per-stage parts
class ArticlePlan(BaseModel):
    research_plan: str = ""
    titles: List[str] = []


class Stage3Entry(BaseModel):
    full: str = ""
    simple: str = ""
    summary: str = ""
    keyFindings: str = ""
    glossary: str = ""


class Stage4Data(BaseModel):
    slideIdea: str = ""
    narration: str = ""
    updatedAt: Optional[str] = None


class Topic(BaseModel):
    id: str
    user_id: str
    title: str
    research_topic: str = ""
    article_plan: Optional[ArticlePlan] = None
    stage3_data: Dict[str, Stage3Entry] = {}
    stage4_data: Optional[Stage4Data] = None
    created_at: str

    @field_validator("stage3_data")
    @classmethod
    def _article_indexes_in_range(cls, value: Dict[str, Stage3Entry]) -> Dict[str, Stage3Entry]:
        for key in value:
            try:
                index = int(key)
            except (TypeError, ValueError):
                raise ValueError(f"stage3_data key {key!r} is not an article index")
            check_article_index(index)
        return value

    def article_titles(self) -> List[str]:
        """Titles from the saved article plan; later stages never regenerate them"""
        return list(self.article_plan.titles) if self.article_plan else []

    def stage3_entry(self, index: int) -> Optional[Stage3Entry]:
        return self.stage3_data.get(str(check_article_index(index)))


class TopicCreateRequest(BaseModel):
    user_id: Optional[str] = None
    title: Optional[str] = None
    research_topic: Optional[str] = None
    article_plan: Optional[ArticlePlan] = None
