# student workspace: stage 3 two-tier draft cache and stage 4 note aggregation
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Iterable, Optional

from pydantic import ValidationError

from .errors import ClientInputError
from .models import (
    ARTICLE_COUNT, ArticleRequest, Stage3Entry, Stage4Request, Stage4Response, Topic,
    check_article_index
)
from .topic_store import TopicStore, write_json_atomic

logger = logging.getLogger(__name__)


# on-device mirror of stage 3 entries, one small json file per article
class LocalDraftCache:
    def __init__(self, cache_dir: Path):
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def key(topic_id: str, index: int) -> str:
        return f"stage3_{topic_id}_{index}"

    def _path(self, topic_id: str, index: int) -> Path:
        return self.cache_dir / f"{self.key(topic_id, index)}.json"

    def get(self, topic_id: str, index: int) -> Optional[Stage3Entry]:
        """Cached entry, or None when absent or unreadable"""
        path = self._path(topic_id, index)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return Stage3Entry(**json.load(f))
        except (OSError, ValueError, TypeError, ValidationError) as e:
            logger.error(f"Error parsing local stage 3 data {path.name}: {str(e)}")
            return None

    def put(self, topic_id: str, index: int, entry: Stage3Entry):
        write_json_atomic(self._path(topic_id, index), entry.model_dump())


class Stage3Workspace:
    """Reading and annotation state for one topic.

    Two tiers: the local cache overrides the stored topic row until the
    student syncs an article explicitly. Generated articles are saved to the
    local tier only; nothing is written to the store without ``sync``.
    """

    def __init__(self, store: TopicStore, cache: LocalDraftCache, topic_id: str, owner: Optional[str] = None):
        self.store = store
        self.cache = cache
        self.topic_id = topic_id
        self.owner = owner
        self.topic = store.get_topic(topic_id, owner)

    def refresh(self) -> Topic:
        """Re-read the stored row (the remote tier)"""
        self.topic = self.store.get_topic(self.topic_id, self.owner)
        return self.topic

    @property
    def titles(self) -> List[str]:
        return self.topic.article_titles()

    def title_for(self, index: int) -> str:
        check_article_index(index)
        titles = self.titles
        return titles[index] if index < len(titles) and titles[index] else f"Article {index + 1}"

    def load(self, index: int) -> Stage3Entry:
        check_article_index(index)
        local = self.cache.get(self.topic_id, index)
        if local is not None:
            return local
        remote = self.topic.stage3_entry(index)
        return remote.model_copy() if remote else Stage3Entry()

    def save_local(self, index: int, entry: Stage3Entry) -> Stage3Entry:
        check_article_index(index)
        self.cache.put(self.topic_id, index, entry)
        return entry

    def edit(self, index: int, **fields) -> Stage3Entry:
        """Apply field edits (summary, keyFindings, glossary, ...) to the local tier"""
        unknown = set(fields) - set(Stage3Entry.model_fields)
        if unknown:
            raise ClientInputError(f"Unknown stage 3 fields: {', '.join(sorted(unknown))}")
        entry = self.load(index).model_copy(update=fields)
        return self.save_local(index, entry)

    def accept_article(self, index: int, full: str, simple: str) -> Stage3Entry:
        """Take a generated article, keeping the student's own summary/findings/glossary"""
        return self.edit(index, full=full or "", simple=simple or "")

    def sync(self, index: int) -> Topic:
        """Push the current entry to the stored topic and mirror it locally"""
        entry = self.load(index)
        self.topic = self.store.update_stage3_entry(self.topic_id, index, entry)
        self.cache.put(self.topic_id, index, entry)
        return self.topic

    def article_request(self, index: int) -> ArticleRequest:
        check_article_index(index)
        titles = self.titles
        if index >= len(titles) or not titles[index]:
            raise ClientInputError("No title for this article.")
        return ArticleRequest(title=titles[index], researchTopic=self.topic.research_topic, index=index)


@dataclass
class StudentNotes:
    title: str
    research_question: str
    summaries: List[str] = field(default_factory=list)
    findings: List[str] = field(default_factory=list)
    glossary: List[str] = field(default_factory=list)
    articles: List[str] = field(default_factory=list)


def dedupe_lines(lines: Iterable[str]) -> List[str]:
    """Drop blank and case-insensitive duplicate lines, keeping first-seen order"""
    seen = set()
    unique = []
    for line in lines:
        line = line.strip()
        key = line.lower()
        if not line or key in seen:
            continue
        seen.add(key)
        unique.append(line)
    return unique


def collect_student_notes(topic: Topic) -> StudentNotes:
    """Gather stage 3 notes over article indexes 0-9 in order"""
    entries = [topic.stage3_data.get(str(i)) for i in range(ARTICLE_COUNT)]
    entries = [e for e in entries if e is not None]

    glossary_lines = []
    for entry in entries:
        glossary_lines.extend(entry.glossary.split("\n"))

    return StudentNotes(
        title=topic.title or "Your Topic",
        research_question=topic.research_topic,
        summaries=[e.summary.strip() for e in entries if e.summary.strip()],
        findings=[e.keyFindings.strip() for e in entries if e.keyFindings.strip()],
        glossary=dedupe_lines(glossary_lines),
        articles=[e.full.strip() for e in entries if e.full.strip()],
    )


def build_stage4_request(topic: Topic) -> Stage4Request:
    """Request body for /api/generate-stage4; titles come from the saved article plan"""
    notes = collect_student_notes(topic)
    return Stage4Request(
        topicTitle=notes.title,
        researchQuestion=notes.research_question,
        articleTitles=topic.article_titles(),
        keyFindingsAll="\n\n".join(notes.findings),
        summariesAll="\n\n".join(notes.summaries),
        glossaryAll="\n".join(notes.glossary),
        articlesAll="\n\n".join(notes.articles),
    )


def build_slide_draft(topic: Topic) -> Stage4Response:
    """Six-slide draft and narration built only from the student's notes, without the AI"""
    notes = collect_student_notes(topic)
    rq = notes.research_question

    slides = [
        "Slide 1: Title (Research Question)",
        f"- Research Question: {rq or '(write your research question here)'}",
        f"- Topic: {notes.title}",
        "- Image prompt: clean academic title slide background, minimal, professional, no text.",
        "",
        "Slide 2: Key findings (3-5 points)",
        "- Use YOUR wording (your own findings / comments).",
        *[f"- {f}" for f in notes.findings[:5]],
        "- Image prompt: simple infographic icons, minimal, no text.",
        "",
        "Slide 3: Interesting / surprising findings",
        "- Pick 1-3 points you found interesting.",
        *[f"- From summary: {s}" for s in notes.summaries[:3]],
        "- Image prompt: comparison visual (two columns, simple icons), minimal, no text.",
        "",
        "Slide 4: Consideration (your interpretation)",
        "- What do these findings suggest?",
        "- Your comment / interpretation (write in your own words).",
        "- Image prompt: thoughtful student / analysis mood (notes, thinking), minimal, no text.",
        "",
        "Slide 5: Important terms (glossary)",
        *[f"- {g}" for g in notes.glossary[:8]],
        "- Image prompt: vocabulary/terms theme (book + simple icons), minimal, no text.",
        "",
        "Slide 6: Closing",
        "- Thank you for listening.",
        "- (Optional) One question to the audience.",
        "- Image prompt: friendly closing atmosphere, minimal, no text.",
    ]

    narration = [
        "Slide 1 narration:",
        f"Hello everyone. Today I will present my research question: {rq or '(research question)'}.",
        "I read ten articles and wrote my summary, key findings, and important terms.",
        "",
        "Slide 2 narration:",
        "Slide 2 shows my key findings. These points came from the articles, and I also added my own comments.",
        "The most important pattern I noticed was: (add your most important point).",
        "",
        "Slide 3 narration:",
        "Slide 3 shows interesting or surprising points. One point that surprised me was: (add your point).",
        "I think it is important because: (add your reason).",
        "",
        "Slide 4 narration:",
        "Slide 4 is my consideration. In my interpretation, these findings suggest: (your interpretation).",
        "My personal comment is: (your comment).",
        "",
        "Slide 5 narration:",
        "Slide 5 lists important terms. I will quickly explain a few key words that appeared many times.",
        "",
        "Slide 6 narration:",
        "Slide 6 is my closing. Thank you for listening.",
    ]

    return Stage4Response(slideIdea="\n".join(slides), narration="\n".join(narration))
