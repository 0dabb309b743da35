# topic store: one json document per topic row, keyed by owner and id
import json
import logging
import os
import re
import tempfile
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Dict, Optional

from pydantic import ValidationError

from .errors import ClientInputError, StorageError, TopicNotFoundError
from .models import ArticlePlan, Stage3Entry, Stage4Data, Topic, check_article_index

logger = logging.getLogger(__name__)

TOPIC_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def write_json_atomic(path: Path, data) -> None:
    """Write json next to path and swap it in, so readers never see a half-written file"""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp_name, path)
    except Exception:
        if os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise


def clean_article_plan(plan: Optional[ArticlePlan]) -> Optional[ArticlePlan]:
    """Trim the plan text and drop blank titles; an empty plan is stored as None"""
    if plan is None:
        return None
    research_plan = plan.research_plan.strip()
    titles = [t.strip() for t in plan.titles if t and t.strip()]
    if not research_plan and not titles:
        return None
    return ArticlePlan(research_plan=research_plan, titles=titles)


class TopicStore:
    """Rows are created on first save and updated in place by later stage saves; there is no delete"""

    def __init__(self, data_dir: Path):
        self.topics_dir = Path(data_dir) / "topics"

    def _path(self, topic_id: str) -> Path:
        if not topic_id or not TOPIC_ID_PATTERN.match(topic_id):
            raise TopicNotFoundError(f"Topic not found: {topic_id}")
        return self.topics_dir / f"{topic_id}.json"

    def _save(self, topic: Topic) -> Topic:
        path = self._path(topic.id)
        try:
            self.topics_dir.mkdir(parents=True, exist_ok=True)
            write_json_atomic(path, topic.model_dump())
        except OSError as e:
            logger.error(f"Error saving topic {topic.id}: {str(e)}")
            raise StorageError(f"Could not save topic {topic.id}") from e
        return topic

    def _load(self, path: Path) -> Topic:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return Topic(**data)
        except (OSError, ValueError, TypeError) as e:
            # ValidationError is a ValueError
            logger.error(f"Error reading topic file {path.name}: {str(e)}")
            raise StorageError(f"Stored topic could not be read: {path.stem}") from e

    def create_topic(
        self,
        user_id: Optional[str],
        title: Optional[str],
        research_topic: Optional[str],
        article_plan: Optional[ArticlePlan] = None,
    ) -> Topic:
        user_id = (user_id or "").strip()
        title = (title or "").strip()
        research_topic = (research_topic or "").strip()

        if not user_id:
            raise ClientInputError("Missing user_id")
        if not title or not research_topic:
            raise ClientInputError("Please fill in the topic title and final research question")

        topic = Topic(
            id=uuid.uuid4().hex,
            user_id=user_id,
            title=title,
            research_topic=research_topic,
            article_plan=clean_article_plan(article_plan),
            created_at=utc_now(),
        )
        logger.info(f"Created topic {topic.id} for {user_id}: {title}")
        return self._save(topic)

    def get_topic(self, topic_id: str, owner: Optional[str] = None) -> Topic:
        path = self._path(topic_id)
        if not path.exists():
            raise TopicNotFoundError(f"Topic not found: {topic_id}")

        topic = self._load(path)
        # another owner's row is reported as missing
        if owner is not None and topic.user_id != owner:
            raise TopicNotFoundError(f"Topic not found: {topic_id}")
        return topic

    def list_topics(self, owner: str) -> List[Topic]:
        """Topics of one owner, newest first"""
        topics = []
        for path in self.topics_dir.glob("*.json"):
            try:
                topic = self._load(path)
            except StorageError as e:
                logger.warning(f"Skipping unreadable topic file {path.name}: {str(e)}")
                continue
            if topic.user_id == owner:
                topics.append(topic)
        topics.sort(key=lambda t: t.created_at, reverse=True)
        return topics

    def update_article_plan(self, topic_id: str, plan: ArticlePlan) -> Topic:
        topic = self.get_topic(topic_id)
        topic.article_plan = clean_article_plan(plan)
        return self._save(topic)

    def update_stage3_entry(self, topic_id: str, index: int, entry: Stage3Entry) -> Topic:
        try:
            check_article_index(index)
        except ValueError as e:
            raise ClientInputError(str(e))
        topic = self.get_topic(topic_id)
        topic.stage3_data[str(index)] = entry
        logger.info(f"Saved stage 3 article {index} of topic {topic_id}")
        return self._save(topic)

    def update_stage3_data(self, topic_id: str, stage3_data: Dict[str, Stage3Entry]) -> Topic:
        topic = self.get_topic(topic_id)
        updated = topic.model_copy(update={"stage3_data": dict(stage3_data)})
        # re-run the index check on the replacement mapping
        try:
            updated = Topic(**updated.model_dump())
        except ValidationError as e:
            raise ClientInputError(f"Invalid stage3_data: {e.errors()[0]['msg']}")
        return self._save(updated)

    def update_stage4(self, topic_id: str, slide_idea: str, narration: str) -> Topic:
        topic = self.get_topic(topic_id)
        topic.stage4_data = Stage4Data(slideIdea=slide_idea, narration=narration, updatedAt=utc_now())
        logger.info(f"Saved stage 4 of topic {topic_id}")
        return self._save(topic)
