# response interpreter: recover a fixed json shape from loosely structured model replies
"""
Model replies are trusted in content but not in shape. Each interpreter owns
a fixed field set and an ordered chain of recovery strategies:

1. JSONReplyStrategy      - the reply (or a JSON block inside it) is the agreed object
2. SectionMarkerStrategy  - named headers such as SLIDE_IDEA / NARRATION split the text
3. NumberedListStrategy   - blank lines and "1. " / "2) " / "- " prefixes give a list
4. RawTextStrategy        - the trimmed reply becomes the most relevant text field

The first strategy that returns a result wins. ``ResponseInterpreter.interpret``
never raises: a failing strategy is logged and skipped, and when nothing
matches every field gets its default ("" or []).
"""
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

TEXT = "text"
LIST = "list"

# "1. ", "2) ", "3 - ", "10: ", "- ", "* ", "• "
LIST_PREFIX = re.compile(r"^\s*(?:\(?\d{1,2}\s*[.):\-]\s*|[-*•]\s+)")
CODE_FENCE = re.compile(r"^```[A-Za-z]*\s*\n?(.*?)\n?```\s*$", re.DOTALL)
BLANK_LINES = re.compile(r"\n\s*\n")
EMBEDDED_OBJECT = re.compile(r"\{.*\}", re.DOTALL)
EMBEDDED_ARRAY = re.compile(r"^[ \t]*\[.*\]", re.DOTALL | re.MULTILINE)


@dataclass(frozen=True)
class ReplyField:
    """One field of the agreed reply shape"""

    name: str
    kind: str = TEXT
    aliases: Tuple[str, ...] = ()
    # regex matching the section header that introduces this field
    marker: Optional[str] = None

    @property
    def keys(self) -> Tuple[str, ...]:
        return (self.name,) + self.aliases

    def default(self) -> Any:
        return [] if self.kind == LIST else ""

    def coerce(self, value: Any) -> Any:
        if self.kind == LIST:
            if isinstance(value, (list, tuple)):
                items = [str(item).strip() for item in value if item is not None]
                return [item for item in items if item]
            if isinstance(value, str):
                return split_list_items(value)
            return []

        if value is None:
            return ""
        if isinstance(value, (list, tuple)):
            return "\n".join(str(item).strip() for item in value if item is not None).strip()
        return str(value).strip()


def strip_list_prefix(line: str) -> str:
    return LIST_PREFIX.sub("", line, count=1).strip()


def is_list_item(line: str) -> bool:
    return bool(LIST_PREFIX.match(line)) and bool(strip_list_prefix(line))


def split_list_items(text: str) -> List[str]:
    """Split text into list items, dropping numbering, blank lines and lead-in lines"""
    items = []
    for raw_line in text.splitlines():
        line = strip_list_prefix(raw_line)
        # leftovers of half-formed json lists
        line = line.rstrip(",").strip()
        if len(line) >= 2 and line[0] == line[-1] == '"':
            line = line[1:-1].strip()
        if not line or line in ("[", "]", "{", "}"):
            continue
        # "Here are five questions:" style lead-ins
        if line.endswith(":") and not is_list_item(raw_line):
            continue
        items.append(line)
    return items


def strip_code_fences(text: str) -> str:
    text = text.strip()
    match = CODE_FENCE.match(text)
    return match.group(1).strip() if match else text


def load_json_block(text: str) -> Any:
    """Parse text as JSON, else the first {...} block inside it, else a [...] block opening a line.

    Brackets inside a sentence ("[2023]", "[1]") are citations, not a reply list.
    """
    candidate = strip_code_fences(text)
    try:
        return json.loads(candidate)
    except ValueError:
        pass

    for pattern in (EMBEDDED_OBJECT, EMBEDDED_ARRAY):
        match = pattern.search(candidate)
        if not match:
            continue
        try:
            return json.loads(match.group())
        except ValueError:
            continue
    return None


class RecoveryStrategy:
    name = "strategy"

    def try_parse(self, text: str) -> Optional[Dict[str, Any]]:
        """Return the recovered fields, or None when this strategy does not apply"""
        raise NotImplementedError


class JSONReplyStrategy(RecoveryStrategy):
    name = "json"

    def __init__(self, fields: Sequence[ReplyField], array_field: Optional[str] = None):
        self.fields = list(fields)
        self.array_field = array_field

    def try_parse(self, text: str) -> Optional[Dict[str, Any]]:
        data = load_json_block(text)

        if isinstance(data, list):
            # a reply list is a list of strings; [1] or [2023] is not
            if not self.array_field or not data or not all(isinstance(item, str) for item in data):
                return None
            field = self._field(self.array_field)
            return {field.name: field.coerce(data)}

        if not isinstance(data, dict):
            return None

        # an object with none of the expected keys is a different shape
        if not any(key in data for field in self.fields for key in field.keys):
            return None

        result = {}
        for field in self.fields:
            key = next((k for k in field.keys if k in data), None)
            result[field.name] = field.coerce(data[key]) if key else field.default()
        return result

    def _field(self, name: str) -> ReplyField:
        return next(f for f in self.fields if f.name == name)


class SectionMarkerStrategy(RecoveryStrategy):
    """Slices the text between header markers; applies only when every marker is present"""

    name = "section-markers"

    def __init__(self, fields: Sequence[ReplyField], flags: int = re.MULTILINE):
        self.fields = [f for f in fields if f.marker]
        self.patterns = [(f, re.compile(f.marker, flags)) for f in self.fields]

    def try_parse(self, text: str) -> Optional[Dict[str, Any]]:
        if not self.patterns:
            return None

        found = []
        for field, pattern in self.patterns:
            match = pattern.search(text)
            if not match:
                return None
            found.append((match.start(), match.end(), field))

        found.sort(key=lambda item: item[0])
        result = {}
        for i, (_, end, field) in enumerate(found):
            stop = found[i + 1][0] if i + 1 < len(found) else len(text)
            result[field.name] = field.coerce(text[end:stop])
        return result


class NumberedListStrategy(RecoveryStrategy):
    """Recovers an ordered list; optionally the text before the list becomes lead_field"""

    name = "numbered-list"

    def __init__(self, list_field: ReplyField, lead_field: Optional[ReplyField] = None):
        self.list_field = list_field
        self.lead_field = lead_field

    def try_parse(self, text: str) -> Optional[Dict[str, Any]]:
        text = strip_code_fences(text)
        if not text:
            return None

        lines = text.splitlines()
        first_item = next((i for i, line in enumerate(lines) if is_list_item(line)), None)
        paragraphs = [p.strip() for p in BLANK_LINES.split(text) if p.strip()]

        # a single unnumbered line is prose, not a list
        if first_item is None and len([line for line in lines if line.strip()]) < 2:
            return None

        if first_item is not None:
            # numbered lines are the list; anything before them is the lead
            lead = "\n".join(lines[:first_item]).strip()
            items = split_list_items("\n".join(line for line in lines[first_item:] if is_list_item(line)))
        elif self.lead_field is None:
            lead = ""
            items = split_list_items(text)
        else:
            lead = paragraphs[0]
            items = split_list_items("\n".join(paragraphs[1:]))

        if not items:
            return None
        if self.lead_field is None:
            return {self.list_field.name: items}
        return {
            self.lead_field.name: self.lead_field.coerce(lead),
            self.list_field.name: items,
        }


class RawTextStrategy(RecoveryStrategy):
    name = "raw-text"

    def __init__(self, field: ReplyField):
        self.field = field

    def try_parse(self, text: str) -> Optional[Dict[str, Any]]:
        text = (text or "").strip()
        return {self.field.name: text} if text else None


class ResponseInterpreter:
    """Runs the recovery chain for one reply shape"""

    def __init__(self, name: str, fields: Sequence[ReplyField], strategies: Sequence[RecoveryStrategy]):
        self.name = name
        self.fields = list(fields)
        self.strategies = list(strategies)

    def defaults(self) -> Dict[str, Any]:
        return {f.name: f.default() for f in self.fields}

    def interpret(self, text: Optional[str]) -> Dict[str, Any]:
        result, _ = self.interpret_with_strategy(text)
        return result

    def interpret_with_strategy(self, text: Optional[str]) -> Tuple[Dict[str, Any], Optional[str]]:
        """Return the recovered fields and the name of the strategy that produced them"""
        text = text if isinstance(text, str) else ""

        for strategy in self.strategies:
            try:
                recovered = strategy.try_parse(text)
            except Exception as e:
                logger.warning(f"{self.name}: {strategy.name} strategy failed: {str(e)}", exc_info=True)
                continue
            if recovered is None:
                continue

            result = self.defaults()
            result.update({k: v for k, v in recovered.items() if k in result})
            logger.debug(f"{self.name}: reply recovered with {strategy.name} strategy")
            return result, strategy.name

        logger.warning(f"{self.name}: no recovery strategy matched, returning defaults")
        return self.defaults(), None


# interpreters for each ai operation

_EN = ReplyField("en", aliases=("en_simple", "english", "meaning"), marker=r"^[ \t*#]*(?:en|english)[ \t*]*[:：]")
_JA = ReplyField("ja", aliases=("japanese", "translation"), marker=r"^[ \t*#]*(?:ja|japanese)[ \t*]*[:：]")

EXPLAIN_INTERPRETER = ResponseInterpreter(
    "explain",
    [_EN, _JA],
    [
        JSONReplyStrategy([_EN, _JA]),
        SectionMarkerStrategy([_EN, _JA], flags=re.MULTILINE | re.IGNORECASE),
        RawTextStrategy(_EN),
    ],
)

_QUESTIONS = ReplyField("questions", kind=LIST, aliases=("titles", "research_questions"))

RESEARCH_QUESTIONS_INTERPRETER = ResponseInterpreter(
    "research-questions",
    [_QUESTIONS],
    [
        JSONReplyStrategy([_QUESTIONS], array_field="questions"),
        NumberedListStrategy(_QUESTIONS),
    ],
)

_PLAN = ReplyField("research_plan", aliases=("researchPlan", "plan"), marker=r"^[ \t*#]*research[ _]plan\b[^\n:]*:?")
_TITLES = ReplyField("titles", kind=LIST, aliases=("article_titles", "articles"), marker=r"^[ \t*#]*(?:article )?titles\b[^\n:]*:?")

ARTICLE_PLAN_INTERPRETER = ResponseInterpreter(
    "article-plan",
    [_PLAN, _TITLES],
    [
        JSONReplyStrategy([_PLAN, _TITLES], array_field="titles"),
        SectionMarkerStrategy([_PLAN, _TITLES], flags=re.MULTILINE | re.IGNORECASE),
        NumberedListStrategy(_TITLES, lead_field=_PLAN),
        RawTextStrategy(_PLAN),
    ],
)

_FULL = ReplyField("full", aliases=("original", "full_text"), marker=r"^[ \t*#]*full version\b[^\n:]*:?")
_SIMPLE = ReplyField("simple", aliases=("simplified", "simple_text"), marker=r"^[ \t*#]*simpl(?:e|ified) version\b[^\n:]*:?")

ARTICLE_INTERPRETER = ResponseInterpreter(
    "article",
    [_FULL, _SIMPLE],
    [
        JSONReplyStrategy([_FULL, _SIMPLE]),
        SectionMarkerStrategy([_FULL, _SIMPLE], flags=re.MULTILINE | re.IGNORECASE),
        RawTextStrategy(_FULL),
    ],
)

_SLIDE_IDEA = ReplyField("slideIdea", aliases=("slide_idea", "slides"), marker=r"[ \t*#]*\bSLIDE[_ ]IDEAS?\b[ \t*#:]*")
_NARRATION = ReplyField("narration", aliases=("script",), marker=r"[ \t*#]*\bNARRATION\b[ \t*#:]*")

STAGE4_INTERPRETER = ResponseInterpreter(
    "stage4",
    [_SLIDE_IDEA, _NARRATION],
    [
        JSONReplyStrategy([_SLIDE_IDEA, _NARRATION]),
        SectionMarkerStrategy([_SLIDE_IDEA, _NARRATION]),
        RawTextStrategy(_SLIDE_IDEA),
    ],
)
