# prompt builders: turn validated request fields into chat messages
from typing import List, Dict, Optional, Sequence

# sampling temperatures per task: low for explanation, higher for creative titles
EXPLAIN_TEMPERATURE = 0.2
RESEARCH_QUESTIONS_TEMPERATURE = 0.7
ARTICLE_PLAN_TEMPERATURE = 0.7
ARTICLE_TEMPERATURE = 0.4
STAGE4_TEMPERATURE = 0.3

# article texts shorter than this are treated as absent
MIN_ARTICLE_TEXT_LENGTH = 40

Messages = List[Dict[str, str]]


def _keywords_or_none(keywords: Optional[str]) -> str:
    keywords = (keywords or "").strip()
    return keywords if keywords else "none"


def build_explain_messages(text: str) -> Messages:
    """Simple English paraphrase + Japanese translation for a word or sentence"""
    return [
        {
            "role": "system",
            "content": (
                "You are a helpful English tutor for Japanese students (CEFR B1). "
                "Given an English word/phrase/sentence, return (1) a very simple English paraphrase "
                "and (2) a natural Japanese translation. Keep both short and clear."
            ),
        },
        {
            "role": "user",
            "content": (
                f'Text: "{text}"\n\n'
                "Return ONLY this JSON format:\n"
                '{"en":"simple paraphrase in easy English","ja":"natural Japanese translation"}'
            ),
        },
    ]


def build_research_questions_messages(topic: str, keywords: Optional[str] = None) -> Messages:
    return [
        {
            "role": "system",
            "content": (
                "You are a helpful research advisor for first-year university students. "
                "Their English level is around CEFR B1. "
                "You only create simple research questions."
            ),
        },
        {
            "role": "user",
            "content": (
                f'Student research topic (short phrase): "{topic}".\n'
                f'Student keywords: "{_keywords_or_none(keywords)}".\n\n'
                "Please suggest 5 possible research questions.\n"
                "- Use simple English (B1-B2 level).\n"
                "- Each question should be clear and different.\n"
                "- Questions should be about the topic as a whole, not tiny details.\n\n"
                "Return ONLY this JSON format:\n"
                '{"questions": ["Question 1", "Question 2", "Question 3", "Question 4", "Question 5"]}'
            ),
        },
    ]


def build_article_plan_messages(topic: str, research_topic: str, keywords: Optional[str] = None) -> Messages:
    return [
        {
            "role": "system",
            "content": (
                "You are a research advisor for first-year university students. "
                "Their English level is around CEFR B1. "
                "You create a short research plan and 10 possible article titles."
            ),
        },
        {
            "role": "user",
            "content": (
                f'Student\'s final research question: "{research_topic}".\n'
                f'Short topic title: "{topic}".\n'
                f'Keywords: "{_keywords_or_none(keywords)}".\n\n'
                "First, write ONE short paragraph (3-4 sentences) that explains the student's research plan.\n"
                "- Use simple English (CEFR B1).\n"
                "- Explain what aspects they will look at.\n"
                "- Do NOT mention AI.\n\n"
                "Second, make a list of 10 possible article titles the student could read.\n"
                "- Use simple English (B1-B2).\n"
                "- Each title should be clear and specific.\n"
                "- The 10 titles together should cover ALL important areas suggested by the keywords and question.\n"
                "- Do NOT write explanations, only titles.\n\n"
                "Return ONLY this JSON format:\n"
                '{"research_plan": "short paragraph here", '
                '"titles": ["Title 1", "Title 2", "Title 3", "Title 4", "Title 5", '
                '"Title 6", "Title 7", "Title 8", "Title 9", "Title 10"]}'
            ),
        },
    ]


def build_article_messages(title: str, research_topic: str) -> Messages:
    """Full (B1-B2) and simplified (A2) versions of the same short article"""
    system_prompt = f"""You are a professional article writer for first-year Japanese university students.

You must write TWO short factual non-fiction articles about the SAME topic:

1) FULL VERSION (CEFR B1-B2)
2) SIMPLIFIED VERSION (CEFR A2)

TOPIC INFORMATION:
- Overall research topic: {research_topic}
- Article title: "{title}"

REQUIREMENTS FOR FULL VERSION:
- 2 paragraphs
- Put ONE blank line between the paragraphs
- Indent the FIRST LINE of EACH paragraph with TWO spaces
- About 170-210 words in total
- Clear topic sentence in each paragraph
- Short, readable sentences (no very long sentences)

REQUIREMENTS FOR SIMPLIFIED VERSION:
- 2 paragraphs
- Put ONE blank line between the paragraphs
- About 110-140 words in total
- Easier vocabulary and grammar than the full version
- Very clear, short sentences

GENERAL RULES:
- Non-fiction only. Use general, widely known facts.
- No fantasy, no invented statistics or fake names.
- Do NOT talk about AI or yourself.
- Do NOT use bullet points or headings.

Return ONLY valid JSON in this exact format:

{{
  "full": "full article text...",
  "simple": "simplified article text..."
}}"""

    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": f'Write both versions for the article titled "{title}".'},
    ]


def _numbered_titles(titles: Sequence[str]) -> str:
    lines = [f"{i}. {t}" for i, t in enumerate(titles, start=1)]
    return "\n".join(lines) or "(No titles provided.)"


def build_stage4_messages(
    topic_title: str = "",
    research_question: str = "",
    article_titles: Sequence[str] = (),
    key_findings: str = "",
    summaries: str = "",
    glossary: str = "",
    articles: str = "",
) -> Messages:
    """Six-slide plan and narration, answered as SLIDE_IDEA / NARRATION blocks"""
    has_articles = len((articles or "").strip()) > MIN_ARTICLE_TEXT_LENGTH

    prompt = f"""You are helping a Japanese first-year university student create a SHORT English presentation (6 slides).
The student will paste your output into a slide tool.

ABSOLUTE OUTPUT RULE (MUST FOLLOW):
- Output MUST be exactly TWO blocks in this order, with these exact headers on their own lines:
SLIDE_IDEA
NARRATION
- Do NOT output anything else.
- Do NOT ask questions.
- Do NOT request more information.

STYLE:
- English level: CEFR B1-B2.
- Clear, simple sentences.
- Each slide: 3-6 bullets max.
- Each slide MUST include one bullet that begins exactly: "Image idea: ..."

FACT SAFETY RULES:
- Use ONLY the provided information (articles + student notes). Do NOT invent facts, numbers, laws, or organizations.
- If articles disagree, write safely: "Some articles suggest..., while others say..."
- If something is unknown, write a general, safe line without adding new facts.

GOAL:
- Even if student notes are empty, you MUST still create a strong slide plan by extracting repeated points/patterns from the ARTICLE TEXTS.

TOPIC:
- Topic title: {topic_title or "(Topic title)"}
- Research question: {research_question or "(Research question)"}

ARTICLE TITLES (reference only):
{_numbered_titles(article_titles)}

STUDENT NOTES (may be empty):
[Key Findings]
{key_findings}

[Summaries]
{summaries}

[Glossary]
{glossary}

ARTICLE TEXTS (MAIN EVIDENCE):
{articles if has_articles else "(No article texts provided.)"}

Now produce EXACTLY:

SLIDE_IDEA
Slide 1: Title
- Topic + research question + presenter line
- Image idea: (professional, no text)

Slide 2: Background / What the issue is
- Define the issue using only the texts
- Image idea: (simple icons, no text)

Slide 3: Key findings from the articles (3-5)
- Synthesize repeated points across articles (not one-article summaries)
- Image idea: (infographic style, no text)

Slide 4: Comparison
- Use a clear comparison structure based only on texts
- Image idea: (two-column comparison visual, no text)

Slide 5: Consideration / Interpretation (student voice)
- Careful interpretation without new facts
- One "what this suggests" message
- Image idea: (thinking / analysis theme, no text)

Slide 6: Conclusion + one question
- Short conclusion
- One question to audience
- Image idea: (closing / thank you mood, no text)

NARRATION
Slide 1 narration: 2-4 short sentences.
Slide 2 narration: 2-4 short sentences.
Slide 3 narration: 2-4 short sentences.
Slide 4 narration: 2-4 short sentences.
Slide 5 narration: 2-4 short sentences.
Slide 6 narration: 2-4 short sentences."""

    return [
        {
            "role": "system",
            "content": (
                "You create slide plans and narration. You NEVER ask questions and you ALWAYS "
                "follow the required two-block output format exactly."
            ),
        },
        {"role": "user", "content": prompt},
    ]
