import asyncio
import re
import uuid

import markdown
from django.utils import timezone
from pydantic_ai import capture_run_messages

from roundforge.utils import get_roundforge_logger

logger = get_roundforge_logger(__name__)

TOPIC_DELIMITERS = re.compile(r",|;|\||/| - ")
SENTENCE_PUNCTUATION = re.compile(r"[.?!]")
CONJUNCTIONS = re.compile(r"\b(and|or|but|because)\b", re.IGNORECASE)


def generate_pipeline_id() -> str:
    """Date-prefixed run id, e.g. '2024-10-27-a4e9c1f0'."""
    return f"{timezone.now():%Y-%m-%d}-{uuid.uuid4().hex[:8]}"


def run_agent_synchronously(agent, input_string, deps=None, function_name="", model_name=""):
    """
    Run a PydanticAI agent synchronously.

    Args:
        agent: The PydanticAI agent to run
        input_string: The input string to pass to the agent
        deps: Optional dependencies to pass to the agent

    Returns:
        The result of the agent run

    Raises:
        Whatever the agent raised; callers decide how to classify it.
    """
    try:
        loop = asyncio.get_event_loop()
    except RuntimeError:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)

    with capture_run_messages() as messages:
        try:
            logger.info(
                "[Run Agent Synchronously] Running agent",
                input_string=input_string,
                function_name=function_name,
                model_name=model_name,
            )
            if deps is not None:
                result = loop.run_until_complete(agent.run(input_string, deps=deps))
            else:
                result = loop.run_until_complete(agent.run(input_string))

            logger.info(
                "[Run Agent Synchronously] Agent run successfully",
                input_string=input_string,
                function_name=function_name,
                model_name=model_name,
            )
            return result
        except Exception as e:
            logger.error(
                "[Run Agent Synchronously] Failed execution",
                messages=messages,
                exc_info=True,
                error=str(e),
                function_name=function_name,
                model_name=model_name,
            )
            raise


def normalize_topic(topic: str) -> str:
    """Lowercase, strip punctuation and collapse whitespace."""
    normalized = re.sub(r"[^\w\s]", "", topic.lower().strip())
    return re.sub(r"\s+", " ", normalized).strip()


def normalize_topic_list(suggestions: list[dict]) -> list[dict]:
    seen = set()
    cleaned = []
    for suggestion in suggestions:
        normalized = normalize_topic(suggestion["topic"])
        if len(normalized) > 1 and normalized not in seen:
            seen.add(normalized)
            cleaned.append({"topic": normalized, "score": suggestion["score"]})
    return cleaned


def sanitize_topics(topics: list[str], max_chars: int = 100, max_words: int = 25) -> list[str]:
    """
    Keep topics usable as search queries:
    - drop sentence-like, long or conjunction-joined topics
    - split multi-concept topics on common delimiters
    - dedupe, lowercased, first occurrence wins
    """
    filtered_topics = [
        topic
        for topic in (t.strip() for t in topics)
        if topic
        and len(topic) <= max_chars
        and len(topic.split()) <= max_words
        and not SENTENCE_PUNCTUATION.search(topic)
        and not CONJUNCTIONS.search(topic)
    ]

    split_topics = [
        part.strip()
        for topic in filtered_topics
        for part in TOPIC_DELIMITERS.split(topic)
        if part.strip()
    ]

    return list(dict.fromkeys(topic.lower() for topic in split_topics if len(topic) <= max_chars))


def count_syllables(word: str) -> int:
    word = word.lower()
    groups = re.findall(r"[aeiouy]+", word)
    count = len(groups)
    if word.endswith("e") and count > 1 and not word.endswith("le"):
        count -= 1
    return max(count, 1)


def flesch_kincaid_grade(text: str) -> float | None:
    # Markdown headings and list markers would skew sentence counts.
    plain_text = re.sub(r"^[#>*\-\s]+", "", text, flags=re.MULTILINE)
    sentences = [s for s in re.split(r"[.!?]+", plain_text) if s.strip()]
    words = re.findall(r"[A-Za-z']+", plain_text)
    if not sentences or not words:
        return None

    syllables = sum(count_syllables(word) for word in words)
    grade = 0.39 * (len(words) / len(sentences)) + 11.8 * (syllables / len(words)) - 15.59
    return round(grade, 1)


def grade_label_from_fk(grade: float | None) -> str:
    if grade is None:
        return "unknown"
    if grade <= 5:
        return "Elementary"
    if grade <= 8:
        return "Middle School"
    if grade <= 12:
        return "High School"
    if grade <= 16:
        return "College"
    return "Advanced"


def markdown_to_html(markdown_content: str) -> str:
    if not markdown_content:
        return ""
    return markdown.markdown(markdown_content, extensions=["extra", "nl2br"])


def estimate_reading_time(text: str, words_per_minute: int = 225) -> str:
    minutes = max(1, round(len(text.split()) / words_per_minute))
    return f"{minutes} min read"
