from django.utils import timezone
from pydantic_ai import RunContext


def add_todays_date() -> str:
    return f"Today's Date: {timezone.now().strftime('%Y-%m-%d')}"


def valid_markdown_format() -> str:
    return """
        IMPORTANT: Generate the content in valid markdown format.
        Make sure the content is formatted correctly with:
          - headings
          - paragraphs
          - lists
          - links
    """


def filler_content() -> str:
    return """
        - Do not add content that needs to be filled in later.
        - No placeholders either. This means no:
          - Image Suggestion: [Image]
          - Link Suggestion: [Link]
          ...
      """


def add_article_details(ctx: RunContext) -> str:
    """
    Works with any deps that carry an `article` attribute (ArticleDetails).
    """
    article = ctx.deps.article
    return f"""
        Article Details:
        - Title: {article.title}
        - Main Keyword: {article.seed}
        - Why it matters: {article.rationale or "(not provided)"}
    """


def add_tone_guidance(ctx: RunContext) -> str:
    tone = ctx.deps.article.tone
    if not tone:
        return "Tone: informative and approachable, written for a general audience."
    return f"Tone: write in a {tone} tone throughout."


def add_research_notes(ctx: RunContext) -> str:
    """
    Works with any deps that carry `research_notes` (ResearchNote list).
    """
    if not ctx.deps.research_notes:
        return ""

    notes_text = "\n".join(
        f"- {note.title or note.url}: {note.summary or 'no summary'} (source: {note.url})"
        for note in ctx.deps.research_notes
    )
    return f"""
        Research notes. Ground claims in these sources and prefer them over general knowledge:
        {notes_text}
    """
