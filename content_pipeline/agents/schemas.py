from pydantic import BaseModel, Field

from content_pipeline.schemas import ImagePrompt, Reference, ResearchNote, UsedImage


class ArticleDetails(BaseModel):
    title: str
    seed: str
    rationale: str = ""
    tone: str | None = None


class IdeationContext(BaseModel):
    candidate_topics: list[str] = Field(default_factory=list)
    seed_prompt: str | None = None


class GeneratedIdea(BaseModel):
    title: str = Field(description="Compelling, specific article title")
    rationale: str = Field(description="Why this idea is timely and worth writing about")
    seed: str = Field(description="The main keyword the article targets")
    topic: str = Field(description="The candidate topic the idea was built from, verbatim")
    source_url: str | None = Field(
        default=None, description="Most relevant source URL, if one was used"
    )
    references: list[Reference] = Field(default_factory=list)


class OutlineContext(BaseModel):
    article: ArticleDetails
    references: list[Reference] = Field(default_factory=list)


class SectionWritingContext(BaseModel):
    article: ArticleDetails
    outline_headings: list[str] = Field(default_factory=list)
    heading: str
    bullets: list[str] = Field(default_factory=list)
    est_words: int = 200
    previous_headings: list[str] = Field(default_factory=list)
    research_notes: list[ResearchNote] = Field(default_factory=list)


class GeneratedSectionContent(BaseModel):
    content: str = Field(
        description="Markdown body of the section, without the section heading itself"
    )


class DraftSectionText(BaseModel):
    heading: str
    content: str


class DraftAssemblyContext(BaseModel):
    article: ArticleDetails
    sections: list[DraftSectionText] = Field(default_factory=list)
    research_notes: list[ResearchNote] = Field(default_factory=list)


class AssembledDraft(BaseModel):
    title: str
    subtitle: str | None = None
    description: str | None = Field(
        default=None, description="One or two sentence summary of the article"
    )
    full_draft: str = Field(description="The complete article in Markdown")


class MetadataContext(BaseModel):
    article: ArticleDetails
    draft_excerpt: str
    existing_tags: list[str] = Field(default_factory=list)
    existing_categories: list[str] = Field(default_factory=list)


class PolishContext(BaseModel):
    article: ArticleDetails
    seo_keywords: list[str] = Field(default_factory=list)
    featured_image: ImagePrompt | None = None
    additional_images: list[ImagePrompt] = Field(default_factory=list)


class PolishedArticle(BaseModel):
    polished_blog: str = Field(description="The polished article in Markdown")
    used_images: list[UsedImage] = Field(default_factory=list)
    fk_grade: float | None = Field(
        default=None, description="Estimated Flesch-Kincaid grade of the polished article"
    )
