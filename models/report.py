"""Weekly report models.

Model Hierarchy:
    WeeklyReport: The assembled report for one calendar week
        KeyStory: Synthesized narrative unit with hooks and prompts
        ContentHooks: Hooks grouped into three categories
        ContentIdea: Platform-specific idea with hooks and key points
        WatchlistItem: Keyword or theme to monitor next week
        SourceRef: Provenance link with derived domain
    DeliveryResult: Outcome of document + email delivery

KeyStory, ContentHooks, ContentIdea and WatchlistItem double as LLM output
schemas, so their field descriptions are part of the prompt contract.
"""

from datetime import date, datetime, timezone
from urllib.parse import urlparse

from pydantic import BaseModel, Field, model_validator


def domain_of(url: str) -> str:
    """Hostname of ``url`` without a leading 'www.' ('' when unparseable)."""
    try:
        host = urlparse(url or "").hostname or ""
    except ValueError:
        return ""
    return host[4:] if host.startswith("www.") else host


class SourceRef(BaseModel):
    """A research source cited by a report."""

    title: str = ""
    url: str = ""
    pillar: str = ""
    domain: str = ""

    @model_validator(mode="after")
    def _derive_domain(self) -> "SourceRef":
        if not self.domain:
            self.domain = domain_of(self.url)
        return self


class KeyStory(BaseModel):
    """A key story for the week."""

    title: str = Field(description="Compelling title that challenges an assumption")
    why_it_matters: str = Field(
        default="",
        description="3-4 sentences on the implications for the audience segments",
    )
    sources: list[str] = Field(default_factory=list, description="Credible sources backing the story")
    content_hooks: list[str] = Field(
        default_factory=list,
        description="4-5 specific content angles",
    )
    narrative_flow: str = Field(default="", description="Problem -> insight -> action progression")
    story_hook: str = Field(default="", description="Opening line for the story")
    community_question: str = Field(default="", description="Question that sparks discussion")
    macro_analysis: str = Field(default="", description="Connection to broader workplace trends")


class KeyStoryList(BaseModel):
    """LLM output wrapper for key stories."""

    stories: list[KeyStory] = Field(description="4-6 key stories")


class Hook(BaseModel):
    """A content hook with the reasoning behind it."""

    hook: str = Field(description="The opening line")
    reasoning: str = Field(default="", description="Why this hook works")


class ContentHooks(BaseModel):
    """Hooks grouped by category (3 / 3 / 4)."""

    challenge_assumptions: list[Hook] = Field(
        default_factory=list, description="3 hooks that challenge assumptions"
    )
    data_backed_claims: list[Hook] = Field(
        default_factory=list, description="3 hooks built on data"
    )
    strategic_insights: list[Hook] = Field(
        default_factory=list, description="4 strategic insight hooks"
    )

    def all(self) -> list[Hook]:
        return self.challenge_assumptions + self.data_backed_claims + self.strategic_insights

    @property
    def count(self) -> int:
        return len(self.all())


class ContentIdea(BaseModel):
    """A platform-specific content idea."""

    title: str = Field(description="Hook-worthy title")
    platform: str = Field(description="tiktok, linkedin or instagram")
    format: str = Field(default="", description="Platform format, e.g. carousel or talking head")
    hooks: list[str] = Field(default_factory=list, description="3 hook options")
    key_points: list[str] = Field(default_factory=list, description="Points to cover")
    rationale: str = Field(default="", description="Why this idea, why now")
    pillar: str = Field(default="", description="Content pillar display name")
    source_theme: str = Field(default="", description="Key story or theme that inspired it")
    audience_segment: str = Field(default="", description="Primary audience segment")
    source_links: list[str] = Field(default_factory=list, description="Research URLs")
    engagement_potential: int = Field(default=50, description="0-100 estimate")


class ContentIdeaList(BaseModel):
    """LLM output wrapper for content ideas."""

    ideas: list[ContentIdea] = Field(description="10-15 content ideas")


class WatchlistItem(BaseModel):
    """A keyword or theme to keep monitoring."""

    keyword: str = Field(description="Topic, trend, person or policy to monitor")
    reason: str = Field(default="", description="Monitoring rationale")
    mentions: int = Field(default=0, description="Mentions this week, 0 if unknown")


class WatchlistList(BaseModel):
    """LLM output wrapper for the watchlist."""

    items: list[WatchlistItem] = Field(description="8-12 monitoring targets")


class WeeklyReport(BaseModel):
    """The assembled weekly report.

    Created once per run and treated as read-only once formatted; the
    memory store, delivery and archive all receive the same instance.
    """

    week_start: date
    week_end: date
    executive_summary: str = ""
    analysis: str = Field(default="", description="Research synthesis text")
    key_stories: list[KeyStory] = Field(default_factory=list)
    content_hooks: ContentHooks = Field(default_factory=ContentHooks)
    content_ideas: list[ContentIdea] = Field(default_factory=list)
    watchlist: list[WatchlistItem] = Field(default_factory=list)
    sources: list[SourceRef] = Field(default_factory=list)
    pillars: list[str] = Field(default_factory=list, description="Pillars with research results")
    themes: list[str] = Field(default_factory=list, description="Key themes (story titles)")
    fallbacks_used: list[str] = Field(default_factory=list, description="Stages that used fallbacks")
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total_sources(self) -> int:
        return len(self.sources)

    def __str__(self) -> str:
        return (
            f"WeeklyReport(week={self.week_start.isoformat()}, stories={len(self.key_stories)}, "
            f"ideas={len(self.content_ideas)}, sources={len(self.sources)})"
        )


class DeliveryResult(BaseModel):
    """Where the report ended up."""

    document_id: str | None = None
    document_url: str | None = None
    email_sent: bool = False
