"""Ingested content models.

Article:
    A news/newsletter/Reddit item tagged with content pillars.

SocialPost:
    A creator post on TikTok, LinkedIn or Instagram with engagement metrics.

ContentCluster:
    A theme grouping several items, produced by weekly clustering.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class EngagementMetrics(BaseModel):
    """Raw engagement counters for a social post."""

    views: int = 0
    likes: int = 0
    shares: int = 0
    comments: int = 0

    @property
    def total(self) -> int:
        return self.views + self.likes + self.shares + self.comments


class Article(BaseModel):
    """A piece of ingested news content.

    Attributes:
        title: Headline
        url: Canonical link (unique in the content store)
        content: Cleaned text, tags stripped and capped at 1000 chars
        source: Source name (newsletter, subreddit, ...)
        author: Author when the source provides one
        published_date: Publication timestamp (UTC)
        pillar_tags: Pillar ids matched by keyword
        keywords: Up to 10 content words
        engagement_score: Source-specific engagement (Reddit score + comments)
    """

    title: str = Field(description="Article headline")
    url: str = Field(description="Link to the article")
    content: str = Field(default="", description="Cleaned text content")
    source: str = Field(default="", description="Source name")
    author: str = Field(default="", description="Author if known")
    published_date: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Publication timestamp (UTC)",
    )
    pillar_tags: list[str] = Field(default_factory=list, description="Matched pillar ids")
    keywords: list[str] = Field(default_factory=list, description="Extracted keywords")
    engagement_score: int = Field(default=0, description="Engagement signal, 0 if unknown")

    @property
    def text(self) -> str:
        """Title and content joined, for keyword and trend matching."""
        return f"{self.title} {self.content}".strip()

    def __str__(self) -> str:
        title_preview = self.title[:50] + "..." if len(self.title) > 50 else self.title
        return f"Article('{title_preview}', source={self.source})"


class SocialPost(BaseModel):
    """A creator post collected for competitor insights."""

    platform: str = Field(description="tiktok, linkedin or instagram")
    creator_handle: str = Field(description="Creator handle without @")
    post_id: str = Field(description="Platform post id")
    content: str = Field(default="", description="Caption or post text")
    engagement_metrics: EngagementMetrics = Field(default_factory=EngagementMetrics)
    posted_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    pillar_tags: list[str] = Field(default_factory=list)
    performance_score: int = Field(default=0, description="0-100 weighted engagement score")

    @property
    def text(self) -> str:
        return self.content

    @property
    def engagement_score(self) -> int:
        return self.performance_score


class ContentCluster(BaseModel):
    """A group of related items found in the week's content."""

    theme: str = Field(description="Short theme name")
    description: str = Field(default="", description="One sentence on what connects the items")
    pillar: str = Field(default="", description="Best matching pillar id")
    item_indices: list[int] = Field(default_factory=list, description="Indices of the items in the input list")
    keywords: list[str] = Field(default_factory=list, description="Representative keywords")


class ContentClusterList(BaseModel):
    """LLM output wrapper for content clusters."""

    clusters: list[ContentCluster] = Field(description="5-7 clusters")
