"""Research models for Tavily search results.

Research data flows through the report pipeline as a mapping from pillar
display name (plus 'Trending' and 'Legacy') to the list of QueryResults
gathered for it. Search hits keep only the fields the pipeline reads;
everything else the API returns is ignored.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class SearchHit(BaseModel):
    """A single search result."""

    model_config = ConfigDict(extra="ignore")

    title: str = Field(default="", description="Result title")
    url: str = Field(default="", description="Result URL")
    content: str = Field(default="", description="Snippet or extracted content")
    score: float | None = Field(default=None, description="Relevance score from the API")
    published_date: str | None = Field(default=None, description="Publication date if known")


class QueryResult(BaseModel):
    """Results for one search query.

    Attributes:
        query: The query text
        pillar: Pillar display name, or 'Trending' for trend queries
        results: Search hits in API order
        answer: Short AI answer when the API returns one
        search_depth: 'basic' or 'advanced'
        searched_at: When the query ran (UTC)
    """

    query: str
    pillar: str = ""
    results: list[SearchHit] = Field(default_factory=list)
    answer: str | None = None
    search_depth: str = "advanced"
    searched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


ResearchData = dict[str, list[QueryResult]]


def count_results(research: ResearchData) -> int:
    """Total number of search hits across every category."""
    return sum(len(q.results) for queries in research.values() for q in queries)
