"""Pydantic models for the Content Intel weekly report pipeline.

This package contains all data models used throughout the pipeline:

Article, SocialPost:
    Ingested news items and creator posts, tagged with pillar ids.

SearchHit, QueryResult, ResearchData:
    Tavily search results grouped by pillar.

WeeklyReport:
    The assembled report (key stories, hooks, ideas, watchlist, sources).

MemoryRecord, ReportSummary, ReportContext:
    Persisted report memory and the context derived from it.

ChatReply:
    Response of the chat assistant.

Example:
    >>> from models import WeeklyReport, KeyStory
    >>> story = KeyStory(title="Pay transparency is backfiring")
"""

from models.content import Article, ContentCluster, EngagementMetrics, SocialPost
from models.research import QueryResult, ResearchData, SearchHit, count_results
from models.report import (
    ContentHooks,
    ContentIdea,
    DeliveryResult,
    Hook,
    KeyStory,
    SourceRef,
    WatchlistItem,
    WeeklyReport,
    domain_of,
)
from models.memory import (
    MemoryRecord,
    MemoryStatistics,
    ReportContext,
    ReportSummary,
    TopicOccurrence,
)
from models.chat import ChatReply, ChatSource

__all__ = [
    "Article",
    "ContentCluster",
    "EngagementMetrics",
    "SocialPost",
    "QueryResult",
    "ResearchData",
    "SearchHit",
    "count_results",
    "ContentHooks",
    "ContentIdea",
    "DeliveryResult",
    "Hook",
    "KeyStory",
    "SourceRef",
    "WatchlistItem",
    "WeeklyReport",
    "domain_of",
    "MemoryRecord",
    "MemoryStatistics",
    "ReportContext",
    "ReportSummary",
    "TopicOccurrence",
    "ChatReply",
    "ChatSource",
]
