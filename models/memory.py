"""Report memory models.

MemoryRecord is persisted as JSON and rewritten wholesale after every
successful report. ReportContext is the read-side view handed to the
report pipeline.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from models.report import SourceRef

MEMORY_VERSION = "1.0.0"


class ReportSummary(BaseModel):
    """Condensed record of one stored report."""

    week_start: str
    date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    total_sources: int = 0
    pillars: list[str] = Field(default_factory=list)
    topics: list[str] = Field(default_factory=list)
    themes: list[str] = Field(default_factory=list)
    sources: list[SourceRef] = Field(default_factory=list)
    executive_summary: str = ""
    content_ideas_count: int = 0
    key_insights: list[str] = Field(default_factory=list)


class TopicOccurrence(BaseModel):
    """One report that covered a topic."""

    date: datetime
    week: str


class MemoryInsights(BaseModel):
    recurring_themes: list[str] = Field(default_factory=list)
    emerging_trends: list[str] = Field(default_factory=list)
    audience_reactions: list[str] = Field(default_factory=list)
    content_performance: list[str] = Field(default_factory=list)


class MemoryStatistics(BaseModel):
    """Aggregate counts across every stored report."""

    total_reports: int = 0
    total_sources: int = 0
    avg_sources_per_report: int = 0
    top_pillars: dict[str, int] = Field(default_factory=dict)
    top_domains: dict[str, int] = Field(default_factory=dict)


class MemoryRecord(BaseModel):
    """The persisted memory document.

    Invariants:
        reports holds at most 12 entries, most recent first.
        covered_topics[topic] holds at most 8 entries, oldest first.
    """

    version: str = MEMORY_VERSION
    last_update: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    reports: list[ReportSummary] = Field(default_factory=list)
    covered_topics: dict[str, list[TopicOccurrence]] = Field(default_factory=dict)
    insights: MemoryInsights = Field(default_factory=MemoryInsights)
    statistics: MemoryStatistics = Field(default_factory=MemoryStatistics)


class ReportContext(BaseModel):
    """Historical context for a new report run."""

    recent_reports: list[ReportSummary] = Field(default_factory=list)
    covered_topics: dict[str, list[TopicOccurrence]] = Field(default_factory=dict)
    insights: str = ""
    statistics: MemoryStatistics = Field(default_factory=MemoryStatistics)
    recommendations: list[str] = Field(default_factory=list)
    top_sources: list[tuple[str, int]] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "ReportContext":
        """Context used when memory cannot be loaded."""
        return cls(insights="No historical insights available yet.")

    def prompt_text(self) -> str:
        """Short text block describing recent coverage, for LLM prompts."""
        if not self.recent_reports:
            return "No previous reports."
        lines = ["Recently covered (avoid repeating without a new angle):"]
        for summary in self.recent_reports:
            topics = ", ".join(summary.topics[:5]) or "n/a"
            lines.append(f"- Week of {summary.week_start}: {topics}")
        if self.recommendations:
            lines.append("Content gaps to explore:")
            lines.extend(f"- {gap}" for gap in self.recommendations)
        return "\n".join(lines)
