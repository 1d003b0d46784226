"""Report memory: rolling history of past weekly reports.

The memory keeps a small JSON document of recent report summaries, the
weeks each tracked topic was covered, and aggregate statistics. After every
stored report a markdown insights digest is regenerated from it. The
pipeline reads it at the start of a run to avoid repeating topics.

Bounds:
    - At most 12 report summaries, most recent first
    - At most 8 occurrences per covered topic, oldest first

Failure semantics:
    - A missing or unreadable memory file is replaced with an empty record
    - Write failures propagate; the pipeline logs them and carries on

The store assumes a single writer. Concurrent runs are last-writer-wins.
"""

import json
import logging
import re
from datetime import datetime, time, timedelta, timezone
from pathlib import Path

from pydantic import ValidationError

from models.memory import (
    MemoryRecord,
    ReportContext,
    ReportSummary,
    TopicOccurrence,
)
from models.report import WeeklyReport
from pillars import all_pillar_names

logger = logging.getLogger(__name__)

MAX_REPORTS = 12
MAX_TOPIC_OCCURRENCES = 8
CONTEXT_REPORTS = 4
GAP_THRESHOLD = 0.15

# Research keys that are not content pillars
NON_PILLAR_KEYS = frozenset({"Trending", "Legacy"})

TOPIC_KEYWORDS = [
    "salary negotiation", "career pivot", "linkedin", "personal branding",
    "remote work", "hybrid work", "ai skills", "upskilling", "burnout",
    "workplace culture", "pay transparency", "job search", "networking",
    "leadership", "promotion", "career development", "work-life balance",
]

THEME_PATTERNS = {
    "AI Transformation": ["ai", "artificial intelligence", "automation", "machine learning"],
    "Future of Work": ["remote work", "hybrid work", "workplace trends", "future of work"],
    "Career Development": ["career growth", "promotion", "skill development", "upskilling"],
    "Workplace Rights": ["pay transparency", "employee rights", "workplace advocacy"],
    "Work-Life Balance": ["burnout", "work-life balance", "wellness", "sustainable work"],
}

INSIGHT_PATTERNS = [
    re.compile(r"key insights?[:\s][^.]*\.\s", re.IGNORECASE),
    re.compile(r"importantly?[:\s][^.]*\.\s", re.IGNORECASE),
    re.compile(r"trends?[:\s][^.]*\.\s", re.IGNORECASE),
    re.compile(r"opportunity[:\s][^.]*\.\s", re.IGNORECASE),
]

STATIC_GAPS = [
    "Explore international workplace trends",
    "Focus on Gen Z career perspectives",
    "Cover more startup vs corporate career paths",
    "Address career transitions post-40",
]

FRESH_TOPICS = [
    "AI career skills", "salary negotiation 2025", "remote work evolution",
    "personal branding trends", "workplace culture shifts", "career pivot strategies",
]

_IDEA_MARKER = re.compile(r"^\s*\d+\.", re.MULTILINE)
_THEME_WORD_CACHE: dict[str, re.Pattern] = {}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _contains_phrase(text: str, phrase: str) -> bool:
    """Case-insensitive phrase match on word boundaries."""
    pattern = _THEME_WORD_CACHE.get(phrase)
    if pattern is None:
        pattern = re.compile(rf"\b{re.escape(phrase)}\b", re.IGNORECASE)
        _THEME_WORD_CACHE[phrase] = pattern
    return pattern.search(text) is not None


def extract_topics(text: str) -> list[str]:
    """Tracked topic keywords mentioned in ``text``."""
    lowered = text.lower()
    return [topic for topic in TOPIC_KEYWORDS if topic in lowered]


def extract_themes(text: str) -> list[str]:
    """Named themes with at least one pattern in ``text``.

    Patterns match on word boundaries so that 'ai' does not fire on 'said'.
    """
    return [
        name
        for name, patterns in THEME_PATTERNS.items()
        if any(_contains_phrase(text, p) for p in patterns)
    ]


def extract_key_insights(text: str, limit: int = 5) -> list[str]:
    """Sentences introduced by insight phrases, at most 3 per phrase."""
    insights: list[str] = []
    for pattern in INSIGHT_PATTERNS:
        matches = [m.group(0).strip() for m in pattern.finditer(text)]
        insights.extend(matches[:3])
    return insights[:limit]


def count_content_ideas(text: str) -> int:
    """Count numbered list lines in the formatted report."""
    return len(_IDEA_MARKER.findall(text))


def report_pillars(report: WeeklyReport) -> list[str]:
    """Distinct pillars represented by a report, in first-seen order."""
    pillars: list[str] = []
    for name in list(report.pillars) + [s.pillar for s in report.sources]:
        if name and name not in NON_PILLAR_KEYS and name not in pillars:
            pillars.append(name)
    return pillars


def report_domains(report: WeeklyReport) -> list[str]:
    """Distinct source domains of a report, in first-seen order."""
    domains: list[str] = []
    for source in report.sources:
        if source.domain and source.domain not in domains:
            domains.append(source.domain)
    return domains


def identify_content_gaps(record: MemoryRecord) -> list[str]:
    """Recommend under-covered pillars plus standing suggestions.

    A pillar is a gap when it appears in fewer than 15% of stored reports;
    with no reports every pillar is a gap.
    """
    total = record.statistics.total_reports
    under_covered = [
        pillar
        for pillar in all_pillar_names()
        if total == 0 or record.statistics.top_pillars.get(pillar, 0) < total * GAP_THRESHOLD
    ]
    gaps = [f'Increase coverage of "{pillar}"' for pillar in under_covered] + STATIC_GAPS
    return gaps[:5]


def _top(counts: dict[str, int], n: int) -> list[tuple[str, int]]:
    return sorted(counts.items(), key=lambda kv: kv[1], reverse=True)[:n]


def render_insights_markdown(record: MemoryRecord, now: datetime | None = None) -> str:
    """Render the cumulative insights digest for a memory record."""
    now = now or _utcnow()
    stats = record.statistics
    frequent = sorted(
        ((topic, len(occ)) for topic, occ in record.covered_topics.items()),
        key=lambda kv: kv[1],
        reverse=True,
    )[:10]
    recent_themes: list[str] = []
    for summary in record.reports[:CONTEXT_REPORTS]:
        for theme in summary.themes:
            if theme not in recent_themes:
                recent_themes.append(theme)

    def bullets(items: list[str], empty: str) -> list[str]:
        return [f"- {item}" for item in items] if items else [f"- *{empty}*"]

    lines = [
        "# Cumulative Intelligence Insights",
        "",
        f"*Patterns, themes and insights across {stats.total_reports} weekly reports*",
        "",
        "## Key Patterns",
        "",
        "### Recent Recurring Themes (Last 4 Weeks)",
        *bullets(recent_themes, "No themes yet"),
        "",
        "### Most Covered Content Pillars",
        *bullets([f"**{p}**: {n} reports" for p, n in _top(stats.top_pillars, 5)], "No pillar data yet"),
        "",
        "### Frequently Covered Topics",
        *bullets([f"**{t}**: {n} times" for t, n in frequent], "No topics tracked yet"),
        "",
        "### Most Valuable Sources",
        *bullets([f"**{d}**: {n} reports" for d, n in _top(stats.top_domains, 10)], "No sources yet"),
        "",
        "---",
        "",
        "## Historical Coverage",
        "",
        f"- **Total Reports Generated**: {stats.total_reports}",
        f"- **Total Sources Analyzed**: {stats.total_sources}",
        f"- **Average Sources per Report**: {stats.avg_sources_per_report}",
        "",
        "### Coverage Patterns",
        *bullets(
            [f"**{topic}**: Last covered {occ[-1].week}" for topic, occ in list(record.covered_topics.items())[:10] if occ],
            "No patterns identified yet",
        ),
        "",
        "---",
        "",
        "## Strategic Recommendations",
        "",
        "### Content Gaps to Explore",
        *bullets(identify_content_gaps(record), "No gaps identified"),
        "",
        "### Avoid Over-Coverage",
        *bullets([f"**{t}** (recently covered frequently)" for t, _ in frequent[:3]], "Nothing over-covered yet"),
        "",
        "### Trending Opportunities",
        *bullets([f"Build on **{theme}** momentum" for theme in recent_themes[:3]], "No momentum data yet"),
        "",
        "---",
        "",
        "## Recent Report Summaries",
        "",
    ]
    for summary in record.reports[:3]:
        lines.extend([
            f"### Week of {summary.week_start}",
            f"- **Sources**: {summary.total_sources}",
            f"- **Topics**: {', '.join(summary.topics[:5]) or 'n/a'}",
            f"- **Key Insight**: {summary.key_insights[0] if summary.key_insights else 'N/A'}",
            "",
        ])
    lines.extend([
        "---",
        "",
        f"*Last Updated: {now.strftime('%b %d, %Y at %H:%M UTC')}*",
        f"*Memory System Version: {record.version}*",
    ])
    return "\n".join(lines) + "\n"


class ReportMemory:
    """File-backed report memory.

    Example:
        >>> memory = ReportMemory(Path("data/report-memory.json"), Path("data/cumulative-insights.md"))
        >>> context = memory.get_report_context()
        >>> memory.store_report(report, markdown)
    """

    def __init__(self, memory_file: Path | str, insights_file: Path | str):
        self.memory_file = Path(memory_file)
        self.insights_file = Path(insights_file)

    def initialize(self) -> None:
        """Create the memory and insights files if they don't exist."""
        self.memory_file.parent.mkdir(parents=True, exist_ok=True)
        self.insights_file.parent.mkdir(parents=True, exist_ok=True)
        if not self.memory_file.exists():
            self._reset()
        if not self.insights_file.exists():
            self.insights_file.write_text(render_insights_markdown(MemoryRecord()), encoding="utf-8")
            logger.info("Insights file initialized | path=%s", self.insights_file)

    def _reset(self) -> MemoryRecord:
        record = MemoryRecord()
        self.save(record)
        logger.info("Memory file initialized | path=%s", self.memory_file)
        return record

    def load(self) -> MemoryRecord:
        """Load the memory record, re-initializing it when missing or corrupt."""
        try:
            raw = self.memory_file.read_text(encoding="utf-8")
            return MemoryRecord.model_validate_json(raw)
        except FileNotFoundError:
            logger.info("Memory file missing, initializing | path=%s", self.memory_file)
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(
                "Could not load memory file, initializing new one | path=%s error=%s",
                self.memory_file, e,
            )
        return self._reset()

    def save(self, record: MemoryRecord) -> None:
        """Rewrite the memory file with ``record``."""
        self.memory_file.parent.mkdir(parents=True, exist_ok=True)
        payload = record.model_dump(mode="json")
        tmp = self.memory_file.with_suffix(self.memory_file.suffix + ".tmp")
        tmp.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        tmp.replace(self.memory_file)

    def load_insights(self) -> str:
        """Read the insights digest, or a placeholder when it doesn't exist."""
        try:
            return self.insights_file.read_text(encoding="utf-8")
        except OSError:
            logger.warning("Could not load insights file | path=%s", self.insights_file)
            return "No historical insights available yet."

    def get_report_context(self) -> ReportContext:
        """Historical context for the next report."""
        record = self.load()
        return ReportContext(
            recent_reports=record.reports[:CONTEXT_REPORTS],
            covered_topics=record.covered_topics,
            insights=self.load_insights(),
            statistics=record.statistics,
            recommendations=identify_content_gaps(record),
            top_sources=_top(record.statistics.top_domains, 10),
        )

    def summarize(self, report: WeeklyReport, formatted_text: str, now: datetime | None = None) -> ReportSummary:
        """Build the ReportSummary stored for ``report``."""
        return ReportSummary(
            week_start=report.week_start.isoformat(),
            date=now or _utcnow(),
            total_sources=report.total_sources,
            pillars=report_pillars(report),
            topics=extract_topics(formatted_text),
            themes=extract_themes(formatted_text),
            sources=report.sources[:10],
            executive_summary=report.executive_summary[:500],
            content_ideas_count=count_content_ideas(formatted_text),
            key_insights=extract_key_insights(formatted_text),
        )

    def store_report(
        self,
        report: WeeklyReport,
        formatted_text: str,
        now: datetime | None = None,
    ) -> ReportSummary:
        """Record a delivered report and regenerate the insights digest.

        Args:
            report: The delivered report
            formatted_text: The markdown that was delivered
            now: Override for the storage timestamp

        Returns:
            The stored ReportSummary
        """
        now = now or _utcnow()
        record = self.load()
        summary = self.summarize(report, formatted_text, now=now)

        record.reports.insert(0, summary)
        del record.reports[MAX_REPORTS:]

        for topic in summary.topics:
            occurrences = record.covered_topics.setdefault(topic, [])
            occurrences.append(TopicOccurrence(date=summary.date, week=summary.week_start))
            del occurrences[:-MAX_TOPIC_OCCURRENCES]

        stats = record.statistics
        stats.total_reports += 1
        stats.total_sources += summary.total_sources
        stats.avg_sources_per_report = round(stats.total_sources / stats.total_reports)
        for pillar in summary.pillars:
            stats.top_pillars[pillar] = stats.top_pillars.get(pillar, 0) + 1
        for domain in report_domains(report):
            stats.top_domains[domain] = stats.top_domains.get(domain, 0) + 1

        record.last_update = now
        self.save(record)
        self.insights_file.parent.mkdir(parents=True, exist_ok=True)
        self.insights_file.write_text(render_insights_markdown(record, now), encoding="utf-8")

        logger.info(
            "Report stored in memory | week=%s topics=%d reports=%d",
            summary.week_start, len(summary.topics), len(record.reports),
        )
        return summary

    def was_recently_covered(
        self,
        topic: str,
        within_weeks: int = 2,
        now: datetime | None = None,
    ) -> bool:
        """True if ``topic`` was covered on or after the day ``within_weeks`` weeks ago."""
        now = now or _utcnow()
        cutoff_day = (now - timedelta(weeks=within_weeks)).astimezone(timezone.utc).date()
        cutoff = datetime.combine(cutoff_day, time.min, tzinfo=timezone.utc)
        occurrences = self.load().covered_topics.get(topic, [])
        return any(occ.date >= cutoff for occ in occurrences)

    def fresh_topic_opportunities(self, now: datetime | None = None) -> list[str]:
        """Topics not covered in the last 3 weeks plus untouched fresh topics."""
        now = now or _utcnow()
        cutoff = now - timedelta(weeks=3)
        record = self.load()
        stale = [
            topic
            for topic, occ in record.covered_topics.items()
            if occ and occ[-1].date < cutoff
        ]
        fresh = [t for t in FRESH_TOPICS if t not in record.covered_topics]
        return (stale + fresh)[:10]
