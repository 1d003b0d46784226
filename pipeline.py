"""Weekly report orchestration.

This module runs the weekly content intelligence report:

Pipeline Flow:
    1. WEEK: Resolve the Monday on/before the target date
    2. MEMORY: Load historical context (soft: empty context)
    3. RESEARCH: Search every pillar via Tavily (fatal)
    4. ARCHIVE: Save raw research (soft)
    5. TRENDING: Search trending topics (soft: [])
    6. MERGE: Pillars + 'Trending' + empty 'Legacy' into one mapping
    7. STRATEGY: Load the brand strategy document (soft: default sentence)
    8. ANALYZE: synthesis -> key stories -> hooks -> summary -> ideas -> watchlist,
       each bounded by STAGE_TIMEOUT_SECONDS and replaced by its fallback on
       failure (STRICT_SYNTHESIS=true makes these fatal instead)
    9. ASSEMBLE: Build the WeeklyReport
    10. FORMAT: Render markdown
    11. DELIVER: Save local files, publish the Google Doc and email (fatal)
    12. STORE: Memory, database rows, archive payload, Slack summary (soft)

Stages run strictly in order; only the research searches fan out.
"""

import asyncio
import logging
import sqlite3
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, TypeVar
from zoneinfo import ZoneInfo

from agents.analysis import (
    FALLBACK_EXECUTIVE_SUMMARY,
    FALLBACK_SYNTHESIS,
    AnalysisAgents,
    extract_top_research_items,
    fallback_content_hooks,
    fallback_key_stories,
)
from agents.ideas import IdeaAgents, enhance_ideas_with_sources, fallback_ideas, fallback_watchlist
from agents.themes import count_trending_words
from archive import ResearchArchive
from config import Config
from database import Database
from delivery import ReportDelivery
from memory.report_memory import NON_PILLAR_KEYS, ReportMemory
from models.memory import ReportContext
from models.report import SourceRef, WeeklyReport
from models.research import ResearchData, count_results
from notifications import SlackNotifier, save_report_files
from observability.logging import clear_context, set_run_context, set_stage
from observability.tracing import trace_operation
from tools.search import SearchError, TavilyClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

HEARTBEAT_SECONDS = 10
SOURCE_LIMIT = 40
DEFAULT_AVG_ENGAGEMENT = 50.0
PLATFORM_LABELS = {"tiktok": "TikTok", "linkedin": "LinkedIn", "instagram": "Instagram"}
DEFAULT_STRATEGY = (
    "Career content strategy focused on authentic, anti-corporate advice that helps ambitious "
    "professionals own their career growth."
)


class StageError(Exception):
    """A report stage failed and the run cannot continue."""

    def __init__(self, stage: str, message: str):
        super().__init__(f"{stage} stage failed: {message}")
        self.stage = stage


@dataclass
class ReportStats:
    """Counts and timings from a single report run.

    Attributes:
        research_queries: Pillar queries that returned results
        research_results: Search hits across all pillars
        trending_results: Search hits from trending queries
        key_stories: Stories in the final report
        ideas: Content ideas in the final report
        watchlist: Watchlist items in the final report
        fallbacks: Number of analysis stages that used a fallback
        duration: Total run time in seconds
    """

    research_queries: int = 0
    research_results: int = 0
    trending_results: int = 0
    key_stories: int = 0
    ideas: int = 0
    watchlist: int = 0
    fallbacks: int = 0
    duration: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["duration"] = round(d["duration"], 2)
        return d


@dataclass
class ReportRunResult:
    """What a report run produced and where it went."""

    report: WeeklyReport
    report_id: int | None = None
    document_url: str | None = None
    email_sent: bool = False
    markdown_path: Path | None = None
    stats: ReportStats = field(default_factory=ReportStats)


def week_start_for(day: date) -> date:
    """Monday on or before ``day``."""
    return day - timedelta(days=day.weekday())


def today_in(tz_name: str) -> date:
    return datetime.now(ZoneInfo(tz_name)).date()


def collect_sources(research: ResearchData, limit: int = SOURCE_LIMIT) -> list[SourceRef]:
    """Unique research sources (by URL), pillar queries first."""
    sources: list[SourceRef] = []
    seen: set[str] = set()
    for pillar, queries in research.items():
        for query in queries:
            for hit in query.results:
                if not hit.url or hit.url in seen:
                    continue
                seen.add(hit.url)
                sources.append(SourceRef(title=hit.title, url=hit.url, pillar=pillar))
    return sources[:limit]


def research_pillars(research: ResearchData) -> list[str]:
    return [
        pillar for pillar, queries in research.items()
        if pillar not in NON_PILLAR_KEYS and any(q.results for q in queries)
    ]


def research_texts(research: ResearchData) -> list[str]:
    return [
        f"{hit.title} {hit.content}"
        for queries in research.values()
        for query in queries
        for hit in query.results
    ]


def format_report_markdown(report: WeeklyReport) -> str:
    """Render a report as markdown.

    Content ideas are the only numbered list in the document, so the
    memory service can count them from the text.
    """
    lines = [
        f"# Weekly Career Intelligence Brief - {report.week_start.isoformat()} to {report.week_end.isoformat()}",
        "",
        "## Executive Summary",
        "",
        report.executive_summary,
        "",
        "## Strategic Analysis",
        "",
        report.analysis,
        "",
        "---",
        "",
        "## Key Stories & Content Opportunities",
    ]
    for i, story in enumerate(report.key_stories, 1):
        lines.extend(["", f"### Story {i}: {story.title}", ""])
        if story.why_it_matters:
            lines.append(f"**Why it matters:** {story.why_it_matters}")
        if story.story_hook:
            lines.append(f"**Story hook:** {story.story_hook}")
        if story.narrative_flow:
            lines.append(f"**Narrative flow:** {story.narrative_flow}")
        if story.content_hooks:
            lines.append("**Content angles:**")
            lines.extend(f"- {hook}" for hook in story.content_hooks)
        if story.macro_analysis:
            lines.append(f"**Macro view:** {story.macro_analysis}")
        if story.sources:
            lines.append(f"**Sources:** {', '.join(story.sources)}")

    lines.extend(["", "## Content Hooks & Frameworks"])
    for label, hooks in (
        ("Challenge Assumptions", report.content_hooks.challenge_assumptions),
        ("Data-Backed Claims", report.content_hooks.data_backed_claims),
        ("Strategic Insights", report.content_hooks.strategic_insights),
    ):
        if not hooks:
            continue
        lines.extend(["", f"### {label}", ""])
        for hook in hooks:
            suffix = f" ({hook.reasoning})" if hook.reasoning else ""
            lines.append(f'- "{hook.hook}"{suffix}')

    lines.extend(["", "## Platform-Specific Ideas"])
    number = 0
    for platform in PLATFORM_LABELS:
        ideas = [idea for idea in report.content_ideas if idea.platform == platform]
        if not ideas:
            continue
        lines.extend(["", f"### {PLATFORM_LABELS[platform]}", ""])
        for idea in ideas:
            number += 1
            lines.append(f"{number}. **{idea.title}** ({idea.format or 'any format'}, potential {idea.engagement_potential}/100)")
            if idea.hooks:
                lines.append(f"   - Hooks: {' | '.join(idea.hooks)}")
            if idea.key_points:
                lines.append(f"   - Key points: {'; '.join(idea.key_points)}")
            if idea.pillar:
                lines.append(f"   - Pillar: {idea.pillar}")
            if idea.rationale:
                lines.append(f"   - Why now: {idea.rationale}")
            if idea.source_links:
                lines.append(f"   - Sources: {', '.join(idea.source_links)}")

    lines.extend(["", "## Watchlist", ""])
    for item in report.watchlist:
        mentions = f" ({item.mentions} mentions)" if item.mentions else ""
        reason = f" - {item.reason}" if item.reason else ""
        lines.append(f"- **{item.keyword}**{reason}{mentions}")

    questions = [s.community_question for s in report.key_stories if s.community_question]
    if questions:
        lines.extend(["", "## Community Engagement Prompts", ""])
        lines.extend(f"- {q}" for q in questions)

    lines.extend(["", "## Research Sources", ""])
    for source in report.sources:
        lines.append(f"- [{source.title or source.domain}]({source.url}) - {source.pillar}")

    lines.extend([
        "",
        "## Report Metadata",
        "",
        f"- Generated: {report.generated_at.isoformat(timespec='seconds')}",
        f"- Sources analyzed: {report.total_sources}",
        f"- Pillars covered: {', '.join(report.pillars) or 'none'}",
    ])
    if report.fallbacks_used:
        lines.append(f"- Fallbacks used: {', '.join(report.fallbacks_used)}")
    return "\n".join(lines) + "\n"


class ReportGenerator:
    """Runs the weekly report stages over injected collaborators.

    Components:
        - Database: recent articles/posts for ideas, report persistence
        - ReportMemory: historical context and topic coverage
        - TavilyClient: pillar and trending research
        - AnalysisAgents / IdeaAgents: LLM stages
        - ReportDelivery: Google Doc + email
        - ResearchArchive: raw research and final payload
        - SlackNotifier: weekly summary post
    """

    def __init__(
        self,
        config: Config,
        *,
        db: Database,
        memory: ReportMemory,
        search: TavilyClient,
        analysis: AnalysisAgents,
        ideas: IdeaAgents,
        delivery: ReportDelivery,
        archive: ResearchArchive,
        notifier: SlackNotifier,
    ):
        self.config = config
        self.db = db
        self.memory = memory
        self.search = search
        self.analysis = analysis
        self.ideas = ideas
        self.delivery = delivery
        self.archive = archive
        self.notifier = notifier
        self._stage = "idle"
        self._started = 0.0

    async def _heartbeat(self) -> None:
        while True:
            await asyncio.sleep(HEARTBEAT_SECONDS)
            logger.info("Heartbeat | stage=%s elapsed=%.0fs", self._stage, time.monotonic() - self._started)

    def _enter(self, stage: str) -> None:
        self._stage = stage
        set_stage(stage)

    async def _analysis_stage(
        self,
        name: str,
        run: Callable[[], Awaitable[T]],
        fallback: Callable[[], T],
        fallbacks_used: list[str],
    ) -> T:
        """Run one LLM stage, substituting its fallback unless strict mode is on."""
        self._enter(name)
        with trace_operation(f"report.{name}"):
            try:
                return await run()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if self.config.strict_synthesis:
                    raise StageError(name, f"{type(e).__name__}: {e}") from e
                logger.warning("Stage failed, using fallback | stage=%s error=%s: %s", name, type(e).__name__, e)
                fallbacks_used.append(name)
                return fallback()

    def _load_context(self) -> ReportContext:
        try:
            return self.memory.get_report_context()
        except (OSError, ValueError) as e:
            logger.warning("Memory context unavailable, continuing without it | error=%s", e)
            return ReportContext.empty()

    def _load_strategy(self) -> str:
        try:
            return self.config.strategy_file.read_text(encoding="utf-8")
        except OSError:
            logger.warning("Strategy file unavailable, using default | path=%s", self.config.strategy_file)
            return DEFAULT_STRATEGY

    def _average_engagement(self) -> float:
        try:
            posts = self.db.recent_social_posts(days=7)
        except sqlite3.Error as e:
            logger.warning("Could not read social posts | error=%s", e)
            return DEFAULT_AVG_ENGAGEMENT
        if not posts:
            return DEFAULT_AVG_ENGAGEMENT
        return sum(p.performance_score for p in posts) / len(posts)

    def _enhance_ideas(self, ideas: list) -> list:
        try:
            articles = self.db.recent_articles(days=7)
        except sqlite3.Error as e:
            logger.warning("Could not read recent articles | error=%s", e)
            return ideas
        return enhance_ideas_with_sources(ideas, articles)

    def _persist(self, report: WeeklyReport, document_url: str | None) -> int | None:
        try:
            report_id = self.db.save_weekly_report(report, document_url, commit=False)
            for idea in report.content_ideas:
                self.db.save_content_idea(idea, report_id, commit=False)
            self.db.track_keywords(
                report.week_start,
                {item.keyword: item.mentions for item in report.watchlist},
                commit=False,
            )
            self.db.commit()
            return report_id
        except sqlite3.Error as e:
            logger.error("Report database save failed | error=%s", e, exc_info=True)
            self.db.rollback()
            return None

    async def generate(self, week_start: date | None = None) -> ReportRunResult:
        """Generate, deliver and store one weekly report.

        Args:
            week_start: Any date in the target week (default: today in TIMEZONE)

        Returns:
            ReportRunResult with the report, delivery outcome and stats

        Raises:
            StageError: Research failed, or an analysis stage failed in strict mode
            DeliveryError: The report could not be delivered
        """
        run_id = uuid.uuid4().hex[:8]
        set_run_context(run_id)
        self._started = time.monotonic()
        stats = ReportStats()
        heartbeat = asyncio.create_task(self._heartbeat())

        try:
            # 1. Week
            self._enter("week")
            start = week_start_for(week_start or today_in(self.config.timezone))
            end = start + timedelta(days=6)
            logger.info("Report started | week=%s..%s", start, end)

            # 2. Memory context
            self._enter("memory")
            context = self._load_context()

            # 3. Research
            self._enter("research")
            with trace_operation("report.research", {"mode": self.search.mode}) as span:
                try:
                    research = await self.search.search_all_pillars()
                except SearchError as e:
                    raise StageError("research", str(e)) from e
                stats.research_queries = sum(len(qs) for qs in research.values())
                stats.research_results = count_results(research)
                span["results"] = stats.research_results

            # 4. Raw research archive
            self._enter("archive_research")
            try:
                self.archive.save_raw_research(start, research)
            except (OSError, TypeError) as e:
                logger.warning("Raw research archive failed | error=%s", e)

            # 5. Trending
            self._enter("trending")
            try:
                trending = await self.search.search_trending_topics()
            except SearchError as e:
                logger.warning("Trending search failed, continuing without it | error=%s", e)
                trending = []
            stats.trending_results = sum(len(q.results) for q in trending)

            # 6. Merge
            self._enter("merge")
            merged: ResearchData = {**research, "Trending": trending, "Legacy": []}

            # 7. Strategy
            self._enter("strategy")
            strategy = self._load_strategy()
            if context.recent_reports:
                strategy = f"{strategy}\n\n{context.prompt_text()}"

            # 8. Analysis
            fallbacks: list[str] = []
            synthesis = await self._analysis_stage(
                "synthesis",
                lambda: self.analysis.synthesize_research(merged, strategy),
                lambda: FALLBACK_SYNTHESIS,
                fallbacks,
            )
            stories = await self._analysis_stage(
                "key_stories",
                lambda: self.analysis.generate_key_stories(synthesis, extract_top_research_items(merged)),
                fallback_key_stories,
                fallbacks,
            )
            themes = [story.title for story in stories]
            hooks = await self._analysis_stage(
                "content_hooks",
                lambda: self.analysis.create_content_hooks(synthesis, themes),
                fallback_content_hooks,
                fallbacks,
            )
            summary = await self._analysis_stage(
                "executive_summary",
                lambda: self.analysis.create_executive_summary(synthesis, themes),
                lambda: FALLBACK_EXECUTIVE_SUMMARY,
                fallbacks,
            )
            avg_engagement = self._average_engagement()
            ideas = await self._analysis_stage(
                "content_ideas",
                lambda: self.ideas.generate_content_ideas(synthesis, stories, avg_engagement),
                lambda: fallback_ideas(themes),
                fallbacks,
            )
            ideas = self._enhance_ideas(ideas)
            watchlist = await self._analysis_stage(
                "watchlist",
                lambda: self.ideas.generate_watchlist(synthesis, merged),
                lambda: fallback_watchlist(themes, count_trending_words(research_texts(merged))),
                fallbacks,
            )

            # 9. Assemble
            self._enter("assemble")
            report = WeeklyReport(
                week_start=start,
                week_end=end,
                executive_summary=summary or FALLBACK_EXECUTIVE_SUMMARY,
                analysis=synthesis or FALLBACK_SYNTHESIS,
                key_stories=stories or [],
                content_hooks=hooks,
                content_ideas=ideas or [],
                watchlist=watchlist or [],
                sources=collect_sources(merged),
                pillars=research_pillars(merged),
                themes=themes,
                fallbacks_used=fallbacks,
            )
            stats.key_stories = len(report.key_stories)
            stats.ideas = len(report.content_ideas)
            stats.watchlist = len(report.watchlist)
            stats.fallbacks = len(fallbacks)

            # 10. Format
            self._enter("format")
            markdown = format_report_markdown(report)

            # 11. Deliver
            self._enter("deliver")
            markdown_path = await save_report_files(report, markdown, self.config.reports_dir)
            with trace_operation("report.deliver"):
                delivered = await self.delivery.deliver(report, markdown)

            # 12. Store
            self._enter("store")
            try:
                self.memory.store_report(report, markdown)
            except (OSError, ValueError) as e:
                logger.error("Memory store failed | error=%s", e, exc_info=True)
            report_id = self._persist(report, delivered.document_url)
            try:
                self.archive.save_report_payload(start, report)
            except (OSError, TypeError) as e:
                logger.warning("Report archive failed | error=%s", e)
            await self.notifier.post_weekly_report(report, delivered.document_url)

        except asyncio.CancelledError:
            logger.info("Report run cancelled | stage=%s", self._stage)
            raise
        except Exception as e:
            logger.error("Report failed | stage=%s type=%s error=%s", self._stage, type(e).__name__, e, exc_info=True)
            raise
        finally:
            heartbeat.cancel()
            self._stage = "idle"
            stats.duration = time.monotonic() - self._started
            clear_context()

        logger.info(
            "Report done | week=%s duration=%.1fs stories=%d ideas=%d fallbacks=%d url=%s",
            start, stats.duration, stats.key_stories, stats.ideas, stats.fallbacks, delivered.document_url,
        )
        return ReportRunResult(
            report=report,
            report_id=report_id,
            document_url=delivered.document_url,
            email_sent=delivered.email_sent,
            markdown_path=markdown_path,
            stats=stats,
        )

    async def close(self) -> None:
        """Clean up resources."""
        await self.search.close()
        self.db.close()


def build_report_generator(config: Config, db: Database | None = None) -> ReportGenerator:
    """Wire a ReportGenerator from configuration."""
    if config.enable_logfire:
        from observability.tracing import setup_tracing
        setup_tracing(enabled=True, service_name="content-intel", token=config.logfire_token)

    return ReportGenerator(
        config,
        db=db or Database(config.db_path),
        memory=ReportMemory(config.memory_file, config.insights_file),
        search=TavilyClient(
            config.tavily_api_key,
            config.search_cache_dir,
            monthly_limit=config.tavily_monthly_limit,
            mode=config.search_mode,
            max_concurrent=config.max_workers,
            tz=config.timezone,
        ),
        analysis=AnalysisAgents(config),
        ideas=IdeaAgents(config),
        delivery=ReportDelivery.from_config(config),
        archive=ResearchArchive(config.archive_dir),
        notifier=SlackNotifier(config.slack_bot_token, config.slack_channel_id),
    )


async def generate_weekly_report(config: Config, week_start: date | None = None) -> ReportRunResult:
    """Generate one weekly report and release every resource afterwards."""
    generator = build_report_generator(config)
    try:
        return await generator.generate(week_start)
    finally:
        await generator.close()
