from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from config import Config
from models.report import (
    ContentHooks,
    ContentIdea,
    Hook,
    KeyStory,
    SourceRef,
    WatchlistItem,
    WeeklyReport,
)
from models.research import QueryResult, SearchHit


def build_report(week_start: date = date(2026, 10, 12), **overrides) -> WeeklyReport:
    fields = dict(
        week_start=week_start,
        week_end=date.fromordinal(week_start.toordinal() + 6),
        executive_summary="Pay transparency laws are reshaping salary negotiation this week.",
        analysis="Key insight: employers are rewriting pay bands. ",
        key_stories=[
            KeyStory(
                title="Pay transparency is changing salary negotiation",
                why_it_matters="Candidates now see ranges before they apply.",
                sources=["hbr.org"],
                content_hooks=["Nobody tells you the range is negotiable"],
            )
        ],
        content_hooks=ContentHooks(
            challenge_assumptions=[Hook(hook="Most people negotiate too late", reasoning="Timing")],
        ),
        content_ideas=[
            ContentIdea(
                title="Salary ranges decoded",
                platform="linkedin",
                format="carousel",
                hooks=["The range is a starting point"],
                key_points=["Ask early"],
                pillar="Strategic Growth & Skills Development",
            )
        ],
        watchlist=[WatchlistItem(keyword="pay transparency", reason="New state laws", mentions=4)],
        sources=[
            SourceRef(title="Pay bands", url="https://www.hbr.org/pay", pillar="Strategic Growth & Skills Development"),
            SourceRef(title="Remote data", url="https://forbes.com/remote", pillar="Workplace Trends, Rights & Advocacy"),
        ],
        pillars=["Strategic Growth & Skills Development", "Workplace Trends, Rights & Advocacy"],
        themes=["Pay transparency is changing salary negotiation"],
    )
    fields.update(overrides)
    return WeeklyReport(**fields)


def build_research() -> dict[str, list[QueryResult]]:
    return {
        "Career Clarity & Goals": [
            QueryResult(
                query="career pivot strategies",
                pillar="Career Clarity & Goals",
                results=[SearchHit(title="Pivot playbook", url="https://hbr.org/pivot", content="How to pivot")],
            )
        ],
        "Workplace Trends, Rights & Advocacy": [
            QueryResult(
                query="pay transparency laws",
                pillar="Workplace Trends, Rights & Advocacy",
                results=[
                    SearchHit(title="New pay laws", url="https://www.forbes.com/pay", content="States expand pay laws"),
                    SearchHit(title="Remote work data", url="https://wsj.com/remote", content="Remote work holds"),
                ],
            )
        ],
    }


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(
        openai_api_key="test-key",
        tavily_api_key="tvly-test",
        db_path=tmp_path / "news_agent.db",
        memory_file=tmp_path / "report-memory.json",
        insights_file=tmp_path / "cumulative-insights.md",
        search_cache_dir=tmp_path / "tavily-cache",
        reports_dir=tmp_path / "reports",
        archive_dir=tmp_path / "archive",
        strategy_file=tmp_path / "strategy.md",
        log_dir=tmp_path / "log",
        google_token_path=tmp_path / "token.json",
    )
