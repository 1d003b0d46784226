from __future__ import annotations

import json
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

from conftest import build_report
from memory.report_memory import (
    MAX_REPORTS,
    MAX_TOPIC_OCCURRENCES,
    ReportMemory,
    extract_key_insights,
    extract_themes,
    extract_topics,
    identify_content_gaps,
)
from models.memory import MemoryRecord
from models.report import SourceRef
from pillars import all_pillar_names


def _memory(tmp_path: Path) -> ReportMemory:
    return ReportMemory(tmp_path / "report-memory.json", tmp_path / "cumulative-insights.md")


def test_empty_memory_flags_every_pillar_as_gap(tmp_path: Path) -> None:
    memory = _memory(tmp_path)

    context = memory.get_report_context()

    assert context.recent_reports == []
    assert context.recommendations == [f'Increase coverage of "{p}"' for p in all_pillar_names()]
    assert memory.memory_file.exists()


def test_reports_are_bounded_and_most_recent_first(tmp_path: Path) -> None:
    memory = _memory(tmp_path)
    start = date(2026, 1, 5)

    for week in range(MAX_REPORTS + 3):
        week_start = start + timedelta(weeks=week)
        memory.store_report(build_report(week_start), "Salary negotiation and remote work.")

    record = memory.load()
    assert len(record.reports) == MAX_REPORTS
    assert record.reports[0].week_start == (start + timedelta(weeks=MAX_REPORTS + 2)).isoformat()
    assert record.statistics.total_reports == MAX_REPORTS + 3


def test_topic_occurrences_are_bounded(tmp_path: Path) -> None:
    memory = _memory(tmp_path)

    for week in range(MAX_TOPIC_OCCURRENCES + 4):
        memory.store_report(
            build_report(date(2026, 1, 5) + timedelta(weeks=week)),
            "This week covers burnout.",
        )

    occurrences = memory.load().covered_topics["burnout"]
    assert len(occurrences) == MAX_TOPIC_OCCURRENCES
    assert occurrences[-1].week == (date(2026, 1, 5) + timedelta(weeks=MAX_TOPIC_OCCURRENCES + 3)).isoformat()


def test_was_recently_covered(tmp_path: Path) -> None:
    memory = _memory(tmp_path)
    now = datetime(2026, 10, 18, 15, 0, tzinfo=timezone.utc)

    assert memory.was_recently_covered("pay transparency", within_weeks=2, now=now) is False

    memory.store_report(build_report(), "Pay transparency is everywhere.", now=now)

    assert memory.was_recently_covered("pay transparency", within_weeks=0, now=now) is True
    assert memory.was_recently_covered("pay transparency", within_weeks=2, now=now) is True
    later = now + timedelta(weeks=3)
    assert memory.was_recently_covered("pay transparency", within_weeks=2, now=later) is False
    assert memory.was_recently_covered("networking", within_weeks=2, now=now) is False


def test_statistics_count_each_pillar_and_domain_once(tmp_path: Path) -> None:
    memory = _memory(tmp_path)
    pillars = ["Career Clarity & Goals", "Personal Branding & Visibility", "Work that Complements Life"]
    sources = [SourceRef(title=f"s{i}", url=f"https://site{i % 3}.com/{i}", pillar=pillars[i % 3]) for i in range(52)]
    report = build_report(sources=sources, pillars=pillars + ["Trending"])

    memory.store_report(report, "Some text.")

    stats = memory.load().statistics
    assert stats.total_sources == 52
    assert stats.avg_sources_per_report == 52
    assert stats.top_pillars == {p: 1 for p in pillars}
    assert stats.top_domains == {"site0.com": 1, "site1.com": 1, "site2.com": 1}


def test_memory_round_trip(tmp_path: Path) -> None:
    memory = _memory(tmp_path)
    memory.store_report(build_report(), "Key insight: remote work is stable. Linkedin is loud.")

    first = memory.load()
    memory.save(first)
    second = memory.load()

    assert first.model_dump(exclude={"last_update"}) == second.model_dump(exclude={"last_update"})


def test_corrupt_memory_file_is_reinitialized(tmp_path: Path) -> None:
    memory = _memory(tmp_path)
    memory.memory_file.write_text("{not json", encoding="utf-8")

    record = memory.load()

    assert record.reports == []
    assert json.loads(memory.memory_file.read_text(encoding="utf-8"))["version"] == "1.0.0"


def test_store_report_writes_insights_digest(tmp_path: Path) -> None:
    memory = _memory(tmp_path)

    memory.store_report(build_report(), "Remote work and burnout dominate.")

    digest = memory.insights_file.read_text(encoding="utf-8")
    assert "Total Reports Generated**: 1" in digest
    assert "**burnout**: 1 times" in digest


def test_gaps_use_fifteen_percent_threshold() -> None:
    record = MemoryRecord()
    record.statistics.total_reports = 10
    record.statistics.top_pillars = {name: 2 for name in all_pillar_names()}
    record.statistics.top_pillars["Work that Complements Life"] = 1

    gaps = identify_content_gaps(record)

    assert gaps[0] == 'Increase coverage of "Work that Complements Life"'
    assert len(gaps) == 5


def test_fresh_topics_skip_covered_ones(tmp_path: Path) -> None:
    memory = _memory(tmp_path)
    now = datetime(2026, 10, 18, tzinfo=timezone.utc)
    memory.store_report(build_report(), "Burnout again.", now=now - timedelta(weeks=5))

    fresh = memory.fresh_topic_opportunities(now=now)

    assert fresh[0] == "burnout"
    assert "AI career skills" in fresh


def test_text_extractors() -> None:
    text = "Key insight: managers said upskilling wins. Remote work keeps growing. "

    assert extract_topics(text) == ["remote work", "upskilling"]
    assert extract_themes("Managers said it was fine.") == []
    assert "Career Development" in extract_themes(text)
    assert extract_key_insights(text) == ["Key insight: managers said upskilling wins."]
