from __future__ import annotations

import json
import sys
from dataclasses import replace

import pytest

import main
import pipeline
from conftest import build_report
from database import Database
from pipeline import ReportRunResult, ReportStats


@pytest.fixture
def run_cli(config, monkeypatch):
    monkeypatch.setattr(main, "setup_logging", lambda cfg, verbose=False: False)

    def run(*argv: str, cfg=None) -> int:
        monkeypatch.setattr(main.Config, "load", classmethod(lambda cls: cfg or config))
        monkeypatch.setattr(sys, "argv", ["main.py", *argv])
        return main.main()

    return run


def test_no_command_prints_help(run_cli, capsys) -> None:
    assert run_cli() == 0
    assert "Available commands" in capsys.readouterr().out


def test_recent_empty(run_cli, capsys) -> None:
    assert run_cli("recent") == 0
    assert "No reports generated yet." in capsys.readouterr().out


def test_recent_lists_reports(run_cli, config, capsys) -> None:
    with Database(config.db_path) as db:
        db.save_weekly_report(build_report(), "https://docs.google.com/document/d/1")

    assert run_cli("recent", "--limit", "3") == 0

    out = capsys.readouterr().out
    assert "Week of 2026-10-12 (1 ideas)" in out
    assert "Document: https://docs.google.com/document/d/1" in out


def test_generate_requires_tavily_key(run_cli, config, capsys) -> None:
    assert run_cli("generate", cfg=replace(config, tavily_api_key="")) == 1
    assert "TAVILY_API_KEY" in capsys.readouterr().err


def test_generate_rejects_bad_week_start(run_cli, capsys) -> None:
    assert run_cli("generate", "--week-start", "last week") == 1
    assert "--week-start must be YYYY-MM-DD" in capsys.readouterr().err


def test_generate_prints_summary(run_cli, monkeypatch, capsys) -> None:
    seen = []

    async def fake_generate(cfg, week_start):
        seen.append(week_start)
        report = build_report(fallbacks_used=["hooks"])
        return ReportRunResult(
            report=report,
            report_id=1,
            document_url="https://doc",
            email_sent=True,
            stats=ReportStats(ideas=1, key_stories=1),
        )

    monkeypatch.setattr(pipeline, "generate_weekly_report", fake_generate)

    assert run_cli("generate", "--week-start", "2026-10-14") == 0

    out = capsys.readouterr().out
    assert str(seen[0]) == "2026-10-14"
    assert "Content ideas: 1" in out
    assert "Fallbacks:     hooks" in out
    assert "Email sent:    yes" in out


def test_generate_failure_returns_1(run_cli, monkeypatch, capsys) -> None:
    async def failing(cfg, week_start):
        raise pipeline.StageError("research", "no results")

    monkeypatch.setattr(pipeline, "generate_weekly_report", failing)

    assert run_cli("generate") == 1
    assert "Report generation failed" in capsys.readouterr().err


def test_import_analytics(run_cli, config, tmp_path, capsys) -> None:
    export = tmp_path / "posts.json"
    export.write_text(json.dumps([
        {"platform": "tiktok", "content": "Salary negotiation script", "metrics": {"views": 5000, "likes": 300}},
        {"platform": "linkedin", "content": "Layoffs and your rights", "metrics": {"views": 800}},
    ]), encoding="utf-8")

    assert run_cli("import-analytics", str(export)) == 0
    assert run_cli("import-analytics", str(tmp_path / "missing.csv")) == 1

    out = capsys.readouterr().out
    assert "Imported 2 posts" in out
    with Database(config.db_path) as db:
        assert db.stats()["creator_analytics"] == 2


def test_memory_topic_check(run_cli, capsys) -> None:
    assert run_cli("memory", "--topic", "salary negotiation", "--weeks", "3") == 0
    assert "'salary negotiation' covered in the last 3 weeks: no" in capsys.readouterr().out


def test_status_prints_json(run_cli, capsys) -> None:
    assert run_cli("status") == 0

    status = json.loads(capsys.readouterr().out)
    assert status["database"]["weekly_reports"] == 0
    assert status["memory"]["total_reports"] == 0
    assert status["schedule"]["cron_expression"] == "0 9 * * 1"
    assert status["search_cache"]["cached"] is False
