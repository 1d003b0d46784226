from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path

import aiohttp

from conftest import build_report
from notifications import SlackNotifier, build_slack_blocks, save_report_files


class _FakeResponse:
    def __init__(self, payload: dict):
        self.payload = payload

    async def json(self, content_type=None):
        return self.payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class _FakeSession:
    def __init__(self, payload: dict | None = None, error: Exception | None = None):
        self.payload = payload if payload is not None else {"ok": True, "ts": "1.2"}
        self.error = error
        self.calls: list[tuple[str, dict, dict]] = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append((url, json, headers))
        if self.error:
            raise self.error
        return _FakeResponse(self.payload)


def test_build_slack_blocks_layout() -> None:
    report = build_report(executive_summary="Pay bands shift\nRemote work holds")
    now = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)

    blocks = build_slack_blocks(report, "https://docs.google.com/document/d/x", now=now)

    assert blocks[0]["text"]["text"] == "Weekly Ideas Report - Oct 12 to Oct 18, 2026"
    assert blocks[1]["text"]["text"] == "*Key Takeaways:*\n• Pay bands shift\n• Remote work holds"
    fields = [f["text"] for f in blocks[2]["fields"]]
    assert "*Ideas Generated:*\n1" in fields
    assert "*Sources Analyzed:*\n2" in fields
    texts = [b.get("text", {}).get("text", "") for b in blocks]
    assert any('1. "The range is a starting point" _(linkedin)_' in t for t in texts)
    button = next(b for b in blocks if b["type"] == "actions")["elements"][0]
    assert button["url"] == "https://docs.google.com/document/d/x"
    assert button["action_id"] == "view_report"
    assert blocks[-2] == {"type": "divider"}
    assert blocks[-1]["type"] == "context"


def test_build_slack_blocks_without_url_has_no_button() -> None:
    blocks = build_slack_blocks(build_report(executive_summary=""), None)

    assert all(b["type"] != "actions" for b in blocks)
    assert blocks[1]["text"]["text"].endswith("No summary available")


def test_post_weekly_report_sends_bearer_request() -> None:
    session = _FakeSession()
    notifier = SlackNotifier("xoxb-token", "C123", session=session)

    assert asyncio.run(notifier.post_weekly_report(build_report(), "https://doc")) is True

    url, payload, headers = session.calls[0]
    assert url == "https://slack.com/api/chat.postMessage"
    assert payload["channel"] == "C123"
    assert payload["blocks"][0]["type"] == "header"
    assert headers["Authorization"] == "Bearer xoxb-token"


def test_slack_api_error_returns_false() -> None:
    notifier = SlackNotifier("xoxb-token", "C123", session=_FakeSession({"ok": False, "error": "channel_not_found"}))

    assert asyncio.run(notifier.post_error_alert(RuntimeError("boom"), "weekly report")) is False


def test_slack_network_error_returns_false() -> None:
    notifier = SlackNotifier("xoxb-token", "C123", session=_FakeSession(error=aiohttp.ClientConnectionError("down")))

    assert asyncio.run(notifier.test_connection()) is False


def test_disabled_notifier_makes_no_calls() -> None:
    session = _FakeSession()
    notifier = SlackNotifier("", "C123", session=session)

    assert notifier.enabled is False
    assert asyncio.run(notifier.post_message("hello")) is False
    assert session.calls == []


def test_save_report_files_writes_markdown_and_json(tmp_path: Path) -> None:
    report = build_report()

    path = asyncio.run(save_report_files(report, "# Weekly", tmp_path / "reports"))

    assert path == tmp_path / "reports" / "weekly-report-2026-10-12.md"
    assert path.read_text() == "# Weekly"
    data = json.loads((tmp_path / "reports" / "weekly-report-2026-10-12.json").read_text())
    assert data["week_start"] == "2026-10-12"
    assert data["themes"] == report.themes
