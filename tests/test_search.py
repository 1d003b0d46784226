from __future__ import annotations

import asyncio
import json
from datetime import date, datetime, timezone
from pathlib import Path

import pytest

from tools.search import SearchError, TavilyClient, cache_day, pillar_queries

DAY = date(2026, 10, 12)


def _client(tmp_path: Path, **kwargs) -> TavilyClient:
    kwargs.setdefault("request_delay", 0)
    return TavilyClient("tvly-test", tmp_path / "cache", today=lambda: DAY, **kwargs)


def _fake_post(calls: list[dict], fail_queries: set[str] | None = None):
    async def fake(url, payload):
        calls.append(payload)
        if fail_queries and payload.get("query") in fail_queries:
            raise SearchError("boom")
        return {
            "results": [{"title": f"Result for {payload.get('query')}", "url": "https://hbr.org/x", "content": "c"}],
            "answer": None,
        }
    return fake


def test_pillar_queries_are_dated() -> None:
    queries = pillar_queries(DAY)

    assert len(queries) == 5
    assert "career transition trends October 2026" in queries["Career Clarity & Goals"]
    assert len(queries["Workplace Trends, Rights & Advocacy"]) == 6


def test_fast_mode_searches_every_query_and_caches(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path)
    calls: list[dict] = []
    monkeypatch.setattr(client, "_post", _fake_post(calls))

    research = asyncio.run(client.search_all_pillars())

    assert len(calls) == 26
    assert all(call["max_results"] == 2 and call["days"] == 30 for call in calls)
    assert set(research) == set(pillar_queries(DAY))
    assert client.cache.path_for(DAY).exists()

    second = _client(tmp_path)
    second_calls: list[dict] = []
    monkeypatch.setattr(second, "_post", _fake_post(second_calls))
    cached = asyncio.run(second.search_all_pillars())

    assert second_calls == []
    assert cached["Career Clarity & Goals"][0].results[0].url == "https://hbr.org/x"


def test_advanced_mode_skips_failed_queries(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, mode="advanced")
    calls: list[dict] = []
    failing = {pillar_queries(DAY)["Career Clarity & Goals"][0]}
    monkeypatch.setattr(client, "_post", _fake_post(calls, failing))

    research = asyncio.run(client.search_all_pillars())

    assert len(research["Career Clarity & Goals"]) == 4
    assert client.searches_used == 26


def test_all_queries_failing_raises(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path)

    async def always_fail(url, payload):
        raise SearchError("down")

    monkeypatch.setattr(client, "_post", always_fail)

    with pytest.raises(SearchError):
        asyncio.run(client.search_all_pillars())
    assert not client.cache.path_for(DAY).exists()


def test_monthly_limit_stops_searching(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monthly_limit=3, mode="advanced")
    calls: list[dict] = []
    monkeypatch.setattr(client, "_post", _fake_post(calls))

    research = asyncio.run(client.search_all_pillars())

    assert len(calls) == 3
    assert sum(len(r) for r in research.values()) == 3
    assert client.usage_stats() == {
        "searches_used": 3,
        "monthly_limit": 3,
        "remaining_searches": 0,
        "usage_percentage": 100.0,
    }


def test_trending_topics_use_recent_window(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path)
    calls: list[dict] = []
    monkeypatch.setattr(client, "_post", _fake_post(calls))

    trending = asyncio.run(client.search_trending_topics())

    assert len(trending) == 5
    assert all(call["days"] == 7 and call["max_results"] == 5 for call in calls)
    assert trending[0].pillar == "Trending"


def test_unreadable_cache_is_a_miss(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path)
    client.cache.cache_dir.mkdir(parents=True)
    client.cache.path_for(DAY).write_text("not json", encoding="utf-8")
    calls: list[dict] = []
    monkeypatch.setattr(client, "_post", _fake_post(calls))

    asyncio.run(client.search_all_pillars())

    assert len(calls) == 26


class _FakeResponse:
    def __init__(self, status: int = 200, body: str = "{}"):
        self.status = status
        self.body = body

    async def json(self):
        return json.loads(self.body)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class _FakeSession:
    closed = False

    def __init__(self, response: _FakeResponse):
        self.response = response
        self.calls: list[tuple[str, dict]] = []

    def post(self, url, json=None, headers=None):
        self.calls.append((url, json))
        return self.response


def test_non_json_response_is_a_search_error(tmp_path: Path) -> None:
    client = _client(tmp_path)
    client._session = _FakeSession(_FakeResponse(body="<html>gateway error</html>"))

    with pytest.raises(SearchError, match="invalid JSON"):
        asyncio.run(client.search("salary negotiation"))


def test_unexpected_json_shape_is_a_search_error(tmp_path: Path) -> None:
    client = _client(tmp_path)
    client._session = _FakeSession(_FakeResponse(body="[1, 2]"))

    with pytest.raises(SearchError, match="unexpected list"):
        asyncio.run(client.search("salary negotiation"))


def test_http_errors_map_to_search_errors(tmp_path: Path) -> None:
    client = _client(tmp_path)
    client._session = _FakeSession(_FakeResponse(status=429))

    with pytest.raises(SearchError, match="rate limit"):
        asyncio.run(client.search("salary negotiation"))


def test_extract_content_skips_failed_urls(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path)
    calls: list[tuple[str, dict]] = []

    async def fake(url, payload):
        calls.append((url, payload))
        if payload["urls"] == ["https://broken.example"]:
            raise SearchError("HTTP 500")
        return {"results": [{"title": "Pay bands", "raw_content": "Full article text"}]}

    monkeypatch.setattr(client, "_post", fake)

    extracted = asyncio.run(client.extract_content(["https://hbr.org/pay", "https://broken.example"]))

    assert [url for url, _ in calls] == ["https://api.tavily.com/extract"] * 2
    assert len(extracted) == 1
    assert extracted[0]["url"] == "https://hbr.org/pay"
    assert extracted[0]["title"] == "Pay bands"
    assert extracted[0]["content"] == "Full article text"


def test_extract_content_accepts_single_url(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path)

    async def fake(url, payload):
        return {"results": [{"title": "Remote", "content": "Summary only"}]}

    monkeypatch.setattr(client, "_post", fake)

    extracted = asyncio.run(client.extract_content("https://forbes.com/remote"))

    assert extracted[0]["content"] == "Summary only"


def test_usage_stats_with_zero_limit(tmp_path: Path) -> None:
    client = _client(tmp_path, monthly_limit=0)

    assert client.usage_stats()["usage_percentage"] == 0.0
    assert client.usage_stats()["remaining_searches"] == 0


def test_cache_day_uses_report_timezone() -> None:
    late_sunday_in_la = datetime(2026, 10, 19, 5, 30, tzinfo=timezone.utc)

    assert cache_day("America/Los_Angeles", late_sunday_in_la) == date(2026, 10, 18)
    assert cache_day("UTC", late_sunday_in_la) == date(2026, 10, 19)


def test_client_keys_cache_by_its_timezone(tmp_path: Path) -> None:
    client = TavilyClient("tvly-test", tmp_path / "cache", tz="America/Los_Angeles")

    assert client.tz == "America/Los_Angeles"
    assert client._today() == cache_day("America/Los_Angeles")
