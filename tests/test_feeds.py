from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta, timezone

import feeds
from database import Database
from feeds import (
    FeedError,
    count_keyword_themes,
    ingest_all_sources,
    parse_rss_content,
    parse_scraped_page,
    parse_subreddit_listing,
)
from models.content import Article
from tools.fetch import clean_content

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)

RSS = """<?xml version="1.0"?>
<rss version="2.0"><channel><title>HR Brew</title>
<item>
  <title>Salary negotiation scripts that work</title>
  <link>https://example.com/a</link>
  <description>&lt;p&gt;Ask for &lt;b&gt;more&lt;/b&gt; money.&lt;/p&gt;</description>
  <pubDate>Fri, 16 Oct 2026 10:00:00 GMT</pubDate>
</item>
<item>
  <title>Old news</title>
  <link>https://example.com/b</link>
  <description>old</description>
  <pubDate>Mon, 01 Jun 2026 10:00:00 GMT</pubDate>
</item>
<item>
  <title></title>
  <link>https://example.com/c</link>
</item>
</channel></rss>
"""

PAGE = """<html><body>
<article><h2>Pay transparency laws expand</h2><a href="/news/pay">Read</a><p>Three more states act.</p></article>
<article><h2>No link here</h2></article>
<div class="post"><h3 class="title">Remote work <em>holds</em></h3>
<a href="https://other.com/r">x</a><br><p class="excerpt">Data shows</p></div>
</body></html>
"""


def test_clean_content_strips_markup_and_caps_length() -> None:
    assert clean_content("<p>Hello <script>x()</script><b>world</b></p>") == "Hello world"
    assert len(clean_content("word " * 500)) == 1000
    assert clean_content("") == ""


def test_parse_rss_keeps_recent_titled_entries() -> None:
    articles = parse_rss_content(RSS, "HR Brew", max_age_days=10, now=NOW)

    assert len(articles) == 1
    article = articles[0]
    assert article.title == "Salary negotiation scripts that work"
    assert article.content == "Ask for more money."
    assert article.source == "HR Brew"
    assert "STRATEGIC_GROWTH" in article.pillar_tags
    assert "salary" in article.keywords


def test_parse_scraped_page_resolves_links() -> None:
    source = {"name": "LinkedIn News", "url": "https://example.com/newsletter", "selector": "article, .post"}

    articles = parse_scraped_page(PAGE, source)

    assert [a.title for a in articles] == ["Pay transparency laws expand", "Remote work holds"]
    assert articles[0].url == "https://example.com/news/pay"
    assert articles[0].content == "Three more states act."
    assert articles[1].url == "https://other.com/r"
    assert articles[1].content == "Data shows"


def test_parse_subreddit_listing_filters_age_and_score() -> None:
    def child(post_id: str, score: int, age_days: float) -> dict:
        return {"data": {
            "title": f"Post {post_id} about remote work",
            "permalink": f"/r/jobs/comments/{post_id}/x",
            "selftext": "",
            "author": "someone",
            "score": score,
            "num_comments": 5,
            "created_utc": (NOW - timedelta(days=age_days)).timestamp(),
        }}

    listing = {"data": {"children": [child("1", 50, 1), child("2", 5, 1), child("3", 80, 9)]}}

    articles = parse_subreddit_listing(listing, "jobs", now=NOW)

    assert len(articles) == 1
    assert articles[0].url == "https://reddit.com/r/jobs/comments/1/x"
    assert articles[0].source == "r/jobs"
    assert articles[0].engagement_score == 55
    assert articles[0].content == "Post 1 about remote work"


def test_count_keyword_themes() -> None:
    articles = [
        Article(title="Remote work is here", url="https://a"),
        Article(title="Remote work and burnout", url="https://b"),
    ]

    assert count_keyword_themes(articles, ["remote work", "burnout", "layoffs"]) == {
        "remote work": 2,
        "burnout": 1,
    }


def test_ingest_all_sources_counts_groups_and_errors(config, monkeypatch) -> None:
    config.news_sources = [
        {"name": "HR Brew", "type": "rss", "url": "https://www.hr-brew.com/feed"},
        {"name": "Broken", "type": "rss", "url": "https://broken.example/feed"},
        {"name": "Adam Grant", "type": "rss", "url": "https://adamgrant.substack.com/feed"},
    ]
    config.subreddits = {"jobs": 30}

    async def fake_source(session, source, max_age_days=10):
        if source["name"] == "Broken":
            raise FeedError("Broken: feed unavailable")
        return [Article(title="Salary negotiation tips", url="https://hr-brew.com/1", source=source["name"])]

    async def fake_rss(session, source, max_age_days=10, timeout=30):
        return [Article(title="Give and take", url="https://adamgrant.substack.com/p/1", source=source["name"])]

    async def fake_reddit(session, subreddit, limit=25, user_agent="", timeout=30):
        return [
            Article(title="Salary negotiation help", url="https://reddit.com/r/jobs/1", source="r/jobs"),
            Article(title="Duplicate", url="https://hr-brew.com/1", source="r/jobs"),
        ]

    monkeypatch.setattr(feeds, "fetch_source", fake_source)
    monkeypatch.setattr(feeds, "fetch_rss_source", fake_rss)
    monkeypatch.setattr(feeds, "fetch_subreddit", fake_reddit)

    db = Database(config.db_path)
    try:
        stats = asyncio.run(ingest_all_sources(config, db, today=date(2026, 10, 14)))

        assert (stats.newsletters, stats.substacks, stats.reddit) == (1, 1, 2)
        assert stats.errors == 1
        assert stats.error_sources == ["Broken"]
        assert stats.inserted == 3
        assert db.stats()["news_articles"] == 3
        assert db.keyword_history("salary negotiation") == [
            {"week_start_date": "2026-10-12", "mentions": 2}
        ]
    finally:
        db.close()
