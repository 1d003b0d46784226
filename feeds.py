"""Async news ingestion: RSS newsletters, Substacks, HTML pages and Reddit.

Every fetched item becomes an Article tagged with content pillars and
keywords, and is stored in the content database.

Features:
    - Concurrent fetching with connection pooling
    - SSL certificate handling with fallback (tools.fetch.fetch_text)
    - Age-based filtering of old entries
    - Graceful error handling per source

Error Handling Strategy:
    - Individual source failures don't affect other sources
    - A source that cannot be fetched raises FeedError, which is logged and
      counted in IngestStats.errors
    - Parse problems yield an empty article list for that source
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any

import aiohttp
import feedparser

from config import Config, KEYWORD_THEMES
from database import Database
from models.content import Article
from pillars import classify_pillars, extract_keywords
from tools.fetch import DEFAULT_ITEM_SELECTOR, clean_content, extract_items, fetch_text
from tools.utils import USER_AGENT

logger = logging.getLogger(__name__)

MAX_FEED_ENTRIES = 20
MAX_PAGE_ITEMS = 15
REDDIT_MAX_AGE_DAYS = 7
REDDIT_MIN_SCORE = 10


class FeedError(Exception):
    """Raised when a source cannot be fetched or decoded."""


@dataclass
class IngestStats:
    """Counts from one ingestion pass."""

    newsletters: int = 0
    substacks: int = 0
    reddit: int = 0
    inserted: int = 0
    errors: int = 0
    error_sources: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def total(self) -> int:
        return self.newsletters + self.substacks + self.reddit

    def to_dict(self) -> dict[str, Any]:
        return {
            "newsletters": self.newsletters,
            "substacks": self.substacks,
            "reddit": self.reddit,
            "total": self.total,
            "inserted": self.inserted,
            "errors": self.errors,
            "error_sources": self.error_sources,
            "duration_seconds": round(self.duration_seconds, 2),
        }


def _parse_date(entry: dict) -> datetime | None:
    """Extract publication date from a feed entry (published, updated, created)."""
    for key in ("published_parsed", "updated_parsed", "created_parsed"):
        time_tuple = entry.get(key)
        if time_tuple:
            try:
                return datetime(*time_tuple[:6], tzinfo=timezone.utc)
            except (TypeError, ValueError):
                continue
    return None


def _tagged_article(
    title: str,
    url: str,
    raw_content: str,
    source: str,
    author: str = "",
    published: datetime | None = None,
    engagement_score: int = 0,
) -> Article:
    """Build an Article with cleaned content, pillar tags and keywords."""
    content = clean_content(raw_content)
    text = f"{title} {content}"
    return Article(
        title=title,
        url=url,
        content=content,
        source=source,
        author=author,
        published_date=published or datetime.now(timezone.utc),
        pillar_tags=classify_pillars(text),
        keywords=extract_keywords(text),
        engagement_score=engagement_score,
    )


def is_substack(source: dict) -> bool:
    return "substack.com" in source.get("url", "")


def parse_rss_content(
    content: str,
    source_name: str,
    max_age_days: int = 10,
    now: datetime | None = None,
) -> list[Article]:
    """Parse feed XML into Articles.

    Only the first 20 entries are considered. Entries without a title or
    older than ``max_age_days`` are skipped; entries without a date are
    treated as published now.
    """
    feed = feedparser.parse(content)
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=max_age_days)
    articles = []

    for entry in feed.entries[:MAX_FEED_ENTRIES]:
        title = entry.get("title", "").strip()
        link = entry.get("link", "")
        if not title or not link:
            continue

        pub_date = _parse_date(entry)
        if not pub_date:
            pub_date = now
            logger.debug("Feed entry missing date, using current time: %s", title[:50])
        if pub_date < cutoff:
            continue

        body = ""
        if entry.get("content"):
            body = entry["content"][0].get("value", "")
        body = body or entry.get("summary", "") or entry.get("description", "")

        articles.append(_tagged_article(
            title=title,
            url=link,
            raw_content=body,
            source=source_name,
            author=entry.get("author", ""),
            published=pub_date,
        ))

    return articles


def parse_scraped_page(html: str, source: dict) -> list[Article]:
    """Extract up to 15 titled, linked items from a newsletter page."""
    items = extract_items(
        html,
        base_url=source["url"],
        selector=source.get("selector") or DEFAULT_ITEM_SELECTOR,
        limit=MAX_PAGE_ITEMS,
    )
    return [
        _tagged_article(title=item.title, url=item.url, raw_content=item.summary, source=source["name"])
        for item in items
    ]


def parse_subreddit_listing(
    data: dict,
    subreddit: str,
    now: datetime | None = None,
) -> list[Article]:
    """Convert a Reddit hot.json listing into Articles.

    Keeps posts from the last 7 days with a score above 10.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=REDDIT_MAX_AGE_DAYS)
    articles = []

    for child in data.get("data", {}).get("children", []):
        post = child.get("data", {})
        title = (post.get("title") or "").strip()
        if not title or not post.get("permalink"):
            continue
        created = datetime.fromtimestamp(post.get("created_utc", 0), tz=timezone.utc)
        score = post.get("score", 0)
        if created < cutoff or score <= REDDIT_MIN_SCORE:
            continue

        articles.append(_tagged_article(
            title=title,
            url=f"https://reddit.com{post['permalink']}",
            raw_content=post.get("selftext") or title,
            source=f"r/{subreddit}",
            author=post.get("author", ""),
            published=created,
            engagement_score=score + post.get("num_comments", 0),
        ))

    return articles


async def fetch_rss_source(
    session: aiohttp.ClientSession,
    source: dict,
    max_age_days: int = 10,
    timeout: int = 30,
) -> list[Article]:
    """Fetch and parse one RSS/Atom source.

    Raises:
        FeedError: If the feed cannot be fetched
    """
    content = await fetch_text(session, source["url"], timeout)
    if content is None:
        raise FeedError(f"{source['name']}: feed unavailable")
    articles = parse_rss_content(content, source["name"], max_age_days)
    logger.debug("Feed %s: %d articles", source["name"], len(articles))
    return articles


async def fetch_scraped_source(
    session: aiohttp.ClientSession,
    source: dict,
    timeout: int = 10,
) -> list[Article]:
    """Fetch a newsletter page and extract its items.

    Raises:
        FeedError: If the page cannot be fetched
    """
    html = await fetch_text(session, source["url"], timeout)
    if html is None:
        raise FeedError(f"{source['name']}: page unavailable")
    articles = parse_scraped_page(html, source)
    logger.debug("Page %s: %d articles", source["name"], len(articles))
    return articles


async def fetch_subreddit(
    session: aiohttp.ClientSession,
    subreddit: str,
    limit: int = 25,
    user_agent: str = USER_AGENT,
    timeout: int = 30,
) -> list[Article]:
    """Fetch hot posts from a subreddit's public JSON listing.

    Raises:
        FeedError: If the listing cannot be fetched or decoded
    """
    url = f"https://www.reddit.com/r/{subreddit}/hot.json?limit={limit}"
    body = await fetch_text(session, url, timeout, headers={"User-Agent": user_agent})
    if body is None:
        raise FeedError(f"r/{subreddit}: listing unavailable")
    try:
        data = json.loads(body)
    except ValueError as e:
        raise FeedError(f"r/{subreddit}: invalid JSON: {e}")
    articles = parse_subreddit_listing(data, subreddit)
    logger.debug("Subreddit r/%s: %d posts", subreddit, len(articles))
    return articles


async def fetch_source(
    session: aiohttp.ClientSession,
    source: dict,
    max_age_days: int = 10,
) -> list[Article]:
    """Dispatch a configured news source by its type ('rss' or 'scraper')."""
    if source.get("type") == "scraper":
        return await fetch_scraped_source(session, source)
    return await fetch_rss_source(session, source, max_age_days)


def count_keyword_themes(articles: list[Article], themes: list[str] = KEYWORD_THEMES) -> dict[str, int]:
    """Number of articles mentioning each theme keyword (zero counts dropped)."""
    counts = {}
    texts = [a.text.lower() for a in articles]
    for theme in themes:
        mentions = sum(1 for text in texts if theme in text)
        if mentions:
            counts[theme] = mentions
    return counts


def _collect(label: str, names: list[str], results: list, stats: IngestStats) -> list[Article]:
    articles: list[Article] = []
    for name, result in zip(names, results):
        if isinstance(result, BaseException):
            logger.warning("Ingestion failed | group=%s source=%s error=%s", label, name, result)
            stats.errors += 1
            stats.error_sources.append(name)
        else:
            articles.extend(result)
    return articles


async def ingest_all_sources(config: Config, db: Database, today: date | None = None) -> IngestStats:
    """Fetch every configured source concurrently and store the articles.

    Newsletters, Substacks and subreddits run as three concurrent groups.
    A failing source is logged and counted, never fatal. Theme keyword
    mentions are tracked for the current week.

    Returns:
        IngestStats with per-group article counts and errors
    """
    start = time.monotonic()
    stats = IngestStats()

    newsletters = [s for s in config.news_sources if not is_substack(s)]
    substacks = [s for s in config.news_sources if is_substack(s)]
    subreddits = list(config.subreddits.items())

    connector = aiohttp.TCPConnector(limit=config.max_workers)
    async with aiohttp.ClientSession(connector=connector) as session:
        newsletter_results, substack_results, reddit_results = await asyncio.gather(
            asyncio.gather(
                *(fetch_source(session, s, config.max_article_age_days) for s in newsletters),
                return_exceptions=True,
            ),
            asyncio.gather(
                *(fetch_rss_source(session, s, config.max_article_age_days) for s in substacks),
                return_exceptions=True,
            ),
            asyncio.gather(
                *(fetch_subreddit(session, name, limit, config.reddit_user_agent) for name, limit in subreddits),
                return_exceptions=True,
            ),
        )

    newsletter_articles = _collect("newsletters", [s["name"] for s in newsletters], newsletter_results, stats)
    substack_articles = _collect("substacks", [s["name"] for s in substacks], substack_results, stats)
    reddit_articles = _collect("reddit", [f"r/{name}" for name, _ in subreddits], reddit_results, stats)

    stats.newsletters = len(newsletter_articles)
    stats.substacks = len(substack_articles)
    stats.reddit = len(reddit_articles)

    articles = newsletter_articles + substack_articles + reddit_articles
    for article in articles:
        if db.insert_article(article, commit=False):
            stats.inserted += 1

    today = today or datetime.now(timezone.utc).date()
    week_start = today - timedelta(days=today.weekday())
    db.track_keywords(week_start, count_keyword_themes(articles), commit=False)
    db.commit()

    stats.duration_seconds = time.monotonic() - start
    logger.info(
        "Ingestion complete | newsletters=%d substacks=%d reddit=%d inserted=%d errors=%d",
        stats.newsletters, stats.substacks, stats.reddit, stats.inserted, stats.errors,
    )
    return stats
