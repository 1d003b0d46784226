"""Creator social posts: competitor collection and own-analytics import.

SocialCollector walks every configured creator and platform. The TikTok
research API is used when TIKTOK_API_KEY is set; LinkedIn and Instagram
have no usable public API, so those (and TikTok without a key or after an
API failure) produce deterministic placeholder posts so downstream stages
still see representative data.

Analytics exported from the creator's own accounts (CSV or JSON) are
loaded with load_analytics_file and stored by import_creator_analytics.
"""

import csv
import json
import logging
import math
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import aiohttp

from config import Config
from database import Database
from models.content import EngagementMetrics, SocialPost
from pillars import get_pillar_by_keyword

logger = logging.getLogger(__name__)

TIKTOK_QUERY_URL = "https://open.tiktokapis.com/v2/research/video/query/"
SUPPORTED_PLATFORMS = ("tiktok", "linkedin", "instagram")

PLACEHOLDER_TOPICS = {
    "tiktok": [
        "5 signs it's time to quit your job",
        "How to negotiate salary like a pro",
        "LinkedIn mistakes that are costing you jobs",
        "Remote work red flags to avoid",
        "Building your personal brand in 2024",
    ],
    "linkedin": [
        "The future of remote work: insights from 500+ companies",
        "Why soft skills matter more than technical skills in 2024",
        "Career pivot strategies that actually work",
        "How to build executive presence as a young professional",
        "The hidden job market: how to access it",
    ],
}
PLACEHOLDER_LIMITS = {"tiktok": 5, "linkedin": 3}


def performance_score(platform: str, metrics: EngagementMetrics | dict) -> int:
    """Weighted 0-100 engagement score for a post.

    TikTok weights views lightly and shares heavily; LinkedIn weights
    comments and shares. Other platforms score a flat 50.
    """
    if isinstance(metrics, dict):
        metrics = EngagementMetrics.model_validate(metrics)
    if platform == "tiktok":
        raw = (metrics.views / 1000) * 0.1 + (metrics.likes / 100) * 2 \
            + (metrics.shares / 10) * 5 + (metrics.comments / 10) * 3
    elif platform == "linkedin":
        raw = (metrics.views / 100) * 0.5 + (metrics.likes / 10) * 3 \
            + (metrics.comments / 2) * 8 + (metrics.shares / 2) * 10
    else:
        return 50
    return min(100, math.floor(raw))


def categorize_performance(platform: str, metrics: EngagementMetrics | dict) -> str:
    score = performance_score(platform, metrics)
    if score >= 80:
        return "high"
    if score >= 50:
        return "medium"
    return "low"


def _pillar_tags(text: str) -> list[str]:
    pillar = get_pillar_by_keyword(text)
    return [pillar.id] if pillar else []


def placeholder_posts(platform: str, handle: str, days_back: int = 7, now: datetime | None = None) -> list[SocialPost]:
    """Deterministic stand-in posts for platforms without API access."""
    topics = PLACEHOLDER_TOPICS.get(platform)
    if not topics:
        return []
    now = now or datetime.now(timezone.utc)

    posts = []
    for i in range(min(PLACEHOLDER_LIMITS[platform], days_back)):
        if platform == "tiktok":
            metrics = EngagementMetrics(
                views=60000 - 10000 * i, likes=2500 - 400 * i,
                shares=110 - 15 * i, comments=165 - 25 * i,
            )
        else:
            metrics = EngagementMetrics(
                views=6000 - 1000 * i, likes=550 - 100 * i,
                shares=17 - 3 * i, comments=30 - 5 * i,
            )
        topic = topics[i % len(topics)]
        posts.append(SocialPost(
            platform=platform,
            creator_handle=handle,
            post_id=f"mock_{platform}_{handle}_{i}",
            content=topic,
            engagement_metrics=metrics,
            posted_date=now - timedelta(days=i),
            pillar_tags=_pillar_tags(topic),
            performance_score=performance_score(platform, metrics),
        ))
    return posts


class SocialCollector:
    """Collects recent posts from tracked creators.

    Example:
        >>> collector = SocialCollector(config, db)
        >>> by_platform = await collector.collect_competitor_content(days_back=7)
        >>> len(by_platform["tiktok"])
        45
    """

    def __init__(self, config: Config, db: Database | None = None):
        self.config = config
        self.db = db

    async def collect_competitor_content(self, days_back: int = 7) -> dict[str, list[SocialPost]]:
        """Collect posts for every creator x platform pair.

        A failing pair is logged and skipped. Posts are stored when a
        database is attached.
        """
        results: dict[str, list[SocialPost]] = {p: [] for p in SUPPORTED_PLATFORMS}

        for creator in self.config.social_creators:
            handle = creator["handle"]
            for platform in creator.get("platforms", []):
                try:
                    posts = await self.get_creator_posts(handle, platform, days_back)
                except (aiohttp.ClientError, ValueError) as e:
                    logger.error("Social collection failed | creator=%s platform=%s error=%s", handle, platform, e)
                    continue
                results.setdefault(platform, []).extend(posts)

        if self.db is not None:
            for posts in results.values():
                for post in posts:
                    self.db.insert_social_post(post, commit=False)
            self.db.commit()

        logger.info(
            "Social collection complete | %s",
            " ".join(f"{p}={len(posts)}" for p, posts in results.items()),
        )
        return results

    async def get_creator_posts(self, handle: str, platform: str, days_back: int = 7) -> list[SocialPost]:
        if platform == "tiktok":
            return await self.get_tiktok_posts(handle, days_back)
        if platform == "linkedin":
            logger.debug("LinkedIn API unavailable, using placeholder posts | creator=%s", handle)
            return placeholder_posts("linkedin", handle, days_back)
        if platform == "instagram":
            return []
        logger.warning("Unsupported platform: %s", platform)
        return []

    async def get_tiktok_posts(self, handle: str, days_back: int = 7) -> list[SocialPost]:
        """Query the TikTok research API, falling back to placeholder posts."""
        if not self.config.tiktok_api_key:
            return placeholder_posts("tiktok", handle, days_back)

        today = datetime.now(timezone.utc).date()
        payload = {
            "query": {"and": [{"operation": "EQ", "field_name": "username", "field_values": [handle]}]},
            "max_count": 20,
            "start_date": (today - timedelta(days=days_back)).strftime("%Y%m%d"),
            "end_date": today.strftime("%Y%m%d"),
        }
        headers = {"Authorization": f"Bearer {self.config.tiktok_api_key}"}
        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=30)) as session:
                async with session.post(TIKTOK_QUERY_URL, json=payload, headers=headers) as resp:
                    if resp.status != 200:
                        raise ValueError(f"HTTP {resp.status}")
                    data = await resp.json()
        except (aiohttp.ClientError, ValueError) as e:
            logger.error("TikTok collection failed, using placeholder posts | creator=%s error=%s", handle, e)
            return placeholder_posts("tiktok", handle, days_back)

        posts = []
        for video in data.get("data", {}).get("videos", []):
            metrics = EngagementMetrics(
                views=video.get("view_count", 0),
                likes=video.get("like_count", 0),
                shares=video.get("share_count", 0),
                comments=video.get("comment_count", 0),
            )
            description = video.get("video_description", "")
            posts.append(SocialPost(
                platform="tiktok",
                creator_handle=handle,
                post_id=str(video.get("id")),
                content=description,
                engagement_metrics=metrics,
                posted_date=datetime.fromtimestamp(video.get("create_time", 0), tz=timezone.utc),
                pillar_tags=_pillar_tags(description),
                performance_score=performance_score("tiktok", metrics),
            ))
        logger.info("TikTok posts collected | creator=%s posts=%d", handle, len(posts))
        return posts


# === Own analytics import ===


def _to_int(value: Any) -> int:
    try:
        return int(float(value or 0))
    except (TypeError, ValueError):
        return 0


def _read_csv(path: Path) -> list[dict[str, Any]]:
    posts = []
    with path.open(newline="", encoding="utf-8") as f:
        for i, row in enumerate(csv.DictReader(f), start=1):
            row = {(k or "").strip().lower(): (v or "").strip() for k, v in row.items()}
            if not row.get("content") or not row.get("platform"):
                continue
            posts.append({
                "platform": row["platform"].lower(),
                "id": row.get("id") or f"imported_{i}",
                "content": row["content"],
                "date": row.get("date") or row.get("posted_date") or datetime.now(timezone.utc).isoformat(),
                "metrics": {
                    "likes": _to_int(row.get("likes") or row.get("like_count")),
                    "comments": _to_int(row.get("comments") or row.get("comment_count")),
                    "shares": _to_int(row.get("shares") or row.get("share_count")),
                    "views": _to_int(row.get("views") or row.get("view_count")),
                },
            })
    return posts


def _read_json(path: Path) -> list[dict[str, Any]]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get("posts"), list):
        return data["posts"]
    raise ValueError("Invalid JSON format - expected array of posts or object with posts property")


def load_analytics_file(path: Path | str, fmt: str | None = None) -> list[dict[str, Any]]:
    """Load exported post analytics.

    Args:
        path: CSV or JSON export
        fmt: 'csv' or 'json'; defaults to the file extension

    Raises:
        ValueError: Unsupported format or malformed JSON
        OSError: File cannot be read
    """
    path = Path(path)
    fmt = (fmt or path.suffix.lstrip(".")).lower()
    if fmt == "csv":
        return _read_csv(path)
    if fmt == "json":
        return _read_json(path)
    raise ValueError(f"Unsupported format: {fmt}. Use 'csv' or 'json'")


def import_creator_analytics(db: Database, posts: list[dict[str, Any]]) -> dict[str, int]:
    """Store analytics rows, categorized by performance.

    Returns:
        Count of imported posts per platform
    """
    breakdown: dict[str, int] = {}
    for i, post in enumerate(posts):
        platform = str(post.get("platform", "")).lower()
        metrics = {k: _to_int(v) for k, v in (post.get("metrics") or {}).items()}
        content = post.get("content", "")
        posted = post.get("date")
        if isinstance(posted, (date, datetime)):
            posted = posted.isoformat()
        db.upsert_creator_analytics(
            platform=platform,
            post_id=str(post.get("id") or f"imported_{i}"),
            content=content,
            engagement_metrics=metrics,
            posted_date=posted or datetime.now(timezone.utc).isoformat(),
            pillar_tags=_pillar_tags(content),
            performance_category=categorize_performance(platform, metrics),
            commit=False,
        )
        breakdown[platform] = breakdown.get(platform, 0) + 1
    db.commit()
    logger.info("Creator analytics imported | posts=%d platforms=%s", len(posts), breakdown)
    return breakdown
