"""Weekly content analysis: clustering, trending words and distributions.

Only clustering calls the LLM; the rest are pure functions over ingested
articles and social posts.
"""

import logging
import re
from collections import Counter
from datetime import datetime, timedelta, timezone

from pydantic_ai.models import Model

from agents.base import create_agent, run_agent
from config import Config
from models.content import Article, ContentCluster, ContentClusterList, SocialPost
from pillars import CONTENT_PILLARS, STOP_WORDS, pillar_name

logger = logging.getLogger(__name__)

Item = Article | SocialPost

MAX_CLUSTER_ITEMS = 60
TRENDING_WINDOW_DAYS = 3
TRENDING_MIN_COUNT = 3
TRENDING_LIMIT = 15

_TREND_WORD_RE = re.compile(r"\b[a-z]{4,}\b")

CLUSTER_PROMPT = f"""You group a week of career and workplace content into themes.

Return 5-7 clusters. Each cluster has a short theme name, one sentence on what
connects the items, the best matching pillar id, the indices of its items and a
few representative keywords. Every index must refer to the numbered input list.

Pillar ids: {", ".join(CONTENT_PILLARS)}"""


def _item_date(item: Item) -> datetime:
    return item.published_date if isinstance(item, Article) else item.posted_date


def _item_title(item: Item) -> str:
    if isinstance(item, Article):
        return item.title
    return f"@{item.creator_handle} ({item.platform}): {item.content[:80]}"


def format_items_for_clustering(items: list[Item]) -> str:
    return "\n".join(
        f"[{i}] {_item_title(item)} | pillars={','.join(item.pillar_tags) or 'none'}"
        for i, item in enumerate(items)
    )


def fallback_clusters(items: list[Item]) -> list[ContentCluster]:
    """Group items by their first pillar tag."""
    groups: dict[str, list[int]] = {}
    for i, item in enumerate(items):
        if item.pillar_tags:
            groups.setdefault(item.pillar_tags[0], []).append(i)
    return [
        ContentCluster(
            theme=pillar_name(pillar_id),
            description=f"{len(indices)} items tagged {pillar_name(pillar_id)}",
            pillar=pillar_id,
            item_indices=indices,
        )
        for pillar_id, indices in sorted(groups.items(), key=lambda kv: len(kv[1]), reverse=True)
    ]


class ContentAnalyzer:
    """Clusters the week's ingested content into themes."""

    def __init__(self, config: Config, model: Model | None = None):
        self.timeout = config.stage_timeout_seconds
        self.cluster_agent = create_agent(model or config.fast_model, ContentClusterList, CLUSTER_PROMPT)

    async def cluster_weekly_content(
        self,
        articles: list[Article],
        posts: list[SocialPost],
    ) -> list[ContentCluster]:
        """Cluster articles and posts, falling back to pillar grouping on failure."""
        items: list[Item] = [*articles, *posts][:MAX_CLUSTER_ITEMS]
        if not items:
            return []
        try:
            output = await run_agent(
                self.cluster_agent,
                format_items_for_clustering(items),
                max_tokens=2000, temperature=0.3, timeout=self.timeout, stage="clustering",
            )
        except Exception as e:
            logger.warning("Clustering failed, grouping by pillar | error=%s: %s", type(e).__name__, e)
            return fallback_clusters(items)

        clusters = []
        for cluster in output.clusters:
            indices = [i for i in cluster.item_indices if 0 <= i < len(items)]
            if indices:
                clusters.append(cluster.model_copy(update={"item_indices": indices}))
        if not clusters:
            logger.warning("Clustering returned no usable clusters, grouping by pillar")
            return fallback_clusters(items)
        return clusters


def extract_themes(clusters: list[ContentCluster], limit: int = 7) -> list[str]:
    """Theme names ordered by cluster size."""
    ranked = sorted(clusters, key=lambda c: len(c.item_indices), reverse=True)
    return [c.theme for c in ranked[:limit]]


def count_trending_words(
    texts: list[str],
    min_count: int = TRENDING_MIN_COUNT,
    limit: int = TRENDING_LIMIT,
) -> list[tuple[str, int]]:
    counts: Counter[str] = Counter()
    for text in texts:
        for word in _TREND_WORD_RE.findall((text or "").lower()):
            if word not in STOP_WORDS:
                counts[word] += 1
    return [(w, n) for w, n in counts.most_common() if n >= min_count][:limit]


def identify_trending_topics(items: list[Item], now: datetime | None = None) -> list[tuple[str, int]]:
    """Most frequent words across items from the last three days.

    Returns:
        (word, count) pairs with count >= 3, at most 15, most frequent first
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=TRENDING_WINDOW_DAYS)
    recent = [item.text for item in items if _item_date(item) >= cutoff]
    return count_trending_words(recent)


def pillar_distribution(items: list[Item]) -> dict[str, dict[str, float]]:
    """Count and percentage of items per pillar id (items may count twice)."""
    counts = Counter(tag for item in items for tag in item.pillar_tags)
    total = len(items)
    return {
        pillar_id: {
            "count": counts.get(pillar_id, 0),
            "percentage": round(counts.get(pillar_id, 0) / total * 100, 1) if total else 0.0,
        }
        for pillar_id in CONTENT_PILLARS
    }


def engagement_summary(items: list[Item], top: int = 5) -> dict:
    if not items:
        return {"total_items": 0, "avg_engagement": 0.0, "top_items": []}
    scores = [item.engagement_score for item in items]
    ranked = sorted(items, key=lambda item: item.engagement_score, reverse=True)[:top]
    return {
        "total_items": len(items),
        "avg_engagement": round(sum(scores) / len(scores), 1),
        "top_items": [{"title": _item_title(item), "engagement": item.engagement_score} for item in ranked],
    }
