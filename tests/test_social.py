from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from database import Database
from social import (
    SocialCollector,
    categorize_performance,
    import_creator_analytics,
    load_analytics_file,
    performance_score,
    placeholder_posts,
)


def test_performance_score_weights() -> None:
    assert performance_score("tiktok", {"views": 10000, "likes": 100, "shares": 10, "comments": 10}) == 11
    assert performance_score("linkedin", {"views": 1000, "likes": 10, "comments": 2, "shares": 2}) == 26
    assert performance_score("tiktok", {"views": 10_000_000}) == 100
    assert performance_score("instagram", {"views": 0}) == 50


def test_categorize_performance_thresholds() -> None:
    assert categorize_performance("tiktok", {"likes": 4000}) == "high"
    assert categorize_performance("instagram", {}) == "medium"
    assert categorize_performance("linkedin", {"likes": 10}) == "low"


def test_placeholder_posts_are_deterministic() -> None:
    first = placeholder_posts("tiktok", "loewhaley", days_back=7)
    second = placeholder_posts("tiktok", "loewhaley", days_back=7)

    assert len(first) == 5
    assert [p.post_id for p in first] == [p.post_id for p in second]
    assert first[0].post_id == "mock_tiktok_loewhaley_0"
    assert [p.engagement_metrics for p in first] == [p.engagement_metrics for p in second]
    assert len(placeholder_posts("linkedin", "x", days_back=2)) == 2
    assert placeholder_posts("instagram", "x") == []


def test_collector_stores_posts_per_platform(config) -> None:
    config.social_creators = [
        {"handle": "a", "platforms": ["tiktok", "linkedin"]},
        {"handle": "b", "platforms": ["instagram", "myspace"]},
    ]
    db = Database(config.db_path)
    try:
        results = asyncio.run(SocialCollector(config, db).collect_competitor_content(days_back=7))

        assert len(results["tiktok"]) == 5
        assert len(results["linkedin"]) == 3
        assert results["instagram"] == []
        assert db.stats()["social_posts"] == 8
    finally:
        db.close()


def test_load_analytics_csv(tmp_path: Path) -> None:
    path = tmp_path / "posts.csv"
    path.write_text(
        "platform,content,date,likes,comments,shares,views\n"
        "TikTok,Negotiation script,2026-10-01,4000,10,5,1000\n"
        "linkedin,,2026-10-02,1,1,1,1\n",
        encoding="utf-8",
    )

    posts = load_analytics_file(path)

    assert len(posts) == 1
    assert posts[0]["platform"] == "tiktok"
    assert posts[0]["metrics"] == {"likes": 4000, "comments": 10, "shares": 5, "views": 1000}


def test_load_analytics_json_shapes(tmp_path: Path) -> None:
    wrapped = tmp_path / "wrapped.json"
    wrapped.write_text(json.dumps({"posts": [{"platform": "tiktok", "content": "x"}]}), encoding="utf-8")
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"items": []}), encoding="utf-8")

    assert len(load_analytics_file(wrapped)) == 1
    with pytest.raises(ValueError, match="Invalid JSON format"):
        load_analytics_file(bad)
    with pytest.raises(ValueError, match="Unsupported format"):
        load_analytics_file(tmp_path / "posts.xlsx")


def test_import_creator_analytics(config) -> None:
    posts = [
        {"platform": "tiktok", "id": "1", "content": "Salary negotiation tips", "date": "2026-10-01",
         "metrics": {"likes": 4000, "comments": 10, "shares": 5, "views": 1000}},
        {"platform": "linkedin", "id": "2", "content": "Monday thoughts", "metrics": {"likes": 1}},
    ]
    db = Database(config.db_path)
    try:
        breakdown = import_creator_analytics(db, posts)

        assert breakdown == {"tiktok": 1, "linkedin": 1}
        top = db.top_creator_posts()
        assert [p["post_id"] for p in top] == ["1"]
        assert top[0]["pillar_tags"] == ["STRATEGIC_GROWTH"]
    finally:
        db.close()
