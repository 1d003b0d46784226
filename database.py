"""Database operations for the Content Intel pipeline.

This module provides SQLite-based storage for ingested content, generated
reports and creator analytics.

Database Schema:
    news_articles: RSS / scraped / Reddit items, unique by url
    social_posts: creator posts, unique by (platform, post_id)
    weekly_reports: one row per generated report (full payload as JSON)
    content_ideas: ideas belonging to a weekly report
    creator_analytics: imported performance data for the creator's own posts
    keyword_tracking: weekly keyword mention counts

List-valued columns (pillar tags, hooks, ...) are stored as JSON text.
Timestamps are ISO-8601 strings in UTC, so lexical order is time order.

Features:
    - WAL mode for concurrent read/write access
    - Automatic schema migration for new columns
    - Batch operations with deferred commits
    - Context manager support for auto-cleanup
"""

import json
import logging
import sqlite3
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from models.content import Article, SocialPost
from models.report import ContentIdea, WeeklyReport

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _loads(value: str | None, default: Any) -> Any:
    """Decode a JSON column, returning ``default`` for NULL or bad data."""
    if not value:
        return default
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        logger.debug("Invalid JSON column value | value=%s", str(value)[:50])
        return default


class Database:
    """SQLite content store.

    Example:
        >>> with Database("data/news_agent.db") as db:
        ...     db.insert_article(article)
        ...     articles = db.recent_articles(days=7)
    """

    SCHEMA = """
    -- Ingested news, newsletter and Reddit items
    CREATE TABLE IF NOT EXISTS news_articles (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        url TEXT UNIQUE NOT NULL,
        content TEXT,
        source TEXT,
        author TEXT,
        published_date TEXT,              -- ISO-8601 UTC
        pillar_tags TEXT,                 -- JSON list of pillar ids
        keywords TEXT,                    -- JSON list
        engagement_score INTEGER DEFAULT 0,
        created_at TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_articles_published ON news_articles(published_date);

    -- Creator posts collected for competitor insights
    CREATE TABLE IF NOT EXISTS social_posts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        platform TEXT NOT NULL,
        creator_handle TEXT NOT NULL,
        post_id TEXT NOT NULL,
        content TEXT,
        engagement_metrics TEXT,          -- JSON object
        posted_date TEXT,
        pillar_tags TEXT,
        performance_score INTEGER DEFAULT 0,
        created_at TEXT NOT NULL,
        UNIQUE(platform, post_id)
    );

    -- Generated weekly reports
    CREATE TABLE IF NOT EXISTS weekly_reports (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        week_start_date TEXT NOT NULL,    -- YYYY-MM-DD (Monday)
        week_end_date TEXT NOT NULL,      -- YYYY-MM-DD (Sunday)
        generated_date TEXT NOT NULL,
        report_data TEXT NOT NULL,        -- WeeklyReport JSON
        report_url TEXT,
        ideas_count INTEGER DEFAULT 0,
        summary TEXT
    );

    CREATE INDEX IF NOT EXISTS idx_reports_week ON weekly_reports(week_start_date);

    -- Ideas belonging to a weekly report
    CREATE TABLE IF NOT EXISTS content_ideas (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        report_id INTEGER,
        title TEXT NOT NULL,
        platform TEXT,
        format TEXT,
        hooks TEXT,
        key_points TEXT,
        pillar_tags TEXT,
        rationale TEXT,
        source_links TEXT,
        engagement_potential INTEGER DEFAULT 50,
        generated_date TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_ideas_report ON content_ideas(report_id);

    -- Performance data for the creator's own posts
    CREATE TABLE IF NOT EXISTS creator_analytics (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        platform TEXT NOT NULL,
        post_id TEXT NOT NULL,
        content TEXT,
        engagement_metrics TEXT,
        posted_date TEXT,
        pillar_tags TEXT,
        performance_category TEXT,        -- high, medium, low
        UNIQUE(platform, post_id)
    );

    -- Weekly keyword mention counts
    CREATE TABLE IF NOT EXISTS keyword_tracking (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        keyword TEXT NOT NULL,
        week_start_date TEXT NOT NULL,
        mentions INTEGER DEFAULT 0,
        UNIQUE(keyword, week_start_date)
    );
    """

    path: Path
    conn: sqlite3.Connection

    def __init__(self, path: Path | str):
        """Initialize database connection.

        Creates the database file (and parent directory) if missing and sets
        up the schema.

        Args:
            path: Path to SQLite database file, or ':memory:'
        """
        self.path = Path(path)
        if str(path) != ":memory:":
            self.path.parent.mkdir(parents=True, exist_ok=True)
        # Shared between the API worker threads and the scheduler task
        self.conn = sqlite3.connect(str(path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row

        self.conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()
        logger.debug("Database initialized | path=%s", self.path)

    def _init_schema(self) -> None:
        """Create tables and indexes, then run pending migrations."""
        self.conn.executescript(self.SCHEMA)
        self.conn.commit()
        self._migrate()

    def _migrate(self) -> None:
        """Add columns introduced after the initial schema."""
        cursor = self.conn.execute("PRAGMA table_info(weekly_reports)")
        columns = {row["name"] for row in cursor.fetchall()}

        if "summary" not in columns:
            self.conn.execute("ALTER TABLE weekly_reports ADD COLUMN summary TEXT")
            self.conn.commit()
            logger.info("Database migrated | table=weekly_reports added column=summary")

    # === Content ===

    def insert_article(self, article: Article, commit: bool = True) -> bool:
        """Insert an article, ignoring duplicates by url.

        Returns:
            True if a new row was inserted
        """
        cursor = self.conn.execute(
            """
            INSERT OR IGNORE INTO news_articles
            (title, url, content, source, author, published_date,
             pillar_tags, keywords, engagement_score, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                article.title,
                article.url,
                article.content,
                article.source,
                article.author,
                _iso(article.published_date),
                json.dumps(article.pillar_tags),
                json.dumps(article.keywords),
                article.engagement_score,
                _now_iso(),
            ),
        )
        if commit:
            self.conn.commit()
        return cursor.rowcount > 0

    def insert_social_post(self, post: SocialPost, commit: bool = True) -> None:
        """Insert or refresh a social post."""
        self.conn.execute(
            """
            INSERT OR REPLACE INTO social_posts
            (platform, creator_handle, post_id, content, engagement_metrics,
             posted_date, pillar_tags, performance_score, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                post.platform,
                post.creator_handle,
                post.post_id,
                post.content,
                post.engagement_metrics.model_dump_json(),
                _iso(post.posted_date),
                json.dumps(post.pillar_tags),
                post.performance_score,
                _now_iso(),
            ),
        )
        if commit:
            self.conn.commit()

    def recent_articles(
        self,
        days: int = 7,
        pillar: str | None = None,
        limit: int = 200,
    ) -> list[Article]:
        """Articles published within the last ``days`` days, newest first.

        Args:
            days: Look-back window
            pillar: Only articles tagged with this pillar id
            limit: Maximum rows returned
        """
        cutoff = _iso(datetime.now(timezone.utc) - timedelta(days=days))
        query = "SELECT * FROM news_articles WHERE published_date >= ?"
        params: list[Any] = [cutoff]
        if pillar:
            query += " AND pillar_tags LIKE ?"
            params.append(f'%"{pillar}"%')
        query += " ORDER BY published_date DESC LIMIT ?"
        params.append(limit)

        rows = self.conn.execute(query, params).fetchall()
        return [
            Article(
                title=row["title"],
                url=row["url"],
                content=row["content"] or "",
                source=row["source"] or "",
                author=row["author"] or "",
                published_date=datetime.fromisoformat(row["published_date"]),
                pillar_tags=_loads(row["pillar_tags"], []),
                keywords=_loads(row["keywords"], []),
                engagement_score=row["engagement_score"] or 0,
            )
            for row in rows
        ]

    def recent_social_posts(
        self,
        days: int = 7,
        platform: str | None = None,
        limit: int = 200,
    ) -> list[SocialPost]:
        """Social posts from the last ``days`` days, best performing first."""
        cutoff = _iso(datetime.now(timezone.utc) - timedelta(days=days))
        query = "SELECT * FROM social_posts WHERE posted_date >= ?"
        params: list[Any] = [cutoff]
        if platform:
            query += " AND platform = ?"
            params.append(platform)
        query += " ORDER BY performance_score DESC LIMIT ?"
        params.append(limit)

        rows = self.conn.execute(query, params).fetchall()
        return [
            SocialPost(
                platform=row["platform"],
                creator_handle=row["creator_handle"],
                post_id=row["post_id"],
                content=row["content"] or "",
                engagement_metrics=_loads(row["engagement_metrics"], {}),
                posted_date=datetime.fromisoformat(row["posted_date"]),
                pillar_tags=_loads(row["pillar_tags"], []),
                performance_score=row["performance_score"] or 0,
            )
            for row in rows
        ]

    # === Reports ===

    def save_weekly_report(
        self,
        report: WeeklyReport,
        report_url: str | None = None,
        commit: bool = True,
    ) -> int:
        """Persist a generated report.

        Returns:
            The new report id
        """
        cursor = self.conn.execute(
            """
            INSERT INTO weekly_reports
            (week_start_date, week_end_date, generated_date, report_data,
             report_url, ideas_count, summary)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                report.week_start.isoformat(),
                report.week_end.isoformat(),
                _iso(report.generated_at),
                report.model_dump_json(),
                report_url,
                len(report.content_ideas),
                report.executive_summary,
            ),
        )
        if commit:
            self.conn.commit()
        report_id = int(cursor.lastrowid)
        logger.debug("Report saved | id=%d week=%s", report_id, report.week_start)
        return report_id

    def recent_reports(self, limit: int = 5) -> list[dict[str, Any]]:
        """Most recent reports, newest first, with decoded report data."""
        rows = self.conn.execute(
            "SELECT * FROM weekly_reports ORDER BY generated_date DESC, id DESC LIMIT ?",
            (limit,),
        ).fetchall()
        return [self._report_row(row) for row in rows]

    def get_report(self, report_id: int) -> dict[str, Any] | None:
        """Get a report by id, or None."""
        row = self.conn.execute(
            "SELECT * FROM weekly_reports WHERE id = ?", (report_id,)
        ).fetchone()
        return self._report_row(row) if row else None

    def latest_report_week(self) -> str | None:
        """Week start date of the latest report (YYYY-MM-DD), or None."""
        row = self.conn.execute(
            "SELECT MAX(week_start_date) AS week FROM weekly_reports"
        ).fetchone()
        return row["week"] if row else None

    @staticmethod
    def _report_row(row: sqlite3.Row) -> dict[str, Any]:
        record = dict(row)
        record["report_data"] = _loads(record.get("report_data"), {})
        return record

    def save_content_idea(
        self,
        idea: ContentIdea,
        report_id: int | None,
        commit: bool = True,
    ) -> int:
        """Persist one content idea, returning its id."""
        cursor = self.conn.execute(
            """
            INSERT INTO content_ideas
            (report_id, title, platform, format, hooks, key_points, pillar_tags,
             rationale, source_links, engagement_potential, generated_date)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                report_id,
                idea.title,
                idea.platform,
                idea.format,
                json.dumps(idea.hooks),
                json.dumps(idea.key_points),
                json.dumps([idea.pillar] if idea.pillar else []),
                idea.rationale,
                json.dumps(idea.source_links),
                idea.engagement_potential,
                _now_iso(),
            ),
        )
        if commit:
            self.conn.commit()
        return int(cursor.lastrowid)

    def report_ideas(
        self,
        report_id: int,
        pillar: str | None = None,
        platform: str | None = None,
    ) -> list[dict[str, Any]]:
        """Ideas for a report, optionally filtered by pillar and platform."""
        query = "SELECT * FROM content_ideas WHERE report_id = ?"
        params: list[Any] = [report_id]
        if pillar:
            query += " AND pillar_tags LIKE ?"
            params.append(f"%{pillar}%")
        if platform:
            query += " AND platform = ?"
            params.append(platform)
        query += " ORDER BY generated_date DESC, id ASC"

        ideas = []
        for row in self.conn.execute(query, params).fetchall():
            ideas.append({
                "id": row["id"],
                "title": row["title"],
                "platform": row["platform"],
                "format": row["format"],
                "hooks": _loads(row["hooks"], []),
                "key_points": _loads(row["key_points"], []),
                "pillar_tags": _loads(row["pillar_tags"], []),
                "rationale": row["rationale"],
                "source_links": _loads(row["source_links"], []),
                "engagement_potential": row["engagement_potential"],
                "generated_date": row["generated_date"],
            })
        return ideas

    # === Creator analytics ===

    def upsert_creator_analytics(
        self,
        platform: str,
        post_id: str,
        content: str,
        engagement_metrics: dict[str, int],
        posted_date: str,
        pillar_tags: list[str],
        performance_category: str,
        commit: bool = True,
    ) -> None:
        """Insert or replace an analytics row for one of the creator's posts."""
        self.conn.execute(
            """
            INSERT OR REPLACE INTO creator_analytics
            (platform, post_id, content, engagement_metrics, posted_date,
             pillar_tags, performance_category)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                platform,
                post_id,
                content,
                json.dumps(engagement_metrics),
                posted_date,
                json.dumps(pillar_tags),
                performance_category,
            ),
        )
        if commit:
            self.conn.commit()

    def top_creator_posts(
        self,
        platform: str | None = None,
        limit: int = 10,
    ) -> list[dict[str, Any]]:
        """High-performing creator posts, newest first."""
        query = "SELECT * FROM creator_analytics WHERE performance_category = 'high'"
        params: list[Any] = []
        if platform:
            query += " AND platform = ?"
            params.append(platform)
        query += " ORDER BY posted_date DESC LIMIT ?"
        params.append(limit)

        posts = []
        for row in self.conn.execute(query, params).fetchall():
            record = dict(row)
            record["engagement_metrics"] = _loads(record["engagement_metrics"], {})
            record["pillar_tags"] = _loads(record["pillar_tags"], [])
            posts.append(record)
        return posts

    # === Keyword tracking ===

    def track_keywords(
        self,
        week_start: date,
        counts: dict[str, int],
        commit: bool = True,
    ) -> None:
        """Record keyword mention counts for a week (replacing earlier counts)."""
        for keyword, mentions in counts.items():
            self.conn.execute(
                """
                INSERT INTO keyword_tracking (keyword, week_start_date, mentions)
                VALUES (?, ?, ?)
                ON CONFLICT(keyword, week_start_date) DO UPDATE SET mentions = excluded.mentions
                """,
                (keyword, week_start.isoformat(), mentions),
            )
        if commit:
            self.conn.commit()

    def keyword_history(self, keyword: str, weeks: int = 8) -> list[dict[str, Any]]:
        """Mention counts for a keyword, most recent week first."""
        rows = self.conn.execute(
            """
            SELECT week_start_date, mentions FROM keyword_tracking
            WHERE keyword = ? ORDER BY week_start_date DESC LIMIT ?
            """,
            (keyword, weeks),
        ).fetchall()
        return [dict(row) for row in rows]

    # === Maintenance ===

    def commit(self) -> None:
        """Commit pending changes."""
        self.conn.commit()

    def rollback(self) -> None:
        """Discard pending changes."""
        self.conn.rollback()

    def stats(self) -> dict[str, int]:
        """Row counts per table."""
        counts = {}
        for table in (
            "news_articles",
            "social_posts",
            "weekly_reports",
            "content_ideas",
            "creator_analytics",
            "keyword_tracking",
        ):
            row = self.conn.execute(f"SELECT COUNT(*) AS n FROM {table}").fetchone()
            counts[table] = row["n"] or 0
        return counts

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
