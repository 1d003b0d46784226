#!/usr/bin/env python3
"""Content Intel: weekly content intelligence for a career creator.

This CLI ingests career and workplace news, researches each content pillar,
and generates a weekly report with key stories, hooks, platform-specific
ideas and a watchlist, delivered to Google Docs, email and Slack.

Commands:
    generate          Generate one weekly report
    serve             Run the HTTP API (and the weekly schedule)
    schedule          Run only the weekly schedule
    ingest            Fetch newsletters, Substacks and Reddit into the database
    import-analytics  Import creator post analytics (CSV or JSON)
    setup-oauth       Authorize Google Docs/Drive access
    status            Show configuration, database and memory statistics
    recent            List stored reports
    memory            Show report memory context or check a topic

Examples:
    python main.py generate                           # Current week
    python main.py generate --week-start 2026-10-12   # Specific week
    python main.py serve --no-schedule --port 8000
    python main.py ingest --social --analyze
    python main.py import-analytics exports/tiktok.csv
    python main.py memory --topic "salary negotiation" --weeks 3

Environment:
    OPENAI_API_KEY or ANTHROPIC_API_KEY: Required for LLM stages
    TAVILY_API_KEY: Required for report generation
    See config.py for all configuration options
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import date, datetime, timezone
from pathlib import Path

from config import Config
from database import Database
from observability.logging import setup_logging


def cmd_generate(args: argparse.Namespace, config: Config) -> int:
    """Generate one weekly report and print a summary.

    Returns:
        Exit code (0 for success)
    """
    from pipeline import generate_weekly_report

    logger = logging.getLogger(__name__)
    week_start = date.fromisoformat(args.week_start) if args.week_start else None

    try:
        result = asyncio.run(generate_weekly_report(config, week_start))
    except KeyboardInterrupt:
        logger.info("Stopped by user (Ctrl+C)")
        return 130
    except Exception as e:
        logger.error("Report generation failed | error=%s type=%s", e, type(e).__name__, exc_info=True)
        print(f"Report generation failed: {e}", file=sys.stderr)
        return 1

    report = result.report
    print(f"\n=== Weekly Report {report.week_start} to {report.week_end} ===\n")
    print(f"Key stories:   {len(report.key_stories)}")
    print(f"Content ideas: {len(report.content_ideas)}")
    print(f"Watchlist:     {len(report.watchlist)}")
    print(f"Sources:       {report.total_sources}")
    if report.fallbacks_used:
        print(f"Fallbacks:     {', '.join(report.fallbacks_used)}")
    print(f"Document:      {result.document_url or 'not created'}")
    print(f"Email sent:    {'yes' if result.email_sent else 'no'}")
    if result.markdown_path:
        print(f"Saved to:      {result.markdown_path}")
    print(f"\nStats: {json.dumps(result.stats.to_dict())}")
    return 0


def cmd_serve(args: argparse.Namespace, config: Config) -> int:
    from server import serve

    if args.port:
        config.port = args.port
    serve(config, schedule=not args.no_schedule)
    return 0


def cmd_schedule(args: argparse.Namespace, config: Config) -> int:
    """Run the weekly report loop until interrupted."""
    from scheduler import run_weekly_schedule, weekly_report_job

    try:
        asyncio.run(run_weekly_schedule(lambda: weekly_report_job(config), config))
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Schedule stopped by user (Ctrl+C)")
        return 130
    return 0


def cmd_ingest(args: argparse.Namespace, config: Config) -> int:
    """Ingest sources and optionally cluster the week's content."""
    from feeds import ingest_all_sources
    from social import SocialCollector

    async def run() -> dict:
        with Database(config.db_path) as db:
            summary: dict = {"articles": (await ingest_all_sources(config, db)).to_dict()}
            if args.social:
                collected = await SocialCollector(config, db).collect_competitor_content(days_back=7)
                summary["social"] = {platform: len(posts) for platform, posts in collected.items()}
            if args.analyze:
                summary["analysis"] = await _analyze_week(config, db)
            return summary

    try:
        summary = asyncio.run(run())
    except KeyboardInterrupt:
        return 130
    print(json.dumps(summary, indent=2))
    return 0


async def _analyze_week(config: Config, db: Database) -> dict:
    from agents.themes import (
        ContentAnalyzer,
        engagement_summary,
        extract_themes,
        identify_trending_topics,
        pillar_distribution,
    )

    articles = db.recent_articles(days=7)
    posts = db.recent_social_posts(days=7)
    items = [*articles, *posts]
    clusters = await ContentAnalyzer(config).cluster_weekly_content(articles, posts)
    return {
        "themes": extract_themes(clusters),
        "trending": identify_trending_topics(items, datetime.now(timezone.utc)),
        "pillar_distribution": pillar_distribution(items),
        "engagement": engagement_summary(items),
    }


def cmd_import_analytics(args: argparse.Namespace, config: Config) -> int:
    from social import import_creator_analytics, load_analytics_file

    path = Path(args.file)
    if not path.exists():
        print(f"File not found: {path}", file=sys.stderr)
        return 1
    try:
        posts = load_analytics_file(path, args.format)
    except (OSError, ValueError) as e:
        print(f"Could not read analytics file: {e}", file=sys.stderr)
        return 1

    with Database(config.db_path) as db:
        breakdown = import_creator_analytics(db, posts)

    print(f"Imported {len(posts)} posts")
    for platform, count in sorted(breakdown.items()):
        print(f"   {platform}: {count}")
    return 0


def cmd_setup_oauth(args: argparse.Namespace, config: Config) -> int:
    from delivery.google_docs import GoogleAuthError, run_oauth_setup

    try:
        path = run_oauth_setup(config.google_client_id, config.google_client_secret, config.google_token_path)
    except GoogleAuthError as e:
        print(f"OAuth setup failed: {e}", file=sys.stderr)
        return 1
    print(f"Google token saved to {path}")
    return 0


def cmd_status(args: argparse.Namespace, config: Config) -> int:
    """Display configuration, database and memory statistics.

    Returns:
        Exit code (0 for success)
    """
    from memory.report_memory import ReportMemory
    from scheduler import schedule_info
    from tools.search import SearchCache, cache_day

    with Database(config.db_path) as db:
        db_stats = db.stats()
        last_week = db.latest_report_week()

    memory_stats = ReportMemory(config.memory_file, config.insights_file).load().statistics
    cache = SearchCache(config.search_cache_dir)
    today = cache_day(config.timezone)

    status = {
        "config": {
            "analysis_model": config.analysis_model,
            "fast_model": config.fast_model,
            "search_mode": config.search_mode,
            "tavily_monthly_limit": config.tavily_monthly_limit,
            "google": config.google_enabled,
            "email": config.email_enabled,
            "slack": config.slack_enabled,
            "strict_synthesis": config.strict_synthesis,
            "enable_logfire": config.enable_logfire,
        },
        "database": {"path": str(config.db_path), "last_report_week": last_week, **db_stats},
        "memory": memory_stats.model_dump(),
        "search_cache": {"today": str(cache.path_for(today)), "cached": bool(cache.load(today))},
        "schedule": schedule_info(config),
    }

    print(json.dumps(status, indent=2))
    return 0


def cmd_recent(args: argparse.Namespace, config: Config) -> int:
    with Database(config.db_path) as db:
        reports = db.recent_reports(args.limit)

    if not reports:
        print("No reports generated yet.")
        return 0

    print(f"\n=== Recent Reports (last {len(reports)}) ===\n")
    for report in reports:
        data = report["report_data"]
        print(f"#{report['id']} Week of {report['week_start_date']} ({report['ideas_count']} ideas)")
        print(f"   Generated: {report['generated_date']}")
        if report.get("report_url"):
            print(f"   Document: {report['report_url']}")
        themes = data.get("themes") or []
        if themes:
            print(f"   Themes: {', '.join(themes[:3])}")
        summary = report.get("summary") or ""
        if summary:
            print(f"   Summary: {summary[:200] + '...' if len(summary) > 200 else summary}")
        print()
    return 0


def cmd_memory(args: argparse.Namespace, config: Config) -> int:
    from memory.report_memory import ReportMemory

    memory = ReportMemory(config.memory_file, config.insights_file)
    if args.topic:
        covered = memory.was_recently_covered(args.topic, within_weeks=args.weeks)
        print(f"'{args.topic}' covered in the last {args.weeks} weeks: {'yes' if covered else 'no'}")
        return 0

    context = memory.get_report_context()
    print(json.dumps({
        "recent_reports": [
            {"week_start": r.week_start, "topics": r.topics, "themes": r.themes}
            for r in context.recent_reports
        ],
        "covered_topics": {topic: len(occ) for topic, occ in context.covered_topics.items()},
        "recommendations": context.recommendations,
        "fresh_topics": memory.fresh_topic_opportunities(),
        "statistics": context.statistics.model_dump(),
    }, indent=2))
    return 0


def main() -> int:
    """Main entry point.

    Returns:
        Exit code
    """
    parser = argparse.ArgumentParser(
        description="Content Intel: weekly content intelligence reports",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # generate command
    generate_parser = subparsers.add_parser("generate", help="Generate one weekly report")
    generate_parser.add_argument(
        "--week-start",
        help="Any date in the target week, YYYY-MM-DD (default: current week)",
    )

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument(
        "--no-schedule",
        action="store_true",
        help="Do not run the weekly schedule in the server",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        help="Port to listen on (default: config PORT)",
    )

    subparsers.add_parser("schedule", help="Run only the weekly report schedule")

    # ingest command
    ingest_parser = subparsers.add_parser("ingest", help="Ingest newsletters, Substacks and Reddit")
    ingest_parser.add_argument(
        "--social",
        action="store_true",
        help="Also collect tracked creators' social posts",
    )
    ingest_parser.add_argument(
        "--analyze",
        action="store_true",
        help="Cluster the week's content into themes after ingesting",
    )

    # import-analytics command
    import_parser = subparsers.add_parser("import-analytics", help="Import creator analytics")
    import_parser.add_argument("file", help="CSV or JSON export")
    import_parser.add_argument(
        "--format",
        choices=["csv", "json"],
        help="File format (default: from extension)",
    )

    subparsers.add_parser("setup-oauth", help="Authorize Google Docs/Drive access")
    subparsers.add_parser("status", help="Show configuration and statistics")

    # recent command
    recent_parser = subparsers.add_parser("recent", help="List stored reports")
    recent_parser.add_argument(
        "--limit",
        type=int,
        default=5,
        help="Number of reports (default: 5)",
    )

    # memory command
    memory_parser = subparsers.add_parser("memory", help="Show report memory")
    memory_parser.add_argument("--topic", help="Check whether a topic was covered recently")
    memory_parser.add_argument(
        "--weeks",
        type=int,
        default=2,
        help="Window for --topic in weeks (default: 2)",
    )

    args = parser.parse_args()

    # Load configuration
    try:
        config = Config.load()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    # Setup logging
    setup_logging(config, verbose=args.verbose)

    # Validate configuration for commands that need it
    error = None
    if args.command in ("generate", "serve", "schedule"):
        error = config.validate_research()
    elif args.command == "ingest" and args.analyze:
        error = config.validate()
    if error:
        print(f"Configuration error: {error}", file=sys.stderr)
        return 1
    if args.command == "generate" and args.week_start:
        try:
            date.fromisoformat(args.week_start)
        except ValueError:
            print("Error: --week-start must be YYYY-MM-DD", file=sys.stderr)
            return 1

    # Route to command handler
    commands = {
        "generate": cmd_generate,
        "serve": cmd_serve,
        "schedule": cmd_schedule,
        "ingest": cmd_ingest,
        "import-analytics": cmd_import_analytics,
        "setup-oauth": cmd_setup_oauth,
        "status": cmd_status,
        "recent": cmd_recent,
        "memory": cmd_memory,
    }

    if args.command in commands:
        try:
            return commands[args.command](args, config)
        except KeyboardInterrupt:
            return 130
        except Exception as e:
            logging.getLogger(__name__).error("Command failed | cmd=%s error=%s", args.command, e, exc_info=True)
            print(f"Error: {e}", file=sys.stderr)
            return 1
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
