"""Weekly report schedule.

The report runs once a week at WEEKLY_REPORT_HOUR:00 on WEEKLY_REPORT_DAY
(cron numbering, 0 = Sunday) in TIMEZONE. The loop sleeps in chunks of at
most an hour so clock changes and DST shifts are picked up, runs the job
and keeps going when a run fails.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import date, datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo

from config import Config
from notifications import SlackNotifier
from pipeline import ReportRunResult, generate_weekly_report

logger = logging.getLogger(__name__)

MAX_SLEEP_SECONDS = 3600


def cron_expression(day: int, hour: int) -> str:
    return f"0 {hour} * * {day}"


def next_run_time(day: int, hour: int, tz: str, now: datetime | None = None) -> datetime:
    """Next time strictly after ``now`` falling on cron weekday ``day`` at ``hour``:00.

    Args:
        day: Cron weekday (0 = Sunday ... 6 = Saturday)
        hour: Hour of day (0-23)
        tz: IANA timezone name
        now: Reference time (default: current time)

    Returns:
        Timezone-aware datetime in ``tz``
    """
    zone = ZoneInfo(tz)
    now = (now or datetime.now(zone)).astimezone(zone)
    target_weekday = (day - 1) % 7
    days_ahead = (target_weekday - now.weekday()) % 7
    run_day = now.date() + timedelta(days=days_ahead)
    candidate = datetime(run_day.year, run_day.month, run_day.day, hour, tzinfo=zone)
    if candidate <= now:
        run_day += timedelta(days=7)
        candidate = datetime(run_day.year, run_day.month, run_day.day, hour, tzinfo=zone)
    return candidate


def schedule_info(config: Config, now: datetime | None = None) -> dict[str, Any]:
    """Schedule summary for status endpoints and the CLI."""
    return {
        "next_report": next_run_time(
            config.weekly_report_day, config.weekly_report_hour, config.timezone, now
        ).isoformat(),
        "timezone": config.timezone,
        "cron_expression": cron_expression(config.weekly_report_day, config.weekly_report_hour),
    }


async def weekly_report_job(
    config: Config,
    generate: Callable[[Config, date | None], Awaitable[ReportRunResult]] = generate_weekly_report,
    notifier: SlackNotifier | None = None,
) -> ReportRunResult | None:
    """Run one scheduled report.

    The report run posts its own Slack summary; on failure this posts an
    error alert and returns None instead of raising.
    """
    notifier = notifier or SlackNotifier(config.slack_bot_token, config.slack_channel_id)
    logger.info("Scheduled weekly report started")
    try:
        result = await generate(config, None)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.error("Scheduled weekly report failed | error=%s", e, exc_info=True)
        await notifier.post_error_alert(e, "Weekly report generation")
        return None
    logger.info("Scheduled weekly report complete | url=%s", result.document_url)
    return result


async def run_weekly_schedule(
    job: Callable[[], Awaitable[Any]],
    config: Config,
    clock: Callable[[], datetime] | None = None,
) -> None:
    """Run ``job`` every week until cancelled."""
    zone = ZoneInfo(config.timezone)
    clock = clock or (lambda: datetime.now(zone))
    logger.info(
        "Weekly schedule started | cron='%s' tz=%s",
        cron_expression(config.weekly_report_day, config.weekly_report_hour), config.timezone,
    )
    runs = 0
    try:
        while True:
            next_run = next_run_time(config.weekly_report_day, config.weekly_report_hour, config.timezone, clock())
            logger.info("Next weekly report | at=%s", next_run.isoformat())
            while (remaining := (next_run - clock()).total_seconds()) > 0:
                await asyncio.sleep(min(remaining, MAX_SLEEP_SECONDS))

            runs += 1
            try:
                await job()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Scheduled job failed | run=%d error=%s", runs, e, exc_info=True)
    except asyncio.CancelledError:
        logger.info("Weekly schedule stopped | runs=%d", runs)
        raise
