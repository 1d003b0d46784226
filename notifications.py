"""Notifications for generated reports.

This module handles report output beyond the Google Doc:
- Markdown and JSON report files saved to REPORTS_DIR
- Slack messages (weekly summary, error alerts, content alerts)

All methods fail gracefully: errors are logged and reported through the
return value, never raised, so a broken notification channel cannot fail
a report run.

Output Formats:
    Markdown: weekly-report-YYYY-MM-DD.md, the formatted report
    JSON: weekly-report-YYYY-MM-DD.json, the full WeeklyReport
    Slack: Block Kit message via chat.postMessage
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiohttp

from models.report import WeeklyReport

logger = logging.getLogger(__name__)

SLACK_API = "https://slack.com/api/"
SLACK_TIMEOUT = 10
SLACK_HEADER_LIMIT = 150


def report_filename(report: WeeklyReport, suffix: str) -> str:
    return f"weekly-report-{report.week_start.isoformat()}.{suffix}"


async def save_report_files(
    report: WeeklyReport,
    markdown: str,
    reports_dir: Path,
) -> Path | None:
    """Save the markdown and JSON versions of a report.

    Returns:
        Path of the markdown file, or None if saving failed
    """
    try:
        reports_dir.mkdir(parents=True, exist_ok=True)
        md_path = reports_dir / report_filename(report, "md")
        json_path = reports_dir / report_filename(report, "json")
        md_path.write_text(markdown, encoding="utf-8")
        json_path.write_text(report.model_dump_json(indent=2), encoding="utf-8")
        logger.info("Report saved | file=%s", md_path.name)
        return md_path
    except OSError as e:
        logger.error("Report save failed: %s", e, exc_info=True)
        return None


def _summary_bullets(summary: str) -> str:
    lines = [line.strip() for line in (summary or "").splitlines() if line.strip()]
    if not lines:
        return "No summary available"
    return "\n".join(line if line.startswith("•") else f"• {line}" for line in lines)


def _short_date(d, with_year: bool = False) -> str:
    return d.strftime("%b %d, %Y" if with_year else "%b %d")


def build_slack_blocks(
    report: WeeklyReport,
    report_url: str | None = None,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Block Kit layout for the weekly report summary."""
    now = now or datetime.now(timezone.utc)
    header = (
        f"Weekly Ideas Report - {_short_date(report.week_start)} "
        f"to {_short_date(report.week_end, with_year=True)}"
    )
    blocks: list[dict[str, Any]] = [
        {"type": "header", "text": {"type": "plain_text", "text": header[:SLACK_HEADER_LIMIT]}},
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": "*Key Takeaways:*\n" + _summary_bullets(report.executive_summary)},
        },
        {
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f"*Ideas Generated:*\n{len(report.content_ideas)}"},
                {"type": "mrkdwn", "text": f"*Key Stories:*\n{len(report.key_stories)}"},
                {"type": "mrkdwn", "text": f"*Sources Analyzed:*\n{report.total_sources}"},
                {"type": "mrkdwn", "text": f"*Watchlist Items:*\n{len(report.watchlist)}"},
            ],
        },
    ]

    hooks = [(idea.hooks[0], idea.platform) for idea in report.content_ideas if idea.hooks][:5]
    if hooks:
        lines = "\n".join(f'{i}. "{hook}" _({platform})_' for i, (hook, platform) in enumerate(hooks, 1))
        blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": f"*Top 5 Hooks to Test:*\n{lines}"}})

    if report.themes:
        lines = "\n".join(f"{i}. *{theme}*" for i, theme in enumerate(report.themes[:3], 1))
        blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": f"*This Week's Themes:*\n{lines}"}})

    if report_url:
        blocks.append({
            "type": "actions",
            "elements": [{
                "type": "button",
                "text": {"type": "plain_text", "text": "View Full Report", "emoji": True},
                "url": report_url,
                "action_id": "view_report",
                "style": "primary",
            }],
        })

    blocks.append({"type": "divider"})
    blocks.append({
        "type": "context",
        "elements": [{"type": "mrkdwn", "text": f"Generated {now.strftime('%A, %B %d, %Y %H:%M %Z')} | Content Intel"}],
    })
    return blocks


class SlackNotifier:
    """Posts report summaries and alerts to a Slack channel.

    Enabled only when both the bot token and channel id are set; every
    method returns False without network access when disabled.
    """

    def __init__(self, token: str, channel: str, session: aiohttp.ClientSession | None = None):
        self.token = token
        self.channel = channel
        self._session = session

    @property
    def enabled(self) -> bool:
        return bool(self.token and self.channel)

    async def _call(self, method: str, payload: dict[str, Any]) -> dict[str, Any] | None:
        headers = {"Authorization": f"Bearer {self.token}", "Content-Type": "application/json; charset=utf-8"}
        timeout = aiohttp.ClientTimeout(total=SLACK_TIMEOUT)
        try:
            if self._session is not None:
                async with self._session.post(SLACK_API + method, json=payload, headers=headers, timeout=timeout) as resp:
                    data = await resp.json(content_type=None)
            else:
                async with aiohttp.ClientSession() as session:
                    async with session.post(SLACK_API + method, json=payload, headers=headers, timeout=timeout) as resp:
                        data = await resp.json(content_type=None)
        except asyncio.TimeoutError:
            logger.warning("Slack timeout | method=%s", method)
            return None
        except (aiohttp.ClientError, ValueError) as e:
            logger.error("Slack error | method=%s error=%s (%s)", method, e, type(e).__name__)
            return None

        if not data.get("ok"):
            logger.warning("Slack call failed | method=%s error=%s", method, data.get("error", "unknown"))
            return None
        return data

    async def post_message(self, text: str, blocks: list[dict[str, Any]] | None = None) -> bool:
        if not self.enabled:
            logger.debug("Slack disabled, skipping message")
            return False
        payload: dict[str, Any] = {"channel": self.channel, "text": text}
        if blocks:
            payload["blocks"] = blocks
        data = await self._call("chat.postMessage", payload)
        if data is None:
            return False
        logger.info("Slack message posted | ts=%s", data.get("ts"))
        return True

    async def post_weekly_report(self, report: WeeklyReport, report_url: str | None = None) -> bool:
        text = f"Weekly Career Content Report - {_short_date(report.week_start)} to {_short_date(report.week_end)}"
        return await self.post_message(text, build_slack_blocks(report, report_url))

    async def post_error_alert(self, error: BaseException | str, context: str = "") -> bool:
        blocks = [
            {"type": "header", "text": {"type": "plain_text", "text": "System Error Alert"}},
            {"type": "section", "text": {"type": "mrkdwn", "text": f"*Context:* {context}\n*Error:* {error}"}},
            {
                "type": "context",
                "elements": [{"type": "mrkdwn", "text": f"Time: {datetime.now(timezone.utc).isoformat()}"}],
            },
        ]
        return await self.post_message("System Error Alert", blocks)

    async def post_content_alert(self, title: str, message: str, urgent: bool = False) -> bool:
        marker = "URGENT" if urgent else "FYI"
        return await self.post_message(
            f"{marker}: {title}",
            [{"type": "section", "text": {"type": "mrkdwn", "text": f"*{marker}: {title}*\n{message}"}}],
        )

    async def test_connection(self) -> bool:
        """Verify the bot token with auth.test."""
        if not self.enabled:
            return False
        data = await self._call("auth.test", {})
        if data is None:
            return False
        logger.info("Slack connected | team=%s user=%s", data.get("team"), data.get("user"))
        return True
