"""Report email over SMTP (STARTTLS).

smtplib is blocking, so sending runs in a worker thread via
asyncio.to_thread.
"""

import asyncio
import html
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import certifi

from models.report import WeeklyReport

logger = logging.getLogger(__name__)

SMTP_TIMEOUT = 30


def email_subject(report: WeeklyReport) -> str:
    return f"Content Intel Weekly Report - {report.week_start.isoformat()}"


def _priority_idea(report: WeeklyReport) -> str:
    if not report.content_ideas:
        return "Content ideas available in the full report."
    idea = report.content_ideas[0]
    lines = [f"{idea.title} ({idea.platform}, {idea.format})"]
    lines.extend(idea.hooks[:2])
    return "\n".join(lines)


def render_text(report: WeeklyReport, document_url: str | None, markdown: str = "") -> str:
    lines = [
        email_subject(report),
        "",
        "This week's intelligence:",
        f"- {report.total_sources} sources analyzed",
        f"- {len(report.content_ideas)} content ideas generated",
        f"- {len(report.key_stories)} key stories",
        "",
        "Executive summary:",
        report.executive_summary,
        "",
        "Priority content idea:",
        _priority_idea(report),
    ]
    if document_url:
        lines.extend(["", f"Full report: {document_url}"])
    elif markdown:
        lines.extend(["", "---", "", markdown])
    return "\n".join(lines)


def render_html(report: WeeklyReport, document_url: str | None) -> str:
    summary = "".join(
        f'<p style="margin:0 0 12px 0;line-height:1.5;">{html.escape(line.strip())}</p>'
        for line in report.executive_summary.splitlines() if line.strip()
    )
    idea = html.escape(_priority_idea(report)).replace("\n", "<br>")
    link = ""
    if document_url:
        link = (
            f'<p style="text-align:center;margin:32px 0;"><a href="{html.escape(document_url, quote=True)}" '
            'style="background:#667eea;color:#fff;padding:16px 32px;text-decoration:none;'
            'border-radius:8px;font-weight:600;">Open Full Report</a></p>'
        )
    return f"""<div style="font-family:-apple-system,'Segoe UI',Arial,sans-serif;max-width:600px;margin:0 auto;color:#2c3e50;">
<div style="background:#667eea;padding:24px;text-align:center;border-radius:8px 8px 0 0;">
<h1 style="color:#fff;margin:0;font-size:22px;">Content Intel Weekly Report</h1>
<p style="color:#eef;margin:8px 0 0 0;">Week of {report.week_start.isoformat()}</p>
</div>
<div style="padding:24px;">
<p><strong>{report.total_sources}</strong> sources analyzed &middot; <strong>{len(report.content_ideas)}</strong> content ideas</p>
<h3>Executive Summary</h3>
{summary}
<h3>Priority Content Idea</h3>
<p>{idea}</p>
{link}
</div>
</div>"""


class EmailSender:
    """Sends the weekly report email.

    Example:
        >>> sender = EmailSender("smtp.gmail.com", 587, user, app_password, "me@example.com")
        >>> await sender.send_report(report, document_url)
    """

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        to_addr: str,
        cc_addr: str = "",
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.to_addr = to_addr
        self.cc_addr = cc_addr

    @property
    def enabled(self) -> bool:
        return bool(self.user and self.password and self.to_addr)

    def build_message(
        self,
        report: WeeklyReport,
        document_url: str | None,
        markdown: str = "",
    ) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = email_subject(report)
        msg["From"] = self.user
        msg["To"] = self.to_addr
        if self.cc_addr:
            msg["Cc"] = self.cc_addr
        msg.attach(MIMEText(render_text(report, document_url, markdown), "plain", "utf-8"))
        msg.attach(MIMEText(render_html(report, document_url), "html", "utf-8"))
        return msg

    def _send(self, msg: MIMEMultipart) -> None:
        context = ssl.create_default_context(cafile=certifi.where())
        with smtplib.SMTP(self.host, self.port, timeout=SMTP_TIMEOUT) as server:
            server.starttls(context=context)
            server.login(self.user, self.password)
            server.send_message(msg)

    async def send_report(
        self,
        report: WeeklyReport,
        document_url: str | None,
        markdown: str = "",
    ) -> None:
        """Send the report email.

        Without a document link the plain-text part carries the full markdown.

        Raises:
            smtplib.SMTPException, OSError: Connection, auth or send failure
        """
        msg = self.build_message(report, document_url, markdown)
        await asyncio.to_thread(self._send, msg)
        logger.info(
            "Report email sent | to=%s cc=%s",
            self.to_addr,
            self.cc_addr or "-",
        )
