"""Google Docs / Drive publishing for weekly reports.

Reports are written into a fresh Google Doc inside a dedicated Drive
folder, then shared read-only with anyone holding the link. The document
body is built as one batchUpdate: an insertText request per block followed
by an updateTextStyle request for styled blocks, with a running index.

Docs indexes count UTF-16 code units, so block lengths use _doc_length
rather than len().

Authentication uses an installed-app OAuth token stored at
GOOGLE_TOKEN_PATH (created once with `python main.py setup-oauth`).
Expired tokens are refreshed and written back atomically.
"""

import logging
from pathlib import Path
from typing import Any

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build

from models.report import WeeklyReport
from pillars import all_pillar_names

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/drive.file",
    "https://www.googleapis.com/auth/documents",
]
FOLDER_MIME = "application/vnd.google-apps.folder"
DOC_MIME = "application/vnd.google-apps.document"
DOC_URL = "https://docs.google.com/document/d/{doc_id}"
API_RETRIES = 3

DIVIDER = "─" * 60 + "\n\n"

TITLE_STYLE = {
    "fontSize": {"magnitude": 24, "unit": "PT"},
    "bold": True,
    "foregroundColor": {"color": {"rgbColor": {"red": 0.2, "green": 0.25, "blue": 0.31}}},
}
SUBTITLE_STYLE = {"fontSize": {"magnitude": 12, "unit": "PT"}, "italic": True}
FOOTER_STYLE = {"fontSize": {"magnitude": 10, "unit": "PT"}, "italic": True}

# Section heading -> RGB colour
SECTION_COLORS = {
    "Executive Summary": (0.4, 0.47, 0.91),
    "Key Stories & Content Opportunities": (0.8, 0.2, 0.2),
    "Content Hooks & Frameworks": (0.2, 0.7, 0.2),
    "Platform-Specific Ideas": (0.6, 0.2, 0.8),
    "Watchlist": (0.8, 0.4, 0.0),
    "Community Engagement Prompts": (0.0, 0.5, 0.7),
    "Research Sources": (0.8, 0.4, 0.0),
    "Report Metadata": (0.5, 0.5, 0.5),
}


class GoogleAuthError(Exception):
    """Missing, unreadable or unrefreshable Google OAuth token."""


def document_title(report: WeeklyReport) -> str:
    return f"Content Intel Weekly Report - {report.week_start.isoformat()}"


def document_url(doc_id: str) -> str:
    return DOC_URL.format(doc_id=doc_id)


def _doc_length(text: str) -> int:
    return len(text.encode("utf-16-le")) // 2


def _heading_style(section: str) -> dict[str, Any]:
    red, green, blue = SECTION_COLORS[section]
    return {
        "fontSize": {"magnitude": 18, "unit": "PT"},
        "bold": True,
        "foregroundColor": {"color": {"rgbColor": {"red": red, "green": green, "blue": blue}}},
    }


# === Section bodies ===


def _stories_text(report: WeeklyReport) -> str:
    blocks = []
    for i, story in enumerate(report.key_stories, 1):
        lines = [f"{i}. {story.title}"]
        if story.why_it_matters:
            lines.append(f"Why it matters: {story.why_it_matters}")
        if story.story_hook:
            lines.append(f"Story hook: {story.story_hook}")
        if story.narrative_flow:
            lines.append(f"Narrative flow: {story.narrative_flow}")
        lines.extend(f"  • {hook}" for hook in story.content_hooks)
        if story.macro_analysis:
            lines.append(f"Macro analysis: {story.macro_analysis}")
        if story.sources:
            lines.append(f"Sources: {', '.join(story.sources)}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def _hooks_text(report: WeeklyReport) -> str:
    groups = [
        ("Challenge assumptions", report.content_hooks.challenge_assumptions),
        ("Data-backed claims", report.content_hooks.data_backed_claims),
        ("Strategic insights", report.content_hooks.strategic_insights),
    ]
    blocks = []
    for label, hooks in groups:
        if hooks:
            lines = [f"{label}:"]
            lines.extend(f"  • {h.hook}" + (f" ({h.reasoning})" if h.reasoning else "") for h in hooks)
            blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def _ideas_text(report: WeeklyReport) -> str:
    blocks = []
    for i, idea in enumerate(report.content_ideas, 1):
        lines = [f"{i}. [{idea.platform.title()} / {idea.format}] {idea.title}"]
        lines.extend(f"  Hook: {hook}" for hook in idea.hooks)
        lines.extend(f"  • {point}" for point in idea.key_points)
        if idea.rationale:
            lines.append(f"  Why now: {idea.rationale}")
        lines.append(f"  Engagement potential: {idea.engagement_potential}/100")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def _watchlist_text(report: WeeklyReport) -> str:
    return "\n".join(
        f"• {item.keyword}" + (f": {item.reason}" if item.reason else "")
        + (f" ({item.mentions} mentions)" if item.mentions else "")
        for item in report.watchlist
    )


def _community_text(report: WeeklyReport) -> str:
    return "\n".join(
        f"• {story.community_question}" for story in report.key_stories if story.community_question
    )


def _sources_text(report: WeeklyReport) -> str:
    return "\n".join(
        f"{i}. {source.title} ({source.domain}) {source.url}"
        for i, source in enumerate(report.sources, 1)
    )


def _metadata_text(report: WeeklyReport) -> str:
    lines = [
        f"• Generated: {report.generated_at.isoformat(timespec='seconds')}",
        f"• Total sources: {report.total_sources}",
        f"• Content pillars: {', '.join(report.pillars or all_pillar_names())}",
    ]
    if report.fallbacks_used:
        lines.append(f"• Fallback content used for: {', '.join(report.fallbacks_used)}")
    return "\n".join(lines)


def build_document_requests(report: WeeklyReport) -> list[dict[str, Any]]:
    """Build the Docs batchUpdate requests that render ``report``."""
    requests: list[dict[str, Any]] = []
    index = 1

    def add(text: str, style: dict[str, Any] | None = None) -> None:
        nonlocal index
        requests.append({"insertText": {"location": {"index": index}, "text": text}})
        end = index + _doc_length(text)
        if style:
            requests.append({
                "updateTextStyle": {
                    "range": {"startIndex": index, "endIndex": end},
                    "textStyle": style,
                    "fields": ",".join(style),
                }
            })
        index = end

    add(f"Weekly Career Intelligence Brief - {report.week_start.isoformat()}\n\n", TITLE_STYLE)
    add(
        f"Generated from {report.total_sources} sources across "
        f"{len(report.pillars) or len(all_pillar_names())} content pillars\n\n",
        SUBTITLE_STYLE,
    )
    add(DIVIDER)

    sections = [
        ("Executive Summary", report.executive_summary),
        ("Key Stories & Content Opportunities", _stories_text(report)),
        ("Content Hooks & Frameworks", _hooks_text(report)),
        ("Platform-Specific Ideas", _ideas_text(report)),
        ("Watchlist", _watchlist_text(report)),
        ("Community Engagement Prompts", _community_text(report)),
        ("Research Sources", _sources_text(report)),
        ("Report Metadata", _metadata_text(report)),
    ]
    for heading, body in sections:
        add(f"{heading}\n\n", _heading_style(heading))
        if body:
            add(f"{body}\n\n")

    add(DIVIDER)
    add(
        "Generated from live web research, strategic content analysis and report memory. "
        "Sources are cited for verification; covered topics are tracked to keep each week fresh.\n",
        FOOTER_STYLE,
    )
    return requests


# === OAuth ===


def _write_token(token_path: Path, payload: str) -> None:
    token_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = token_path.with_suffix(token_path.suffix + ".tmp")
    tmp_path.write_text(payload, encoding="utf-8")
    tmp_path.replace(token_path)


def _client_config(client_id: str, client_secret: str) -> dict[str, Any]:
    return {
        "installed": {
            "client_id": client_id,
            "client_secret": client_secret,
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
            "redirect_uris": ["http://localhost"],
        }
    }


def run_oauth_setup(client_id: str, client_secret: str, token_path: Path | str) -> Path:
    """Run the browser consent flow and store the resulting token.

    Returns:
        Path of the written token file
    """
    if not client_id or not client_secret:
        raise GoogleAuthError("GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET are required for OAuth setup")
    flow = InstalledAppFlow.from_client_config(_client_config(client_id, client_secret), SCOPES)
    creds = flow.run_local_server(port=0, access_type="offline", prompt="consent")
    token_path = Path(token_path)
    _write_token(token_path, creds.to_json())
    logger.info("OAuth token saved | path=%s", token_path)
    return token_path


class GoogleDocsClient:
    """Drive v3 + Docs v1 client for report documents.

    Service objects can be injected (tests pass fakes mirroring the
    discovery client's ``files().list(...).execute()`` chain).

    Example:
        >>> client = GoogleDocsClient(client_id, client_secret, token_path, "Weekly Reports")
        >>> doc_id, url = client.publish_report(report)
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        token_path: Path | str,
        folder_name: str,
        drive_service: Any = None,
        docs_service: Any = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_path = Path(token_path)
        self.folder_name = folder_name
        self._drive = drive_service
        self._docs = docs_service

    def _load_credentials(self) -> Credentials:
        if not self.token_path.exists():
            raise GoogleAuthError(
                f"Google OAuth token not found at {self.token_path}. Run `python main.py setup-oauth` first."
            )
        try:
            creds = Credentials.from_authorized_user_file(str(self.token_path), SCOPES)
        except ValueError as e:
            raise GoogleAuthError(f"Google OAuth token is invalid: {e}") from e

        if creds.expired and creds.refresh_token:
            try:
                creds.refresh(Request())
            except RefreshError as e:
                raise GoogleAuthError(f"Google OAuth token refresh failed: {e}") from e
            _write_token(self.token_path, creds.to_json())
            logger.info("OAuth token refreshed")
        if not creds.valid:
            raise GoogleAuthError("Google OAuth token is not valid. Run `python main.py setup-oauth` again.")
        return creds

    def _services(self) -> tuple[Any, Any]:
        if self._drive is None or self._docs is None:
            creds = self._load_credentials()
            self._drive = self._drive or build("drive", "v3", credentials=creds, cache_discovery=False)
            self._docs = self._docs or build("docs", "v1", credentials=creds, cache_discovery=False)
        return self._drive, self._docs

    def token_status(self) -> dict[str, Any]:
        """Token presence/validity for diagnostics (never raises)."""
        if not self.token_path.exists():
            return {"status": "missing", "path": str(self.token_path)}
        try:
            creds = Credentials.from_authorized_user_file(str(self.token_path), SCOPES)
        except ValueError as e:
            return {"status": "invalid", "error": str(e)}
        return {
            "status": "valid" if creds.valid else ("refreshable" if creds.refresh_token else "expired"),
            "expiry": creds.expiry.isoformat() if creds.expiry else None,
        }

    @staticmethod
    def _escape_query_value(value: str) -> str:
        return value.replace("\\", "\\\\").replace("'", "\\'")

    def ensure_folder(self) -> str:
        """Find the reports folder, creating it when absent."""
        drive, _ = self._services()
        query = (
            f"name='{self._escape_query_value(self.folder_name)}' "
            f"and mimeType='{FOLDER_MIME}' and trashed=false"
        )
        response = drive.files().list(q=query, spaces="drive", fields="files(id,name)", pageSize=1) \
            .execute(num_retries=API_RETRIES)
        files = response.get("files", [])
        if files:
            logger.debug("Reports folder found | id=%s", files[0]["id"])
            return files[0]["id"]

        created = drive.files().create(
            body={"name": self.folder_name, "mimeType": FOLDER_MIME},
            fields="id",
        ).execute(num_retries=API_RETRIES)
        logger.info("Reports folder created | id=%s name=%s", created["id"], self.folder_name)
        return created["id"]

    def create_document(self, title: str, folder_id: str) -> str:
        drive, _ = self._services()
        created = drive.files().create(
            body={"name": title, "mimeType": DOC_MIME, "parents": [folder_id]},
            fields="id",
        ).execute(num_retries=API_RETRIES)
        return created["id"]

    def write_report(self, doc_id: str, report: WeeklyReport) -> None:
        _, docs = self._services()
        requests = build_document_requests(report)
        docs.documents().batchUpdate(documentId=doc_id, body={"requests": requests}) \
            .execute(num_retries=API_RETRIES)
        logger.debug("Document written | id=%s requests=%d", doc_id, len(requests))

    def share_publicly(self, doc_id: str) -> None:
        drive, _ = self._services()
        drive.permissions().create(
            fileId=doc_id,
            body={"role": "reader", "type": "anyone"},
        ).execute(num_retries=API_RETRIES)

    def publish_report(self, report: WeeklyReport) -> tuple[str, str]:
        """Create, fill and share the report document.

        Returns:
            (document_id, document_url)
        """
        folder_id = self.ensure_folder()
        doc_id = self.create_document(document_title(report), folder_id)
        self.write_report(doc_id, report)
        self.share_publicly(doc_id)
        url = document_url(doc_id)
        logger.info("Google Doc published | id=%s url=%s", doc_id, url)
        return doc_id, url
