"""Report delivery: Google Doc publishing plus the report email.

ReportDelivery.deliver is the single entry point used by the pipeline. A
configured Google Docs client that fails raises DeliveryError; email
failures after a document exists are logged and reported as
email_sent=False.
"""

import asyncio
import logging
import smtplib

from googleapiclient.errors import HttpError

from config import Config
from delivery.google_docs import GoogleAuthError, GoogleDocsClient, build_document_requests, run_oauth_setup
from delivery.mailer import EmailSender
from models.report import DeliveryResult, WeeklyReport

logger = logging.getLogger(__name__)


class DeliveryError(Exception):
    """The report could not be delivered."""


class ReportDelivery:
    """Publishes a report to Google Docs and emails the link.

    Either collaborator may be None (not configured), in which case that
    channel is skipped.
    """

    def __init__(self, docs: GoogleDocsClient | None = None, email: EmailSender | None = None):
        self.docs = docs
        self.email = email

    @classmethod
    def from_config(cls, config: Config) -> "ReportDelivery":
        docs = None
        if config.google_enabled:
            docs = GoogleDocsClient(
                config.google_client_id,
                config.google_client_secret,
                config.google_token_path,
                config.google_drive_folder,
            )
        email = None
        if config.email_enabled:
            email = EmailSender(
                config.smtp_host,
                config.smtp_port,
                config.email_user,
                config.email_password,
                config.report_to_email,
                config.report_cc_email,
            )
        return cls(docs, email)

    async def deliver(self, report: WeeklyReport, markdown: str) -> DeliveryResult:
        """Deliver a formatted report.

        Raises:
            DeliveryError: Document creation failed, or email failed with no document
        """
        result = DeliveryResult()

        if self.docs is not None:
            try:
                doc_id, url = await asyncio.to_thread(self.docs.publish_report, report)
            except (GoogleAuthError, HttpError, OSError) as e:
                raise DeliveryError(f"Google Doc creation failed: {e}") from e
            result.document_id = doc_id
            result.document_url = url
        else:
            logger.warning("Google Docs not configured, skipping document delivery")

        if self.email is None:
            logger.info("Email not configured, skipping report email")
            return result

        try:
            await self.email.send_report(report, result.document_url, markdown)
            result.email_sent = True
        except (smtplib.SMTPException, OSError) as e:
            if result.document_url is None:
                raise DeliveryError(f"Report email failed: {e}") from e
            logger.error("Report email failed, document still available | url=%s error=%s", result.document_url, e)
        return result


__all__ = [
    "DeliveryError",
    "EmailSender",
    "GoogleAuthError",
    "GoogleDocsClient",
    "ReportDelivery",
    "build_document_requests",
    "run_oauth_setup",
]
