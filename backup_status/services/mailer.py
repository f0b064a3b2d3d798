"""
SMTP delivery of the status report.
"""

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from backup_status.config import settings
from backup_status.core.errors import DeliveryError
from backup_status.core.logging import get_logger
from backup_status.services.report import Report

log = get_logger(__name__)


class Mailer:
    """Sends reports over SMTP with SSL."""

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        sender: str | None = None,
        password: str | None = None,
        recipient: str | None = None,
        timeout: float | None = None,
    ):
        self.host = host or settings.smtp_host
        self.port = port or settings.smtp_port
        self.sender = sender or settings.sender_email
        self.password = password or settings.sender_password
        self.recipient = recipient or settings.recipient_email
        self.timeout = timeout or settings.network_timeout_seconds

    def build_message(self, report: Report) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = report.subject
        msg["From"] = f'"Arq Backup" <{self.sender}>'
        msg["To"] = self.recipient
        msg.attach(MIMEText(report.text, "plain", "utf-8"))
        msg.attach(MIMEText(report.html, "html", "utf-8"))
        return msg

    def send(self, report: Report) -> None:
        """
        Send a report.

        Raises:
            DeliveryError: If the SMTP exchange fails
        """
        msg = self.build_message(report)
        try:
            with smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout) as server:
                server.login(self.sender, self.password)
                server.sendmail(self.sender, [self.recipient], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError(f"failed to send report to {self.recipient}: {e}") from e

        log.info("report_sent", recipient=self.recipient, subject=report.subject)
