"""
IMAP client for fetching Arq notification emails from a label folder.
"""

import base64
import imaplib
from datetime import datetime, timedelta
from email import message_from_bytes
from email.message import Message
from email.utils import parsedate_to_datetime
from typing import Iterator

from backup_status.config import settings
from backup_status.core.logging import get_logger
from backup_status.core.models import MessageBody, MessagePart, RawMessage, ensure_utc

log = get_logger(__name__)

SEARCH_OVERLAP = timedelta(days=1)


def build_search_criteria(since: datetime | None) -> str:
    """
    IMAP SEARCH criteria for messages received around or after since (all if None).

    SINCE compares whole dates in the server's zone, so the window starts a
    day before since; already processed message ids absorb the overlap.
    """
    if since is None:
        return "ALL"
    return f"(SINCE {(since - SEARCH_OVERLAP).strftime('%d-%b-%Y')})"


def _encode(payload: bytes) -> str:
    return base64.urlsafe_b64encode(payload).decode("ascii")


class IMAPClient:
    """IMAP client for the mailbox that receives Arq notifications."""

    def __init__(
        self,
        host: str | None = None,
        email: str | None = None,
        password: str | None = None,
        timeout: float | None = None,
    ):
        self.host = host or settings.imap_host
        self.email = email or settings.imap_email
        self.password = password or settings.imap_password
        self.timeout = timeout or settings.network_timeout_seconds
        self._conn: imaplib.IMAP4_SSL | None = None
        self.failed_uids: list[str] = []

    def connect(self) -> None:
        """Connect and authenticate to IMAP server."""
        log.info("imap_connecting", host=self.host, email=self.email)
        conn = None
        try:
            conn = imaplib.IMAP4_SSL(self.host, timeout=self.timeout)
            conn.login(self.email, self.password)
            self._conn = conn  # Only set if login succeeds
            log.info("imap_connected")
        except Exception:
            if conn:
                try:
                    conn.logout()
                except (imaplib.IMAP4.error, OSError):
                    pass
            raise

    def disconnect(self) -> None:
        """Close IMAP connection."""
        if self._conn:
            try:
                self._conn.logout()
            except (imaplib.IMAP4.error, OSError):
                pass
            self._conn = None
            log.info("imap_disconnected")

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()

    def fetch_messages(self, label: str, since: datetime | None = None) -> Iterator[RawMessage]:
        """
        Fetch notification messages from a label folder.

        Args:
            label: Folder (Gmail label) holding the notifications
            since: Only fetch messages from around this time on

        Yields:
            RawMessage objects. UIDs that could not be fetched are collected
            in failed_uids once the iterator is exhausted.
        """
        if not self._conn:
            raise RuntimeError("Not connected to IMAP server")

        self.failed_uids = []

        status, _ = self._conn.select(f'"{label}"', readonly=True)
        if status != "OK":
            raise RuntimeError(f"Cannot select folder {label!r}")

        criteria = build_search_criteria(since)
        _, data = self._conn.uid("search", None, criteria)
        uids = data[0].split() if data and data[0] else []

        log.info("imap_fetching", folder=label, criteria=criteria, count=len(uids))

        for uid in uids:
            try:
                _, msg_data = self._conn.uid("fetch", uid, "(RFC822)")
            except (imaplib.IMAP4.error, OSError) as e:
                log.error("imap_fetch_error", error=str(e), uid=uid.decode())
                self.failed_uids.append(uid.decode())
                continue

            if not msg_data or not isinstance(msg_data[0], tuple):
                log.error("imap_fetch_empty", uid=uid.decode())
                self.failed_uids.append(uid.decode())
                continue

            yield self._to_raw_message(message_from_bytes(msg_data[0][1]), uid.decode())

        if self.failed_uids:
            log.warning("imap_fetch_incomplete", failed=len(self.failed_uids), total=len(uids))

    def _to_raw_message(self, msg: Message, uid: str) -> RawMessage:
        """Convert a parsed email into the part-list/inline body structure."""
        message_id = (msg.get("Message-ID") or "").strip() or f"uid:{uid}"

        internal_date = None
        date_str = msg.get("Date")
        if date_str:
            try:
                internal_date = ensure_utc(parsedate_to_datetime(date_str))
            except (TypeError, ValueError):
                pass

        return RawMessage(id=message_id, internal_date=internal_date, body=self._get_body(msg))

    def _get_body(self, msg: Message) -> MessageBody:
        """Extract text parts as base64 payloads."""
        if not msg.is_multipart():
            payload = msg.get_payload(decode=True)
            return MessageBody(data=_encode(payload) if payload else None)

        parts = []
        for part in msg.walk():
            if part.is_multipart():
                continue
            if "attachment" in part.get("Content-Disposition", ""):
                continue
            payload = part.get_payload(decode=True)
            if payload:
                parts.append(MessagePart(mime_type=part.get_content_type(), data=_encode(payload)))
        return MessageBody(parts=parts)
