"""
Shared pytest fixtures for backup_status tests.
"""

import base64
from datetime import datetime, timezone

import pytest
from unittest.mock import MagicMock

from backup_status.config import Settings
from backup_status.core.models import (
    AggregatorState,
    BackupPlanRecord,
    MessageBody,
    MessagePart,
    RawMessage,
)
from backup_status.core.store import LedgerStore

ARQ_REPORT = """Arq Backup Report

Backup Plan: {plan}
Start Time: {start}
End Time: {end}
Errors: {errors}

Files uploaded: 12
"""


def b64(text: str) -> str:
    """URL-safe base64, the encoding mail APIs use for bodies."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii")


def arq_message(
    message_id: str,
    plan: str = "Laptop",
    end: str = "2024-01-03T00:00:00Z",
    errors: int | str = 0,
) -> RawMessage:
    """A plaintext Arq notification as a single text/plain part."""
    text = ARQ_REPORT.format(plan=plan, start=end, end=end, errors=errors)
    return RawMessage(
        id=message_id,
        internal_date=datetime(2024, 1, 3, tzinfo=timezone.utc),
        body=MessageBody(parts=[
            MessagePart(mime_type="text/html", data=b64("<p>ignored</p>")),
            MessagePart(mime_type="text/plain", data=b64(text)),
        ]),
    )


@pytest.fixture
def utc():
    """Build aware UTC datetimes tersely."""
    def _utc(*args) -> datetime:
        return datetime(*args, tzinfo=timezone.utc)
    return _utc


@pytest.fixture
def sample_state() -> AggregatorState:
    """State with two plans, one of them ignored."""
    return AggregatorState(
        last_run=datetime(2024, 1, 9, 8, 0, tzinfo=timezone.utc),
        ledger={
            "Laptop": BackupPlanRecord(
                plan_name="Laptop",
                last_backup=datetime(2024, 1, 8, 23, 30, tzinfo=timezone.utc),
                most_recent_errors=0,
                cumulative_errors=3,
                total_backups=40,
                days_to_warn=2,
                days_to_error=7,
            ),
            "Old NAS": BackupPlanRecord(
                plan_name="Old NAS",
                last_backup=datetime(2023, 6, 1, tzinfo=timezone.utc),
                most_recent_errors=100,
                cumulative_errors=250,
                total_backups=12,
                days_to_warn=2,
                days_to_error=7,
            ),
        },
        ignore_list=["Old NAS"],
        processed_message_ids=["<a@arq>", "<b@arq>"],
    )


@pytest.fixture
def store(tmp_path) -> LedgerStore:
    """LedgerStore writing into a temporary directory."""
    return LedgerStore(tmp_path / "arq-backup-status.json")


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings with every field a pass needs."""
    return Settings(
        _env_file=None,
        state_path=str(tmp_path / "arq-backup-status.json"),
        imap_email="backups@example.com",
        imap_password="imap-secret",
        sender_email="reports@example.com",
        sender_password="smtp-secret",
        recipient_email="admin@example.com",
        days_to_warn=2,
        days_to_error=7,
        backup_timezone="UTC",
    )


@pytest.fixture
def mock_imap():
    """IMAP client double returning no messages."""
    imap = MagicMock()
    imap.fetch_messages.return_value = iter([])
    imap.failed_uids = []
    return imap


@pytest.fixture
def mock_mailer():
    """Mailer double that accepts every report."""
    return MagicMock()


@pytest.fixture
def make_message():
    """Factory for plaintext Arq notification messages."""
    return arq_message


@pytest.fixture
def encode():
    """Base64 encoder matching mail API body encoding."""
    return b64
