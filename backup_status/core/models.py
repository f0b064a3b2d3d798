"""
Data models for backup status aggregation.

Uses dataclasses for clean, typed data structures.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from dateutil.parser import isoparse


def ensure_utc(value: datetime) -> datetime:
    """Return value as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format like JavaScript's toISOString, e.g. 2024-01-03T00:00:00.000Z."""
    value = ensure_utc(value)
    timespec = "milliseconds" if value.microsecond % 1000 == 0 else "microseconds"
    return value.isoformat(timespec=timespec).replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp written by format_timestamp."""
    return ensure_utc(isoparse(value))


def _count(data: dict[str, Any], key: str, minimum: int = 0) -> int:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ValueError(f"{key} must be an integer >= {minimum}, got {value!r}")
    return value


def _days(data: dict[str, Any], key: str) -> float:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number, got {value!r}")
    if not math.isfinite(value) or value < 0:
        raise ValueError(f"{key} must be a finite number >= 0, got {value!r}")
    return value


class HealthStatus(str, Enum):
    """Classification of a plan or of a whole run, in priority order."""

    IGNORED = "ignored"
    ERROR = "error"
    WARNING = "warning"
    SUCCESS = "success"


@dataclass
class MessagePart:
    """One MIME part of a message body; data is base64 encoded."""

    mime_type: str
    data: str = ""


@dataclass
class MessageBody:
    """Body structure of a message: a part list or a single inline payload."""

    parts: list[MessagePart] | None = None
    data: str | None = None


@dataclass
class RawMessage:
    """A notification email as handed over by the retrieval service."""

    id: str
    internal_date: datetime | None = None
    body: MessageBody = field(default_factory=MessageBody)


@dataclass(frozen=True)
class Observation:
    """A single (plan name, end time, error count) triple parsed from one email."""

    plan_name: str
    end_time: datetime
    errors: int


@dataclass
class BackupPlanRecord:
    """Aggregate record for one backup plan."""

    plan_name: str
    last_backup: datetime
    most_recent_errors: int = 0
    cumulative_errors: int = 0
    total_backups: int = 1
    days_to_warn: float = 2
    days_to_error: float = 7

    @property
    def warn_threshold(self) -> timedelta:
        return timedelta(days=self.days_to_warn)

    @property
    def error_threshold(self) -> timedelta:
        return timedelta(days=self.days_to_error)

    @classmethod
    def from_dict(cls, plan_name: str, data: dict[str, Any]) -> "BackupPlanRecord":
        """
        Create a record from its persisted backupPlanMap entry.

        Raises:
            KeyError: A field is missing
            ValueError: A field has the wrong type or breaks a record invariant
        """
        return cls(
            plan_name=plan_name,
            last_backup=parse_timestamp(data["dateString"]),
            most_recent_errors=_count(data, "mostRecentErrors"),
            cumulative_errors=_count(data, "errors"),
            total_backups=_count(data, "totalBackups", minimum=1),
            days_to_warn=_days(data, "daysToWarn"),
            days_to_error=_days(data, "daysToError"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted backupPlanMap entry."""
        return {
            "totalBackups": self.total_backups,
            "daysToWarn": self.days_to_warn,
            "daysToError": self.days_to_error,
            "dateString": format_timestamp(self.last_backup),
            "errors": self.cumulative_errors,
            "mostRecentErrors": self.most_recent_errors,
        }


@dataclass
class AggregatorState:
    """Unit of persistence: ledger, ignore list and run metadata."""

    last_run: datetime | None = None
    ledger: dict[str, BackupPlanRecord] = field(default_factory=dict)
    ignore_list: list[str] = field(default_factory=list)
    processed_message_ids: list[str] = field(default_factory=list)

    def is_ignored(self, plan_name: str) -> bool:
        return plan_name in self.ignore_list


@dataclass
class PlanHealth:
    """Classification of one plan at evaluation time."""

    plan_name: str
    status: HealthStatus
    elapsed: timedelta
    last_backup: datetime
    most_recent_errors: int
    cumulative_errors: int
    total_backups: int
    stale: bool = False


@dataclass
class HealthSummary:
    """Per-plan classifications plus the aggregate run status."""

    evaluated_at: datetime
    status: HealthStatus
    plans: list[PlanHealth] = field(default_factory=list)
    errors: int = 0
    warnings: int = 0
    successes: int = 0
    ignored: int = 0

    @property
    def total(self) -> int:
        return len(self.plans)
