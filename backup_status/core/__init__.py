"""Core modules for backup status aggregation."""

from .logging import configure_logging, get_logger
from .errors import (
    BackupStatusError,
    DeliveryError,
    FatalConfigError,
    MessageSkipped,
    MissingFieldError,
    RecoverableLoadError,
    UnparseableMessageError,
)
from .models import (
    AggregatorState,
    BackupPlanRecord,
    HealthStatus,
    HealthSummary,
    MessageBody,
    MessagePart,
    Observation,
    PlanHealth,
    RawMessage,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "BackupStatusError",
    "DeliveryError",
    "FatalConfigError",
    "MessageSkipped",
    "MissingFieldError",
    "RecoverableLoadError",
    "UnparseableMessageError",
    "AggregatorState",
    "BackupPlanRecord",
    "HealthStatus",
    "HealthSummary",
    "MessageBody",
    "MessagePart",
    "Observation",
    "PlanHealth",
    "RawMessage",
]
