"""
Exception hierarchy for the status aggregator.

Only FatalConfigError aborts a pass. Everything else is absorbed where it
is raised and logged.
"""


class BackupStatusError(Exception):
    """Base class for aggregator errors."""


class FatalConfigError(BackupStatusError):
    """Configuration required to start a pass is missing or invalid."""


class RecoverableLoadError(BackupStatusError):
    """Persisted state is missing or corrupt; an empty state is used instead."""


class MessageSkipped(BackupStatusError):
    """A single message cannot be turned into an observation."""


class MissingFieldError(MessageSkipped):
    """A required tag does not occur in the message text."""

    def __init__(self, tag: str):
        super().__init__(f"field not found: {tag!r}")
        self.tag = tag


class UnparseableMessageError(MessageSkipped):
    """The message has no extractable body or a field value is malformed."""


class DeliveryError(BackupStatusError):
    """The status report could not be sent."""
