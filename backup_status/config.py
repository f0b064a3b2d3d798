"""
Centralized configuration using Pydantic Settings.

All environment variables are loaded and validated here.
"""

from datetime import tzinfo
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict

from backup_status.core.errors import FatalConfigError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Ledger
    state_path: str = "arq-backup-status.json"
    max_tracked_message_ids: int = 5000

    # Thresholds copied onto each plan record when it is first seen
    days_to_warn: float = 2
    days_to_error: float = 7

    # IANA zone Arq writes its offset-less End Time values in (empty = host zone)
    backup_timezone: str = ""

    # IMAP (Gmail labels are exposed as folders)
    mail_label: str = "Arq"
    imap_host: str = "imap.gmail.com"
    imap_email: str = ""
    imap_password: str = ""
    network_timeout_seconds: float = 30

    # Report delivery
    delivery_enabled: bool = True
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 465
    sender_email: str = ""
    sender_password: str = ""
    recipient_email: str = ""

    # Scheduler
    cron_schedule: str = "0 8 * * *"
    run_on_start: bool = True

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    def validate_for_pass(self) -> None:
        """Raise FatalConfigError if a status pass cannot start."""
        required = ["mail_label", "imap_host", "imap_email", "imap_password"]
        if self.delivery_enabled:
            required += ["sender_email", "sender_password", "recipient_email"]

        missing = [name for name in required if not getattr(self, name)]
        if missing:
            raise FatalConfigError(f"missing settings: {', '.join(missing)}")

        if self.days_to_warn < 0 or self.days_to_error < 0:
            raise FatalConfigError("days_to_warn and days_to_error must be >= 0")

        try:
            self.backup_zone
        except (KeyError, ValueError) as e:
            raise FatalConfigError(f"unknown backup_timezone {self.backup_timezone!r}") from e

    @property
    def backup_zone(self) -> tzinfo | None:
        """Zone for naive End Time values; None means the host's local zone."""
        if not self.backup_timezone:
            return None
        return ZoneInfo(self.backup_timezone)


# Global settings instance
settings = Settings()
