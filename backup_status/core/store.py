"""
JSON persistence for the aggregator state.

The ledger is stored as an array of [planName, record] pairs so the file
stays compatible with ledgers written by the original Node service.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from backup_status.core.errors import RecoverableLoadError
from backup_status.core.logging import get_logger
from backup_status.core.models import (
    AggregatorState,
    BackupPlanRecord,
    format_timestamp,
    parse_timestamp,
)

log = get_logger(__name__)


def _list_field(data: dict[str, Any], key: str) -> list:
    """Return a list-valued field; absent or null reads as empty (older files)."""
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{key} must be a list, got {type(value).__name__}")
    return value


class LedgerStore:
    """Loads and atomically saves AggregatorState as a JSON file."""

    def __init__(self, path: str | Path, max_tracked_message_ids: int = 5000):
        self.path = Path(path)
        self.max_tracked_message_ids = max_tracked_message_ids

    def load(self) -> AggregatorState:
        """
        Read persisted state.

        A missing or corrupt file yields a fresh empty state; the run
        continues and the file is recreated on save.
        """
        try:
            state = self._read()
        except RecoverableLoadError as e:
            log.warning("ledger_load_failed", path=str(self.path), error=str(e))
            return AggregatorState()

        log.info(
            "ledger_loaded",
            path=str(self.path),
            plans=len(state.ledger),
            ignored=len(state.ignore_list),
        )
        return state

    def save(self, state: AggregatorState) -> None:
        """Write state to a temp file in the same directory and rename it into place."""
        content = json.dumps(self.to_dict(state), indent=2, ensure_ascii=False)
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                tmp.write(content)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        log.info("ledger_saved", path=str(self.path), plans=len(state.ledger))

    def to_dict(self, state: AggregatorState) -> dict[str, Any]:
        """Convert state to its persisted JSON structure."""
        limit = self.max_tracked_message_ids
        processed = state.processed_message_ids[-limit:] if limit > 0 else []

        return {
            "lastBackupStatusDate": format_timestamp(state.last_run) if state.last_run else None,
            "backupPlanMap": [[name, record.to_dict()] for name, record in state.ledger.items()],
            "ignoreList": list(state.ignore_list),
            "processedMessageIds": list(processed),
        }

    def from_dict(self, data: Any) -> AggregatorState:
        """
        Build state from its persisted JSON structure.

        Raises:
            RecoverableLoadError: If the structure is not a valid ledger
        """
        if not isinstance(data, dict):
            raise RecoverableLoadError("state file is not a JSON object")

        try:
            last_run_text = data.get("lastBackupStatusDate")
            last_run = parse_timestamp(last_run_text) if last_run_text else None

            ledger: dict[str, BackupPlanRecord] = {}
            for plan_name, record_data in _list_field(data, "backupPlanMap"):
                ledger[str(plan_name)] = BackupPlanRecord.from_dict(str(plan_name), record_data)

            ignore_list = [str(name) for name in _list_field(data, "ignoreList")]
            processed = [str(message_id) for message_id in _list_field(data, "processedMessageIds")]
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            raise RecoverableLoadError(f"malformed state: {e}") from e

        return AggregatorState(
            last_run=last_run,
            ledger=ledger,
            ignore_list=ignore_list,
            processed_message_ids=processed,
        )

    def _read(self) -> AggregatorState:
        if not self.path.exists():
            raise RecoverableLoadError(f"{self.path} does not exist")
        try:
            with self.path.open("r", encoding="utf-8") as file:
                data = json.load(file)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            raise RecoverableLoadError(f"cannot read {self.path}: {e}") from e
        return self.from_dict(data)
