"""Unit tests for the plan ledger merge rule."""

import itertools

import pytest
from datetime import datetime, timedelta, timezone

from backup_status.core.ledger import PlanLedger
from backup_status.core.models import AggregatorState, Observation


def _ledger(**kwargs) -> PlanLedger:
    return PlanLedger(AggregatorState(), **kwargs)


class TestIngest:
    """Tests for PlanLedger.ingest."""

    def test_new_plan_creates_record(self, utc):
        """Test first observation seeds every field."""
        ledger = _ledger(days_to_warn=3, days_to_error=10)
        record = ledger.ingest("Laptop", utc(2024, 1, 1), 4)

        assert record.last_backup == utc(2024, 1, 1)
        assert record.most_recent_errors == 4
        assert record.cumulative_errors == 4
        assert record.total_backups == 1
        assert record.days_to_warn == 3
        assert record.days_to_error == 10
        assert ledger.state.ledger["Laptop"] is record

    def test_laptop_scenario(self, utc):
        """Test a newer observation replaces the snapshot and adds to totals."""
        ledger = _ledger()
        ledger.ingest("Laptop", utc(2024, 1, 1), 0)
        record = ledger.ingest("Laptop", utc(2024, 1, 3), 2)

        assert record.last_backup == utc(2024, 1, 3)
        assert record.most_recent_errors == 2
        assert record.cumulative_errors == 2
        assert record.total_backups == 2

    def test_older_observation_keeps_snapshot(self, utc):
        """Test an out-of-order observation only touches cumulative fields."""
        ledger = _ledger()
        ledger.ingest("Laptop", utc(2024, 1, 3), 0)
        record = ledger.ingest("Laptop", utc(2024, 1, 1), 5)

        assert record.last_backup == utc(2024, 1, 3)
        assert record.most_recent_errors == 0
        assert record.cumulative_errors == 5
        assert record.total_backups == 2

    def test_equal_timestamp_keeps_snapshot(self, utc):
        """Test an observation with the same end time does not replace errors."""
        ledger = _ledger()
        ledger.ingest("Laptop", utc(2024, 1, 3), 1)
        record = ledger.ingest("Laptop", utc(2024, 1, 3), 7)

        assert record.most_recent_errors == 1
        assert record.cumulative_errors == 8

    def test_thresholds_not_reapplied(self, utc):
        """Test changed thresholds only apply to plans created afterwards."""
        ledger = _ledger(days_to_warn=2, days_to_error=7)
        ledger.ingest("Laptop", utc(2024, 1, 1), 0)

        ledger.days_to_warn, ledger.days_to_error = 1, 3
        laptop = ledger.ingest("Laptop", utc(2024, 1, 2), 0)
        desktop = ledger.ingest("Desktop", utc(2024, 1, 2), 0)

        assert (laptop.days_to_warn, laptop.days_to_error) == (2, 7)
        assert (desktop.days_to_warn, desktop.days_to_error) == (1, 3)

    def test_naive_end_time_is_utc(self):
        """Test naive datetimes are stored as UTC."""
        record = _ledger().ingest("Laptop", datetime(2024, 1, 1, 12), 0)
        assert record.last_backup == datetime(2024, 1, 1, 12, tzinfo=timezone.utc)

    def test_negative_errors_rejected(self, utc):
        """Test negative error counts are refused."""
        with pytest.raises(ValueError):
            _ledger().ingest("Laptop", utc(2024, 1, 1), -1)

    def test_plans_are_independent(self, utc):
        """Test observations only affect their own plan."""
        ledger = _ledger()
        ledger.ingest("Laptop", utc(2024, 1, 1), 1)
        ledger.ingest("Desktop", utc(2024, 1, 5), 0)

        assert list(ledger.state.ledger) == ["Laptop", "Desktop"]
        assert ledger.state.ledger["Laptop"].last_backup == utc(2024, 1, 1)


class TestMergeProperties:
    """Order independence of the merge rule."""

    OBSERVATIONS = [
        (datetime(2024, 1, 1, tzinfo=timezone.utc), 0),
        (datetime(2024, 1, 4, tzinfo=timezone.utc), 3),
        (datetime(2024, 1, 2, tzinfo=timezone.utc), 1),
        (datetime(2024, 1, 3, tzinfo=timezone.utc), 0),
    ]

    def test_two_observations_commute(self, utc):
        """Test both orders of two observations give the same record."""
        first, second = (utc(2024, 1, 1), 4), (utc(2024, 1, 2), 1)

        a = _ledger()
        a.ingest("Laptop", *first)
        a.ingest("Laptop", *second)
        b = _ledger()
        b.ingest("Laptop", *second)
        b.ingest("Laptop", *first)

        assert a.state.ledger == b.state.ledger
        record = a.state.ledger["Laptop"]
        assert record.last_backup == utc(2024, 1, 2)
        assert record.most_recent_errors == 1
        assert record.cumulative_errors == 5
        assert record.total_backups == 2

    def test_every_order_converges(self):
        """Test all permutations yield the max timestamp and summed totals."""
        records = []
        for order in itertools.permutations(self.OBSERVATIONS):
            ledger = _ledger()
            for end_time, errors in order:
                ledger.ingest("Laptop", end_time, errors)
            records.append(ledger.state.ledger["Laptop"])

        assert all(record == records[0] for record in records)
        assert records[0].last_backup == max(t for t, _ in self.OBSERVATIONS)
        assert records[0].most_recent_errors == 3
        assert records[0].cumulative_errors == 4
        assert records[0].total_backups == 4

    def test_batch_split_matches_single_batch(self):
        """Test ingesting in two passes over the same state matches one pass."""
        single = _ledger()
        for end_time, errors in self.OBSERVATIONS:
            single.ingest("Laptop", end_time, errors)

        state = AggregatorState()
        for batch in (self.OBSERVATIONS[:2], self.OBSERVATIONS[2:]):
            ledger = PlanLedger(state)
            for end_time, errors in batch:
                ledger.ingest("Laptop", end_time, errors)

        assert state.ledger == single.state.ledger

    def test_last_backup_is_monotonic(self):
        """Test last_backup never decreases across a sequence of ingests."""
        ledger = _ledger()
        start = datetime(2024, 1, 10, tzinfo=timezone.utc)
        offsets = [0, -3, 2, -10, 1, 5, -1]
        seen = []
        for offset in offsets:
            end_time = start + timedelta(days=offset)
            seen.append(end_time)
            record = ledger.ingest("Laptop", end_time, 0)
            assert record.last_backup == max(seen)


class TestIngestMessage:
    """Tests for message-id deduplication."""

    def test_duplicate_message_ignored(self, utc):
        """Test the same message id is only counted once."""
        ledger = _ledger()
        observation = Observation("Laptop", utc(2024, 1, 1), 2)

        assert ledger.ingest_message("<1@arq>", observation) is True
        assert ledger.ingest_message("<1@arq>", observation) is False

        record = ledger.state.ledger["Laptop"]
        assert record.total_backups == 1
        assert record.cumulative_errors == 2
        assert ledger.state.processed_message_ids == ["<1@arq>"]

    def test_ids_from_previous_runs_are_skipped(self, utc):
        """Test ids persisted in state are treated as already ingested."""
        state = AggregatorState(processed_message_ids=["<1@arq>"])
        ledger = PlanLedger(state)

        applied = ledger.ingest_message("<1@arq>", Observation("Laptop", utc(2024, 1, 1), 0))

        assert applied is False
        assert state.ledger == {}

    def test_distinct_messages_accumulate(self, utc):
        """Test different message ids for the same plan both count."""
        ledger = _ledger()
        ledger.ingest_message("<1@arq>", Observation("Laptop", utc(2024, 1, 1), 0))
        ledger.ingest_message("<2@arq>", Observation("Laptop", utc(2024, 1, 2), 1))

        record = ledger.state.ledger["Laptop"]
        assert record.total_backups == 2
        assert record.most_recent_errors == 1
