"""Last-writer-wins resolution and timestamp normalisation."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from billsync.models.customer import Customer
from billsync.services.conflict_resolver import EPOCH, as_utc, remote_wins, resolve_conflict

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestAsUtc:
    def test_none_and_empty_are_epoch(self):
        assert as_utc(None) == EPOCH
        assert as_utc("") == EPOCH

    def test_naive_datetime_is_read_as_utc(self):
        assert as_utc(datetime(2026, 3, 1, 12, 0)) == NOW

    def test_aware_datetime_is_converted(self):
        brasilia = timezone(timedelta(hours=-3))
        assert as_utc(datetime(2026, 3, 1, 9, 0, tzinfo=brasilia)) == NOW

    def test_iso_strings_with_z_suffix(self):
        assert as_utc("2026-03-01T12:00:00Z") == NOW
        assert as_utc("2026-03-01T12:00:00+00:00") == NOW

    def test_epoch_seconds_and_milliseconds(self):
        seconds = NOW.timestamp()
        assert as_utc(seconds) == NOW
        assert as_utc(int(seconds * 1000)) == NOW

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            as_utc(object())


class TestResolveConflict:
    def test_strictly_newer_remote_wins(self):
        local = {"lastModified": NOW}
        remote = {"lastModified": NOW + timedelta(seconds=1)}
        assert resolve_conflict(local, remote) is remote
        assert remote_wins(local, remote)

    def test_newer_local_wins(self):
        local = {"lastModified": NOW}
        remote = {"lastModified": NOW - timedelta(seconds=1)}
        assert resolve_conflict(local, remote) is local

    def test_tie_goes_to_local(self):
        local = {"lastModified": NOW}
        remote = {"lastModified": NOW}
        assert resolve_conflict(local, remote) is local
        assert not remote_wins(local, remote)

    def test_missing_timestamps_count_as_epoch(self):
        assert resolve_conflict({}, {}) == {}
        local, remote = {}, {"lastModified": NOW}
        assert resolve_conflict(local, remote) is remote
        local, remote = {"lastModified": NOW}, {}
        assert resolve_conflict(local, remote) is local

    def test_models_and_mixed_representations(self):
        # Naive value read back from SQLite vs. an ISO string from the wire
        local = Customer(name="Ana", last_modified=datetime(2026, 3, 1, 12, 0))
        remote = {"last_modified": "2026-03-01T12:00:01Z"}
        assert resolve_conflict(local, remote) is remote
