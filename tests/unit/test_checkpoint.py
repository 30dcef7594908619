"""Tests for restart state and the error budget."""

import json

import pytest

from seqpub.lib.checkpoint import (
    CheckpointRecord,
    CheckpointStatus,
    CheckpointStore,
    ErrorBudget,
)
from seqpub.lib.errors import BudgetExceeded, IntegrityError


def record(local="/runs/a.cram", status=CheckpointStatus.PUBLISHED, digest="abc"):
    return CheckpointRecord(
        local_path=local,
        remote_path="/seq/26291/a.cram",
        digest=digest,
        timestamp="2025-01-15T10:30:00Z",
        status=status,
    )


class TestCheckpointRecord:
    def test_dict_round_trip(self):
        rec = record()
        assert CheckpointRecord.from_dict(rec.local_path, rec.to_dict()) == rec
        assert "error" not in rec.to_dict()

    def test_unknown_status_is_failed(self):
        rec = CheckpointRecord.from_dict("/x", {"status": "bogus"})
        assert rec.status == CheckpointStatus.FAILED
        assert not rec.is_confirmed

    def test_confirmed_requires_digest(self):
        assert record().is_confirmed
        assert not record(digest=None).is_confirmed


class TestCheckpointStore:
    def test_missing_file_is_empty(self, tmp_path):
        store = CheckpointStore(tmp_path / "published.json")
        assert len(store) == 0
        assert store.get("/runs/a.cram") is None

    def test_record_flushes(self, tmp_path):
        path = tmp_path / "published.json"
        CheckpointStore(path).record(record())

        data = json.loads(path.read_text())
        assert data["/runs/a.cram"]["remotePath"] == "/seq/26291/a.cram"
        assert data["/runs/a.cram"]["status"] == "published"
        assert CheckpointStore(path).get("/runs/a.cram") == record()

    def test_record_without_flush(self, tmp_path):
        path = tmp_path / "published.json"
        store = CheckpointStore(path)
        store.record(record(), flush=False)
        assert not path.exists()
        store.flush()
        assert path.exists()

    def test_overwrite(self, tmp_path):
        store = CheckpointStore(tmp_path / "published.json")
        store.record(record())
        store.record(record(status=CheckpointStatus.FAILED))
        assert len(store) == 1
        assert store.get("/runs/a.cram").status == CheckpointStatus.FAILED

    def test_no_temporary_files_left(self, tmp_path):
        store = CheckpointStore(tmp_path / "published.json")
        store.record(record())
        store.record(record("/runs/b.cram"))
        assert [p.name for p in tmp_path.iterdir()] == ["published.json"]

    def test_failed_replace_keeps_old_state(self, tmp_path, monkeypatch):
        path = tmp_path / "published.json"
        store = CheckpointStore(path)
        store.record(record())
        before = path.read_text()

        def fail(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("seqpub.lib.checkpoint.os.replace", fail)
        with pytest.raises(OSError):
            store.record(record("/runs/b.cram"))

        assert path.read_text() == before
        assert [p.name for p in tmp_path.iterdir()] == ["published.json"]

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "published.json"
        path.write_text("{not json")
        with pytest.raises(IntegrityError):
            CheckpointStore(path).load()

    def test_non_object_file(self, tmp_path):
        path = tmp_path / "published.json"
        path.write_text("[]")
        with pytest.raises(IntegrityError):
            CheckpointStore(path).load()

    def test_empty_file_is_empty_store(self, tmp_path):
        path = tmp_path / "published.json"
        path.write_text("")
        assert len(CheckpointStore(path)) == 0

    def test_iteration(self, tmp_path):
        store = CheckpointStore(tmp_path / "published.json")
        store.record(record("/runs/a.cram"))
        store.record(record("/runs/b.cram"))
        assert sorted(r.local_path for r in store) == ["/runs/a.cram", "/runs/b.cram"]


class TestErrorBudget:
    def test_unlimited(self):
        budget = ErrorBudget()
        budget.record_failure(100)
        assert not budget.exceeded
        budget.ensure_available()

    def test_exceeded_only_past_maximum(self):
        budget = ErrorBudget(2)
        budget.record_failure(2)
        assert not budget.exceeded
        budget.record_failure()
        assert budget.exceeded
        with pytest.raises(BudgetExceeded) as exc_info:
            budget.ensure_available()
        assert exc_info.value.count == 3
        assert exc_info.value.max_errors == 2

    def test_zero_tolerates_nothing(self):
        budget = ErrorBudget(0)
        budget.ensure_available()
        budget.record_failure()
        assert budget.exceeded

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            ErrorBudget(-1)
