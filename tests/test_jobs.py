"""Tests for the job tracker."""

import threading

from dbmigrate.jobs import JobStatus, JobTracker
from dbmigrate.models.status import ErrorEntry, PipelineState, PipelineStatus


class TestJobTracker:
    """Tests for JobTracker."""

    def test_create_job_defaults(self):
        tracker = JobTracker()

        job = tracker.create_job("job-1")

        assert job.id == "job-1"
        assert job.status == JobStatus.PENDING
        assert job.progress == 0.0
        assert job.processed_records == 0
        assert job.logs == []
        assert job.errors == []

    def test_create_job_with_initial_data(self):
        tracker = JobTracker()

        tracker.create_job("job-1", {"status": JobStatus.RUNNING, "owner": "ops"})
        job = tracker.get_job("job-1")

        assert job.status == JobStatus.RUNNING
        assert job.metadata == {"owner": "ops"}

    def test_get_unknown_job(self):
        assert JobTracker().get_job("missing") is None

    def test_get_job_returns_copy(self):
        tracker = JobTracker()
        tracker.create_job("job-1")

        job = tracker.get_job("job-1")
        job.logs.append({"message": "local only"})
        job.status = JobStatus.FAILED

        fresh = tracker.get_job("job-1")
        assert fresh.logs == []
        assert fresh.status == JobStatus.PENDING

    def test_update_job(self):
        tracker = JobTracker()
        tracker.create_job("job-1")
        before = tracker.get_job("job-1").updated_at

        tracker.update_job("job-1", {"status": JobStatus.RUNNING, "progress": 50.0, "note": "x"})
        job = tracker.get_job("job-1")

        assert job.status == JobStatus.RUNNING
        assert job.progress == 50.0
        assert job.metadata["note"] == "x"
        assert job.updated_at >= before

    def test_updates_to_unknown_job_are_ignored(self):
        tracker = JobTracker()

        tracker.update_job("missing", {"status": JobStatus.RUNNING})
        tracker.add_log("missing", "info", "hello")
        tracker.add_error("missing", "boom")

        assert tracker.get_all_jobs() == []

    def test_add_log(self):
        tracker = JobTracker()
        tracker.create_job("job-1")

        tracker.add_log("job-1", "info", "Migration started", {"mapping": "users"})

        entry = tracker.get_job("job-1").logs[0]
        assert entry["level"] == "info"
        assert entry["message"] == "Migration started"
        assert entry["mapping"] == "users"
        assert "timestamp" in entry

    def test_add_error_from_exception(self):
        tracker = JobTracker()
        tracker.create_job("job-1")

        try:
            raise RuntimeError("disk full")
        except RuntimeError as e:
            tracker.add_error("job-1", e)

        entry = tracker.get_job("job-1").errors[0]
        assert entry["message"] == "disk full"
        assert "RuntimeError" in entry["stack"]

    def test_add_error_from_string_and_entry(self):
        tracker = JobTracker()
        tracker.create_job("job-1")

        tracker.add_error("job-1", "plain message")
        tracker.add_error("job-1", ErrorEntry(message="structured", record_index=3))

        errors = tracker.get_job("job-1").errors
        assert errors[0] == {"timestamp": errors[0]["timestamp"], "message": "plain message", "stack": None}
        assert errors[1]["record_index"] == 3

    def test_get_all_jobs_oldest_first(self):
        tracker = JobTracker()
        for job_id in ("a", "b", "c"):
            tracker.create_job(job_id)

        assert [j.id for j in tracker.get_all_jobs()] == ["a", "b", "c"]

    def test_delete_job(self):
        tracker = JobTracker()
        tracker.create_job("job-1")

        assert tracker.delete_job("job-1") is True
        assert tracker.delete_job("job-1") is False
        assert tracker.get_job("job-1") is None

    def test_to_dict_omits_config(self):
        tracker = JobTracker()
        job = tracker.create_job("job-1", {"config": {"secret": "x"}})

        data = job.to_dict()

        assert "config" not in data
        assert data["status"] == "pending"


class TestApplySnapshot:
    """Tests for forwarding pipeline snapshots into jobs."""

    def test_forwards_only_new_entries(self):
        tracker = JobTracker()
        tracker.create_job("job-1")
        status = PipelineStatus(state=PipelineState.RUNNING, total_records=4)

        status.log("info", "first")
        status.advance(2)
        status.current_mapping = "users"
        tracker.apply_snapshot("job-1", status.snapshot())

        status.log("info", "second")
        status.add_error(ErrorEntry(message="bad record", record_index=2))
        status.advance(2)
        tracker.apply_snapshot("job-1", status.snapshot())

        job = tracker.get_job("job-1")
        assert [entry["message"] for entry in job.logs] == ["first", "second"]
        assert [entry["message"] for entry in job.errors] == ["bad record"]
        assert job.status == "running"
        assert job.processed_records == 4
        assert job.progress == 100.0
        assert job.metadata["current_mapping"] == "users"

    def test_processed_records_never_decrease(self):
        tracker = JobTracker()
        tracker.create_job("job-1", {"processed_records": 10})
        status = PipelineStatus(state=PipelineState.RUNNING)
        status.advance(3)

        tracker.apply_snapshot("job-1", status.snapshot())

        assert tracker.get_job("job-1").processed_records == 10


class TestConcurrency:
    """Tests for concurrent job updates."""

    def test_concurrent_appends_are_not_lost(self):
        tracker = JobTracker()
        tracker.create_job("job-1")

        def worker(n):
            for i in range(200):
                tracker.add_log("job-1", "info", f"worker {n} entry {i}")
                tracker.update_job("job-1", {"progress": float(i)})

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(tracker.get_job("job-1").logs) == 1600

    def test_readers_never_see_partial_snapshots(self):
        """Logs and processed counts from one snapshot appear together."""
        tracker = JobTracker()
        tracker.create_job("job-1")
        done = threading.Event()
        mismatches = []

        def writer():
            status = PipelineStatus(state=PipelineState.RUNNING)
            for _ in range(300):
                status.log("info", "batch")
                status.advance(1)
                tracker.apply_snapshot("job-1", status.snapshot())
            done.set()

        def reader():
            while not done.is_set():
                job = tracker.get_job("job-1")
                if len(job.logs) != job.processed_records:
                    mismatches.append((len(job.logs), job.processed_records))

        threads = [threading.Thread(target=writer), threading.Thread(target=reader)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert mismatches == []
