"""
Tests for job submission and bounded polling.

Polling scenarios use a fake clock: every `sleep` advances time instantly,
so a status schedule such as "running until t=6, succeeded afterwards" is
fully deterministic.
"""

import asyncio

import pytest

from core.domain.models import JobStatus, PollingPolicy, RunState
from core.errors import JobFailedError, JobTimeoutError, RemoteError
from core.services.job_runner import JobRunner, extract_job_id, job_status_path

from conftest import FakeApi


def _scheduled_job(clock, *, done_at: float = 6.0, final: str = "finished", result=None):
    """Submission returns a job id; the job runs until ``done_at``."""

    def handler(method, path, body):
        if method == "POST":
            return {"job_id": "j1", "status": "queued"}
        if clock.now < done_at:
            return {"job_id": "j1", "status": "started"}
        if final == "failed":
            return {"job_id": "j1", "status": "failed", "error": "IfcOpenShell crashed"}
        return {"job_id": "j1", "status": final, "result": result}

    return handler


def _runner(api, clock, **policy) -> JobRunner:
    return JobRunner(api, policy=PollingPolicy(**policy) if policy else None, sleep=clock.sleep, clock=clock)


class TestRunJobPolling:
    """Bounded polling against a scheduled remote job."""

    def test_times_out_before_late_success(self, clock):
        """interval=2, timeout=5: checks at t=2 and t=4, timeout detected at t=6."""
        api = FakeApi(_scheduled_job(clock, result={"ok": True}))
        runner = _runner(api, clock, interval_seconds=2, timeout_seconds=5)

        with pytest.raises(JobTimeoutError) as info:
            asyncio.run(runner.run_job("/ifcconvert", {"input_filename": "a.ifc"}))

        assert info.value.job_id == "j1"
        assert info.value.elapsed_seconds == pytest.approx(6)
        assert info.value.last_status is JobStatus.RUNNING
        assert api.paths("GET") == ["/jobs/j1/status", "/jobs/j1/status"]

    def test_succeeds_within_budget(self, clock):
        """interval=2, timeout=10: succeeded at t=6 with the remote result."""
        api = FakeApi(_scheduled_job(clock, result={"output": "a.obj"}))
        runner = _runner(api, clock, interval_seconds=2, timeout_seconds=10)

        run = asyncio.run(runner.run_job("/ifcconvert", {"input_filename": "a.ifc"}))

        assert run.state is RunState.SUCCEEDED
        assert run.job_id == "j1"
        assert run.result == {"output": "a.obj"}
        assert clock.now == pytest.approx(6)
        assert clock.sleeps == [2, 2, 2]
        assert len(api.paths("GET")) == 3

    def test_timeout_is_not_a_failure(self, clock):
        """A timeout is distinguishable from an explicit job failure."""
        api = FakeApi(_scheduled_job(clock, done_at=100))
        runner = _runner(api, clock, interval_seconds=1, timeout_seconds=3)

        with pytest.raises(JobTimeoutError) as info:
            asyncio.run(runner.run_job("/ifcclash", {}))

        assert not isinstance(info.value, JobFailedError)
        assert isinstance(info.value, TimeoutError)

    def test_failed_job_raises_with_remote_reason(self, clock):
        api = FakeApi(_scheduled_job(clock, done_at=4, final="failed"))
        runner = _runner(api, clock, interval_seconds=2, timeout_seconds=60)

        with pytest.raises(JobFailedError) as info:
            asyncio.run(runner.run_job("/ifcdiff", {"old_file": "a.ifc"}))

        assert info.value.job.status is JobStatus.FAILED
        assert "IfcOpenShell crashed" in str(info.value)

    def test_status_check_error_propagates(self, clock):
        def handler(method, path, body):
            if method == "POST":
                return {"job_id": "j1"}
            return RemoteError("Job not found", status_code=404)

        runner = _runner(FakeApi(handler), clock, interval_seconds=2, timeout_seconds=10)

        with pytest.raises(RemoteError) as info:
            asyncio.run(runner.run_job("/ifctester", {}))
        assert info.value.status_code == 404

    def test_per_call_policy_overrides_default(self, clock):
        api = FakeApi(_scheduled_job(clock, done_at=1))
        runner = _runner(api, clock, interval_seconds=50, timeout_seconds=500)

        run = asyncio.run(
            runner.run_job("/ifcconvert", {}, policy=PollingPolicy(interval_seconds=1, timeout_seconds=10))
        )

        assert run.state is RunState.SUCCEEDED
        assert clock.sleeps == [1]


class TestRunJobWithoutPolling:
    """Responses that end the run immediately."""

    def test_inline_response_is_returned_without_status_checks(self, clock):
        api = FakeApi(lambda method, path, body: {"message": "done", "output": "b.csv"})
        runner = _runner(api, clock)

        run = asyncio.run(runner.run_job("/ifccsv", {"filename": "a.ifc"}))

        assert run.state is RunState.INLINE
        assert run.job_id is None
        assert run.result == {"message": "done", "output": "b.csv"}
        assert api.paths() == ["/ifccsv"]
        assert clock.sleeps == []

    def test_no_wait_returns_submission_immediately(self, clock):
        api = FakeApi(_scheduled_job(clock))
        runner = _runner(api, clock)

        run = asyncio.run(runner.run_job("/ifcconvert", {"input_filename": "a.ifc"}, wait=False))

        assert run.state is RunState.SUBMITTED
        assert run.job_id == "j1"
        assert run.to_output()["job_id"] == "j1"
        assert api.paths("GET") == []

    def test_get_job_normalizes_status(self, clock):
        api = FakeApi(lambda method, path, body: {"status": "finished", "result": [1, 2]})
        job = asyncio.run(_runner(api, clock).get_job("abc"))

        assert job.id == "abc"
        assert job.status is JobStatus.SUCCEEDED
        assert job.result == [1, 2]
        assert api.paths() == ["/jobs/abc/status"]


class TestHelpers:
    @pytest.mark.parametrize(
        "remote, expected",
        [
            ("queued", JobStatus.PENDING),
            ("deferred", JobStatus.PENDING),
            ("started", JobStatus.RUNNING),
            ("FINISHED", JobStatus.SUCCEEDED),
            ("completed", JobStatus.SUCCEEDED),
            ("failed", JobStatus.FAILED),
            ("stopped", JobStatus.FAILED),
            ("something-new", JobStatus.RUNNING),
            (None, JobStatus.RUNNING),
        ],
    )
    def test_status_normalization(self, remote, expected):
        assert JobStatus.from_remote(remote) is expected

    def test_extract_job_id(self):
        assert extract_job_id({"job_id": "x1"}) == "x1"
        assert extract_job_id({"job_id": 42}) == "42"
        assert extract_job_id({"job_id": ""}) is None
        assert extract_job_id({"message": "ok"}) is None
        assert extract_job_id(["j1"]) is None

    def test_job_status_path(self):
        assert job_status_path("j1") == "/jobs/j1/status"
