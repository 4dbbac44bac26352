"""Job submission and bounded polling.

A job is submitted with a single POST. When the response carries a
``job_id`` and the caller asked to wait, the runner sleeps for the polling
interval, checks ``/jobs/{job_id}/status`` and repeats until the job reaches
a terminal status or the timeout budget is exhausted.

State machine::

    Submitted -> Polling -> {Succeeded, Failed, TimedOut}

A timeout only ends the client's observation: the remote job is never
cancelled and may still finish later.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Mapping

from core.domain.models import Job, JobRun, JobStatus, PollingPolicy, RunState
from core.errors import JobFailedError, JobTimeoutError
from core.interfaces.pipeline_api import PipelineApi

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[Any]]
ClockFn = Callable[[], float]


def job_status_path(job_id: str) -> str:
    return f"/jobs/{job_id}/status"


def extract_job_id(response: object) -> str | None:
    """Return the job id of a submission response, if there is one."""

    if not isinstance(response, dict):
        return None
    value = response.get("job_id")
    if isinstance(value, (str, int)) and str(value):
        return str(value)
    return None


class JobRunner:
    """Submits jobs through a `PipelineApi` and observes them to completion."""

    def __init__(
        self,
        api: PipelineApi,
        *,
        policy: PollingPolicy | None = None,
        sleep: SleepFn = asyncio.sleep,
        clock: ClockFn = time.monotonic,
    ) -> None:
        self._api = api
        self._policy = policy or PollingPolicy()
        self._sleep = sleep
        self._clock = clock

    @property
    def api(self) -> PipelineApi:
        return self._api

    async def get_job(self, job_id: str) -> Job:
        payload = await self._api.request("GET", job_status_path(job_id))
        return Job.from_payload(job_id, payload)

    async def run_job(
        self,
        path: str,
        body: Mapping[str, Any] | None = None,
        *,
        wait: bool = True,
        policy: PollingPolicy | None = None,
    ) -> JobRun:
        """Submit ``body`` to ``path`` and, optionally, wait for the result.

        Raises:
            ApiError: submission or a status check failed at the HTTP level.
            JobFailedError: the job reported ``failed``.
            JobTimeoutError: no terminal status within ``policy.timeout_seconds``.
        """

        policy = policy or self._policy
        start = self._clock()
        response = await self._api.request("POST", path, body)

        job_id = extract_job_id(response)
        if job_id is None:
            logger.debug("POST %s completed inline", path)
            return JobRun(state=RunState.INLINE, response=response)

        if not wait:
            logger.info("Job %s submitted to %s (not waiting)", job_id, path)
            return JobRun(state=RunState.SUBMITTED, job_id=job_id, response=response)

        logger.info("Job %s submitted to %s", job_id, path)
        job = await self._poll(job_id, policy=policy, start=start)
        return JobRun(state=RunState.SUCCEEDED, job_id=job_id, response=response, job=job)

    async def _poll(self, job_id: str, *, policy: PollingPolicy, start: float) -> Job:
        last_status: JobStatus | None = None
        while True:
            await self._sleep(policy.interval_seconds)

            elapsed = self._clock() - start
            if elapsed >= policy.timeout_seconds:
                logger.warning("Job %s timed out after %.1fs (last status: %s)", job_id, elapsed, last_status)
                raise JobTimeoutError(job_id, elapsed_seconds=elapsed, last_status=last_status)

            job = await self.get_job(job_id)
            last_status = job.status
            logger.debug("Job %s status=%s elapsed=%.1fs", job_id, job.status.value, elapsed)

            if job.status is JobStatus.SUCCEEDED:
                return job
            if job.status is JobStatus.FAILED:
                logger.error("Job %s failed: %s", job_id, job.error)
                raise JobFailedError(job)
