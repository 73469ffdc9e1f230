from __future__ import annotations

import time
import warnings
from typing import Callable, Optional, Union

from .constants import ACTIVE_STATUSES, SUCCESS_STATUS
from .errors import NotFoundWarning, PipelineFailedError, PipelineTimeoutError, RemoteCallError
from .gitlab import GitLabClient
from .logging import TriggerLogger
from .models import JobHandle, PipelineHandle

Handle = Union[PipelineHandle, JobHandle]


class PipelineWatcher:
    """Reads the state of a downstream pipeline through the downstream client."""

    def __init__(
        self,
        client: GitLabClient,
        logger: TriggerLogger,
        *,
        poll_interval_seconds: float = 60,
        max_wait_seconds: float = 3 * 60 * 60,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.logger = logger
        self.poll_interval_seconds = poll_interval_seconds
        self.max_wait_seconds = max_wait_seconds
        self._sleep = sleep
        self._clock = clock

    def find_job(self, pipeline: PipelineHandle, job_name: str) -> Optional[JobHandle]:
        """First job named exactly ``job_name`` across every page of the pipeline's jobs."""
        jobs = list(self.client.pipeline_jobs(pipeline.project_path, pipeline.id))
        for job in jobs:
            if job.get("name") == job_name:
                handle = JobHandle.from_api(pipeline.project_path, job)
                self.logger.info("downstream_job_found", job_id=handle.id, job_name=handle.name)
                return handle

        self.logger.warning("downstream_job_not_found", job_name=job_name, pipeline_id=pipeline.id)
        warnings.warn(
            f"No job named {job_name!r} in pipeline {pipeline.id} of {pipeline.project_path}",
            NotFoundWarning,
            stacklevel=2,
        )
        return None

    def status(self, handle: Handle) -> str:
        if isinstance(handle, JobHandle):
            payload = self.client.job(handle.project_path, handle.id)
        else:
            payload = self.client.pipeline(handle.project_path, handle.id)
        return str(payload.get("status") or "")

    def wait(self, handle: Handle) -> str:
        """
        Poll until ``handle`` reaches a terminal status.

        Returns the success status. Any other terminal status raises PipelineFailedError;
        running out of time raises PipelineTimeoutError. API errors while polling are
        logged and treated as still running.
        """
        started = self._clock()
        while True:
            try:
                status = self.status(handle)
            except RemoteCallError as exc:
                self.logger.warning("status_poll_failed", kind=handle.kind, id=handle.id, error=str(exc))
                status = "running"

            elapsed = self._clock() - started
            if status == SUCCESS_STATUS:
                self.logger.info("downstream_succeeded", kind=handle.kind, id=handle.id, minutes=int(elapsed // 60))
                return status
            if status not in ACTIVE_STATUSES:
                raise PipelineFailedError(f"Downstream {handle.kind} {handle.id} finished with status {status!r}")
            if elapsed + self.poll_interval_seconds > self.max_wait_seconds:
                raise PipelineTimeoutError(
                    f"Downstream {handle.kind} {handle.id} timed out after {int(elapsed // 60)} minutes"
                )

            self.logger.info("downstream_waiting", kind=handle.kind, id=handle.id, status=status)
            self._sleep(self.poll_interval_seconds)
