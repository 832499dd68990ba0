"""Long-running HMC operations.

A job is submitted with a PUT to an operation URL, polled with GETs on the job
resource the HMC returns, and released with a DELETE once its outcome is
known::

    job = Job(conn, f"/rest/api/uom/LogicalPartition/{uuid}/do/PowerOn",
              "PowerOn", "LogicalPartition", {"bootmode": "norm"})
    job.run(timeout=300)
"""

from __future__ import annotations

import enum
import time
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import structlog

from .errors import JobFailedError, JobStateError, NotSubmittedError, ProtocolError
from .parser import Document
from .schema import WEB_XMLNS, JobRequest, JobResponse

if TYPE_CHECKING:
    from .hmcrestapi.connection import Connection

logger = structlog.get_logger(__name__)

JOB_CONTENT_TYPE = "application/vnd.ibm.powervm.web+xml; type=JobRequest"

NOT_STARTED = "NOT_STARTED"
RUNNING = "RUNNING"
COMPLETED_OK = "COMPLETED_OK"
TIMEDOUT = "TIMEDOUT"

MAX_AUTO_POLL_INTERVAL = 30.0


class JobState(enum.Enum):
    CREATED = "created"
    SUBMITTED = "submitted"
    RELEASED = "released"


class Job:
    """An HMC job and its client-side lifecycle.

    Args:
        connection: Connection used for every request of the job.
        method_url: URL of the operation to run.
        operation: Name of the requested operation (e.g., "PowerOn").
        group: Group of the operation (e.g., "LogicalPartition").
        params: Job parameters.
        clock: Monotonic clock in seconds.
        sleep: Function pausing for a number of seconds.

    Attributes:
        href: Path of the job resource, set by submit.
        last_status: Last JobResponse received by poll.
        results: Result parameters of the last poll.
    """

    def __init__(
        self,
        connection: Connection,
        method_url: str,
        operation: str,
        group: str,
        params: Mapping[str, object] | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.connection = connection
        self.method_url = method_url
        self.operation = operation
        self.group = group
        self.params = dict(params or {})
        self._clock = clock
        self._sleep = sleep

        self.state = JobState.CREATED
        self.href: str | None = None
        self.last_status: JobResponse | None = None
        self.results: dict[str, str | None] = {}

    def __repr__(self) -> str:
        return (
            f"Job(operation={self.operation!r}, group={self.group!r}, "
            f"state={self.state.name}, href={self.href!r})"
        )

    def submit(self) -> str:
        """Start the job asynchronously.

        Returns:
            The path of the job resource.

        Raises:
            JobStateError: If the job was already submitted.
            ProtocolError: If the HMC does not answer with a located JobResponse.
        """
        if self.state is not JobState.CREATED:
            msg = f"Job {self.operation} was already submitted"
            raise JobStateError(msg)

        jobreq = JobRequest.marshal(
            {"operation": self.operation, "group": self.group, "params": self.params},
            WEB_XMLNS,
        )
        response = self.connection.request(
            "PUT",
            self.method_url,
            {"Content-Type": JOB_CONTENT_TYPE},
            jobreq.to_xml(),
        )
        jobresp = Document(response.body).object(JobResponse)
        if jobresp is None or not jobresp.href:
            msg = f"No job location in the response to {self.method_url}"
            raise ProtocolError(msg)

        # The JobID alone is not enough: not every job lives under uom.
        self.href = urlparse(jobresp.href).path
        self.state = JobState.SUBMITTED
        logger.info(
            "Job submitted",
            operation=self.operation,
            group=self.group,
            job_id=jobresp.id,
            href=self.href,
        )
        return self.href

    def _check_submitted(self) -> None:
        if self.href is None:
            msg = f"Job {self.operation} was not submitted"
            raise NotSubmittedError(msg)

    def poll(self) -> str:
        """Query the status of the job.

        Returns:
            The job status (e.g., "RUNNING" or "COMPLETED_OK").

        Raises:
            NotSubmittedError: If the job was not submitted.
            JobStateError: If the job was released.
            ProtocolError: If the response is not a JobResponse.
        """
        self._check_submitted()
        if self.state is JobState.RELEASED:
            msg = f"Job {self.href} was released"
            raise JobStateError(msg)

        response = self.connection.request("GET", self.href)
        status = Document(response.body).object(JobResponse)
        if status is None:
            msg = f"No JobResponse for job {self.href}"
            raise ProtocolError(msg)
        self.last_status = status
        self.results = status.results
        return status.status

    def wait(self, timeout: float = 120, poll_interval: float = 0) -> str:
        """Poll the job until it leaves the running states or timeout elapses.

        Args:
            timeout: Maximum time to wait, in seconds.
            poll_interval: Seconds between polls. 0 starts at 1 s and doubles
                after each poll, up to 30 s.

        Returns:
            The final status, or "TIMEDOUT". A timed-out job keeps running.
        """
        deadline = self._clock() + timeout
        auto = poll_interval == 0
        interval = 1.0 if auto else poll_interval
        while self._clock() < deadline:
            status = self.poll()
            if status not in (RUNNING, NOT_STARTED):
                return status

            remaining = deadline - self._clock()
            if remaining <= 0:
                break
            self._sleep(min(interval, remaining))
            if auto:
                interval = min(interval * 2, MAX_AUTO_POLL_INTERVAL)

        logger.warning("Job timed out", href=self.href, timeout=timeout)
        return TIMEDOUT

    def release(self) -> None:
        """Delete the job resource from the HMC.

        Raises:
            NotSubmittedError: If the job was not submitted.
        """
        self._check_submitted()
        self.connection.request("DELETE", self.href)
        self.state = JobState.RELEASED

    def run(self, timeout: float = 120, poll_interval: float = 0) -> str:
        """Run the job synchronously and release it.

        Returns:
            "COMPLETED_OK".

        Raises:
            JobFailedError: If the job ends in any other status, including
                "TIMEDOUT".
        """
        try:
            self.submit()
            status = self.wait(timeout, poll_interval)
            self.connection.stats.record_job(status)
            if status != COMPLETED_OK:
                raise JobFailedError(self, status, self.last_status)
        except BaseException:
            # The original error wins over a failed release.
            if self.state is JobState.SUBMITTED:
                try:
                    self.release()
                except Exception:
                    logger.exception("Job release failed", href=self.href)
            raise

        self.release()
        logger.info("Job completed", operation=self.operation, href=self.href)
        return status
