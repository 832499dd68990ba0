"""Exception hierarchy for the HMC client.

Every error raised by the library derives from :class:`HmcError`. Transport
failures (``httpx.HTTPError``) are not wrapped and propagate unchanged.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .job import Job
    from .schema.job import JobResponse


class HmcError(Exception):
    """Base class for all HMC client errors."""


class ProtocolError(HmcError):
    """Raised when a response cannot be decoded into the expected shape."""


class JobStateError(HmcError):
    """Raised when a job operation is invalid in the job's current state."""


class NotSubmittedError(JobStateError):
    """Raised when a job is polled or released before it was submitted."""


class HttpError(HmcError):
    """Raised when the HMC answers a request with an HTTP error status.

    Attributes:
        status: HTTP status code.
        message: Server message (from the HttpErrorResponse body when present).
        reason: HMC reason code, if any.
        uri: Request URI reported by the HMC, if any.
    """

    def __init__(
        self,
        status: int,
        message: str,
        reason: str | None = None,
        uri: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.message = message
        self.reason = reason
        self.uri = uri

    def __str__(self) -> str:
        return (
            f'msg="{self.message}" status="{self.status}" '
            f'reason="{self.reason}" uri={self.uri}'
        )


class HttpNotFoundError(HttpError):
    """Raised on HTTP 404."""


class AuthenticationRejectedError(HttpError):
    """Raised on HTTP 401 once the single re-authentication has been used."""


class VersionConflictError(HttpError):
    """Raised on HTTP 412 when a conditional update carries a stale ETag."""


class JobFailedError(HmcError):
    """Raised by :meth:`Job.run` when a job does not end in COMPLETED_OK.

    Attributes:
        job: The job that failed.
        status: Final status returned by ``wait`` (may be ``TIMEDOUT``).
        last_status: Last JobResponse snapshot, ``None`` if never polled.
        message: Exception message reported by the HMC, if any.
        results: Result parameters from the last poll.
    """

    def __init__(
        self,
        job: Job,
        status: str,
        last_status: JobResponse | None,
    ):
        self.job = job
        self.status = status
        self.last_status = last_status
        self.message = last_status.message if last_status is not None else None
        self.results: dict[str, Any] = dict(job.results)
        super().__init__(str(self))

    def __str__(self) -> str:
        return (
            f'{self.status} err="{self.results.get("result")}" '
            f'rc={self.results.get("returnCode")} msg="{self.message}" '
            f'exception="{self.results.get("ExceptionText")}" url={self.job.href}'
        )
