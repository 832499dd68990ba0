"""Shared fixtures: canned HMC documents, a fake clock and a mocked transport."""

from collections.abc import Callable
from unittest.mock import MagicMock

import pytest

from powervm_hmc.hmcrestapi import Connection, Transport, TransportResponse
from powervm_hmc.schema import UOM_XMLNS, WEB_XMLNS

ATOM_XMLNS = "http://www.w3.org/2005/Atom"
PUBLISHED = "2024-03-01T12:30:00.000Z"


def _entry(
    type_name: str,
    payload: str = "",
    uuid: str = "0b6a6b9c-5d3e-3e0f-9c7a-1c2d3e4f5a6b",
    href: str | None = None,
    etag: str | None = "1",
    published: str | None = PUBLISHED,
    namespace: str = UOM_XMLNS,
    media: str = "uom",
) -> str:
    href = href or f"https://hmc1:12443/rest/api/uom/{type_name}/{uuid}"
    parts = [f'<entry xmlns="{ATOM_XMLNS}">', f"<id>{uuid}</id>"]
    if published is not None:
        parts.append(f"<published>{published}</published>")
    parts.append(f'<link rel="SELF" href="{href}"/>')
    if etag is not None:
        parts.append(f'<etag:etag xmlns:etag="{UOM_XMLNS}">{etag}</etag:etag>')
    parts.append(
        f'<content type="application/vnd.ibm.powervm.{media}+xml; type={type_name}">'
        f'<{type_name} xmlns="{namespace}" schemaVersion="V1_1_0">{payload}</{type_name}>'
        "</content></entry>"
    )
    return "".join(parts)


def _feed(*entries: str) -> str:
    return f'<feed xmlns="{ATOM_XMLNS}"><id>feed</id>{"".join(entries)}</feed>'


def _job_response(
    status: str,
    job_id: str = "1700000000001",
    results: dict[str, str] | None = None,
    message: str | None = None,
) -> str:
    payload = [f"<JobID>{job_id}</JobID>", f"<Status>{status}</Status>"]
    if message is not None:
        payload.append(f"<ResponseException><Message>{message}</Message></ResponseException>")
    if results:
        payload.append("<Results>")
        for name, value in results.items():
            payload.append(
                "<JobParameter>"
                f"<ParameterName>{name}</ParameterName>"
                f"<ParameterValue>{value}</ParameterValue>"
                "</JobParameter>"
            )
        payload.append("</Results>")
    return _entry(
        "JobResponse",
        "".join(payload),
        uuid=job_id,
        href=f"https://hmc1:12443/rest/api/jobs/{job_id}",
        etag=None,
        namespace=WEB_XMLNS,
        media="web",
    )


def _error_response(status: int, message: str, reason: str = "REST0001") -> str:
    payload = (
        f"<HTTPStatus>{status}</HTTPStatus>"
        "<RequestURI>/rest/api/uom/LogicalPartition</RequestURI>"
        f"<ReasonCode>{reason}</ReasonCode>"
        f"<Message>{message}</Message>"
    )
    return _entry("HttpErrorResponse", payload, etag=None, namespace=WEB_XMLNS, media="web")


LOGON_RESPONSE = (
    f'<LogonResponse xmlns="{WEB_XMLNS}" schemaVersion="V1_0">'
    "<X-API-Session>{token}</X-API-Session>"
    "</LogonResponse>"
)


class FakeClock:
    """Deterministic clock whose time only advances when sleep is called."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_entry() -> Callable[..., str]:
    """Factory for a single Atom entry wrapping a typed payload."""
    return _entry


@pytest.fixture
def make_feed() -> Callable[..., str]:
    """Factory for an Atom feed made of entries."""
    return _feed


@pytest.fixture
def make_job_response() -> Callable[..., str]:
    """Factory for a JobResponse entry."""
    return _job_response


@pytest.fixture
def make_error_response() -> Callable[..., str]:
    """Factory for an HttpErrorResponse entry."""
    return _error_response


@pytest.fixture
def logon_ok() -> Callable[[str], TransportResponse]:
    """Factory for a successful logon response carrying a token."""
    return lambda token="token-1": TransportResponse(200, LOGON_RESPONSE.format(token=token).encode())


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport() -> MagicMock:
    """Mock transport; tests script responses through perform.side_effect."""
    return MagicMock(spec=Transport)


@pytest.fixture
def conn(transport: MagicMock) -> Connection:
    """Connection wired to the mock transport."""
    return Connection("hmc1", "secret", username="hscroot", transport=transport)
