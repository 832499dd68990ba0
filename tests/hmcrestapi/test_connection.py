"""Tests for session handling, error mapping and endpoint helpers of Connection."""

from unittest.mock import call

import httpx
import pytest

from powervm_hmc import job as hmcjob
from powervm_hmc.errors import (
    AuthenticationRejectedError,
    HttpError,
    HttpNotFoundError,
    ProtocolError,
    VersionConflictError,
)
from powervm_hmc.hmcrestapi import Connection, TransportResponse
from powervm_hmc.schema import WEB_XMLNS, Event, Group, ManagementConsole


def _ok(body: str = "", status: int = 200) -> TransportResponse:
    return TransportResponse(status, body.encode())


# ---------------------------------------------------------------------------
# Logon
# ---------------------------------------------------------------------------


def test_first_request_logs_on(conn, transport, logon_ok, make_entry, make_feed):
    """No request is sent before use; the first one opens the session."""
    transport.perform.side_effect = [
        logon_ok("token-1"),
        _ok(make_feed(make_entry("Group", "<GroupName>prod</GroupName>"))),
    ]

    groups = conn.groups()

    assert [g.name for g in groups] == ["prod"]
    assert conn.token == "token-1"
    logon_call, get_call = transport.perform.call_args_list
    method, url, headers, body = logon_call.args
    assert (method, url) == ("PUT", "/rest/api/web/Logon")
    assert headers["Content-Type"] == "application/vnd.ibm.powervm.web+xml; type=LogonRequest"
    assert "<ns0:UserID>hscroot</ns0:UserID>" in body
    assert "<ns0:Password>secret</ns0:Password>" in body
    assert get_call == call("GET", "/rest/api/uom/Group", {"X-API-Session": "token-1"}, None)


def test_logon_without_token_raises(conn, transport):
    transport.perform.side_effect = [_ok(f'<LogonResponse xmlns="{WEB_XMLNS}"/>')]

    with pytest.raises(ProtocolError, match="X-API-Session"):
        conn.logon()
    assert conn.token is None


def test_rejected_logon_is_not_retried(conn, transport):
    """A 401 answer to the logon itself is final."""
    transport.perform.side_effect = [_ok(status=401)]

    with pytest.raises(AuthenticationRejectedError):
        conn.logon()

    assert transport.perform.call_count == 1
    assert conn.token is None


def test_expired_session_reauthenticates_once(conn, transport, logon_ok, make_feed):
    """A 401 on a regular request triggers one logon and one retry."""
    transport.perform.side_effect = [
        logon_ok("token-1"),
        _ok(status=401),
        logon_ok("token-2"),
        _ok(make_feed()),
    ]

    assert conn.groups() == []

    assert transport.perform.call_count == 4
    retry = transport.perform.call_args_list[-1]
    assert retry.args[2]["X-API-Session"] == "token-2"
    assert conn.stats.reauthentications == 1


def test_second_401_after_reauthentication_raises(conn, transport, logon_ok):
    transport.perform.side_effect = [
        logon_ok("token-1"),
        _ok(status=401),
        logon_ok("token-2"),
        _ok(status=401),
    ]

    with pytest.raises(AuthenticationRejectedError):
        conn.groups()

    assert transport.perform.call_count == 4


def test_transport_errors_propagate(conn, transport, logon_ok):
    transport.perform.side_effect = [logon_ok(), httpx.ConnectError("connection refused")]

    with pytest.raises(httpx.ConnectError):
        conn.groups()


# ---------------------------------------------------------------------------
# Logoff
# ---------------------------------------------------------------------------


def test_logoff_without_session_sends_nothing(conn, transport):
    conn.logoff()

    transport.perform.assert_not_called()


def test_logoff_deletes_session(conn, transport, logon_ok):
    transport.perform.side_effect = [logon_ok(), _ok(status=204)]
    conn.logon()

    conn.logoff()

    assert transport.perform.call_args == call(
        "DELETE", "/rest/api/web/Logon", {"X-API-Session": "token-1"}, None
    )
    assert conn.token is None


@pytest.mark.parametrize(
    "failure",
    [_ok(status=500), httpx.ReadTimeout("timed out")],
)
def test_logoff_ignores_failures(conn, transport, logon_ok, failure):
    """Logoff is best effort: errors are not raised and the token is dropped."""
    transport.perform.side_effect = [logon_ok(), failure]
    conn.logon()

    conn.logoff()

    assert conn.token is None


def test_context_manager_logs_off_and_closes(transport, logon_ok):
    transport.perform.side_effect = [logon_ok(), _ok(status=204)]

    with Connection("hmc1", "secret", transport=transport) as conn:
        conn.logon()

    assert transport.perform.call_args.args[:2] == ("DELETE", "/rest/api/web/Logon")
    transport.close.assert_called_once()


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("status", "error_type"),
    [
        (404, HttpNotFoundError),
        (412, VersionConflictError),
        (400, HttpError),
        (500, HttpError),
    ],
)
def test_error_status_mapping(conn, transport, logon_ok, status, error_type):
    transport.perform.side_effect = [logon_ok(), _ok(status=status)]

    with pytest.raises(HttpError) as exc_info:
        conn.request("GET", "/rest/api/uom/LogicalPartition/missing")

    assert type(exc_info.value) is error_type
    assert exc_info.value.status == status
    assert conn.stats.http_errors == {status: 1}


def test_error_without_details_uses_status_phrase(conn, transport, logon_ok):
    transport.perform.side_effect = [logon_ok(), _ok(status=404)]

    with pytest.raises(HttpNotFoundError) as exc_info:
        conn.lpar("missing")

    assert exc_info.value.message == "404 Not Found"
    assert exc_info.value.reason is None


def test_error_details_are_parsed(conn, transport, logon_ok, make_error_response):
    """Reason, URI and message come from the HttpErrorResponse body."""
    transport.perform.side_effect = [
        logon_ok(),
        _ok(make_error_response(500, "Partition is busy", reason="REST0042"), status=500),
    ]

    with pytest.raises(HttpError) as exc_info:
        conn.lpar_delete("lpar-1")

    err = exc_info.value
    assert err.message == "Partition is busy"
    assert err.reason == "REST0042"
    assert err.uri == "/rest/api/uom/LogicalPartition"
    assert str(err) == (
        'msg="Partition is busy" status="500" reason="REST0042" '
        "uri=/rest/api/uom/LogicalPartition"
    )


def test_error_with_non_xml_body(conn, transport, logon_ok):
    transport.perform.side_effect = [logon_ok(), _ok("<html>proxy error", status=502)]

    with pytest.raises(HttpError) as exc_info:
        conn.groups()

    assert exc_info.value.message == "502 Bad Gateway"


# ---------------------------------------------------------------------------
# Endpoint helpers
# ---------------------------------------------------------------------------


def test_management_console(conn, transport, logon_ok, make_entry, make_feed):
    transport.perform.side_effect = [
        logon_ok(),
        _ok(make_feed(make_entry("ManagementConsole", "<ManagementConsoleName>hmc1</ManagementConsoleName>"))),
    ]

    console = conn.management_console()

    assert isinstance(console, ManagementConsole)
    assert console.name == "hmc1"
    assert transport.perform.call_args.args[1] == "/rest/api/uom/ManagementConsole"


def test_managed_systems_search_and_group(conn, transport, logon_ok, make_feed):
    transport.perform.side_effect = [logon_ok(), _ok(make_feed())]

    conn.managed_systems(search="SystemName==sys1", group_name="Advanced")

    assert transport.perform.call_args.args[1] == (
        "/rest/api/uom/ManagedSystem/search/(SystemName%3D%3Dsys1)?group=Advanced"
    )


@pytest.mark.parametrize(
    ("kwargs", "url"),
    [
        ({}, "/rest/api/uom/LogicalPartition/lpar-1"),
        ({"sys_uuid": "sys-1"}, "/rest/api/uom/ManagedSystem/sys-1/LogicalPartition/lpar-1"),
        (
            {"group_name": "Advanced,Energy"},
            "/rest/api/uom/LogicalPartition/lpar-1?group=Advanced,Energy",
        ),
    ],
)
def test_lpar_urls(conn, transport, logon_ok, make_entry, kwargs, url):
    transport.perform.side_effect = [logon_ok(), _ok(make_entry("LogicalPartition"))]

    lpar = conn.lpar("lpar-1", **kwargs)

    assert lpar is not None
    assert transport.perform.call_args.args[1] == url


def test_vioses_are_permissive_by_default(conn, transport, logon_ok, make_feed):
    transport.perform.side_effect = [logon_ok(), _ok(make_feed()), _ok(make_feed())]

    conn.vioses("sys-1")
    conn.vioses(permissive=False)

    first, second = transport.perform.call_args_list[1:]
    assert first.args[1] == "/rest/api/uom/ManagedSystem/sys-1/VirtualIOServer?ignoreError=true"
    assert second.args[1] == "/rest/api/uom/VirtualIOServer"


def test_serviceable_events_status_filter(conn, transport, logon_ok, make_feed):
    transport.perform.side_effect = [logon_ok(), _ok(make_feed())]

    conn.serviceable_events("open")

    assert transport.perform.call_args.args[1] == "/rest/api/sem/ServiceableEvent?status=open"


def test_next_events_waits_through_no_content(conn, transport, logon_ok, make_entry, make_feed):
    """204 answers are retried until events arrive."""
    transport.perform.side_effect = [
        logon_ok(),
        _ok(status=204),
        _ok(status=204),
        _ok(make_feed(make_entry("Event", "<EventID>42</EventID><EventType>ADD_URI</EventType>"))),
    ]

    events = conn.next_events()

    assert [(e.id, e.type) for e in events] == [("42", "ADD_URI")]
    assert all(isinstance(e, Event) for e in events)
    assert transport.perform.call_count == 4


def test_next_events_without_wait(conn, transport, logon_ok):
    transport.perform.side_effect = [logon_ok(), _ok(status=204)]

    assert conn.next_events(wait=False) == []


def test_lpar_delete(conn, transport, logon_ok):
    transport.perform.side_effect = [logon_ok(), _ok(status=204)]

    conn.lpar_delete("lpar-1")

    assert transport.perform.call_args.args[:2] == ("DELETE", "/rest/api/uom/LogicalPartition/lpar-1")


def test_job_helper_without_sync_does_not_submit(conn, transport):
    job = conn.poweroff_vios("vios-1", {"operation": "shutdown"}, sync=False)

    assert isinstance(job, hmcjob.Job)
    assert job.state is hmcjob.JobState.CREATED
    assert job.method_url == "/rest/api/uom/VirtualIOServer/vios-1/do/PowerOff"
    assert (job.operation, job.group) == ("PowerOff", "VirtualIOServer")
    assert job.params == {"operation": "shutdown"}
    transport.perform.assert_not_called()


def test_cli_run_runs_job(conn, transport, logon_ok, make_job_response):
    transport.perform.side_effect = [
        logon_ok(),
        _ok(make_job_response("NOT_STARTED")),
        _ok(make_job_response("COMPLETED_OK", results={"result": "V10R2"})),
        _ok(status=204),
    ]

    job = conn.cli_run("hmc-uuid", "lshmc -V")

    assert job.results == {"result": "V10R2"}
    put = transport.perform.call_args_list[1]
    assert put.args[1] == "/rest/api/uom/ManagementConsole/hmc-uuid/do/CLIRunner"
    assert "<ns0:ParameterValue>lshmc -V</ns0:ParameterValue>" in put.args[3]
    assert transport.perform.call_args.args[:2] == ("DELETE", "/rest/api/jobs/1700000000001")
    assert conn.stats.jobs == {"COMPLETED_OK": 1}


def test_requests_are_counted_by_method(conn, transport, logon_ok, make_feed):
    transport.perform.side_effect = [logon_ok(), _ok(make_feed()), _ok(make_feed())]

    conn.groups()
    conn.get_feed("/rest/api/uom/Group", Group)

    assert conn.stats.requests == {"PUT": 1, "GET": 2}
