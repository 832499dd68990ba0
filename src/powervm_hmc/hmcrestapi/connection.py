"""Session-authenticated connection to the HMC REST API.

Requests carry the ``X-API-Session`` token obtained at logon. The connection
logs on lazily on the first request and transparently logs on again, once
per request, when the HMC reports that the session has expired.
"""

from collections.abc import Callable, Mapping
from http import HTTPStatus
from urllib.parse import quote, urlencode

import structlog

from ..errors import (
    AuthenticationRejectedError,
    HttpError,
    HttpNotFoundError,
    ProtocolError,
    VersionConflictError,
)
from ..job import Job
from ..metrics import ClientStats
from ..parser import Document
from ..schema import (
    WEB_XMLNS,
    EmbeddedEntity,
    Event,
    FreestandingEntity,
    Group,
    HttpErrorResponse,
    LogicalPartition,
    LogonRequest,
    LogonResponse,
    ManagedSystem,
    ManagementConsole,
    ServiceableEvent,
    VirtualIOServer,
    VirtualNetwork,
    VirtualSwitch,
)
from ..schema.base import local_name
from .transport import DEFAULT_TIMEOUT, HttpxTransport, Transport, TransportResponse

logger = structlog.get_logger(__name__)

LOGON_URL = "/rest/api/web/Logon"
LOGON_CONTENT_TYPE = "application/vnd.ibm.powervm.web+xml; type=LogonRequest"
UOM_URL = "/rest/api/uom"
SEM_URL = "/rest/api/sem"

_ERROR_TYPES: dict[int, type[HttpError]] = {
    401: AuthenticationRejectedError,
    404: HttpNotFoundError,
    412: VersionConflictError,
}

EntityType = str | type[EmbeddedEntity] | None


def _with_query(url: str, **query: str | None) -> str:
    params = {name: value for name, value in query.items() if value is not None}
    if not params:
        return url
    return f"{url}?{urlencode(params, safe=',')}"


def _error_message(status: int) -> str:
    try:
        return f"{status} {HTTPStatus(status).phrase}"
    except ValueError:
        return str(status)


class Connection:
    """Client for one HMC.

    Not thread-safe: the session token is a plain attribute. Can be used as a
    context manager, which logs off and closes the transport on exit.

    Attributes:
        hostname: ``host:port`` of the HMC.
        stats: Request, error and job counters of this connection.
    """

    def __init__(
        self,
        host: str,
        password: str,
        username: str = "hscroot",
        port: int = 12443,
        validate_ssl: bool = True,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = 0,
        transport: Transport | None = None,
        job_timeout: float = 120,
        job_poll_interval: float = 0,
        modify_attempts: int = 5,
    ):
        """Initialize the connection. No request is sent until first use.

        Args:
            host: Host name of the HMC.
            password: Password of the HMC user.
            username: HMC user name.
            port: TCP port of the REST API.
            validate_ssl: Verify the HMC TLS certificate.
            timeout: HTTP timeout in seconds.
            retries: Connection retries on connect errors.
            transport: Transport to use instead of an HttpxTransport.
            job_timeout: Timeout used by helpers that run jobs synchronously.
            job_poll_interval: Poll interval used by those helpers (0 = auto).
            modify_attempts: Attempt budget of helpers using modify_object.
        """
        self.hostname = f"{host}:{port}"
        self._username = username
        self._password = password
        self._transport = transport or HttpxTransport(
            f"https://{self.hostname}",
            verify=validate_ssl,
            timeout=timeout,
            retries=retries,
        )
        self.job_timeout = job_timeout
        self.job_poll_interval = job_poll_interval
        self.modify_attempts = modify_attempts
        self.stats = ClientStats()
        # None: logged off. "": logon in progress.
        self._token: str | None = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            self.logoff()
        finally:
            self._transport.close()

    @property
    def token(self) -> str | None:
        """The current X-API-Session token, ``None`` when logged off."""
        return self._token

    def logon(self) -> str:
        """Establish a session with the web services API.

        Returns:
            The X-API-Session token.

        Raises:
            ProtocolError: If the response carries no session token.
            HttpError: If the HMC rejects the logon.
        """
        logon_request = LogonRequest.marshal(
            {"user_id": self._username, "password": self._password},
            WEB_XMLNS,
        )
        self._token = ""
        try:
            response = self.request(
                "PUT",
                LOGON_URL,
                {"Content-Type": LOGON_CONTENT_TYPE},
                logon_request.to_xml(),
            )
            root = Document(response.body).root
            token = None
            if root is not None and local_name(root.tag) == "LogonResponse":
                token = LogonResponse(root).token
            if not token:
                msg = "LogonResponse/X-API-Session not found"
                raise ProtocolError(msg)
        except Exception:
            self._token = None
            raise

        self._token = token
        logger.info("Logged on to HMC", host=self.hostname, username=self._username)
        return token

    def logoff(self) -> None:
        """Close the session. Failures are logged and ignored."""
        # Never trigger a logon from here.
        if self._token is None:
            return
        try:
            self.request("DELETE", LOGON_URL)
        except Exception as exc:
            logger.warning("HMC logoff failed", host=self.hostname, error=str(exc))
        else:
            logger.info("Logged off from HMC", host=self.hostname)
        self._token = None

    def request(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str] | None = None,
        payload: str | bytes | None = None,
    ) -> TransportResponse:
        """Perform a REST API request within the session.

        Args:
            method: HTTP method.
            url: Absolute URL or path on the HMC (e.g., "/rest/api/uom/Group").
            headers: Additional HTTP headers.
            payload: Request body.

        Returns:
            The response, with a status below 400.

        Raises:
            HttpError: If the HMC answers with an error status.
            httpx.HTTPError: On transport failures.
        """
        if self._token is None:
            self.logon()

        method = method.upper()
        reauth = False
        while True:
            merged = {**(headers or {}), "X-API-Session": self._token or ""}
            self.stats.record_request(method)
            response = self._transport.perform(method, url, merged, payload)
            if response.status < 400:
                return response

            self.stats.record_http_error(response.status)
            # A failed logon is never retried.
            if response.status == 401 and self._token != "" and not reauth:
                reauth = True
                logger.warning("HMC session expired, logging on again", host=self.hostname)
                self.stats.record_reauthentication()
                self.logon()
                continue
            raise self._http_error(response)

    def _http_error(self, response: TransportResponse) -> HttpError:
        error_type = _ERROR_TYPES.get(response.status, HttpError)
        message = _error_message(response.status)
        reason = uri = None
        try:
            details = Document(response.body).object(HttpErrorResponse)
        except ProtocolError:
            # Not an XML error document.
            details = None
        if details is not None:
            message = details.message or message
            reason = details.reason
            uri = details.uri
        return error_type(response.status, message, reason=reason, uri=uri)

    def get_object(
        self,
        url: str,
        expected_type: EntityType = None,
    ) -> FreestandingEntity | None:
        """GET a single entry and parse it.

        Returns:
            The entity, or ``None`` if the entry is not of expected_type.
        """
        response = self.request("GET", url)
        return Document(response.body).object(expected_type)

    def get_feed(
        self,
        url: str,
        expected_type: EntityType = None,
    ) -> list[FreestandingEntity]:
        """GET a feed and parse the entries of expected_type."""
        response = self.request("GET", url)
        return Document(response.body).objects(expected_type)

    def modify_object(
        self,
        fetch: str | Callable[[], FreestandingEntity | None],
        mutate: Callable[[FreestandingEntity], object] | None = None,
        attempts: int = 5,
        headers: Mapping[str, str] | None = None,
        method_url: str | None = None,
    ) -> FreestandingEntity:
        """Update an object using its ETag, retrying on concurrent changes.

        Each attempt fetches the object, applies ``mutate`` and POSTs it back
        with ``If-Match`` set to the ETag of that fetch. When the HMC answers
        412 (the object changed in the meantime), the whole cycle restarts
        until the attempts are exhausted.

        Args:
            fetch: URL of the object, or a callable returning the object.
            mutate: Callable applying the changes to the fetched object.
            attempts: Maximum number of POST attempts.
            headers: Additional HTTP headers.
            method_url: URL to POST to instead of the object's href.

        Returns:
            The object version accepted by the HMC.

        Raises:
            ValueError: If attempts is below 1 or there is no URL to POST to.
            ProtocolError: If fetch yields no object.
            VersionConflictError: If every attempt hit a concurrent change.
        """
        if attempts < 1:
            msg = "attempts must be at least 1"
            raise ValueError(msg)

        while True:
            obj = self.get_object(fetch) if isinstance(fetch, str) else fetch()
            if obj is None:
                msg = f"No object to modify at {fetch!r}"
                raise ProtocolError(msg)
            if mutate is not None:
                mutate(obj)

            url = method_url or obj.href
            if url is None:
                msg = f"{type(obj).__name__} has no href"
                raise ValueError(msg)

            if obj.etag is None:
                msg = f"{type(obj).__name__} has no ETag"
                raise ProtocolError(msg)

            merged = {**(headers or {}), "If-Match": obj.etag}
            if obj.content_type is not None:
                merged["Content-Type"] = obj.content_type
            try:
                self.request("POST", url, merged, obj.to_xml())
            except VersionConflictError:
                self.stats.record_version_conflict()
                attempts -= 1
                if attempts == 0:
                    raise
                logger.warning(
                    "Object changed concurrently, retrying",
                    url=url,
                    attempts_left=attempts,
                )
                continue
            return obj

    # ---------------------------------------------------------------------
    # Objects
    # ---------------------------------------------------------------------

    def management_console(self) -> ManagementConsole | None:
        """Retrieve the management console (the HMC itself)."""
        consoles = self.get_feed(f"{UOM_URL}/ManagementConsole", ManagementConsole)
        return consoles[0] if consoles else None

    def managed_systems(
        self,
        search: str | None = None,
        group_name: str | None = None,
    ) -> list[ManagedSystem]:
        """Retrieve the systems managed by the HMC.

        Args:
            search: Optional search criteria (e.g., "SystemName==sys1").
            group_name: Extended group attributes to return.
        """
        url = f"{UOM_URL}/ManagedSystem"
        if search is not None:
            url += f"/search/({quote(search, safe='')})"
        return self.get_feed(_with_query(url, group=group_name), ManagedSystem)

    def managed_system(
        self,
        sys_uuid: str,
        group_name: str | None = None,
    ) -> ManagedSystem | None:
        url = _with_query(f"{UOM_URL}/ManagedSystem/{sys_uuid}", group=group_name)
        return self.get_object(url, ManagedSystem)

    def lpars(
        self,
        sys_uuid: str | None = None,
        search: str | None = None,
        group_name: str | None = None,
    ) -> list[LogicalPartition]:
        """Retrieve logical partitions, of all systems or of one."""
        if sys_uuid is None:
            url = f"{UOM_URL}/LogicalPartition"
            if search is not None:
                url += f"/search/({quote(search, safe='')})"
        else:
            url = f"{UOM_URL}/ManagedSystem/{sys_uuid}/LogicalPartition"
        return self.get_feed(_with_query(url, group=group_name), LogicalPartition)

    def lpar(
        self,
        lpar_uuid: str,
        sys_uuid: str | None = None,
        group_name: str | None = None,
    ) -> LogicalPartition | None:
        if sys_uuid is None:
            url = f"{UOM_URL}/LogicalPartition/{lpar_uuid}"
        else:
            url = f"{UOM_URL}/ManagedSystem/{sys_uuid}/LogicalPartition/{lpar_uuid}"
        return self.get_object(_with_query(url, group=group_name), LogicalPartition)

    def rename_lpar(self, lpar_uuid: str, new_name: str) -> LogicalPartition:
        """Rename a logical partition."""

        def rename(lpar: FreestandingEntity) -> None:
            lpar.name = new_name

        return self.modify_object(
            f"{UOM_URL}/LogicalPartition/{lpar_uuid}",
            rename,
            attempts=self.modify_attempts,
        )

    def lpar_delete(self, lpar_uuid: str) -> None:
        """Delete a logical partition."""
        self.request("DELETE", f"{UOM_URL}/LogicalPartition/{lpar_uuid}")

    def vioses(
        self,
        sys_uuid: str | None = None,
        search: str | None = None,
        group_name: str | None = None,
        permissive: bool = True,
    ) -> list[VirtualIOServer]:
        """Retrieve Virtual I/O Servers, of all systems or of one.

        Args:
            permissive: Ask the HMC to skip VIOSes it fails to query.
        """
        if sys_uuid is None:
            url = f"{UOM_URL}/VirtualIOServer"
            if search is not None:
                url += f"/search/({quote(search, safe='')})"
        else:
            url = f"{UOM_URL}/ManagedSystem/{sys_uuid}/VirtualIOServer"
        url = _with_query(
            url,
            group=group_name,
            ignoreError="true" if permissive else None,
        )
        return self.get_feed(url, VirtualIOServer)

    def vios(
        self,
        vios_uuid: str,
        sys_uuid: str | None = None,
        group_name: str | None = None,
    ) -> VirtualIOServer | None:
        if sys_uuid is None:
            url = f"{UOM_URL}/VirtualIOServer/{vios_uuid}"
        else:
            url = f"{UOM_URL}/ManagedSystem/{sys_uuid}/VirtualIOServer/{vios_uuid}"
        return self.get_object(_with_query(url, group=group_name), VirtualIOServer)

    def groups(self) -> list[Group]:
        return self.get_feed(f"{UOM_URL}/Group", Group)

    def virtual_switches(self, sys_uuid: str) -> list[VirtualSwitch]:
        return self.get_feed(f"{UOM_URL}/ManagedSystem/{sys_uuid}/VirtualSwitch", VirtualSwitch)

    def virtual_networks(self, sys_uuid: str) -> list[VirtualNetwork]:
        return self.get_feed(f"{UOM_URL}/ManagedSystem/{sys_uuid}/VirtualNetwork", VirtualNetwork)

    def serviceable_events(self, status: str | None = None) -> list[ServiceableEvent]:
        """Retrieve serviceable events, optionally only those in one state."""
        url = _with_query(f"{SEM_URL}/ServiceableEvent", status=status)
        return self.get_feed(url, ServiceableEvent)

    def next_events(self, wait: bool = True) -> list[Event]:
        """Retrieve the events that occurred since the previous call.

        The HMC holds the request for a while and answers 204 when no event
        occurred. With ``wait``, the request is repeated until events arrive.
        """
        while True:
            response = self.request("GET", f"{UOM_URL}/Event")
            if response.status != HTTPStatus.NO_CONTENT or not wait:
                break
        return Document(response.body).objects(Event)

    # ---------------------------------------------------------------------
    # Jobs
    # ---------------------------------------------------------------------

    def _job(
        self,
        method_url: str,
        operation: str,
        group: str,
        params: Mapping[str, object] | None,
        sync: bool,
    ) -> Job:
        job = Job(self, method_url, operation, group, params)
        if sync:
            job.run(timeout=self.job_timeout, poll_interval=self.job_poll_interval)
        return job

    def poweron_lpar(
        self,
        lpar_uuid: str,
        params: Mapping[str, object] | None = None,
        sync: bool = True,
    ) -> Job:
        """Power on a logical partition.

        Args:
            lpar_uuid: UUID of the logical partition.
            params: Job parameters (e.g., {"bootmode": "sms"}).
            sync: Run the job to completion before returning.
        """
        return self._job(
            f"{UOM_URL}/LogicalPartition/{lpar_uuid}/do/PowerOn",
            "PowerOn",
            "LogicalPartition",
            params,
            sync,
        )

    def poweroff_lpar(
        self,
        lpar_uuid: str,
        params: Mapping[str, object] | None = None,
        sync: bool = True,
    ) -> Job:
        return self._job(
            f"{UOM_URL}/LogicalPartition/{lpar_uuid}/do/PowerOff",
            "PowerOff",
            "LogicalPartition",
            params,
            sync,
        )

    def poweron_vios(
        self,
        vios_uuid: str,
        params: Mapping[str, object] | None = None,
        sync: bool = True,
    ) -> Job:
        return self._job(
            f"{UOM_URL}/VirtualIOServer/{vios_uuid}/do/PowerOn",
            "PowerOn",
            "VirtualIOServer",
            params,
            sync,
        )

    def poweroff_vios(
        self,
        vios_uuid: str,
        params: Mapping[str, object] | None = None,
        sync: bool = True,
    ) -> Job:
        return self._job(
            f"{UOM_URL}/VirtualIOServer/{vios_uuid}/do/PowerOff",
            "PowerOff",
            "VirtualIOServer",
            params,
            sync,
        )

    def poweron_managed_system(
        self,
        sys_uuid: str,
        params: Mapping[str, object] | None = None,
        sync: bool = True,
    ) -> Job:
        return self._job(
            f"{UOM_URL}/ManagedSystem/{sys_uuid}/do/PowerOn",
            "PowerOn",
            "ManagedSystem",
            params,
            sync,
        )

    def poweroff_managed_system(
        self,
        sys_uuid: str,
        params: Mapping[str, object] | None = None,
        sync: bool = True,
    ) -> Job:
        return self._job(
            f"{UOM_URL}/ManagedSystem/{sys_uuid}/do/PowerOff",
            "PowerOff",
            "ManagedSystem",
            params,
            sync,
        )

    def cli_run(self, hmc_uuid: str, cmd: str, sync: bool = True) -> Job:
        """Run an HMC CLI command.

        The command output is in ``job.results["result"]`` once the job has
        completed.
        """
        params = {
            "cmd": cmd,
            "acknowledgeThisAPIMayGoAwayInTheFuture": "true",
        }
        return self._job(
            f"{UOM_URL}/ManagementConsole/{hmc_uuid}/do/CLIRunner",
            "CLIRunner",
            "ManagementConsole",
            params,
            sync,
        )
