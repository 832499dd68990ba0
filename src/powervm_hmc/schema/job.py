"""Job request and job response entities."""

import xml.etree.ElementTree as ET
from collections.abc import Mapping
from datetime import datetime

from .base import Attribute, FreestandingEntity, _to_text, namespace_of, qualify

SCHEMA_VERSION = "V1_1_0"


def _parameters(elem: ET.Element, path: str) -> dict[str, str | None]:
    params: dict[str, str | None] = {}
    for param in elem.findall(qualify(f"{path}/JobParameter")):
        name = param.findtext("{*}ParameterName")
        if name is None:
            continue
        value = param.findtext("{*}ParameterValue")
        params[name.strip()] = value.strip() if value is not None else None
    return params


class JobRequest(FreestandingEntity):
    """Request to run a named operation against a group of objects.

    Serializes as::

        <JobRequest>
          <RequestedOperation>
            <OperationName>PowerOn</OperationName>
            <GroupName>LogicalPartition</GroupName>
          </RequestedOperation>
          <JobParameters>
            <JobParameter>
              <ParameterName>...</ParameterName>
              <ParameterValue>...</ParameterValue>
            </JobParameter>
          </JobParameters>
        </JobRequest>
    """

    operation = Attribute("RequestedOperation/OperationName")
    group = Attribute("RequestedOperation/GroupName")

    def write(self, path: str, value) -> None:
        # RequestedOperation carries its own schemaVersion.
        if path.startswith("RequestedOperation/") and value is not None:
            self._container("RequestedOperation")
        super().write(path, value)

    def _container(self, name: str) -> ET.Element:
        elem = self.xml.find(qualify(name))
        if elem is None:
            elem = self._create_element(name)
            elem.set("schemaVersion", SCHEMA_VERSION)
        return elem

    @property
    def params(self) -> dict[str, str | None]:
        """Job parameters as a name to value mapping."""
        return _parameters(self.xml, "JobParameters")

    @params.setter
    def params(self, params: Mapping[str, object]) -> None:
        existing = self.xml.find(qualify("JobParameters"))
        if existing is not None:
            self.xml.remove(existing)
        jobparams = self._container("JobParameters")
        uri = namespace_of(jobparams.tag)
        ns = f"{{{uri}}}" if uri else ""
        for name, value in params.items():
            jobparam = ET.SubElement(
                jobparams, f"{ns}JobParameter", {"schemaVersion": SCHEMA_VERSION}
            )
            ET.SubElement(jobparam, f"{ns}ParameterName").text = str(name)
            ET.SubElement(jobparam, f"{ns}ParameterValue").text = _to_text(value)


class JobResponse(FreestandingEntity):
    """Status of a job as reported by the HMC."""

    id = Attribute("JobID")
    status = Attribute("Status")
    message = Attribute("ResponseException/Message")
    target_uuid = Attribute("TargetUuid")
    linear_progress = Attribute("Progress/LinearProgress", int)

    @property
    def url(self) -> str | None:
        return self.singleton("RequestURL", "href")

    @property
    def request(self) -> JobRequest | None:
        """The job request this response belongs to."""
        elem = self.xml.find(qualify("JobRequestInstance"))
        return JobRequest(elem) if elem is not None else None

    @property
    def started_at(self) -> datetime | None:
        return self.timestamp("TimeStarted")

    @property
    def completed_at(self) -> datetime | None:
        return self.timestamp("TimeCompleted")

    @property
    def results(self) -> dict[str, str | None]:
        """Result parameters returned by the job."""
        return _parameters(self.xml, "Results")
