"""Serviceable Event Manager (SEM) entities."""

from datetime import datetime

from .base import Attribute, EmbeddedEntity, FreestandingEntity


class ServiceableEvent(FreestandingEntity):
    """Serviceable Event."""

    prob_uuid = Attribute("problemUuid")
    hostname = Attribute("reportingConsoleNode/hostName")
    number = Attribute("problemNumber", int)
    hw_record = Attribute("problemManagementHardwareRecord")
    description = Attribute("shortDescription")
    state = Attribute("problemState")
    approval_state = Attribute("ApprovalState")
    refcode = Attribute("referenceCode")
    refcode_ext = Attribute("referenceCodeExtension")
    refcode_sys = Attribute("systemReferenceCode")
    call_home = Attribute("callHomeEnabled", bool)
    dup_count = Attribute("duplicateCount", int)
    severity = Attribute("eventSeverity")
    notif_type = Attribute("notificationType")
    notif_status = Attribute("notificationStatus")
    post_action = Attribute("postAction")
    symptom = Attribute("symptomString")
    lpar_id = Attribute("partitionId", int)
    lpar_name = Attribute("partitionName")
    lpar_hostname = Attribute("partitionHostName")
    lpar_ostype = Attribute("partitionOSType")
    syslog_id = Attribute("sysLogId")
    total_events = Attribute("totalEvents", int)

    @property
    def reporting_mtms(self) -> str | None:
        return self._mtms("reportingManagedSystemNode")

    @property
    def failing_mtms(self) -> str | None:
        return self._mtms("failingManagedSystemNode")

    @property
    def time(self) -> datetime | None:
        return self.timestamp("primaryTimestamp")

    @property
    def created_time(self) -> datetime | None:
        return self.timestamp("createdTimestamp")

    @property
    def first_reported_time(self) -> datetime | None:
        return self.timestamp("firstReportedTimestamp")

    @property
    def last_reported_time(self) -> datetime | None:
        return self.timestamp("lastReportedTimestamp")

    @property
    def frus(self) -> list[EmbeddedEntity]:
        return self.collection_of("fieldReplaceableUnits", "FieldReplaceableUnit")

    @property
    def ext_files(self) -> list[EmbeddedEntity]:
        return self.collection_of("extendedErrorData", "ExtendedFileData")

    def _mtms(self, prefix: str) -> str | None:
        parts = [
            self.singleton(f"{prefix}/managedTypeModelSerial/{tag}")
            for tag in ("MachineType", "Model", "SerialNumber")
        ]
        if all(part is None for part in parts):
            return None
        machtype, model, serial = (part or "" for part in parts)
        return f"{machtype}-{model}*{serial}"


class FieldReplaceableUnit(EmbeddedEntity):
    part_number = Attribute("partNumber")
    fru_class = Attribute("class")
    description = Attribute("fieldReplaceableUnitDescription")
    location = Attribute("locationCode")
    serial = Attribute("SerialNumber")
    ccin = Attribute("ccin")


class ExtendedFileData(EmbeddedEntity):
    filename = Attribute("fileName")
    description = Attribute("description")
    zipfilename = Attribute("zipFileName")
