"""Typed entities of the HMC REST API.

Importing this package defines (and thereby registers) every concrete entity
type, so that entries can be dispatched on their content type.

Exports:
    parse_one: Build the typed entity for a single entry.
    parse_many: Build typed entities for a sequence of entries.
    EmbeddedEntity: Base class of nested objects without identity.
    FreestandingEntity: Base class of objects with UUID, href and ETag.
    Attribute: Field descriptor binding a name to a payload path.
"""

from . import job, pcm, sem, uom, web
from .base import (
    UOM_XMLNS,
    WEB_XMLNS,
    Attribute,
    EmbeddedEntity,
    FreestandingEntity,
    lookup_entity_type,
    parse_many,
    parse_one,
)
from .job import JobRequest, JobResponse
from .pcm import ManagedSystemPcmPreference, ManagementConsolePcmPreference
from .sem import ExtendedFileData, FieldReplaceableUnit, ServiceableEvent
from .uom import (
    Event,
    Group,
    LogicalPartition,
    ManagedSystem,
    ManagementConsole,
    VirtualIOServer,
    VirtualNetwork,
    VirtualSwitch,
)
from .web import HttpErrorResponse, LogonRequest, LogonResponse

__all__ = [
    "UOM_XMLNS",
    "WEB_XMLNS",
    "Attribute",
    "EmbeddedEntity",
    "Event",
    "ExtendedFileData",
    "FieldReplaceableUnit",
    "FreestandingEntity",
    "Group",
    "HttpErrorResponse",
    "JobRequest",
    "JobResponse",
    "LogicalPartition",
    "LogonRequest",
    "LogonResponse",
    "ManagedSystem",
    "ManagedSystemPcmPreference",
    "ManagementConsole",
    "ManagementConsolePcmPreference",
    "ServiceableEvent",
    "VirtualIOServer",
    "VirtualNetwork",
    "VirtualSwitch",
    "job",
    "lookup_entity_type",
    "parse_many",
    "parse_one",
    "pcm",
    "sem",
    "uom",
    "web",
]
