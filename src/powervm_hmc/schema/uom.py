"""Entities of the HMC User Object Model (UOM) API.

Only the attribute tables are declared here; all parsing and updating is
done by the generic machinery in :mod:`powervm_hmc.schema.base`.
"""

import base64
from datetime import datetime

from .base import Attribute, EmbeddedEntity, FreestandingEntity, qualify


class ManagementConsole(FreestandingEntity):
    """HMC information."""

    name = Attribute("ManagementConsoleName")
    build_level = Attribute("VersionInfo/BuildLevel")
    maint_level = Attribute("VersionInfo/Maintenance")
    sp_name = Attribute("VersionInfo/ServicePackName")
    version = Attribute("BaseVersion")
    ssh_pubkey = Attribute("PublicSSHKeyValue")
    uvmid = Attribute("UVMID")
    tz = Attribute("CurrentTimezone")
    uptime = Attribute("ManagementConsoleUpTime", int)
    uom_version = Attribute("UserObjectModelVersion/MinorVersion")
    uom_schema = Attribute("UserObjectModelVersion/SchemaNamespace")
    session_timeout = Attribute("SessionTimeout", int)
    web_access = Attribute("RemoteWebAccess", bool)
    ssh_access = Attribute("RemoteCommandAccess", bool)

    @property
    def time(self) -> datetime | None:
        return self.timestamp("ManagementConsoleTime")

    @property
    def managed_systems_uuids(self) -> list[str]:
        return self.uuids_from_links("ManagedSystems")

    @property
    def ssh_authkeys(self) -> list[str]:
        return self.texts("AuthorizedKeysValue/AuthorizedKey")


class ManagedSystem(FreestandingEntity):
    """Managed System information."""

    name = Attribute("SystemName")
    state = Attribute("State")
    hostname = Attribute("Hostname")
    ipaddr = Attribute("PrimaryIPAddress")
    description = Attribute("Description")
    location = Attribute("SystemLocation")  # Rack/Unit
    ref_code = Attribute("ReferenceCode")
    fwversion = Attribute("SystemFirmware")
    memory = Attribute("AssociatedSystemMemoryConfiguration/InstalledSystemMemory", int)
    avail_mem = Attribute(
        "AssociatedSystemMemoryConfiguration/CurrentAvailableSystemMemory", int
    )
    cpus = Attribute(
        "AssociatedSystemProcessorConfiguration/InstalledSystemProcessorUnits", float
    )
    avail_cpus = Attribute(
        "AssociatedSystemProcessorConfiguration/CurrentAvailableSystemProcessorUnits",
        float,
    )
    mtype = Attribute("MachineTypeModelAndSerialNumber/MachineType")
    model = Attribute("MachineTypeModelAndSerialNumber/Model")
    serial = Attribute("MachineTypeModelAndSerialNumber/SerialNumber")
    is_classic_hmc_mgmt = Attribute("IsClassicHMCManagement", bool)
    is_hmc_mgmt_master = Attribute("IsHMCPowerVMManagementMaster", bool)

    @property
    def time(self) -> datetime | None:
        return self.timestamp("SystemTime")

    @property
    def capabilities(self) -> list[str]:
        return self.flags("AssociatedSystemCapabilities/*")

    @property
    def cpu_compat_modes(self) -> list[str]:
        return self.texts(
            "AssociatedSystemProcessorConfiguration/"
            "SupportedPartitionProcessorCompatibilityModes"
        )

    @property
    def group_uuids(self) -> list[str]:
        return self.uuids_from_links("AssociatedGroups")

    @property
    def lpars_uuids(self) -> list[str]:
        return self.uuids_from_links("AssociatedLogicalPartitions")

    @property
    def vioses_uuids(self) -> list[str]:
        return self.uuids_from_links("AssociatedVirtualIOServers")

    @property
    def io_slots(self) -> list[EmbeddedEntity]:
        return self.collection_of("AssociatedSystemIOConfiguration/IOSlots", "IOSlot")

    @property
    def vswitches_uuids(self) -> list[str]:
        return self.uuids_from_links(
            "AssociatedSystemIOConfiguration/AssociatedSystemVirtualNetwork/VirtualSwitches"
        )

    @property
    def networks_uuids(self) -> list[str]:
        return self.uuids_from_links(
            "AssociatedSystemIOConfiguration/AssociatedSystemVirtualNetwork/VirtualNetworks"
        )


class IOSlot(EmbeddedEntity):
    """I/O Slot information."""

    description = Attribute("Description")
    lpar_id = Attribute("PartitionID", int)
    lpar_name = Attribute("PartitionName")
    lpar_type = Attribute("PartitionType")
    pci_class = Attribute("PCIClass")
    pci_dev = Attribute("PCIDeviceID")
    pci_vendor = Attribute("PCIVendorID")
    dr_name = Attribute("SlotDynamicReconfigurationConnectorName")
    physloc = Attribute("SlotPhysicalLocationCode")
    sriov_capable = Attribute("SRIOVCapableSlot", bool)
    vpd_model = Attribute("VitalProductDataModel")
    vpd_serial = Attribute("VitalProductDataSerialNumber")
    vpd_type = Attribute("VitalProductDataType")

    @property
    def io_adapter(self) -> EmbeddedEntity | None:
        return self.element_as("RelatedIOAdapter/*[1]")

    @property
    def features(self) -> list[str]:
        return self.texts("FeatureCodes")


class IOAdapter(EmbeddedEntity):
    """I/O Adapter information."""

    id = Attribute("AdapterID")
    description = Attribute("Description")
    name = Attribute("DeviceName")
    type = Attribute("DeviceType")
    dr_name = Attribute("DynamicReconfigurationConnectorName")
    udid = Attribute("UniqueDeviceID")


class HostChannelAdapter(IOAdapter):
    pass


class SRIOVAdapter(IOAdapter):
    pass


class PhysicalFibreChannelAdapter(IOAdapter):
    """FC adapter information."""

    @property
    def ports(self) -> list[EmbeddedEntity]:
        return self.collection_of("PhysicalFibreChannelPorts", "PhysicalFibreChannelPort")


class PhysicalFibreChannelPort(EmbeddedEntity):
    """FC port information."""

    location = Attribute("LocationCode")
    name = Attribute("PortName")
    udid = Attribute("UniqueDeviceID")
    wwpn = Attribute("WWPN")
    wwnn = Attribute("WWNN")
    avail_ports = Attribute("AvailablePorts", int)
    total_ports = Attribute("TotalPorts", int)
    label = Attribute("Label")

    @property
    def pvs(self) -> list[EmbeddedEntity]:
        return self.collection_of("PhysicalVolumes", "PhysicalVolume")


class BasePartition(FreestandingEntity, abstract=True):
    """Common class for LPAR and VIOS."""

    name = Attribute("PartitionName")
    id = Attribute("PartitionID", int)
    state = Attribute("PartitionState")
    type = Attribute("PartitionType")
    memory = Attribute("PartitionMemoryConfiguration/CurrentMemory", int)
    desired_memory = Attribute("PartitionMemoryConfiguration/DesiredMemory", int)
    min_memory = Attribute("PartitionMemoryConfiguration/MinimumMemory", int)
    max_memory = Attribute("PartitionMemoryConfiguration/MaximumMemory", int)
    dedicated = Attribute(
        "PartitionProcessorConfiguration/CurrentHasDedicatedProcessors", bool
    )
    sharing_mode = Attribute("PartitionProcessorConfiguration/CurrentSharingMode")
    rmc_state = Attribute("ResourceMonitoringControlState")
    rmc_ipaddr = Attribute("ResourceMonitoringIPAddress")
    os = Attribute("OperatingSystemVersion")
    ref_code = Attribute("ReferenceCode")
    proc_units = Attribute(
        "PartitionProcessorConfiguration/CurrentSharedProcessorConfiguration/"
        "CurrentProcessingUnits",
        float,
    )
    vprocs = Attribute(
        "PartitionProcessorConfiguration/CurrentSharedProcessorConfiguration/"
        "AllocatedVirtualProcessors",
        int,
    )
    desired_proc_units = Attribute(
        "PartitionProcessorConfiguration/SharedProcessorConfiguration/"
        "DesiredProcessingUnits",
        float,
    )
    desired_vprocs = Attribute(
        "PartitionProcessorConfiguration/SharedProcessorConfiguration/"
        "DesiredVirtualProcessors",
        int,
    )
    cpu_compat_mode = Attribute("CurrentProcessorCompatibilityMode")
    description = Attribute("Description")

    @property
    def sys_uuid(self) -> str | None:
        return self.href_uuid("AssociatedManagedSystem")

    @property
    def group_uuids(self) -> list[str]:
        return self.uuids_from_links("AssociatedGroups")

    @property
    def net_adap_uuids(self) -> list[str]:
        return self.uuids_from_links("ClientNetworkAdapters")

    @property
    def capabilities(self) -> list[str]:
        return self.flags("PartitionCapabilities/*")

    @property
    def io_slots(self) -> list[IOSlot]:
        path = "PartitionIOConfiguration/ProfileIOSlots/ProfileIOSlot/AssociatedIOSlot"
        return [IOSlot(elem) for elem in self.xml.findall(qualify(path))]

    @property
    def shared_processor_pool_uuid(self) -> str | None:
        return self.href_uuid("ProcessorPool")

    @property
    def paging_vios_uuid(self) -> str | None:
        return self.href_uuid("PartitionMemoryConfiguration/CurrentPagingServicePartition")


class LogicalPartition(BasePartition):
    """Logical Partition information."""

    suspendable = Attribute("SuspendCapable", bool)
    rrestartable = Attribute("RemoteRestartCapable", bool)

    @property
    def vnic_dedicated_uuids(self) -> list[str]:
        return self.uuids_from_links("DedicatedVirtualNICs")

    @property
    def vscsi_client_uuids(self) -> list[str]:
        return self.uuids_from_links("VirtualSCSIClientAdapters")

    @property
    def vfc_client_uuids(self) -> list[str]:
        return self.uuids_from_links("VirtualFibreChannelClientAdapters")


class VirtualIOServer(BasePartition):
    """VIOS information."""

    @property
    def capabilities(self) -> list[str]:
        return self.flags("VirtualIOServerCapabilities/*") + super().capabilities

    @property
    def pvs(self) -> list[EmbeddedEntity]:
        return self.collection_of("PhysicalVolumes", "PhysicalVolume")

    @property
    def vg_uuids(self) -> list[str]:
        return self.uuids_from_links("StoragePools")

    @property
    def vscsi_mappings(self) -> list[EmbeddedEntity]:
        return self.collection_of("VirtualSCSIMappings", "VirtualSCSIMapping")

    @property
    def seas(self) -> list[EmbeddedEntity]:
        return self.collection_of("SharedEthernetAdapters", "SharedEthernetAdapter")

    @property
    def trunks(self) -> list[EmbeddedEntity]:
        return self.collection_of("TrunkAdapters", "TrunkAdapter")


class Group(FreestandingEntity):
    """Group information."""

    name = Attribute("GroupName")
    description = Attribute("GroupDescription")
    color = Attribute("GroupColor")

    @property
    def sys_uuids(self) -> list[str]:
        return self.uuids_from_links("AssociatedManagedSystems")

    @property
    def lpar_uuids(self) -> list[str]:
        return self.uuids_from_links("AssociatedLogicalPartitions")

    @property
    def vios_uuids(self) -> list[str]:
        return self.uuids_from_links("AssociatedVirtualIOServers")


class IPInterface(EmbeddedEntity):
    """IP Interface information."""

    name = Attribute("InterfaceName")
    state = Attribute("State")
    hostname = Attribute("HostName")
    ip = Attribute("IPAddress")
    netmask = Attribute("SubnetMask")
    gateway = Attribute("Gateway")
    prefix = Attribute("IPV6Prefix")


class SharedEthernetAdapter(EmbeddedEntity):
    """SEA information."""

    udid = Attribute("UniqueDeviceID")
    name = Attribute("DeviceName")
    state = Attribute("ConfigurationState")
    large_send = Attribute("LargeSend", bool)
    vlan_id = Attribute("PortVLANID", int)
    ha_mode = Attribute("HighAvailabilityMode")
    qos_mode = Attribute("QualityOfServiceMode")
    jumbo = Attribute("JumboFramesEnabled", bool)
    queue_size = Attribute("QueueSize", int)
    primary = Attribute("IsPrimary", bool)

    @property
    def iface(self) -> EmbeddedEntity | None:
        return self.element_as("IPInterface")

    @property
    def device(self) -> EmbeddedEntity | None:
        return self.element_as("BackingDeviceChoice/*[1]")

    @property
    def trunks(self) -> list[EmbeddedEntity]:
        return self.collection_of("TrunkAdapters", "TrunkAdapter")


class VolumeGroup(FreestandingEntity):
    """Volume Group information."""

    udid = Attribute("UniqueDeviceID")
    size = Attribute("AvailableSize", float)  # in GiB
    dev_count = Attribute("BackingDeviceCount", int)
    free_space = Attribute("FreeSpace", float)  # in GiB
    capacity = Attribute("GroupCapacity", float)
    name = Attribute("GroupName")
    serial = Attribute("GroupSerialID")
    state = Attribute("GroupState")
    max_lvs = Attribute("MaximumLogicalVolumes", int)

    @property
    def pvs(self) -> list[EmbeddedEntity]:
        return self.collection_of("PhysicalVolumes", "PhysicalVolume")

    @property
    def lvs(self) -> list[EmbeddedEntity]:
        return self.collection_of("VirtualDisks", "VirtualDisk")


class VirtualSCSIStorage(EmbeddedEntity, abstract=True):
    """Storage that can back a virtual SCSI mapping."""


class PhysicalVolume(VirtualSCSIStorage):
    """Physical Volume information."""

    location = Attribute("LocationCode")
    description = Attribute("Description")
    is_available = Attribute("AvailableForUsage", bool)
    capacity = Attribute("VolumeCapacity", int)  # in MiB
    name = Attribute("VolumeName")
    is_fc = Attribute("IsFibreChannelBacked", bool)
    is_iscsi = Attribute("IsISCSIBacked", bool)
    udid = Attribute("VolumeUniqueID")

    @property
    def label(self) -> bytes | None:
        text = self.singleton("StorageLabel")
        return base64.b64decode(text) if text is not None else None

    @property
    def page83(self) -> bytes | None:
        text = self.singleton("DescriptorPage83")
        return base64.b64decode(text) if text is not None else None


class VirtualDisk(VirtualSCSIStorage):
    """Logical Volume information."""

    name = Attribute("DiskName")
    label = Attribute("DiskLabel")
    capacity = Attribute("DiskCapacity", float)  # in GiB
    psize = Attribute("PartitionSize")
    udid = Attribute("UniqueDeviceID")

    @property
    def vg_uuid(self) -> str | None:
        return self.href_uuid("VolumeGroup")


class VirtualOpticalMedia(VirtualSCSIStorage):
    """Virtual CD-ROM information."""

    name = Attribute("MediaName")
    udid = Attribute("MediaUDID")
    mount_opts = Attribute("MountType")
    size = Attribute("Size", float)  # in GiB


class LogicalUnit(VirtualSCSIStorage):
    """Shared storage pool LU information."""

    name = Attribute("UnitName")
    capacity = Attribute("UnitCapacity", float)
    udid = Attribute("UniqueDeviceID")
    thin = Attribute("ThinDevice", bool)
    type = Attribute("LogicalUnitType")
    in_use = Attribute("InUse", bool)


class VirtualSwitch(FreestandingEntity):
    """Virtual Switch information."""

    id = Attribute("SwitchID", int)
    mode = Attribute("SwitchMode")  # "VEB", "VEPA"
    name = Attribute("SwitchName")

    @property
    def sys_uuid(self) -> str | None:
        return self.uuid_from_href(self.href, -3) if self.href is not None else None

    @property
    def networks_uuids(self) -> list[str]:
        return self.uuids_from_links("VirtualNetworks")


class VirtualNetwork(FreestandingEntity):
    """Virtual Network information."""

    name = Attribute("NetworkName")
    vlan_id = Attribute("NetworkVLANID", int)
    vswitch_id = Attribute("VswitchID", int)
    tagged = Attribute("TaggedNetwork", bool)

    @property
    def vswitch_uuid(self) -> str | None:
        return self.href_uuid("AssociatedSwitch")

    @property
    def lpars_uuids(self) -> list[str]:
        return self.uuids_from_links("ConnectedPartitions")


class VirtualIOAdapter(FreestandingEntity):
    """Virtual I/O Adapter information."""

    type = Attribute("AdapterType")  # "Server", "Client", "Unknown"
    location = Attribute("LocationCode")
    slot = Attribute("VirtualSlotNumber", int)
    required = Attribute("RequiredAdapter", bool)
    lpar_id = Attribute("LocalPartitionID", int)
    dr_name = Attribute("DynamicReconfigurationConnectorName")


class VirtualEthernetAdapter(VirtualIOAdapter):
    """Virtual Ethernet Adapter information."""

    name = Attribute("DeviceName")
    macaddr = Attribute("MACAddress")
    vswitch_id = Attribute("VirtualSwitchID", int)
    vlan_id = Attribute("PortVLANID", int)

    @property
    def vswitch_uuid(self) -> str | None:
        uuids = self.uuids_from_links("AssociatedVirtualSwitch")
        return uuids[0] if uuids else None


class ClientNetworkAdapter(VirtualEthernetAdapter):
    """Client Network Adapter information."""

    @property
    def networks_uuids(self) -> list[str]:
        return self.uuids_from_links("VirtualNetworks")


class TrunkAdapter(VirtualEthernetAdapter):
    pass


class VirtualNICDedicated(VirtualIOAdapter):
    """Dedicated virtual NIC information."""

    location = Attribute("DynamicReconfigurationConnectorName")
    macaddr = Attribute("Details/MACAddress")
    os_devname = Attribute("Details/OSDeviceName")
    port_vlan_id = Attribute("Details/PortVLANID", int)


class VirtualSCSIAdapter(VirtualIOAdapter, abstract=True):
    """Virtual SCSI adapter (common class for Client and Server)."""

    name = Attribute("AdapterName")
    backdev = Attribute("BackingDeviceName")
    remote_backdev = Attribute("RemoteBackingDeviceName")
    remote_lpar_id = Attribute("RemoteLogicalPartitionID", int)
    remote_slot = Attribute("RemoteSlotNumber", int)
    server_location = Attribute("ServerLocationCode")
    udid = Attribute("UniqueDeviceID")


class VirtualSCSIClientAdapter(VirtualSCSIAdapter):
    """Virtual SCSI client adapter information."""

    @property
    def server(self) -> "VirtualSCSIServerAdapter | None":
        elem = self.xml.find("{*}ServerAdapter")
        return VirtualSCSIServerAdapter(elem) if elem is not None else None

    @property
    def vios_uuid(self) -> str | None:
        return self.href_uuid("ConnectingPartition")


class VirtualSCSIServerAdapter(VirtualSCSIAdapter):
    """Virtual SCSI server adapter information."""


class VirtualTargetDevice(EmbeddedEntity):
    """Virtual target device information."""

    lun = Attribute("LogicalUnitAddress")
    parent = Attribute("ParentName")
    target = Attribute("TargetName")
    udid = Attribute("UniqueDeviceID")


class LogicalVolumeVirtualTargetDevice(VirtualTargetDevice):
    pass


class PhysicalVolumeVirtualTargetDevice(VirtualTargetDevice):
    pass


class SharedStoragePoolLogicalUnitVirtualTargetDevice(VirtualTargetDevice):
    cluster_id = Attribute("ClusterID")
    path = Attribute("PathName")
    raid_level = Attribute("RAIDLevel")


class VirtualOpticalTargetDevice(VirtualTargetDevice):
    @property
    def media(self) -> VirtualOpticalMedia | None:
        elem = self.xml.find("{*}VirtualOpticalMedia")
        return VirtualOpticalMedia(elem) if elem is not None else None


class VirtualSCSIMapping(EmbeddedEntity):
    """Virtual SCSI mapping of a storage device to a client partition."""

    @property
    def lpar_uuid(self) -> str | None:
        return self.href_uuid("AssociatedLogicalPartition")

    @property
    def client(self) -> VirtualSCSIClientAdapter | None:
        elem = self.xml.find("{*}ClientAdapter")
        return VirtualSCSIClientAdapter(elem) if elem is not None else None

    @property
    def server(self) -> VirtualSCSIServerAdapter | None:
        elem = self.xml.find("{*}ServerAdapter")
        return VirtualSCSIServerAdapter(elem) if elem is not None else None

    @property
    def storage(self) -> EmbeddedEntity | None:
        # LogicalUnit, PhysicalVolume, VirtualDisk, VirtualOpticalMedia, ...
        return self.element_as("Storage/*[1]")

    @property
    def device(self) -> EmbeddedEntity | None:
        # One of the VirtualTargetDevice subclasses.
        return self.element_as("TargetDevice/*[1]")


class Event(FreestandingEntity):
    """HMC Event."""

    id = Attribute("EventID")
    type = Attribute("EventType")
    data = Attribute("EventData")
    detail = Attribute("EventDetail")
