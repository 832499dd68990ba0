"""Performance and Capacity Monitoring (PCM) preference entities."""

from .base import Attribute, EmbeddedEntity, FreestandingEntity


class ManagementConsolePcmPreference(FreestandingEntity):
    """PCM preferences of the management console."""

    max_ltm = Attribute("MaximumManagedSystemsForLongTermMonitor", int)
    max_compute_ltm = Attribute("MaximumManagedSystemsForComputeLTM", int)
    max_aggregation = Attribute("MaximumManagedSystemsForAggregation", int)
    max_stm = Attribute("MaximumManagedSystemsForShortTermMonitor", int)
    max_em = Attribute("MaximumManagedSystemsForEnergyMonitor", int)
    aggregated_storage_duration = Attribute("AggregatedMetricsStorageDuration", int)

    @property
    def managed_system_preferences(self) -> list[EmbeddedEntity]:
        return self.collection_of(None, "ManagedSystemPcmPreference")


class ManagedSystemPcmPreference(EmbeddedEntity):
    """PCM preferences of one managed system."""

    id = Attribute("Metadata/Atom/AtomID")
    name = Attribute("SystemName")
    long_term_monitor = Attribute("LongTermMonitorEnabled", bool)
    aggregation = Attribute("AggregationEnabled", bool)
    short_term_monitor = Attribute("ShortTermMonitorEnabled", bool)
    compute_ltm = Attribute("ComputeLTMEnabled", bool)
    energy_monitor = Attribute("EnergyMonitorEnabled", bool)
