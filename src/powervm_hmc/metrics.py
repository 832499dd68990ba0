"""Client-side statistics exposed as Prometheus metrics.

A :class:`ClientStats` instance is owned by each connection and updated as
requests, re-authentications, ETag conflicts and jobs happen. The
:class:`HmcClientCollector` turns those counters into metric families when a
Prometheus registry is scraped.
"""

from collections import Counter
from collections.abc import Iterator
from dataclasses import dataclass, field

from prometheus_client.core import CounterMetricFamily
from prometheus_client.metrics_core import Metric
from prometheus_client.registry import Collector


@dataclass
class ClientStats:
    """Counters for the activity of one connection.

    Not synchronized: like the connection itself, a stats object is meant to
    be updated from a single thread.
    """

    requests: Counter[str] = field(default_factory=Counter)
    http_errors: Counter[int] = field(default_factory=Counter)
    reauthentications: int = 0
    version_conflicts: int = 0
    jobs: Counter[str] = field(default_factory=Counter)

    def record_request(self, method: str) -> None:
        self.requests[method.upper()] += 1

    def record_http_error(self, status: int) -> None:
        self.http_errors[status] += 1

    def record_reauthentication(self) -> None:
        self.reauthentications += 1

    def record_version_conflict(self) -> None:
        self.version_conflicts += 1

    def record_job(self, status: str) -> None:
        self.jobs[status] += 1


class HmcClientCollector(Collector):
    """Prometheus collector for the statistics of an HMC connection.

    Register it in a caller-provided registry; the global registry is never
    touched::

        registry = CollectorRegistry()
        registry.register(HmcClientCollector(conn.stats, conn.hostname))
    """

    def __init__(self, stats: ClientStats, host: str):
        """Initialize the collector.

        Args:
            stats: Statistics object of the connection to export.
            host: HMC host name, exported as the ``host`` label.
        """
        self._stats = stats
        self._host = host

    def collect(self) -> Iterator[Metric]:
        """Yield one counter family per tracked statistic."""
        requests = CounterMetricFamily(
            "hmc_client_requests",
            "HMC REST requests sent, by HTTP method",
            labels=["host", "method"],
        )
        for method, count in sorted(self._stats.requests.items()):
            requests.add_metric([self._host, method], count)
        yield requests

        http_errors = CounterMetricFamily(
            "hmc_client_http_errors",
            "HMC REST responses with an HTTP error status",
            labels=["host", "status"],
        )
        for status, count in sorted(self._stats.http_errors.items()):
            http_errors.add_metric([self._host, str(status)], count)
        yield http_errors

        reauth = CounterMetricFamily(
            "hmc_client_reauthentications",
            "Session re-authentications after an expired token",
            labels=["host"],
        )
        reauth.add_metric([self._host], self._stats.reauthentications)
        yield reauth

        conflicts = CounterMetricFamily(
            "hmc_client_version_conflicts",
            "Conditional updates rejected because of a stale ETag",
            labels=["host"],
        )
        conflicts.add_metric([self._host], self._stats.version_conflicts)
        yield conflicts

        jobs = CounterMetricFamily(
            "hmc_client_jobs",
            "Jobs run to completion, by final status",
            labels=["host", "status"],
        )
        for status, count in sorted(self._stats.jobs.items()):
            jobs.add_metric([self._host, status], count)
        yield jobs
