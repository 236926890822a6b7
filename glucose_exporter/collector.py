"""
Prometheus collector turning LibreLinkUp readings into timestamped gauges.

The collector is invoked synchronously on every scrape of its registry.
It re-fetches everything from the service each time and never raises:
failures are logged and produce fewer (or no) observations.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterator, List, Optional

from prometheus_client.core import GaugeMetricFamily

from .client import LibreLinkClient
from .constants import (
    DEFAULT_SCRAPE_TIMEOUT,
    GLUCOSE_HISTORIC_METRIC,
    GLUCOSE_LEVEL_METRIC,
    GLUCOSE_TREND_METRIC,
    METRIC_LABELS,
)
from .exceptions import AuthError, DeadlineExceededError, RequestError
from .metrics import glucose_scrapes_total
from .models import Connection, GraphData

logger = logging.getLogger(__name__)

METRIC_DOCUMENTATION = {
    GLUCOSE_LEVEL_METRIC: "Current glucose level in mmol/L",
    GLUCOSE_TREND_METRIC: "Current glucose trend",
    GLUCOSE_HISTORIC_METRIC: "Historic glucose data",
}


@dataclass(frozen=True)
class Observation:
    """A labeled glucose sample carrying its own measurement time."""
    name: str
    value: float
    labels: Dict[str, str]
    timestamp: datetime


class GlucoseCollector:
    """
    Custom collector exposing current and historic glucose readings.

    The client is owned by the caller and shared across scrapes; the
    collector keeps no state of its own.
    """

    def __init__(
        self,
        client: LibreLinkClient,
        scrape_timeout: Optional[float] = DEFAULT_SCRAPE_TIMEOUT,
    ):
        """
        Initialize the collector.

        Args:
            client: LibreLinkUp client holding the session
            scrape_timeout: Seconds a scrape may take, None or 0 for no limit
        """
        self.client = client
        self.scrape_timeout = scrape_timeout

    def describe(self) -> List[GaugeMetricFamily]:
        """Describe the exported families without contacting the service."""
        return [
            GaugeMetricFamily(name, METRIC_DOCUMENTATION[name], labels=METRIC_LABELS)
            for name in METRIC_DOCUMENTATION
        ]

    def collect(self) -> Iterator[GaugeMetricFamily]:
        """Scrape the service and yield one gauge family per metric."""
        deadline = None
        if self.scrape_timeout:
            deadline = time.monotonic() + self.scrape_timeout

        families = {family.name: family for family in self.describe()}
        for observation in self.scrape(deadline=deadline):
            families[observation.name].add_metric(
                [observation.labels[label] for label in METRIC_LABELS],
                observation.value,
                timestamp=observation.timestamp.timestamp(),
            )

        yield from families.values()

    def scrape(self, deadline: Optional[float] = None) -> List[Observation]:
        """
        Fetch readings for every connection and convert them to observations.

        Args:
            deadline: Optional time.monotonic() value; connections not finished
                by then are left out

        Returns:
            Observations for every connection that was fetched completely
        """
        if not self.client.is_authenticated():
            try:
                self.client.authenticate(deadline=deadline)
            except AuthError as e:
                logger.error("Scrape aborted: authentication failed", extra={"error": e.to_dict()})
                glucose_scrapes_total.labels(outcome="auth_failed").inc()
                return []

        try:
            connections = self.client.get_connections(deadline=deadline)
        except RequestError as e:
            logger.error("Scrape aborted: failed to list connections", extra={"error": e.to_dict()})
            glucose_scrapes_total.labels(outcome="connections_failed").inc()
            return []

        observations: List[Observation] = []
        for connection in connections:
            if deadline is not None and time.monotonic() >= deadline:
                logger.warning(
                    "Scrape deadline reached, skipping remaining connections",
                    extra={"collected": len(observations)}
                )
                glucose_scrapes_total.labels(outcome="deadline_exceeded").inc()
                return observations

            try:
                graph = self.client.get_graph_data(connection.patient_id, deadline=deadline)
            except DeadlineExceededError as e:
                logger.warning("Scrape deadline reached while fetching graph data", extra={"error": e.to_dict()})
                glucose_scrapes_total.labels(outcome="deadline_exceeded").inc()
                return observations
            except RequestError as e:
                logger.warning(
                    "Skipping connection: failed to fetch graph data",
                    extra={"patient_id": connection.patient_id, "error": e.to_dict()}
                )
                continue

            observations.extend(self._observations_for(connection, graph))

        glucose_scrapes_total.labels(outcome="success").inc()
        return observations

    def _observations_for(self, connection: Connection, graph: GraphData) -> List[Observation]:
        """Build all observations of one connection."""
        labels = {
            "patient_id": connection.patient_id,
            "patient_name": connection.full_name,
        }
        observations = []

        reading = graph.current
        if reading is not None:
            observations.append(Observation(GLUCOSE_LEVEL_METRIC, reading.value, labels, reading.timestamp))
            observations.append(Observation(GLUCOSE_TREND_METRIC, float(reading.trend_arrow), labels, reading.timestamp))
            logger.debug(
                "Current glucose reading",
                extra={
                    "patient_id": connection.patient_id,
                    "value": reading.value,
                    "trend": reading.trend.name if reading.trend is not None else reading.trend_arrow,
                }
            )
        else:
            logger.info(
                "No current glucose reading for connection",
                extra={"patient_id": connection.patient_id}
            )

        for historic in graph.graph_data:
            observations.append(Observation(GLUCOSE_HISTORIC_METRIC, historic.value, labels, historic.timestamp))

        return observations
