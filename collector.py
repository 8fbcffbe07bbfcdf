import enum
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Mapping

from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily

from stats_fetcher import StatsError, StatsSnapshot

logger = logging.getLogger(__name__)


class ValueKind(enum.Enum):
    COUNTER = "counter"
    GAUGE = "gauge"


@dataclass(frozen=True)
class MetricDescriptor:
    name: str
    help_text: str
    labels: Mapping[str, str] = field(default_factory=dict)
    value_kind: ValueKind = ValueKind.GAUGE

    def __post_init__(self):
        object.__setattr__(self, "labels", MappingProxyType(dict(self.labels)))

    def __hash__(self):
        return hash((self.name, tuple(sorted(self.labels.items()))))

    def __eq__(self, other):
        if not isinstance(other, MetricDescriptor):
            return NotImplemented
        return self.name == other.name and dict(self.labels) == dict(other.labels)

    def family(self, value=None):
        family_class = CounterMetricFamily if self.value_kind is ValueKind.COUNTER else GaugeMetricFamily
        family = family_class(self.name, self.help_text, labels=list(self.labels))
        if value is not None:
            family.add_metric(list(self.labels.values()), value)
        return family


@dataclass(frozen=True)
class ExportedMetric:
    descriptor: MetricDescriptor
    extract: Callable[[StatsSnapshot], float]


UP = MetricDescriptor(
    name="httpserver_up",
    help_text="Last query successful.",
    value_kind=ValueKind.GAUGE,
)

DEFAULT_METRICS = (
    ExportedMetric(
        MetricDescriptor(
            name="http_request_200counter",
            help_text="http.requests.counter",
            labels={"counter": "twohundred"},
            value_kind=ValueKind.COUNTER,
        ),
        lambda stats: stats.success_count,
    ),
    ExportedMetric(
        MetricDescriptor(
            name="http_request_500counter",
            help_text="http.requests.counter",
            labels={"counter": "fivehundred"},
            value_kind=ValueKind.COUNTER,
        ),
        lambda stats: stats.error_count,
    ),
)


class MetricCollector:
    """Turns one ``/stats`` fetch into metric samples, once per scrape.

    Registered in a ``prometheus_client`` registry, which calls ``describe``
    at registration and ``collect`` on every exposition. A failed fetch is
    reported as ``httpserver_up 0`` with nothing else; no value is carried
    over from an earlier scrape.
    """

    def __init__(self, fetcher, metrics=DEFAULT_METRICS):
        self.fetcher = fetcher
        self.metrics = tuple(metrics)
        self._descriptors = (UP,) + tuple(m.descriptor for m in self.metrics)

    def descriptors(self):
        return self._descriptors

    def describe(self):
        return [descriptor.family() for descriptor in self._descriptors]

    def samples(self):
        try:
            stats = self.fetcher.fetch()
        except StatsError as e:
            logger.error("Failed getting /stats endpoint of target: %s", e)
            return [(UP, 0.0)]

        samples = [(UP, 1.0)]
        for metric in self.metrics:
            samples.append((metric.descriptor, float(metric.extract(stats))))
        return samples

    def collect(self):
        for descriptor, value in self.samples():
            yield descriptor.family(value)
