"""
Collector capability and metric sample types.

A collector gathers one subsystem's metrics (CPU, memory, disk, ...) and
returns them as a flat batch of named samples. Collectors may keep private
state between calls so that rate metrics can be derived from two readings.
"""

import threading
import time
from dataclasses import dataclass, asdict, field
from enum import Enum
from typing import Dict, List, Optional, Any


class ImpactLevel(Enum):
    """How much load a collector puts on the host. Informational only."""
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CollectionError(Exception):
    """Raised by a collector when a single collection attempt fails."""
    pass


@dataclass(frozen=True)
class MetricSample:
    """One observation of a named metric."""
    timestamp: int
    collector: str
    metric_name: str
    value: float
    labels: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


@dataclass
class CollectContext:
    """Cancellation token and per-call deadline handed to collectors."""
    stop_event: threading.Event = field(default_factory=threading.Event)
    timeout: Optional[float] = None

    @property
    def cancelled(self) -> bool:
        return self.stop_event.is_set()


def make_sample(timestamp: int, collector: str, name: str, value: float, labels: str = "") -> MetricSample:
    """Build a sample with the value coerced to float."""
    return MetricSample(
        timestamp=timestamp,
        collector=collector,
        metric_name=name,
        value=float(value),
        labels=labels
    )


def sanitize_name(value: str) -> str:
    """Turn a device or mount path into a single metric name segment."""
    value = value.replace('/', '_').replace(' ', '_').lstrip('_')
    return value or 'root'


class Collector:
    """Base class for metric collectors."""

    id: str = ""
    name: str = ""
    description: str = ""
    impact: ImpactLevel = ImpactLevel.NONE
    warning: str = ""

    def metric_names(self) -> List[str]:
        """
        Declared metric names.

        Names may contain "*" segments for dynamic sets such as per-core or
        per-disk metrics; discovery resolves them into concrete names.
        """
        raise NotImplementedError("Subclasses must implement metric_names")

    def collect(self, ctx: Optional[CollectContext] = None) -> List[MetricSample]:
        """Collect metrics. Override in subclasses."""
        raise NotImplementedError("Subclasses must implement collect")

    def _now(self) -> int:
        return int(time.time())

    def __repr__(self):
        return f"<{self.__class__.__name__}(id='{self.id}')>"
