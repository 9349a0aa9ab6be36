"""
Threshold alerting.

Rules compare single metric samples against a threshold. The engine keeps
one active alert per metric name and recomputes the active set on every
evaluation pass, so an alert disappears as soon as its condition stops
holding.
"""

import logging
import operator
import threading
import time
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Callable, Dict, List, Optional, Any


logger = logging.getLogger(__name__)


class AlertSeverity(Enum):
    """Alert severity levels."""
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


OPERATORS: Dict[str, Callable[[float, float], bool]] = {
    'gt': operator.gt,
    'gte': operator.ge,
    'lt': operator.lt,
    'lte': operator.le,
}

# Pseudo filesystems report meaningless or permanent 100% usage
EXCLUDED_METRIC_PREFIXES = (
    'disk.dev.',
    'disk.proc.',
    'disk.sys.',
    'disk.run.',
    'disk.snap.',
    'disk.tmpfs.',
    'disk.devfs.',
)


@dataclass
class AlertRule:
    """Persisted alert rule."""
    metric_pattern: str
    threshold: float
    operator: str = 'gt'
    severity: str = AlertSeverity.WARNING.value
    message_en: str = ''
    message_ko: str = ''
    enabled: bool = True
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Alert:
    """Alert raised by the current evaluation pass."""
    id: str
    timestamp: int
    severity: str
    metric: str
    value: float
    threshold: float
    message_en: str
    message_ko: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def match_pattern(pattern: str, name: str) -> bool:
    """
    Match a metric name against a rule pattern.

    A "*" segment matches exactly one segment; segment counts must be equal.
    """
    if pattern == name:
        return True
    pattern_parts = pattern.split('.')
    name_parts = name.split('.')
    if len(pattern_parts) != len(name_parts):
        return False
    return all(p == '*' or p == n for p, n in zip(pattern_parts, name_parts))


def is_excluded_metric(name: str) -> bool:
    return name.startswith(EXCLUDED_METRIC_PREFIXES)


def build_condition(op: str, threshold: float) -> Optional[Callable[[float], bool]]:
    """Comparison closure for an operator name, None if the operator is unknown."""
    compare = OPERATORS.get(op)
    if compare is None:
        return None
    return lambda value: compare(value, threshold)


def render_message(template: str, value: float) -> str:
    """Fill a rule message template with the sample value."""
    try:
        return template % value
    except (TypeError, ValueError):
        return f"{template} [value={value}]"


def _rule(pattern, op, threshold, severity, message_en, message_ko) -> AlertRule:
    return AlertRule(
        metric_pattern=pattern,
        operator=op,
        threshold=threshold,
        severity=severity.value,
        message_en=message_en,
        message_ko=message_ko,
        enabled=True
    )


def default_alert_rules() -> List[AlertRule]:
    """Built-in rule set, written to storage on first run."""
    return [
        # CPU
        _rule('cpu.total.user', 'gt', 90, AlertSeverity.CRITICAL,
              'CPU user usage is very high at %.1f%%, processing delays are likely',
              'CPU 사용자 사용률이 %.1f%%로 매우 높아 처리 지연이 발생할 수 있습니다'),
        _rule('cpu.total.system', 'gt', 50, AlertSeverity.WARNING,
              'CPU system usage is elevated at %.1f%%, kernel overhead may be hurting performance',
              'CPU 시스템 사용률이 %.1f%%로 높아 커널 오버헤드가 성능에 영향을 줄 수 있습니다'),
        _rule('cpu.total.iowait', 'gt', 30, AlertSeverity.WARNING,
              'CPU I/O wait is %.1f%%, disk operations are delaying processing',
              'CPU I/O 대기가 %.1f%%로 디스크 작업이 처리를 지연시키고 있습니다'),
        _rule('cpu.load.1', 'gt', 4, AlertSeverity.WARNING,
              'Load average (1m) is %.2f, processes may be queuing',
              '1분 부하 평균이 %.2f로 프로세스가 대기 중일 수 있습니다'),

        # Memory
        _rule('mem.used_pct', 'gt', 90, AlertSeverity.CRITICAL,
              'Memory usage is critically high at %.1f%%, the system may start swapping',
              '메모리 사용률이 %.1f%%로 매우 높아 스와핑이 시작될 수 있습니다'),
        _rule('mem.used_pct', 'gt', 80, AlertSeverity.WARNING,
              'Memory usage is high at %.1f%%, consider freeing resources',
              '메모리 사용률이 %.1f%%로 높습니다. 리소스 확보를 고려하세요'),
        _rule('mem.swap.used', 'gt', 1073741824, AlertSeverity.WARNING,
              'Swap usage is high (%.0f bytes), performance degradation is likely',
              '스왑 사용량이 높습니다(%.0f bytes). 성능 저하가 발생할 수 있습니다'),

        # Disk
        _rule('disk.*.used_pct', 'gt', 95, AlertSeverity.CRITICAL,
              'Disk usage is critically high at %.1f%%, writes may fail',
              '디스크 사용률이 %.1f%%로 매우 높아 쓰기 실패가 발생할 수 있습니다'),
        _rule('disk.*.used_pct', 'gt', 85, AlertSeverity.WARNING,
              'Disk usage is high at %.1f%%, consider freeing space',
              '디스크 사용률이 %.1f%%로 높습니다. 공간 확보를 고려하세요'),

        # Network
        _rule('net.total.errin', 'gt', 100, AlertSeverity.WARNING,
              'Network receive errors detected (%.0f)',
              '네트워크 수신 오류가 감지되었습니다(%.0f)'),
        _rule('net.total.errout', 'gt', 100, AlertSeverity.WARNING,
              'Network transmit errors detected (%.0f)',
              '네트워크 송신 오류가 감지되었습니다(%.0f)'),

        # Kernel
        _rule('kernel.procs_blocked', 'gt', 5, AlertSeverity.WARNING,
              '%.0f processes are blocked on I/O, storage may be a bottleneck',
              '%.0f개의 프로세스가 I/O에서 블록되었습니다. 스토리지 병목일 수 있습니다'),
        _rule('kernel.runqueue_latency', 'gt', 1000, AlertSeverity.WARNING,
              'Run queue latency is %.0f us, scheduling delays may affect responsiveness',
              '실행 큐 지연이 %.0f us로 스케줄링 지연이 응답성에 영향을 줄 수 있습니다'),

        # GPU
        _rule('gpu.*.temp_c', 'gt', 85, AlertSeverity.WARNING,
              'GPU temperature is %.1f C, thermal throttling may occur',
              'GPU 온도가 %.1f C로 높아 열 스로틀링이 발생할 수 있습니다'),
        _rule('gpu.*.util_pct', 'gt', 95, AlertSeverity.INFO,
              'GPU utilization is %.1f%%, running near full capacity',
              'GPU 사용률이 %.1f%%로 거의 최대 용량으로 실행 중입니다'),
    ]


class _CompiledRule:
    __slots__ = ('rule', 'condition')

    def __init__(self, rule: AlertRule, condition: Callable[[float], bool]):
        self.rule = rule
        self.condition = condition


def _compile(rules: List[AlertRule]) -> List[_CompiledRule]:
    compiled = []
    for rule in rules:
        if not rule.enabled:
            continue
        condition = build_condition(rule.operator, rule.threshold)
        if condition is None:
            logger.warning(f"Unknown operator '{rule.operator}' for alert rule {rule.id}, skipping")
            continue
        compiled.append(_CompiledRule(rule, condition))
    return compiled


class AlertEngine:
    """Evaluates sample batches against the loaded rules."""

    def __init__(self, rules: Optional[List[AlertRule]] = None):
        self._lock = threading.RLock()
        self._rules = _compile(default_alert_rules() if rules is None else rules)
        self._active: Dict[str, Alert] = {}

    def load_rules(self, store):
        """
        Replace the rule list with the rules persisted in the store.

        Disabled rules and rules with an unknown operator are skipped. When
        the store cannot be read the current rules stay in place.
        """
        try:
            records = store.list_alert_rules()
        except Exception as e:
            logger.error(f"Failed to load alert rules: {e}")
            return

        compiled = _compile(records)
        with self._lock:
            self._rules = compiled
        logger.info(f"Loaded {len(compiled)} alert rules")

    def reload_rules(self, store):
        """Reload rules after a rule was created, updated or deleted."""
        self.load_rules(store)

    @property
    def rules(self) -> List[AlertRule]:
        with self._lock:
            return [c.rule for c in self._rules]

    def evaluate(self, samples) -> List[Alert]:
        """
        Evaluate a batch and update the active alert set.

        Args:
            samples: Iterable of MetricSample

        Returns:
            Alerts triggered by this batch, one per metric name
        """
        now = int(time.time())
        with self._lock:
            rules = list(self._rules)

        triggered: Dict[str, Alert] = {}
        for sample in samples:
            name = sample.metric_name
            if is_excluded_metric(name):
                continue
            for compiled in rules:
                rule = compiled.rule
                if not match_pattern(rule.metric_pattern, name):
                    continue
                if not compiled.condition(sample.value):
                    continue
                # Later rules overwrite earlier ones for the same metric
                triggered[name] = Alert(
                    id=f"alert-{name}",
                    timestamp=now,
                    severity=rule.severity,
                    metric=name,
                    value=sample.value,
                    threshold=rule.threshold,
                    message_en=render_message(rule.message_en, sample.value),
                    message_ko=render_message(rule.message_ko, sample.value)
                )

        with self._lock:
            for metric in list(self._active):
                if metric not in triggered:
                    del self._active[metric]
            self._active.update(triggered)

        return list(triggered.values())

    def active_alerts(self) -> List[Alert]:
        """Snapshot of currently active alerts."""
        with self._lock:
            return list(self._active.values())
