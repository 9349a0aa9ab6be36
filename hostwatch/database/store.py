"""
Metric store.

Persistence for samples, collector and metric state, alert rules, runtime
settings and dashboard layouts, built on the DatabaseManager session scope.
"""

import logging
import time
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import bindparam, func, text

from hostwatch.database.database import DatabaseManager
from hostwatch.database.models import (
    AlertRuleEntry, CollectorState, DashboardLayout, MetricSampleEntry, MetricState, Setting
)
from hostwatch.monitoring.alerts import AlertRule
from hostwatch.monitoring.metrics_collector import MetricSample


logger = logging.getLogger(__name__)


class AlertRuleNotFoundError(LookupError):
    """Raised when no alert rule has the requested id."""

    def __init__(self, rule_id: int):
        super().__init__(f"Alert rule not found: {rule_id}")
        self.rule_id = rule_id


class DashboardLayoutNotFoundError(LookupError):
    """Raised when no dashboard layout has the requested id."""

    def __init__(self, layout_id: int):
        super().__init__(f"Dashboard layout not found: {layout_id}")
        self.layout_id = layout_id


_STEP_QUERY = text(
    "SELECT (timestamp / :step) * :step AS ts, collector, metric_name, AVG(value) AS value, labels "
    "FROM metric_samples "
    "WHERE metric_name IN :names AND timestamp >= :from_ts AND timestamp <= :to_ts "
    "GROUP BY metric_name, ts, labels "
    "ORDER BY ts"
).bindparams(bindparam('names', expanding=True))


def _rule_from_entry(entry: AlertRuleEntry) -> AlertRule:
    return AlertRule(
        id=entry.id,
        metric_pattern=entry.metric_pattern,
        operator=entry.operator,
        threshold=entry.threshold,
        severity=entry.severity,
        message_en=entry.message_en,
        message_ko=entry.message_ko,
        enabled=bool(entry.enabled)
    )


class MetricStore:
    """SQLite-backed storage for the monitoring core."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def initialize(self):
        """Create tables that do not exist yet."""
        self.db.create_all_tables()

    # Samples

    def insert_samples(self, samples: Iterable[MetricSample]):
        """Insert a batch of samples in one transaction."""
        rows = [
            {
                'timestamp': s.timestamp,
                'collector': s.collector,
                'metric_name': s.metric_name,
                'value': s.value,
                'labels': s.labels or ''
            }
            for s in samples
        ]
        if not rows:
            return
        with self.db.session_scope() as session:
            session.bulk_insert_mappings(MetricSampleEntry, rows)

    def query_metrics(self, names: List[str], from_ts: int, to_ts: int, step: int = 0) -> List[MetricSample]:
        """
        Samples of the named metrics within [from_ts, to_ts].

        Args:
            names: Metric names to return
            from_ts: Start of the range (epoch seconds, inclusive)
            to_ts: End of the range (epoch seconds, inclusive)
            step: Bucket width in seconds; values are averaged per bucket
                when greater than zero

        Returns:
            Samples ordered by timestamp
        """
        if not names:
            return []

        with self.db.session_scope() as session:
            if step and step > 0:
                rows = session.execute(_STEP_QUERY, {
                    'step': int(step),
                    'names': list(names),
                    'from_ts': int(from_ts),
                    'to_ts': int(to_ts)
                }).all()
                return [
                    MetricSample(
                        timestamp=int(row.ts),
                        collector=row.collector,
                        metric_name=row.metric_name,
                        value=float(row.value),
                        labels=row.labels or ''
                    )
                    for row in rows
                ]

            entries = session.query(MetricSampleEntry).filter(
                MetricSampleEntry.metric_name.in_(names),
                MetricSampleEntry.timestamp >= from_ts,
                MetricSampleEntry.timestamp <= to_ts
            ).order_by(MetricSampleEntry.timestamp, MetricSampleEntry.id).all()
            return [
                MetricSample(
                    timestamp=e.timestamp,
                    collector=e.collector,
                    metric_name=e.metric_name,
                    value=e.value,
                    labels=e.labels or ''
                )
                for e in entries
            ]

    def get_distinct_metrics(self) -> List[Dict[str, str]]:
        """Every (collector, metric_name) pair that has stored samples."""
        with self.db.session_scope() as session:
            rows = session.query(
                MetricSampleEntry.collector, MetricSampleEntry.metric_name
            ).distinct().order_by(MetricSampleEntry.collector, MetricSampleEntry.metric_name).all()
            return [{'collector': row[0], 'metric_name': row[1]} for row in rows]

    def purge_older_than(self, hours: int) -> int:
        """
        Delete samples older than the given number of hours.

        Returns:
            Number of deleted rows
        """
        cutoff = int(time.time()) - int(hours) * 3600
        with self.db.session_scope() as session:
            deleted = session.query(MetricSampleEntry).filter(
                MetricSampleEntry.timestamp < cutoff
            ).delete(synchronize_session=False)
        return deleted

    def purge_all_samples(self) -> int:
        """Delete every sample and compact the database file."""
        with self.db.session_scope() as session:
            deleted = session.query(MetricSampleEntry).delete(synchronize_session=False)

        self.db.vacuum()
        return deleted

    # Collector and metric state

    def get_all_collector_states(self) -> Dict[str, bool]:
        with self.db.session_scope() as session:
            return {s.collector_id: bool(s.enabled) for s in session.query(CollectorState).all()}

    def set_collector_enabled(self, collector_id: str, enabled: bool):
        with self.db.session_scope() as session:
            state = session.get(CollectorState, collector_id)
            if state is None:
                session.add(CollectorState(collector_id=collector_id, enabled=enabled, config={}))
            else:
                state.enabled = enabled

    def get_disabled_metrics(self) -> Set[str]:
        with self.db.session_scope() as session:
            rows = session.query(MetricState.metric_name).filter(MetricState.enabled.is_(False)).all()
            return {row[0] for row in rows}

    def set_metric_enabled(self, name: str, enabled: bool):
        with self.db.session_scope() as session:
            self._upsert_metric_state(session, name, enabled)

    def set_metrics_bulk_enabled(self, names: Iterable[str], enabled: bool):
        """Set the flag of many metrics in one transaction. An empty list is a no-op."""
        names = list(names)
        if not names:
            return
        with self.db.session_scope() as session:
            for name in names:
                self._upsert_metric_state(session, name, enabled)

    @staticmethod
    def _upsert_metric_state(session, name: str, enabled: bool):
        state = session.get(MetricState, name)
        if state is None:
            session.add(MetricState(metric_name=name, enabled=enabled))
        else:
            state.enabled = enabled

    # Alert rules

    def list_alert_rules(self) -> List[AlertRule]:
        with self.db.session_scope() as session:
            entries = session.query(AlertRuleEntry).order_by(AlertRuleEntry.id).all()
            return [_rule_from_entry(e) for e in entries]

    def count_alert_rules(self) -> int:
        with self.db.session_scope() as session:
            return session.query(func.count(AlertRuleEntry.id)).scalar() or 0

    def get_alert_rule(self, rule_id: int) -> AlertRule:
        with self.db.session_scope() as session:
            entry = session.get(AlertRuleEntry, rule_id)
            if entry is None:
                raise AlertRuleNotFoundError(rule_id)
            return _rule_from_entry(entry)

    def create_alert_rule(self, rule: AlertRule) -> AlertRule:
        """Insert a rule and return it with its assigned id."""
        with self.db.session_scope() as session:
            entry = AlertRuleEntry(
                metric_pattern=rule.metric_pattern,
                operator=rule.operator,
                threshold=rule.threshold,
                severity=rule.severity,
                message_en=rule.message_en,
                message_ko=rule.message_ko,
                enabled=rule.enabled
            )
            session.add(entry)
            session.flush()
            return _rule_from_entry(entry)

    def update_alert_rule(self, rule: AlertRule) -> AlertRule:
        with self.db.session_scope() as session:
            entry = session.get(AlertRuleEntry, rule.id)
            if entry is None:
                raise AlertRuleNotFoundError(rule.id)
            entry.metric_pattern = rule.metric_pattern
            entry.operator = rule.operator
            entry.threshold = rule.threshold
            entry.severity = rule.severity
            entry.message_en = rule.message_en
            entry.message_ko = rule.message_ko
            entry.enabled = rule.enabled
            return _rule_from_entry(entry)

    def delete_alert_rule(self, rule_id: int):
        with self.db.session_scope() as session:
            entry = session.get(AlertRuleEntry, rule_id)
            if entry is None:
                raise AlertRuleNotFoundError(rule_id)
            session.delete(entry)

    def seed_alert_rules(self, rules: Iterable[AlertRule]) -> int:
        """Insert rules in one transaction. Returns the number inserted."""
        count = 0
        with self.db.session_scope() as session:
            for rule in rules:
                session.add(AlertRuleEntry(
                    metric_pattern=rule.metric_pattern,
                    operator=rule.operator,
                    threshold=rule.threshold,
                    severity=rule.severity,
                    message_en=rule.message_en,
                    message_ko=rule.message_ko,
                    enabled=rule.enabled
                ))
                count += 1
        return count

    # Settings

    def get_setting(self, key: str, default: Optional[str] = None) -> Optional[str]:
        with self.db.session_scope() as session:
            setting = session.get(Setting, key)
            return setting.value if setting is not None else default

    def set_setting(self, key: str, value: Any):
        with self.db.session_scope() as session:
            setting = session.get(Setting, key)
            if setting is None:
                session.add(Setting(key=key, value=str(value)))
            else:
                setting.value = str(value)

    def get_all_settings(self) -> Dict[str, str]:
        with self.db.session_scope() as session:
            return {s.key: s.value for s in session.query(Setting).all()}

    # Dashboard layouts

    def list_layouts(self) -> List[Dict[str, Any]]:
        with self.db.session_scope() as session:
            return [l.to_dict() for l in session.query(DashboardLayout).order_by(DashboardLayout.id).all()]

    def get_layout(self, layout_id: int) -> Dict[str, Any]:
        with self.db.session_scope() as session:
            layout = session.get(DashboardLayout, layout_id)
            if layout is None:
                raise DashboardLayoutNotFoundError(layout_id)
            return layout.to_dict()

    def create_layout(self, name: str, layout: Dict[str, Any]) -> Dict[str, Any]:
        with self.db.session_scope() as session:
            entry = DashboardLayout(name=name, layout=layout, updated=int(time.time()))
            session.add(entry)
            session.flush()
            return entry.to_dict()

    def update_layout(self, layout_id: int, name: Optional[str], layout: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        with self.db.session_scope() as session:
            entry = session.get(DashboardLayout, layout_id)
            if entry is None:
                raise DashboardLayoutNotFoundError(layout_id)
            if name is not None:
                entry.name = name
            if layout is not None:
                entry.layout = layout
            entry.updated = int(time.time())
            session.flush()
            return entry.to_dict()

    def delete_layout(self, layout_id: int):
        with self.db.session_scope() as session:
            entry = session.get(DashboardLayout, layout_id)
            if entry is None:
                raise DashboardLayoutNotFoundError(layout_id)
            session.delete(entry)

    def count_layouts(self) -> int:
        with self.db.session_scope() as session:
            return session.query(func.count(DashboardLayout.id)).scalar() or 0

    # Info

    def database_info(self) -> Dict[str, Any]:
        """Size and sample statistics of the database."""
        with self.db.session_scope() as session:
            sample_count, oldest, newest = session.query(
                func.count(MetricSampleEntry.id),
                func.min(MetricSampleEntry.timestamp),
                func.max(MetricSampleEntry.timestamp)
            ).one()
            metric_count = session.query(
                func.count(func.distinct(MetricSampleEntry.metric_name))
            ).scalar()

        path = self.db.get_database_path()
        return {
            'path': str(path) if path is not None else None,
            'size_bytes': self.db.get_database_size(),
            'sample_count': sample_count or 0,
            'metric_count': metric_count or 0,
            'oldest_timestamp': oldest,
            'newest_timestamp': newest
        }
