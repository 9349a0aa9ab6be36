"""SQLAlchemy database models for hostwatch."""

import json
import time
from typing import Dict, Any

from sqlalchemy import Column, Integer, String, Text, Boolean, Float, Index
from sqlalchemy.orm import declarative_base, validates
from sqlalchemy.types import TypeDecorator, TEXT


Base = declarative_base()


def _epoch() -> int:
    return int(time.time())


class JSONEncodedDict(TypeDecorator):
    """Enables JSON storage by encoding and decoding on the fly."""
    impl = TEXT
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return '{}'
        return json.dumps(value)

    def process_result_value(self, value, dialect):
        if not value:
            return {}
        return json.loads(value)


class MetricSampleEntry(Base):
    """One stored metric sample."""
    __tablename__ = 'metric_samples'

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(Integer, nullable=False)
    collector = Column(String(64), nullable=False)
    metric_name = Column(String(255), nullable=False)
    value = Column(Float, nullable=False)
    labels = Column(Text, nullable=False, default='')

    __table_args__ = (
        Index('idx_samples_name_ts', 'metric_name', 'timestamp'),
        Index('idx_samples_ts', 'timestamp'),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'timestamp': self.timestamp,
            'collector': self.collector,
            'metric_name': self.metric_name,
            'value': self.value,
            'labels': self.labels or ''
        }

    def __repr__(self):
        return f"<MetricSampleEntry(metric_name='{self.metric_name}', timestamp={self.timestamp})>"


class Setting(Base):
    """Runtime setting persisted as a string."""
    __tablename__ = 'settings'

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)

    def __repr__(self):
        return f"<Setting(key='{self.key}')>"


class CollectorState(Base):
    """Enabled flag of a collector."""
    __tablename__ = 'collector_state'

    collector_id = Column(String(64), primary_key=True)
    enabled = Column(Boolean, nullable=False, default=False)
    config = Column('config_json', JSONEncodedDict, nullable=False, default=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'collector_id': self.collector_id,
            'enabled': self.enabled,
            'config': self.config or {}
        }

    def __repr__(self):
        return f"<CollectorState(collector_id='{self.collector_id}', enabled={self.enabled})>"


class MetricState(Base):
    """Opt-out flag of a single metric."""
    __tablename__ = 'metric_state'

    metric_name = Column(String(255), primary_key=True)
    enabled = Column(Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<MetricState(metric_name='{self.metric_name}', enabled={self.enabled})>"


class AlertRuleEntry(Base):
    """Persisted alert rule."""
    __tablename__ = 'alert_rules'

    id = Column(Integer, primary_key=True, autoincrement=True)
    metric_pattern = Column(String(255), nullable=False)
    operator = Column(String(8), nullable=False, default='gt')
    threshold = Column(Float, nullable=False)
    severity = Column(String(16), nullable=False, default='warning')
    message_en = Column(Text, nullable=False, default='')
    message_ko = Column(Text, nullable=False, default='')
    enabled = Column(Boolean, nullable=False, default=True)

    @validates('metric_pattern')
    def validate_metric_pattern(self, key, pattern):
        if not pattern or len(pattern.strip()) == 0:
            raise ValueError("Metric pattern cannot be empty")
        return pattern.strip()

    @validates('operator')
    def validate_operator(self, key, operator):
        if operator not in ('gt', 'gte', 'lt', 'lte'):
            raise ValueError(f"Invalid operator: {operator}")
        return operator

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'metric_pattern': self.metric_pattern,
            'operator': self.operator,
            'threshold': self.threshold,
            'severity': self.severity,
            'message_en': self.message_en,
            'message_ko': self.message_ko,
            'enabled': self.enabled
        }

    def __repr__(self):
        return f"<AlertRuleEntry(id={self.id}, metric_pattern='{self.metric_pattern}')>"


class DashboardLayout(Base):
    """Saved dashboard grid and widget configuration."""
    __tablename__ = 'dashboard_layouts'

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, default='default')
    layout = Column(JSONEncodedDict, nullable=False, default=dict)
    updated = Column(Integer, nullable=False, default=_epoch, onupdate=_epoch)

    @validates('name')
    def validate_name(self, key, name):
        if not name or len(name.strip()) == 0:
            raise ValueError("Layout name cannot be empty")
        if len(name) > 255:
            raise ValueError("Layout name too long")
        return name.strip()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'name': self.name,
            'layout': self.layout or {},
            'updated': self.updated
        }

    def __repr__(self):
        return f"<DashboardLayout(id={self.id}, name='{self.name}')>"
