"""Input validation utilities."""

import re
from typing import Any, Dict, Optional

from hostwatch.monitoring.alerts import AlertSeverity, OPERATORS


class ValidationError(ValueError):
    """Custom validation error."""
    pass


METRIC_SEGMENT_PATTERN = re.compile(r'^[^\s*]+(?: [^\s*]+)*$')
MAX_METRIC_NAME_LENGTH = 255


def validate_metric_name(name: str, allow_wildcard: bool = False) -> str:
    """
    Validate a dotted metric name.

    Args:
        name: Metric name to validate
        allow_wildcard: Accept "*" segments (rule patterns)

    Returns:
        Stripped metric name

    Raises:
        ValidationError: If name is invalid
    """
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Metric name cannot be empty")

    name = name.strip()
    if len(name) > MAX_METRIC_NAME_LENGTH:
        raise ValidationError("Metric name too long")

    for segment in name.split('.'):
        if allow_wildcard and segment == '*':
            continue
        if not METRIC_SEGMENT_PATTERN.match(segment):
            raise ValidationError(f"Invalid metric name segment '{segment}' in '{name}'")

    return name


def validate_message_template(template: str, field: str) -> str:
    """Check that a template renders with exactly one numeric value."""
    if not isinstance(template, str) or not template:
        raise ValidationError(f"{field} cannot be empty")
    try:
        template % (1.0,)
    except (TypeError, ValueError, KeyError) as e:
        raise ValidationError(f"{field} must contain exactly one numeric placeholder such as %.1f: {e}")
    return template


def parse_positive_int(value: Any, field: str, minimum: int = 1, maximum: Optional[int] = None) -> int:
    """
    Parse an integer request value and check its range.

    Raises:
        ValidationError: If value is not an integer in range
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")

    if isinstance(value, float) and value != number:
        raise ValidationError(f"{field} must be an integer")
    if number < minimum:
        raise ValidationError(f"{field} must be at least {minimum}")
    if maximum is not None and number > maximum:
        raise ValidationError(f"{field} must be at most {maximum}")
    return number


def validate_alert_rule(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate an alert rule payload.

    Args:
        data: Request body with metric_pattern, operator, threshold,
            severity, message_en, message_ko and enabled

    Returns:
        Normalized rule fields

    Raises:
        ValidationError: If any field is invalid
    """
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    pattern = validate_metric_name(data.get('metric_pattern'), allow_wildcard=True)

    operator = data.get('operator', 'gt')
    if operator not in OPERATORS:
        raise ValidationError(f"Invalid operator '{operator}', expected one of {', '.join(OPERATORS)}")

    threshold = data.get('threshold')
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
        raise ValidationError("threshold must be a number")

    severities = [s.value for s in AlertSeverity]
    severity = data.get('severity', AlertSeverity.WARNING.value)
    if severity not in severities:
        raise ValidationError(f"Invalid severity '{severity}', expected one of {', '.join(severities)}")

    message_en = validate_message_template(data.get('message_en'), 'message_en')
    message_ko = data.get('message_ko') or message_en
    message_ko = validate_message_template(message_ko, 'message_ko')

    enabled = data.get('enabled', True)
    if not isinstance(enabled, bool):
        raise ValidationError("enabled must be a boolean")

    return {
        'metric_pattern': pattern,
        'operator': operator,
        'threshold': float(threshold),
        'severity': severity,
        'message_en': message_en,
        'message_ko': message_ko,
        'enabled': enabled
    }


def validate_layout(data: Dict[str, Any], require_layout: bool = True) -> Dict[str, Any]:
    """Validate a dashboard layout payload."""
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    name = data.get('name')
    if name is not None and (not isinstance(name, str) or not name.strip()):
        raise ValidationError("Layout name cannot be empty")

    layout = data.get('layout')
    if layout is None and require_layout:
        raise ValidationError("layout is required")
    if layout is not None and not isinstance(layout, dict):
        raise ValidationError("layout must be a JSON object")

    return {'name': name.strip() if name else None, 'layout': layout}
