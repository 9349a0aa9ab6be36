"""Server overrides read from a local .env file."""

import os
import re
from pathlib import Path
from typing import Any, Dict, Optional, Union

DEFAULT_ENV_PATH = Path(__file__).resolve().parents[2] / '.env'

_ENV_LINE = re.compile(r'^(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*)$')
_TRUE_VALUES = ('true', '1', 'yes', 'on')


def parse_env_file(env_path: Optional[Union[str, Path]] = None) -> Dict[str, str]:
    """
    Parse KEY=value lines of a .env file.

    Blank lines and comments are skipped, an ``export`` prefix is accepted,
    and matching surrounding quotes are removed. A missing file yields an
    empty dict.
    """
    path = Path(env_path) if env_path is not None else DEFAULT_ENV_PATH
    if not path.is_file():
        return {}

    values = {}
    for raw in path.read_text().splitlines():
        line = raw.strip()
        if not line or line.startswith('#'):
            continue
        match = _ENV_LINE.match(line)
        if match is None:
            continue
        key, value = match.groups()
        if len(value) >= 2 and value[0] in ('"', "'") and value[-1] == value[0]:
            value = value[1:-1]
        else:
            value = value.split(' #', 1)[0].strip()
        values[key] = value
    return values


def _cast(value: str, default: Any) -> Any:
    # bool before int: bool is an int subclass
    if isinstance(default, bool):
        return value.lower() in _TRUE_VALUES
    if isinstance(default, int):
        try:
            return int(value)
        except ValueError:
            return default
    return value


def get_server_config(defaults: Dict[str, Any], env_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Resolve server settings for run.py.

    Args:
        defaults: Setting name to default value, normally taken from the
            loaded Flask config; the default's type decides the cast
        env_path: .env file to read, the project root one if omitted

    Returns:
        Settings where the .env file beats the process environment, which
        beats the defaults
    """
    file_values = parse_env_file(env_path)
    resolved = {}
    for key, default in defaults.items():
        value = file_values.get(key, os.environ.get(key))
        resolved[key] = default if value is None else _cast(value, default)
    return resolved
