"""
JSON helpers for columns stored as text.
"""

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)


def safe_json_loads(data: Any, default: Any = None) -> Any:
    """
    Safely load JSON data with fallback.

    Args:
        data: JSON string to parse (non-string values are returned untouched)
        default: Default value to return if parsing fails

    Returns:
        Parsed JSON data or default value

    Example:
        >>> safe_json_loads('{"key": "value"}')
        {'key': 'value'}
        >>> safe_json_loads('invalid json', {})
        {}
    """
    if data is None or not isinstance(data, (str, bytes)):
        return data if data is not None else default
    try:
        return json.loads(data)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning(f"Failed to parse JSON column: {e}")
        return default


def json_or_null(data: Any) -> Any:
    """Serialize a value for a nullable JSON text column."""
    if data is None:
        return None
    return json.dumps(data)
