"""
Utility modules shared across the pipeline core.
"""

from .json_utils import safe_json_loads, json_or_null
from .timing import format_uptime, utc_now, utc_now_iso

__all__ = [
    "safe_json_loads",
    "json_or_null",
    "format_uptime",
    "utc_now",
    "utc_now_iso",
]
