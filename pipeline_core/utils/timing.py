"""
Time helpers.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def format_uptime(seconds: float) -> str:
    """
    Render a duration the way the status endpoint reports it.

    Example:
        >>> format_uptime(0)
        '0s'
        >>> format_uptime(3725.4)
        '1h 2m 5s'
    """
    total = max(0, int(seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"
