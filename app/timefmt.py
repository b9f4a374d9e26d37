import time
from datetime import datetime


def format_relative(unix_seconds: int, now: float | None = None) -> str:
    """Human-relative play time, e.g. "5 minutes ago" or "Yesterday".

    `now` is epoch seconds; pass it explicitly for deterministic output.
    Anything a week or older falls back to the locale's date format.
    """
    if now is None:
        now = time.time()

    minutes = int((now - unix_seconds) // 60)
    if minutes < 1:
        return "Just now"
    if minutes == 1:
        return "1 minute ago"
    if minutes < 60:
        return f"{minutes} minutes ago"

    hours = minutes // 60
    if hours == 1:
        return "1 hour ago"
    if hours < 24:
        return f"{hours} hours ago"

    days = hours // 24
    if days == 1:
        return "Yesterday"
    if days < 7:
        return f"{days} days ago"

    return datetime.fromtimestamp(unix_seconds).strftime("%x")
