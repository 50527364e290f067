from datetime import UTC, datetime

from rich.console import Console

# Handles
cout = Console()
cerr = Console(stderr=True)


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def fmt_time(ts: datetime | None) -> str:
    """Format a timestamp as local wall-clock time (HH:MM:SS); empty if None."""
    return ts.astimezone().strftime("%H:%M:%S") if ts is not None else ""
