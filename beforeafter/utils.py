import re
from datetime import datetime, timezone


def is_remote_url(uri: str | None) -> bool:
    """True for URIs already in cloud storage (no upload needed)."""
    if not uri:
        return False
    return uri.startswith("http://") or uri.startswith("https://")


def clean_path_segment(text: str) -> str:
    """Make a slot id safe for a storage path.

    Example: "slot before/1" -> "slot-before-1"
    """
    return re.sub(r"[^a-zA-Z0-9_-]", "-", text)


def file_extension(uri: str, default: str = "jpg") -> str:
    """Lowercase extension of a URI, without query string."""
    path = uri.split("?", 1)[0]
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return default
    return name.rsplit(".", 1)[-1].lower() or default


def content_type_for(extension: str) -> str:
    return "image/png" if extension == "png" else "image/jpeg"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def parse_iso(value: str | None) -> datetime | None:
    """Parse an ISO timestamp as stored by Postgres (always timezone-aware)."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def month_period(now: datetime) -> tuple[datetime, datetime]:
    """Calendar month containing `now`, as [start, end)."""
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def read_local_file(uri: str) -> bytes:
    """Read a device-local image (plain path or file:// URI)."""
    path = uri[len("file://"):] if uri.startswith("file://") else uri
    with open(path, "rb") as f:
        return f.read()
