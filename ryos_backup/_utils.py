import logging
import re
import uuid
from datetime import datetime, timezone

logger = logging.getLogger("ryos-backup")

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def generate_record_id() -> str:
    """Generate a stable unique identifier for an object-store record."""
    return str(uuid.uuid4())


def is_record_id(key) -> bool:
    """True if key already is a generated identifier rather than a filename."""
    return isinstance(key, str) and bool(_UUID_RE.match(key))


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

