"""
RTDB Sweeper — Eviction policy.

Pure classification of a single child record: skipped (exempt key),
deletable (older than the retention threshold) or kept. ``now`` is
always passed in by the caller.
"""

from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Any, Iterable, Optional

from sweeper.services.normalizer import Reason, normalize

DEFAULT_RETENTION_HOURS = 3.0


@dataclass(frozen=True)
class Classification:
    deletable: bool
    reason: Reason
    age_hours: Optional[float] = None

    @property
    def skipped(self) -> bool:
        return self.reason is Reason.SKIP

    @property
    def outcome(self) -> str:
        """Report bucket: 'deleted', 'kept' or 'skipped'."""
        if self.skipped:
            return "skipped"
        return "deleted" if self.deletable else "kept"


def parse_update_time(value: str, zone: tzinfo) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp. Naive values are wall-clock time in ``zone``;
    values carrying an offset keep their own instant. Returns None if unparsable.
    A time part must follow a ``T``; ``"2025-06-01 07:00"`` is rejected.
    """
    text = value.strip()
    if " " in text or (len(text) > 10 and "t" not in text.lower()):
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=zone)
    return parsed


def is_exempt(key: str, exempt_keys: Iterable[str]) -> bool:
    k = str(key).lower()
    return any(k == e.lower() for e in exempt_keys)


def classify(
    key: str,
    raw_value: Any,
    now: datetime,
    exempt_keys: Iterable[str],
    zone: tzinfo,
    retention_hours: float = DEFAULT_RETENTION_HOURS,
    nested_only: bool = False,
) -> Classification:
    """Classify one record. Malformed input yields a reason code, never an exception."""
    if is_exempt(key, exempt_keys):
        return Classification(False, Reason.SKIP)

    record = normalize(raw_value, nested_only=nested_only)
    if not record.has_timestamp:
        return Classification(False, record.reason)

    updated = parse_update_time(record.update_time, zone)
    if updated is None:
        return Classification(False, Reason.INVALID_TIME)

    if now.tzinfo is None:
        now = now.replace(tzinfo=zone)
    age_hours = (now - updated).total_seconds() / 3600
    return Classification(age_hours > retention_hours, Reason.OK, age_hours)
