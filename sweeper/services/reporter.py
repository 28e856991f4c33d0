"""
RTDB Sweeper — Reconciliation reporter.

Pure summation of per-root outcomes. Instances are reported side by side;
totals are never summed across instances.
"""

from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Union

COUNT_FIELDS = ("deleted", "kept", "skipped")


@dataclass
class RootReport:
    root: str
    deleted: int = 0
    kept: int = 0
    skipped: int = 0
    note: Optional[str] = None

    def count(self, outcome: str) -> None:
        setattr(self, outcome, getattr(self, outcome) + 1)

    def to_dict(self) -> dict:
        d = {
            "root": self.root,
            "deleted": self.deleted,
            "kept": self.kept,
            "skipped": self.skipped,
        }
        if self.note:
            d["note"] = self.note
        return d


ReportLike = Union[RootReport, Mapping]


def _as_dict(r: ReportLike) -> dict:
    return r.to_dict() if isinstance(r, RootReport) else dict(r)


def aggregate(reports: Iterable[ReportLike]) -> dict:
    """Return ``{"report": [...], "total": {deleted, kept, skipped}}``."""
    rows = [_as_dict(r) for r in reports]
    total = {f: 0 for f in COUNT_FIELDS}
    for row in rows:
        for f in COUNT_FIELDS:
            total[f] += row.get(f) or 0
    return {"report": rows, "total": total}


def aggregate_instances(per_instance: Mapping[str, Iterable[ReportLike]]) -> dict:
    """Nest one aggregate per store instance under its label."""
    return {
        label: {"firebase": label, **aggregate(reports)}
        for label, reports in per_instance.items()
    }
