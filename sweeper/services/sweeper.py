"""
RTDB Sweeper — Sweep orchestrator.

Walks the configured roots of one store instance, classifies every child
against the retention policy and removes expired records with a single
multi-path update per pass:

* generic pass — every root in ``cleanup_roots``; one snapshot read per
  root, one batched delete for all of them together;
* nested pass — the root whose records always keep ``updateTime`` under
  ``Devices``; own read, own batched delete.

Idempotent: a record already removed by an earlier sweep is simply not in
the next snapshot.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Any, Iterable, Optional, Protocol

from sweeper.config import RootConfig
from sweeper.services.eviction import DEFAULT_RETENTION_HOURS, classify
from sweeper.services.normalizer import Reason
from sweeper.services.reporter import RootReport, aggregate

logger = logging.getLogger(__name__)


class SnapshotLike(Protocol):
    def exists(self) -> bool: ...

    def children(self) -> Iterable[tuple[str, Any]]: ...


class Store(Protocol):
    label: str

    def get(self, path: str) -> SnapshotLike: ...

    def multi_update(self, updates: dict[str, Optional[Any]]) -> None: ...


@dataclass(frozen=True)
class SweepPolicy:
    zone: tzinfo
    retention_hours: float = DEFAULT_RETENTION_HOURS


@dataclass
class PassResult:
    reports: list[RootReport] = field(default_factory=list)
    manifest: dict[str, None] = field(default_factory=dict)


def _sweep_root(
    store: Store,
    root: RootConfig,
    now: datetime,
    policy: SweepPolicy,
    manifest: dict[str, None],
    nested_only: bool = False,
) -> RootReport:
    """Classify every child of one root, adding expired paths to ``manifest``."""
    report = RootReport(root=root.path)
    snap = store.get(root.path)
    if not snap.exists():
        report.note = "empty"
        return report

    exempt = root.exempt_set
    for key, value in snap.children():
        result = classify(
            key, value, now, exempt, policy.zone,
            retention_hours=policy.retention_hours,
            nested_only=nested_only,
        )
        if result.deletable:
            manifest[f"{root.path}/{key}"] = None
        elif result.reason not in (Reason.OK, Reason.SKIP):
            logger.debug("%s/%s kept: %s", root.path, key, result.reason.value)
        report.count(result.outcome)

    return report


def _commit(store: Store, manifest: dict[str, None], stage: str) -> None:
    if not manifest:
        return
    store.multi_update(dict(manifest))
    logger.info("🧹 [%s] %s: removed %d expired records", store.label, stage, len(manifest))


def sweep_roots(
    store: Store, roots: Iterable[RootConfig], now: datetime, policy: SweepPolicy
) -> PassResult:
    """Generic pass: read every root, then issue at most one batched delete."""
    result = PassResult()
    for root in roots:
        result.reports.append(_sweep_root(store, root, now, policy, result.manifest))
    _commit(store, result.manifest, "roots")
    return result


def sweep_nested_root(
    store: Store, root: RootConfig, now: datetime, policy: SweepPolicy
) -> PassResult:
    """Nested pass: ``updateTime`` is only ever read from ``Devices``."""
    result = PassResult()
    result.reports.append(
        _sweep_root(store, root, now, policy, result.manifest, nested_only=True)
    )
    _commit(store, result.manifest, root.path)
    return result


def sweep_instance(
    store: Store,
    roots: Iterable[RootConfig],
    nested_root: Optional[RootConfig],
    now: datetime,
    policy: SweepPolicy,
) -> dict:
    """Run both passes on one store; returns ``{"report": [...], "total": {...}}``."""
    logger.info("🧹 [%s] sweep starting (threshold %sh)", store.label, policy.retention_hours)

    reports = sweep_roots(store, roots, now, policy).reports
    if nested_root is not None:
        reports += sweep_nested_root(store, nested_root, now, policy).reports

    for r in reports:
        logger.info(
            "🧹 [%s] %s — deleted=%d kept=%d skipped=%d%s",
            store.label, r.root, r.deleted, r.kept, r.skipped,
            f" ({r.note})" if r.note else "",
        )

    result = aggregate(reports)
    logger.info("🧹 [%s] sweep complete: %s", store.label, result["total"])
    return result
