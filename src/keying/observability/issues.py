"""Failure isolation for key loading.

Malformed matrix cells and structurally broken records must never abort a whole
load. Loaders record them here instead so that callers can surface the warnings
after the dataset is built.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from threading import RLock
from typing import Any, Dict, Iterable, Mapping

from keying.utils.logging import get_logger

_LOGGER = get_logger(module=__name__)


class IssueKind(str, Enum):
    """Categories of load-time problems."""

    DECODE_FAILURE = "decode-failure"
    SCHEMA_VIOLATION = "schema-violation"


@dataclass(frozen=True)
class LoadIssue:
    """Details about one recorded load problem."""

    kind: IssueKind
    reason: str
    source: str | None
    item_id: str | None
    payload: Mapping[str, Any]
    sequence: int


@dataclass(frozen=True)
class IssueSnapshot:
    """Immutable summary of the issue log."""

    total: int
    by_kind: Mapping[str, int]
    items: tuple[LoadIssue, ...]


class IssueLog:
    """Ordered record of load issues.

    Entries receive a monotonically increasing sequence number under a
    reentrant lock, so datasets may be decoded from several threads while
    sharing one log.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: list[LoadIssue] = []
        self._kind_counts: Dict[str, int] = {}
        self._sequence = 0

    def record(
        self,
        kind: IssueKind | str,
        *,
        reason: str,
        source: str | None = None,
        item_id: str | None = None,
        payload: Mapping[str, Any] | None = None,
    ) -> LoadIssue:
        """Record a new issue and return the captured entry."""

        if not reason:
            raise ValueError("reason must be provided for load issues")
        resolved = IssueKind(kind)
        with self._lock:
            self._sequence += 1
            entry = LoadIssue(
                kind=resolved,
                reason=reason,
                source=source,
                item_id=item_id,
                payload=dict(payload or {}),
                sequence=self._sequence,
            )
            self._items.append(entry)
            self._kind_counts[resolved.value] = self._kind_counts.get(resolved.value, 0) + 1
        _LOGGER.warning(
            "Load issue recorded",
            kind=resolved.value,
            reason=reason,
            source=source,
            item_id=item_id,
        )
        return entry

    def iter_items(self) -> Iterable[LoadIssue]:
        with self._lock:
            return tuple(self._items)

    def counts(self) -> Mapping[str, int]:
        with self._lock:
            return dict(self._kind_counts)

    def snapshot(self) -> IssueSnapshot:
        with self._lock:
            items = tuple(self._items)
            summary = {kind: self._kind_counts[kind] for kind in sorted(self._kind_counts)}
            return IssueSnapshot(total=len(items), by_kind=summary, items=items)

    def reset(self) -> None:
        with self._lock:
            self._items.clear()
            self._kind_counts.clear()
            self._sequence = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        with self._lock:
            total = len(self._items)
            kinds = dict(self._kind_counts)
        return f"IssueLog(total={total}, kinds={kinds})"


def record_issue(
    issues: IssueLog | None,
    kind: IssueKind,
    *,
    reason: str,
    source: str | None = None,
    item_id: str | None = None,
    payload: Mapping[str, Any] | None = None,
) -> None:
    """Record into ``issues`` when provided, otherwise only log the warning."""

    if issues is not None:
        issues.record(kind, reason=reason, source=source, item_id=item_id, payload=payload)
        return
    _LOGGER.warning(
        "Load issue",
        kind=kind.value,
        reason=reason,
        source=source,
        item_id=item_id,
    )


__all__ = ["IssueKind", "LoadIssue", "IssueSnapshot", "IssueLog", "record_issue"]
