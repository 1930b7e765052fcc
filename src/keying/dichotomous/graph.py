"""Indexed dichotomous keys and the library that resolves cross-key links."""

from __future__ import annotations

from collections import defaultdict
from threading import RLock
from typing import Any, Dict, Iterator, List, Mapping, Tuple

from pydantic import ValidationError

from keying.entities.core import Item, Lead
from keying.entities.errors import SchemaViolation, UnknownKey
from keying.observability.issues import IssueKind, IssueLog, record_issue
from keying.utils.helpers import clean_text, coerce_identifier
from keying.utils.logging import get_logger

_LOGGER = get_logger(module=__name__)


def unwrap_envelope(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    """Return the key object, stripping a top-level ``keybase`` wrapper if present."""

    inner = payload.get("keybase")
    return inner if isinstance(inner, Mapping) else payload


class DichotomousKey:
    """One dichotomous key: leads grouped by parent node plus terminal items."""

    def __init__(
        self,
        *,
        key_id: str,
        title: str,
        scope: str | None,
        root: str,
        leads: List[Lead],
        items: List[Item],
    ) -> None:
        self._key_id = key_id
        self._title = title
        self._scope = scope
        self._root = root
        children: Dict[str, List[Lead]] = defaultdict(list)
        for lead in leads:
            children[lead.parent_id].append(lead)
        self._leads_by_parent: Dict[str, Tuple[Lead, ...]] = {
            parent_id: tuple(group) for parent_id, group in children.items()
        }
        self._items: Dict[str, Item] = {}
        for item in items:
            self._items.setdefault(item.item_id, item)
        self._lead_count = len(leads)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    @classmethod
    def from_payload(
        cls,
        payload: Mapping[str, Any],
        *,
        key_id: str | None = None,
        registered_as: str | None = None,
        issues: IssueLog | None = None,
    ) -> "DichotomousKey":
        """Validate a raw key record and index its leads.

        ``key_id`` is a fallback for payloads without their own identifier.
        ``registered_as`` is the id a library stored the payload under; it wins
        over the payload id and a disagreement is recorded as an issue.

        Raises:
            SchemaViolation: when the key has no root node or no identifier.
        """

        if not isinstance(payload, Mapping):
            raise SchemaViolation("dichotomous key payload must be a mapping", source=key_id)
        data = unwrap_envelope(payload)

        payload_id = coerce_identifier(data.get("key_id"))
        registered_id = coerce_identifier(registered_as)
        if registered_id is not None and payload_id is not None and payload_id != registered_id:
            record_issue(
                issues,
                IssueKind.SCHEMA_VIOLATION,
                reason=f"payload key_id {payload_id} differs from registered id",
                source=registered_id,
            )
        resolved_id = registered_id or payload_id or coerce_identifier(key_id)
        if resolved_id is None:
            raise SchemaViolation("dichotomous key has no key_id")
        first_step = data.get("first_step")
        root = coerce_identifier(first_step.get("root_node_id")) if isinstance(first_step, Mapping) else None
        if root is None:
            raise SchemaViolation(f"Key {resolved_id} missing first_step.root_node_id", source=resolved_id)

        scope_record = data.get("taxonomic_scope")
        scope = clean_text(scope_record.get("item_name")) if isinstance(scope_record, Mapping) else ""
        title = clean_text(data.get("key_title")) or f"Key {resolved_id}"

        leads: List[Lead] = []
        for raw in data.get("leads") or []:
            try:
                leads.append(Lead.from_record(raw))
            except (ValidationError, AttributeError) as exc:
                record_issue(
                    issues,
                    IssueKind.SCHEMA_VIOLATION,
                    reason="invalid lead record",
                    source=resolved_id,
                    item_id=coerce_identifier(raw.get("lead_id")) if isinstance(raw, Mapping) else None,
                    payload={"error": str(exc)},
                )

        items: List[Item] = []
        for raw in data.get("items") or []:
            try:
                items.append(Item.from_record(raw))
            except (ValidationError, AttributeError) as exc:
                record_issue(
                    issues,
                    IssueKind.SCHEMA_VIOLATION,
                    reason="invalid item record",
                    source=resolved_id,
                    payload={"error": str(exc)},
                )

        key = cls(
            key_id=resolved_id,
            title=title,
            scope=scope or None,
            root=root,
            leads=leads,
            items=items,
        )
        _LOGGER.debug(
            "Indexed dichotomous key",
            key_id=resolved_id,
            leads=len(leads),
            items=len(items),
        )
        return key

    # ------------------------------------------------------------------
    # Introspection helpers
    # ------------------------------------------------------------------
    @property
    def key_id(self) -> str:
        return self._key_id

    @property
    def title(self) -> str:
        return self._title

    @property
    def scope(self) -> str | None:
        return self._scope

    @property
    def root(self) -> str:
        return self._root

    @property
    def lead_count(self) -> int:
        return self._lead_count

    @property
    def item_count(self) -> int:
        return len(self._items)

    def options_for(self, node_id: Any) -> Tuple[Lead, ...]:
        """Leads whose parent is ``node_id``, in declared order."""

        return self._leads_by_parent.get(coerce_identifier(node_id), ())

    def item(self, item_id: Any) -> Item | None:
        return self._items.get(coerce_identifier(item_id))

    def linked_keys(self) -> List[str]:
        """Identifiers of keys referenced by this key's items."""

        return sorted({item.to_key for item in self._items.values() if item.to_key})


class KeyLibrary:
    """Raw dichotomous key payloads resolved into :class:`DichotomousKey` on demand.

    Built keys are cached. A key that is missing or broken only fails the
    lookup for that key.
    """

    def __init__(
        self,
        raw_keys: Mapping[Any, Mapping[str, Any]],
        *,
        issues: IssueLog | None = None,
        prebuilt: Mapping[str, DichotomousKey] | None = None,
    ) -> None:
        self._raw: Dict[str, Mapping[str, Any]] = {}
        for raw_id, payload in raw_keys.items():
            key_id = coerce_identifier(raw_id)
            if key_id is None:
                continue
            self._raw[key_id] = payload
        self._issues = issues
        self._cache: Dict[str, DichotomousKey] = {
            key_id: key for key_id, key in (prebuilt or {}).items() if key_id in self._raw
        }
        self._lock = RLock()

    def __contains__(self, key_id: object) -> bool:
        return coerce_identifier(key_id) in self._raw

    def __len__(self) -> int:
        return len(self._raw)

    def __iter__(self) -> Iterator[str]:
        return iter(self.key_ids())

    def key_ids(self) -> List[str]:
        return list(self._raw)

    def raw(self, key_id: Any) -> Mapping[str, Any]:
        resolved = coerce_identifier(key_id)
        if resolved is None or resolved not in self._raw:
            raise UnknownKey(str(key_id))
        return self._raw[resolved]

    def load(self, key_id: Any) -> DichotomousKey:
        """Return the indexed key for ``key_id``.

        Raises:
            UnknownKey: when no payload is registered under ``key_id``.
            SchemaViolation: when the payload cannot be indexed.
        """

        resolved = coerce_identifier(key_id)
        with self._lock:
            cached = self._cache.get(resolved) if resolved is not None else None
            if cached is not None:
                return cached
            payload = self.raw(key_id)
            key = DichotomousKey.from_payload(payload, registered_as=resolved, issues=self._issues)
            self._cache[resolved] = key
            return key


__all__ = ["DichotomousKey", "KeyLibrary", "unwrap_envelope"]
