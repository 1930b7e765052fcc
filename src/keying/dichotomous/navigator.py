"""Traversal state machine over one or more linked dichotomous keys."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple

from keying.config.policies import DichotomousPolicy
from keying.entities.core import Item, Lead
from keying.entities.errors import SchemaViolation, UnknownKey
from keying.utils.logging import get_logger

from .graph import DichotomousKey, KeyLibrary

_LOGGER = get_logger(module=__name__)


@dataclass(slots=True)
class KeyFrame:
    """Position inside one key: the node being shown and the nodes walked to reach it."""

    key: DichotomousKey
    current_node: str
    history: List[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class Option:
    index: int
    lead: Lead
    item: Item | None = None

    @property
    def has_link(self) -> bool:
        return self.item is not None and self.item.links_to_key


@dataclass(frozen=True, slots=True)
class Header:
    key_id: str
    key_title: str
    scope: str | None
    depth: int


class ChoiceKind(str, Enum):
    CONTINUE = "continue"
    RESULT = "result"
    KEY_TRANSITION = "key-transition"
    INVALID_OPTION = "invalid-option"
    MISSING_KEY = "missing-key"
    DEPTH_EXCEEDED = "depth-exceeded"


@dataclass(frozen=True, slots=True)
class ChoiceResult:
    kind: ChoiceKind
    item: Item | None = None
    key: DichotomousKey | None = None
    message: str | None = None

    @property
    def moved(self) -> bool:
        return self.kind in (ChoiceKind.CONTINUE, ChoiceKind.KEY_TRANSITION)


class BackResult(str, Enum):
    STEPPED = "stepped"
    LEFT_KEY = "left-key"
    AT_START = "at-start"


class KeyNavigator:
    """Walk a dichotomous key, following item links into nested keys.

    The navigator owns a stack of :class:`KeyFrame` objects; the top frame is
    the key currently shown. Choosing an item that links to another key pushes
    a frame, and :meth:`back` unwinds node history first and frames second, so
    a user can always return to the start key's root.

    Raises:
        UnknownKey: at construction when the start key is not in the library.
        SchemaViolation: at construction when the start key has no root node.
    """

    def __init__(
        self,
        library: KeyLibrary,
        start_key_id: str | None = None,
        policy: DichotomousPolicy | None = None,
    ) -> None:
        self._library = library
        self._policy = policy or DichotomousPolicy()
        self._start_key_id = str(start_key_id) if start_key_id is not None else self._policy.start_key_id
        self._stack: List[KeyFrame] = []
        self.reset()

    # ------------------------------------------------------------------
    # Introspection helpers
    # ------------------------------------------------------------------
    @property
    def library(self) -> KeyLibrary:
        return self._library

    @property
    def start_key_id(self) -> str:
        return self._start_key_id

    @property
    def depth(self) -> int:
        return len(self._stack)

    @property
    def current_frame(self) -> KeyFrame:
        return self._stack[-1]

    @property
    def is_dead_end(self) -> bool:
        """The current node has no leads; only back, restart or quit apply."""

        return not self.options()

    def header(self) -> Header:
        key = self.current_frame.key
        return Header(key_id=key.key_id, key_title=key.title, scope=key.scope, depth=self.depth)

    def options(self) -> List[Option]:
        frame = self.current_frame
        return [
            Option(index=index, lead=lead, item=frame.key.item(lead.item) if lead.item else None)
            for index, lead in enumerate(frame.key.options_for(frame.current_node))
        ]

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def reset(self) -> None:
        """Return to the root of the start key with an empty stack."""

        start = self._library.load(self._start_key_id)
        self._stack = [KeyFrame(key=start, current_node=start.root)]
        _LOGGER.debug("Navigator reset", key_id=start.key_id)

    def choose_option(self, index: int) -> ChoiceResult:
        """Apply option ``index`` (zero-based) at the current node."""

        options = self.options()
        if not 0 <= index < len(options):
            return ChoiceResult(ChoiceKind.INVALID_OPTION, message="Invalid option index")

        choice = options[index]
        frame = self.current_frame
        item = choice.item
        if item is None:
            frame.history.append(frame.current_node)
            frame.current_node = choice.lead.lead_id
            return ChoiceResult(ChoiceKind.CONTINUE)

        if not item.links_to_key:
            _LOGGER.info("Reached result", key_id=frame.key.key_id, item_id=item.item_id)
            return ChoiceResult(ChoiceKind.RESULT, item=item)

        if self.depth >= self._policy.max_stack_depth:
            _LOGGER.warning(
                "Key link would exceed the stack limit",
                to_key=item.to_key,
                depth=self.depth,
            )
            return ChoiceResult(
                ChoiceKind.DEPTH_EXCEEDED,
                item=item,
                message=f"Cannot follow more than {self._policy.max_stack_depth} nested keys",
            )
        try:
            linked = self._library.load(item.to_key)
        except (UnknownKey, SchemaViolation) as exc:
            _LOGGER.warning("Linked key unavailable", to_key=item.to_key, error=str(exc))
            return ChoiceResult(ChoiceKind.MISSING_KEY, item=item, message=str(exc))

        self._stack.append(KeyFrame(key=linked, current_node=linked.root))
        _LOGGER.info("Entered linked key", from_key=frame.key.key_id, to_key=linked.key_id)
        return ChoiceResult(ChoiceKind.KEY_TRANSITION, item=item, key=linked)

    def back(self) -> BackResult:
        """Undo the most recent step: node history first, then the key frame."""

        frame = self.current_frame
        if frame.history:
            frame.current_node = frame.history.pop()
            return BackResult.STEPPED
        if len(self._stack) > 1:
            self._stack.pop()
            return BackResult.LEFT_KEY
        return BackResult.AT_START

    def path(self) -> List[Tuple[str, str]]:
        """``(key_id, node_id)`` pairs from the start key down to the current node."""

        trail: List[Tuple[str, str]] = []
        for frame in self._stack:
            for node in frame.history:
                trail.append((frame.key.key_id, node))
            trail.append((frame.key.key_id, frame.current_node))
        return trail


__all__ = [
    "KeyFrame",
    "Option",
    "Header",
    "ChoiceKind",
    "ChoiceResult",
    "BackResult",
    "KeyNavigator",
]
