"""Data model for coverage exclusion lists.

This module defines the classes that represent the contents of an
exclusion list (``.el``) file once it has been read into memory.  The
hierarchy is shallow:

* :class:`ExclusionDatabase` holds the file metadata and every scope,
  keyed by hierarchical scope name.
* :class:`ExclusionScope` is a MODULE or an INSTANCE and owns four
  independent containers, one per :class:`ExclusionKind`.
* The record classes (:class:`BlockExclusion`, :class:`ToggleExclusion`,
  :class:`FsmState`, :class:`FsmTransition` and
  :class:`ConditionExclusion`) each describe one excluded coverage point.

Every record class carries a class level ``kind`` discriminant.  Code
that has to treat the kinds differently branches on ``record.kind``
rather than inspecting the record's type, so a new kind only needs a
new enum member and a new container.

FSM exclusions come in two shapes sharing the ``FSM`` kind: a state
(``Fsm <name> "<checksum>"``) and a transition
(``Transition <from>-><to> "<id>"``).  Transitions do not name their
state machine in the file format, so they are all grouped under the
fixed key :data:`TRANSITION_GROUP`.

Blocks and conditions are singletons per identifier (last write wins),
while toggles and FSM records are naturally multi-valued and are kept
as ordered lists per signal or FSM name.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Dict, Iterator, List, Optional, Union

from .errors import InvalidScopeError

# Container key shared by all transition records.  The name is historical:
# it is a grouping key, not the name of any state machine.
TRANSITION_GROUP = "transition"


class ExclusionKind(Enum):
    """The four categories of coverage exclusion."""

    BLOCK = "Block"
    TOGGLE = "Toggle"
    FSM = "FSM"
    CONDITION = "Condition"

    def __str__(self) -> str:
        return self.value


class ToggleDirection(Enum):
    """Signal transition direction excluded by a toggle record."""

    ZERO_TO_ONE = "0to1"
    ONE_TO_ZERO = "1to0"
    BOTH = ""

    @classmethod
    def from_token(cls, token: str) -> "ToggleDirection":
        """Map a file token to a direction; anything unknown means BOTH."""
        for direction in (cls.ZERO_TO_ONE, cls.ONE_TO_ZERO):
            if token == direction.value:
                return direction
        return cls.BOTH

    @property
    def token(self) -> str:
        return self.value


@dataclass
class BlockExclusion:
    """An excluded line or block of RTL source."""

    kind: ClassVar[ExclusionKind] = ExclusionKind.BLOCK

    block_id: str
    checksum: str = ""
    source_code: str = ""
    annotation: Optional[str] = None

    @property
    def key(self) -> str:
        return self.block_id


@dataclass
class ToggleExclusion:
    """An excluded signal transition.

    ``bit_index`` is ``None`` for scalar signals.  Several records may
    exist for one signal, e.g. one per direction or one per bit.
    """

    kind: ClassVar[ExclusionKind] = ExclusionKind.TOGGLE

    signal_name: str
    direction: ToggleDirection = ToggleDirection.BOTH
    bit_index: Optional[int] = None
    net_description: str = ""
    annotation: Optional[str] = None

    @property
    def key(self) -> str:
        return self.signal_name


@dataclass
class FsmState:
    """An excluded FSM state."""

    kind: ClassVar[ExclusionKind] = ExclusionKind.FSM
    is_transition: ClassVar[bool] = False

    fsm_name: str
    checksum: str = ""
    annotation: Optional[str] = None

    @property
    def key(self) -> str:
        return self.fsm_name


@dataclass
class FsmTransition:
    """An excluded FSM state-to-state transition."""

    kind: ClassVar[ExclusionKind] = ExclusionKind.FSM
    is_transition: ClassVar[bool] = True
    fsm_name: ClassVar[str] = TRANSITION_GROUP

    from_state: str
    to_state: str
    transition_id: str = ""
    annotation: Optional[str] = None

    @property
    def key(self) -> str:
        return self.fsm_name


FsmExclusion = Union[FsmState, FsmTransition]


@dataclass
class ConditionExclusion:
    """An excluded boolean condition.

    ``parameters`` holds the auxiliary numbers that follow the
    expression inside its quotes, ``coverage`` the parenthesised
    descriptor that trails the line (e.g. ``1 "01"``).
    """

    kind: ClassVar[ExclusionKind] = ExclusionKind.CONDITION

    condition_id: str
    checksum: str = ""
    expression: str = ""
    parameters: str = ""
    coverage: str = ""
    annotation: Optional[str] = None

    @property
    def key(self) -> str:
        return self.condition_id


Exclusion = Union[BlockExclusion, ToggleExclusion, FsmState, FsmTransition, ConditionExclusion]


@dataclass
class ExclusionScope:
    """A MODULE or INSTANCE together with the exclusions it owns."""

    scope_name: str
    checksum: str = ""
    is_module: bool = False
    blocks: Dict[str, BlockExclusion] = field(default_factory=dict)
    toggles: Dict[str, List[ToggleExclusion]] = field(default_factory=dict)
    fsms: Dict[str, List[FsmExclusion]] = field(default_factory=dict)
    conditions: Dict[str, ConditionExclusion] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.scope_name:
            raise InvalidScopeError("scope name must not be empty")

    @property
    def keyword(self) -> str:
        """The declaration keyword used in the file format."""
        return "MODULE" if self.is_module else "INSTANCE"

    # ------------------------------------------------------------------
    # Mutators

    def add_block(self, block: BlockExclusion) -> None:
        self.blocks[block.block_id] = block

    def add_toggle(self, toggle: ToggleExclusion) -> None:
        self.toggles.setdefault(toggle.signal_name, []).append(toggle)

    def add_fsm(self, fsm: FsmExclusion) -> None:
        self.fsms.setdefault(fsm.fsm_name, []).append(fsm)

    def add_condition(self, condition: ConditionExclusion) -> None:
        self.conditions[condition.condition_id] = condition

    def add(self, record: Exclusion) -> None:
        """Store ``record`` in the container matching its kind."""
        if record.kind is ExclusionKind.BLOCK:
            self.add_block(record)
        elif record.kind is ExclusionKind.TOGGLE:
            self.add_toggle(record)
        elif record.kind is ExclusionKind.FSM:
            self.add_fsm(record)
        elif record.kind is ExclusionKind.CONDITION:
            self.add_condition(record)
        else:  # pragma: no cover
            raise ValueError(f"unknown exclusion kind: {record.kind!r}")

    # ------------------------------------------------------------------
    # Read-only views

    def iter_exclusions(self, kind: Optional[ExclusionKind] = None) -> Iterator[Exclusion]:
        """Iterate over records, optionally restricted to one kind.

        Records are yielded kind by kind in the order Block, Toggle,
        FSM, Condition, and in container order within a kind.
        """
        if kind is None or kind is ExclusionKind.BLOCK:
            yield from self.blocks.values()
        if kind is None or kind is ExclusionKind.TOGGLE:
            for toggles in self.toggles.values():
                yield from toggles
        if kind is None or kind is ExclusionKind.FSM:
            for fsms in self.fsms.values():
                yield from fsms
        if kind is None or kind is ExclusionKind.CONDITION:
            yield from self.conditions.values()

    def count(self, kind: ExclusionKind) -> int:
        if kind is ExclusionKind.BLOCK:
            return len(self.blocks)
        if kind is ExclusionKind.CONDITION:
            return len(self.conditions)
        if kind is ExclusionKind.TOGGLE:
            return sum(len(v) for v in self.toggles.values())
        return sum(len(v) for v in self.fsms.values())

    def total_exclusion_count(self) -> int:
        return sum(self.count(kind) for kind in ExclusionKind)

    def copy(self) -> "ExclusionScope":
        """Return a deep copy sharing no records with this scope."""
        return copy.deepcopy(self)

    def __str__(self) -> str:
        return f"{self.keyword}:{self.scope_name}"


@dataclass
class ExclusionDatabase:
    """All scopes read from (or destined for) one exclusion list file."""

    file_name: str = ""
    generated_by: str = ""
    format_version: str = ""
    generation_date: str = ""
    exclusion_mode: str = ""
    scopes: Dict[str, ExclusionScope] = field(default_factory=dict)

    def get_or_create_scope(
        self, scope_name: str, checksum: str = "", is_module: bool = False
    ) -> ExclusionScope:
        """Return the named scope, creating it on first use.

        When the scope already exists ``checksum`` and ``is_module`` are
        ignored; the values given on creation win.

        Raises:
            InvalidScopeError: If ``scope_name`` is empty.
        """
        scope = self.scopes.get(scope_name)
        if scope is None:
            scope = ExclusionScope(scope_name, checksum=checksum, is_module=is_module)
            self.scopes[scope_name] = scope
        return scope

    def add_exclusion(self, scope_name: str, record: Exclusion) -> ExclusionScope:
        """Add ``record`` to the named scope (created as an INSTANCE if new)."""
        scope = self.get_or_create_scope(scope_name)
        scope.add(record)
        return scope

    def merge(self, other: "ExclusionDatabase", overwrite_existing: bool = False) -> None:
        """Merge the scopes of ``other`` into this database.

        A scope missing here is copied whole; with ``overwrite_existing``
        every scope of ``other`` replaces its namesake wholesale.
        Otherwise the scopes are merged record by record: blocks and
        conditions keep the existing record on an identifier collision,
        while toggle and FSM records are always appended.
        """
        if other is self:
            other = other.copy()
        for scope_name, scope in other.scopes.items():
            existing = self.scopes.get(scope_name)
            if existing is None or overwrite_existing:
                self.scopes[scope_name] = scope.copy()
                continue

            for block_id, block in scope.blocks.items():
                if block_id not in existing.blocks:
                    existing.add_block(copy.deepcopy(block))
            for toggles in scope.toggles.values():
                for toggle in toggles:
                    existing.add_toggle(copy.deepcopy(toggle))
            for fsms in scope.fsms.values():
                for fsm in fsms:
                    existing.add_fsm(copy.deepcopy(fsm))
            for cond_id, condition in scope.conditions.items():
                if cond_id not in existing.conditions:
                    existing.add_condition(copy.deepcopy(condition))

    def clear(self) -> None:
        """Reset metadata and drop every scope."""
        self.file_name = ""
        self.generated_by = ""
        self.format_version = ""
        self.generation_date = ""
        self.exclusion_mode = ""
        self.scopes.clear()

    def scope_count(self) -> int:
        return len(self.scopes)

    def total_exclusion_count(self) -> int:
        return sum(scope.total_exclusion_count() for scope in self.scopes.values())

    def exclusion_counts_by_kind(self) -> Dict[ExclusionKind, int]:
        counts = {kind: 0 for kind in ExclusionKind}
        for scope in self.scopes.values():
            for kind in ExclusionKind:
                counts[kind] += scope.count(kind)
        return counts

    def copy(self) -> "ExclusionDatabase":
        return copy.deepcopy(self)
