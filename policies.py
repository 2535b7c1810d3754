"""
Cache replacement policies: FIFO, LRU and LFU.

Every policy admits references into a resident set bounded by a fixed
capacity and reports the outcome of each access as a StepResult. The three
policies share the hit/miss/evict bookkeeping in EvictionPolicy and differ
only in how they order residents and which one they give up on a miss at
full capacity:

    - FIFO: evicts the oldest admission, hits never reorder.
    - LRU:  evicts the least recently accessed reference, hits included.
    - LFU:  evicts the least frequently accessed reference; among equally
            frequent references the one touched longest ago goes first.

All ordering decisions use a per-instance logical clock, never wall-clock
time, so runs are reproducible.
"""

# =============================================================================
# IMPORTS
# =============================================================================

import logging
from abc import ABC, abstractmethod
from collections import OrderedDict, deque
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Deque, Dict, Hashable, List, Optional, Set, Tuple

from errors import ConfigurationError

logger = logging.getLogger(__name__)

Reference = Hashable


# =============================================================================
# RESULT & STATE RECORDS
# =============================================================================

class Outcome(str, Enum):
    """Result of a single access."""
    HIT = "hit"
    MISS = "miss"


class OperationKind(str, Enum):
    """Kinds of entries recorded in a policy's operation log."""
    HIT = "hit"
    MISS = "miss"
    EVICT = "evict"


@dataclass(frozen=True)
class StepResult:
    """
    Outcome of one access against one policy.

    Attributes:
        reference: The reference that was accessed
        outcome: Outcome.HIT or Outcome.MISS
        evicted: Reference given up to make room, None when nothing was evicted
        resident: Resident set after the access, in the policy's order
    """
    reference: Any
    outcome: Outcome
    evicted: Optional[Any] = None
    resident: Tuple[Any, ...] = ()

    @property
    def is_hit(self) -> bool:
        return self.outcome is Outcome.HIT


@dataclass(frozen=True)
class Operation:
    """
    One entry of a policy's append-only operation log.

    Attributes:
        seq: Logical clock value of the access that produced this entry
        kind: hit, miss or evict
        reference: The reference the entry is about
        resident: Resident set right after this entry was applied
        evicted: For a miss, the reference evicted to admit it
        evicted_for: For an evict, the reference that caused it
        frequency: Access frequency after the operation (LFU only)
    """
    seq: int
    kind: OperationKind
    reference: Any
    resident: Tuple[Any, ...]
    evicted: Optional[Any] = None
    evicted_for: Optional[Any] = None
    frequency: Optional[int] = None

    def describe(self) -> str:
        """Human readable form, used by the event log display."""
        if self.kind is OperationKind.HIT:
            text = f"Hit: {self.reference}"
        elif self.kind is OperationKind.EVICT:
            text = f"Evict: {self.reference} (for {self.evicted_for})"
        else:
            text = f"Miss: {self.reference} loaded"
        if self.frequency is not None:
            text += f" [freq={self.frequency}]"
        return text


@dataclass(frozen=True)
class CacheState:
    """
    Read-only projection of a policy instance.

    hit_rate and miss_rate are fractions in [0, 1] and are both 0.0 before
    the first access.
    """
    policy: str
    capacity: int
    resident: Tuple[Any, ...]
    hits: int = 0
    misses: int = 0
    evictions: int = 0

    @property
    def accesses(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        total = self.accesses
        return (self.hits / total) if total > 0 else 0.0

    @property
    def miss_rate(self) -> float:
        total = self.accesses
        return (self.misses / total) if total > 0 else 0.0

    def as_dict(self) -> Dict[str, Any]:
        row = asdict(self)
        row["resident"] = list(self.resident)
        row["accesses"] = self.accesses
        row["hit_rate"] = self.hit_rate
        row["miss_rate"] = self.miss_rate
        return row


# =============================================================================
# EVICTION POLICY CONTRACT
# =============================================================================

class EvictionPolicy(ABC):
    """
    Common shape of every replacement policy.

    access() is the only mutating entry point. Subclasses provide the
    resident-set bookkeeping through the _clear/_touch/_evict/_admit hooks;
    the counters, the logical clock and the operation log live here.

    Attributes:
        hits (int): Accesses that found the reference resident
        misses (int): Accesses that had to admit the reference
        evictions (int): Residents given up on a miss at full capacity
        clock (int): Logical clock, advanced once per access
    """

    name = "BASE"

    def __init__(self, capacity: int):
        # bool is an int subclass; a True capacity is a configuration mistake
        if isinstance(capacity, bool) or not isinstance(capacity, int):
            raise ConfigurationError(f"Capacity must be an integer, got {capacity!r}")
        if capacity <= 0:
            raise ConfigurationError(f"Capacity must be positive, got {capacity}")
        self._capacity = capacity
        self.reset()

    @property
    def capacity(self) -> int:
        return self._capacity

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def access(self, reference: Reference) -> StepResult:
        """
        Access a reference, handling hit, miss and eviction.

        Args:
            reference: Hashable trace item; None is not a valid reference

        Returns:
            StepResult: outcome, evicted reference (if any) and the resident
            set after the access
        """
        if reference is None:
            raise ValueError("None is not a valid cache reference")

        self.clock += 1

        # ----- HIT -----
        if reference in self:
            self.hits += 1
            self._touch(reference)
            self._log(OperationKind.HIT, reference)
            return StepResult(reference, Outcome.HIT, None, self.resident())

        # ----- MISS -----
        self.misses += 1
        evicted = None
        if len(self) >= self._capacity:
            evicted = self._evict()
            self.evictions += 1
            self._log(OperationKind.EVICT, evicted, evicted_for=reference)

        self._admit(reference)
        self._log(OperationKind.MISS, reference, evicted=evicted)
        return StepResult(reference, Outcome.MISS, evicted, self.resident())

    def get_state(self) -> CacheState:
        return CacheState(
            policy=self.name,
            capacity=self._capacity,
            resident=self.resident(),
            hits=self.hits,
            misses=self.misses,
            evictions=self.evictions,
        )

    def reset(self):
        """Clear residents, counters and the log. Capacity is kept."""
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.clock = 0
        self._operations: List[Operation] = []
        self._clear()

    @property
    def operations(self) -> Tuple[Operation, ...]:
        return tuple(self._operations)

    @abstractmethod
    def resident(self) -> Tuple[Any, ...]:
        """Resident references in the policy's internal order."""

    @abstractmethod
    def __contains__(self, reference) -> bool:
        ...

    @abstractmethod
    def __len__(self) -> int:
        ...

    def __repr__(self):
        return f"{type(self).__name__}(capacity={self._capacity}, resident={list(self.resident())})"

    # -------------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------------

    @abstractmethod
    def _clear(self):
        ...

    @abstractmethod
    def _touch(self, reference):
        """Hit bookkeeping for a resident reference."""

    @abstractmethod
    def _evict(self) -> Any:
        """Remove the victim from the resident set and return it."""

    @abstractmethod
    def _admit(self, reference):
        ...

    def _frequency_of(self, reference) -> Optional[int]:
        return None

    def _log(self, kind: OperationKind, reference, **details):
        if kind is not OperationKind.EVICT:
            details.setdefault("frequency", self._frequency_of(reference))
        op = Operation(self.clock, kind, reference, self.resident(), **details)
        self._operations.append(op)
        logger.debug("%s #%d %s", self.name, self.clock, op.describe())


# =============================================================================
# FIFO
# =============================================================================

class FifoPolicy(EvictionPolicy):
    """
    First-In-First-Out: replaces the reference admitted earliest.

    A hit leaves the admission queue untouched.
    """

    name = "FIFO"

    def _clear(self):
        self.fifo_queue: Deque[Any] = deque()   # oldest admission at the left
        self._members: Set[Any] = set()

    def resident(self):
        return tuple(self.fifo_queue)

    def __contains__(self, reference):
        return reference in self._members

    def __len__(self):
        return len(self._members)

    def _touch(self, reference):
        pass

    def _evict(self):
        victim = self.fifo_queue.popleft()
        self._members.discard(victim)
        return victim

    def _admit(self, reference):
        self.fifo_queue.append(reference)
        self._members.add(reference)


# =============================================================================
# LRU
# =============================================================================

class LruPolicy(EvictionPolicy):
    """
    Least-Recently-Used: replaces the reference not accessed for the
    longest time. Residents are ordered least recent first.
    """

    name = "LRU"

    def _clear(self):
        self.recency: "OrderedDict[Any, int]" = OrderedDict()   # ref -> clock of last access

    def resident(self):
        return tuple(self.recency)

    def __contains__(self, reference):
        return reference in self.recency

    def __len__(self):
        return len(self.recency)

    def _touch(self, reference):
        # move to MRU position
        self.recency.move_to_end(reference)
        self.recency[reference] = self.clock

    def _evict(self):
        victim, _ = self.recency.popitem(last=False)
        return victim

    def _admit(self, reference):
        self.recency[reference] = self.clock


# =============================================================================
# LFU
# =============================================================================

class LfuPolicy(EvictionPolicy):
    """
    Least-Frequently-Used with least-recently-touched tie-break.

    Keys are grouped by access frequency and the minimum frequency is
    tracked on every hit and admission. The victim is the key of the
    minimum-frequency group with the smallest last-touched marker, a
    logical clock value set at admission and on every hit. Residents are
    listed in admission order.
    """

    name = "LFU"

    def _clear(self):
        self.frequency_of: Dict[Any, int] = {}                      # admission order
        self.groups: Dict[int, "OrderedDict[Any, None]"] = {}     # freq -> keys
        self.last_touched: Dict[Any, int] = {}
        self.min_frequency = 0

    def resident(self):
        return tuple(self.frequency_of)

    def __contains__(self, reference):
        return reference in self.frequency_of

    def __len__(self):
        return len(self.frequency_of)

    def frequency(self, reference) -> int:
        """Current access frequency of a resident reference, 0 otherwise."""
        return self.frequency_of.get(reference, 0)

    def _frequency_of(self, reference):
        return self.frequency(reference)

    def _touch(self, reference):
        old = self.frequency_of[reference]
        group = self.groups[old]
        del group[reference]
        if not group:
            del self.groups[old]
            if self.min_frequency == old:
                self.min_frequency = old + 1

        self.frequency_of[reference] = old + 1
        self.groups.setdefault(old + 1, OrderedDict())[reference] = None
        self.last_touched[reference] = self.clock

    def _evict(self):
        group = self.groups[self.min_frequency]
        victim = min(group, key=self.last_touched.__getitem__)
        del group[victim]
        if not group:
            del self.groups[self.min_frequency]
        del self.frequency_of[victim]
        del self.last_touched[victim]
        return victim

    def _admit(self, reference):
        self.frequency_of[reference] = 1
        self.groups.setdefault(1, OrderedDict())[reference] = None
        self.last_touched[reference] = self.clock
        self.min_frequency = 1
