"""Translation Lookaside Buffer — a small cache of page → frame mappings.

Walking the page table costs a memory access on every translation.  The
TLB is a tiny associative cache in front of it: if the page is in the
TLB the frame comes back in a few nanoseconds, otherwise the full walk
happens and the result is cached for next time.

Eviction is LRU over the TLB's own timestamps, completely independent
of whatever policy manages the frames themselves.  An empty slot is
always used before anything is evicted; among full slots the oldest
timestamp loses, ties going to the lowest slot.

The TLB is a *cache*, not the source of truth.  When a page is evicted
from memory its TLB entry is not touched and goes stale; callers that
need an accurate answer must re-validate against the page table (see
``SimulationContext.translate_with_tlb``) and ``invalidate`` the entry.

``TLBSimulation`` replays a reference string through a TLB and prices
every access, giving the effective access time and speedup that the
TLB buys over always walking the page table.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace

from py_memsim.config import DEFAULT_MEMORY_ACCESS_TIME, DEFAULT_TLB_HIT_TIME

# Given a page number, return the frame that holds it.
FrameResolver = Callable[[int], int]


@dataclass(frozen=True)
class TLBEntry:
    """A cached page → frame mapping and its last-use time."""

    page: int
    frame: int
    last_used: int


class TLBCache:
    """Fixed-capacity page → frame cache with LRU eviction.

    Slots hold either a ``TLBEntry`` or None (empty / invalid).  Every
    lookup counts as exactly one hit or one miss; ``stale`` counts the
    misses caused by entries rejected during a lookup.
    """

    def __init__(self, *, capacity: int) -> None:
        """Create an empty TLB.

        Args:
            capacity: Number of slots.

        Raises:
            ValueError: If capacity is not positive.

        """
        if capacity <= 0:
            msg = f"TLB capacity must be positive, got {capacity}"
            raise ValueError(msg)
        self._slots: list[TLBEntry | None] = [None] * capacity
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.stale = 0

    @property
    def capacity(self) -> int:
        """Return the number of slots."""
        return len(self._slots)

    @property
    def slots(self) -> list[TLBEntry | None]:
        """Return the slot contents in slot order."""
        return list(self._slots)

    def entries(self) -> list[TLBEntry]:
        """Return the valid entries in slot order."""
        return [e for e in self._slots if e is not None]

    def _slot_of(self, page: int) -> int | None:
        for i, entry in enumerate(self._slots):
            if entry is not None and entry.page == page:
                return i
        return None

    def lookup(
        self,
        page: int,
        *,
        timestamp: int,
        is_current: Callable[[TLBEntry], bool] | None = None,
    ) -> int | None:
        """Look a page up, refreshing its timestamp on a hit.

        Args:
            page: The page number to look up.
            timestamp: The current time.
            is_current: If given, a cached entry it rejects is dropped
                and the lookup counts as a miss.

        Returns:
            The cached frame, or None on a miss.

        """
        slot = self._slot_of(page)
        if slot is not None and is_current is not None and not is_current(self._entry(slot)):
            self._slots[slot] = None
            self.stale += 1
            slot = None
        if slot is None:
            self.misses += 1
            return None
        entry = self._entry(slot)
        self._slots[slot] = replace(entry, last_used=timestamp)
        self.hits += 1
        return entry.frame

    def insert(self, page: int, frame: int, *, timestamp: int) -> TLBEntry | None:
        """Cache a mapping, evicting the least recently used entry if full.

        A page that is already cached is updated in place.

        Args:
            page: The page number.
            frame: The frame holding the page.
            timestamp: The current time.

        Returns:
            The evicted entry, or None if nothing was evicted.

        """
        new = TLBEntry(page=page, frame=frame, last_used=timestamp)
        slot = self._slot_of(page)
        if slot is not None:
            self._slots[slot] = new
            return None
        for i, entry in enumerate(self._slots):
            if entry is None:
                self._slots[i] = new
                return None
        victim = min(range(len(self._slots)), key=lambda i: (self._entry(i).last_used, i))
        evicted = self._entry(victim)
        self._slots[victim] = new
        self.evictions += 1
        return evicted

    def _entry(self, slot: int) -> TLBEntry:
        entry = self._slots[slot]
        if entry is None:
            msg = f"TLB slot {slot} is empty"
            raise LookupError(msg)
        return entry

    def invalidate(self, page: int) -> bool:
        """Drop a page's entry; return True if one was cached."""
        slot = self._slot_of(page)
        if slot is None:
            return False
        self._slots[slot] = None
        return True

    def clear(self) -> None:
        """Empty every slot and zero the counters."""
        self._slots = [None] * len(self._slots)
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.stale = 0


@dataclass(frozen=True)
class TLBAccess:
    """What happened on one simulated TLB access."""

    step: int
    page: int
    frame: int
    hit: bool
    cost: int
    evicted: TLBEntry | None = None


@dataclass(frozen=True)
class TLBReport:
    """Totals for a TLB simulation run."""

    hits: int
    misses: int
    total_time: int
    hit_time: int
    miss_time: int
    accesses: list[TLBAccess] = field(default_factory=list)

    @property
    def references(self) -> int:
        """Return the number of accesses simulated."""
        return self.hits + self.misses

    @property
    def hit_ratio(self) -> float:
        """Return hits / references (0.0 for an empty run)."""
        return self.hits / self.references if self.references else 0.0

    @property
    def average_access_time(self) -> float:
        """Return the mean cost of an access in nanoseconds."""
        return self.total_time / self.references if self.references else 0.0

    @property
    def time_without_tlb(self) -> int:
        """Return the cost if every access walked the page table."""
        return self.references * self.miss_time

    @property
    def speedup(self) -> float:
        """Return time without a TLB divided by time with it."""
        return self.time_without_tlb / self.total_time if self.total_time else 0.0


class TLBSimulation:
    """Replay page references through a TLB and price each access.

    A hit costs ``hit_time``.  A miss costs ``hit_time + miss_time`` (the
    TLB is searched first, then the page table is walked), after which
    the resolved mapping is inserted.
    """

    def __init__(
        self,
        cache: TLBCache,
        *,
        resolve: FrameResolver,
        hit_time: int = DEFAULT_TLB_HIT_TIME,
        miss_time: int = DEFAULT_MEMORY_ACCESS_TIME,
    ) -> None:
        """Create a simulation over an existing cache.

        Args:
            cache: The TLB to exercise.
            resolve: Called on a miss to find the frame for a page.
            hit_time: Nanoseconds per TLB search.
            miss_time: Nanoseconds per page-table walk.

        """
        self._cache = cache
        self._resolve = resolve
        self._hit_time = hit_time
        self._miss_time = miss_time
        self._clock = 0
        self._total_time = 0
        self._accesses: list[TLBAccess] = []

    @property
    def cache(self) -> TLBCache:
        """Return the TLB being exercised."""
        return self._cache

    def access(self, page: int) -> TLBAccess:
        """Simulate one access to *page*."""
        self._clock += 1
        frame = self._cache.lookup(page, timestamp=self._clock)
        if frame is not None:
            result = TLBAccess(step=self._clock, page=page, frame=frame, hit=True, cost=self._hit_time)
        else:
            frame = self._resolve(page)
            evicted = self._cache.insert(page, frame, timestamp=self._clock)
            result = TLBAccess(
                step=self._clock,
                page=page,
                frame=frame,
                hit=False,
                cost=self._hit_time + self._miss_time,
                evicted=evicted,
            )
        self._total_time += result.cost
        self._accesses.append(result)
        return result

    def run(self, references: Iterable[int]) -> TLBReport:
        """Simulate every reference and return the totals."""
        for page in references:
            self.access(page)
        return self.report()

    def report(self) -> TLBReport:
        """Return the totals so far."""
        hits = sum(1 for a in self._accesses if a.hit)
        return TLBReport(
            hits=hits,
            misses=len(self._accesses) - hits,
            total_time=self._total_time,
            hit_time=self._hit_time,
            miss_time=self._miss_time,
            accesses=list(self._accesses),
        )


def synthetic_frame(page: int) -> int:
    """Return a fixed stand-in frame for *page* (``2 * page + 1``).

    Used by standalone TLB demonstrations, where the point is the cache
    behaviour and not which frame a page actually occupies.
    """
    return page * 2 + 1
