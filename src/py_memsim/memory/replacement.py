"""Page replacement — choosing a victim frame when memory is full.

When a page fault happens and every frame is occupied, one resident
page has to go.  Which one is the **replacement policy's** decision:

    - **FIFO** — evict the page that has been resident the longest.
      Simple, but suffers from Belady's anomaly (more frames can mean
      more faults for some reference strings).
    - **LRU** — evict the page whose last use is furthest in the past.
      Uses the frame's timestamp, which is refreshed on every hit.
    - **Optimal** (Belady's MIN) — evict the page whose next use is
      furthest in the future.  Needs to see the rest of the reference
      string, so it is a yardstick rather than something a real kernel
      can run: no policy can fault less on the same input.
    - **Clock** — second-chance approximation of LRU.  A hand sweeps
      the frames; a set reference bit buys the page one more lap.

Design: Strategy pattern
    The simulator is the *context*; ReplacementPolicy is the *strategy*.
    A policy is picked once per run with ``create_policy`` and asked for
    victims through one method, so the simulator never branches on the
    algorithm name.

Every policy reads frame state from the ``FrameTable`` and only Clock
writes anything back (clearing reference bits), through the table's
own method.  Policies must only ever be asked for a victim when memory
is full; asking while a frame is free raises ``ReplacementError``.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence

    from py_memsim.memory.frames import FrameTable


class ReplacementError(Exception):
    """Raise when a victim is requested while a free frame exists."""


class PolicyName(StrEnum):
    """The available replacement algorithms."""

    FIFO = "fifo"
    LRU = "lru"
    OPTIMAL = "optimal"
    CLOCK = "clock"


class ReplacementPolicy(Protocol):
    """Interface that every replacement algorithm must satisfy."""

    name: PolicyName

    def select_victim(
        self,
        frames: FrameTable,
        *,
        references: Sequence[int],
        position: int,
    ) -> int:
        """Return the index of the frame to evict.

        Args:
            frames: The (full) frame table.
            references: The whole reference string of the run.
            position: Index of the reference that caused the fault.

        Raises:
            ReplacementError: If any frame is free.

        """
        ...  # pragma: no cover

    def reset(self) -> None:
        """Forget all per-run state (cursors, hands)."""
        ...  # pragma: no cover


def _require_full(frames: FrameTable) -> None:
    free = frames.find_free_frame()
    if free is not None:
        msg = f"Frame {free} is free; replacement is only valid when memory is full"
        raise ReplacementError(msg)


# ---------------------------------------------------------------------------
# FIFO Policy
# ---------------------------------------------------------------------------


class FIFOPolicy:
    """First In, First Out — a cursor walks the frames in a circle.

    Frames fill up in index order, so the frame after the last victim
    always holds the oldest page.  Hits never move the cursor.
    """

    name = PolicyName.FIFO

    def __init__(self) -> None:
        """Create a FIFO policy with the cursor at frame 0."""
        self._cursor = 0

    @property
    def cursor(self) -> int:
        """Return the frame index the next scan starts from."""
        return self._cursor

    def reset(self) -> None:
        """Move the cursor back to frame 0."""
        self._cursor = 0

    def select_victim(
        self,
        frames: FrameTable,
        *,
        references: Sequence[int],
        position: int,
    ) -> int:
        """Return the first occupied frame at or after the cursor."""
        _require_full(frames)
        capacity = frames.capacity
        selected = self._cursor % capacity
        for _ in range(capacity):
            if frames.frame(selected).occupied:
                self._cursor = (selected + 1) % capacity
                return selected
            selected = (selected + 1) % capacity
        msg = "No occupied frames to evict"
        raise ReplacementError(msg)


# ---------------------------------------------------------------------------
# LRU Policy
# ---------------------------------------------------------------------------


class LRUPolicy:
    """Least Recently Used — evict the frame with the oldest timestamp.

    The frame timestamp is stamped on load and refreshed on every hit,
    so the smallest one is the page untouched for longest.  Ties go to
    the lowest frame index.
    """

    name = PolicyName.LRU

    def reset(self) -> None:
        """LRU keeps no state of its own."""

    def select_victim(
        self,
        frames: FrameTable,
        *,
        references: Sequence[int],
        position: int,
    ) -> int:
        """Return the occupied frame used least recently."""
        _require_full(frames)
        victim = min(frames.occupied(), key=lambda f: (f.load_time or 0, f.index))
        return victim.index


# ---------------------------------------------------------------------------
# Optimal Policy
# ---------------------------------------------------------------------------


class OptimalPolicy:
    """Belady's optimal algorithm — evict the page needed furthest ahead.

    Only the references *after* the faulting one are looked at.  A page
    that never appears again is treated as used at ``len + 1``, beyond
    any real position, so it is always the preferred victim.  Ties go
    to the lowest frame index.
    """

    name = PolicyName.OPTIMAL

    def reset(self) -> None:
        """Optimal keeps no state of its own."""

    def select_victim(
        self,
        frames: FrameTable,
        *,
        references: Sequence[int],
        position: int,
    ) -> int:
        """Return the frame whose page is next used furthest in the future."""
        _require_full(frames)
        never = len(references) + 1
        victim = -1
        farthest = -1
        for frame in frames.occupied():
            if frame.owner is None:
                continue
            page = frame.owner.page
            next_use = next(
                (j for j in range(position + 1, len(references)) if references[j] == page),
                never,
            )
            if next_use > farthest:
                farthest = next_use
                victim = frame.index
        return victim


# ---------------------------------------------------------------------------
# Clock Policy
# ---------------------------------------------------------------------------


class ClockPolicy:
    """Second Chance (Clock) — approximate LRU with reference bits.

    The hand sweeps the frames in a circle:
    - ref bit = 1 → clear it, move on (second chance)
    - ref bit = 0 → evict this frame, leave the hand just past it

    The sweep is bounded to two full laps: after one lap every bit has
    been cleared, so the second lap must find a victim.  If it somehow
    does not, the frame under the hand is evicted.
    """

    name = PolicyName.CLOCK

    def __init__(self) -> None:
        """Create a clock policy with the hand at frame 0."""
        self._hand = 0

    @property
    def hand(self) -> int:
        """Return the frame index under the hand."""
        return self._hand

    def reset(self) -> None:
        """Move the hand back to frame 0."""
        self._hand = 0

    def select_victim(
        self,
        frames: FrameTable,
        *,
        references: Sequence[int],
        position: int,
    ) -> int:
        """Sweep the hand until a frame with a clear reference bit turns up."""
        _require_full(frames)
        capacity = frames.capacity
        self._hand %= capacity
        for _ in range(capacity * 2):
            frame = frames.frame(self._hand)
            if frame.occupied:
                if not frame.reference_bit:
                    selected = self._hand
                    self._hand = (self._hand + 1) % capacity
                    return selected
                frames.clear_reference_bit(self._hand)
            self._hand = (self._hand + 1) % capacity
        return self._hand


_POLICIES: dict[PolicyName, type[FIFOPolicy | LRUPolicy | OptimalPolicy | ClockPolicy]] = {
    PolicyName.FIFO: FIFOPolicy,
    PolicyName.LRU: LRUPolicy,
    PolicyName.OPTIMAL: OptimalPolicy,
    PolicyName.CLOCK: ClockPolicy,
}


def create_policy(name: PolicyName | str) -> ReplacementPolicy:
    """Build a fresh policy by name.

    Args:
        name: A ``PolicyName`` or its string value (case-insensitive).

    Raises:
        ValueError: If the name is not a known policy.

    """
    try:
        key = PolicyName(str(name).lower())
    except ValueError:
        known = ", ".join(p.value for p in PolicyName)
        msg = f"Unknown replacement policy '{name}' (expected one of: {known})"
        raise ValueError(msg) from None
    return _POLICIES[key]()
