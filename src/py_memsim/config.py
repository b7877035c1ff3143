"""Configuration limits and defaults for the simulator.

The simulator is meant to be poked at by students, so it never refuses a
number: anything outside the documented range is **clamped** to the
nearest bound (both bounds inclusive) and the simulation carries on.
The caller can tell that clamping happened because the returned value
differs from the requested one; ``SimulationContext`` records a WARNING
log entry whenever that happens.

Units:
    Pages, frames and segments are measured in KB, exactly as in the
    classic textbook exercises.  A page (and therefore a frame) is
    ``PAGE_SIZE_KB`` KB; addresses are byte addresses.
"""

from dataclasses import dataclass

KB = 1024

PAGE_SIZE_KB = 4
PAGE_SIZE = PAGE_SIZE_KB * KB
"""Bytes per page.  Frames are the same size as pages."""

MEMORY_SIZE_KB = 64

MAX_PROCESSES = 5

DEFAULT_TLB_HIT_TIME = 10
"""Nanoseconds for a TLB search."""

DEFAULT_MEMORY_ACCESS_TIME = 100
"""Nanoseconds for a main-memory page-table walk."""

DEFAULT_LOCALITY = 2 / 3
"""Probability that a generated reference stays near the previous one."""


@dataclass(frozen=True)
class Bounds:
    """An inclusive integer range with a fallback value.

    Attributes:
        minimum: Smallest accepted value.
        maximum: Largest accepted value.
        default: Value used when the caller supplies nothing.

    """

    minimum: int
    maximum: int
    default: int

    def __contains__(self, value: object) -> bool:
        """Return True if *value* is an int inside the range."""
        return isinstance(value, int) and self.minimum <= value <= self.maximum


FRAME_BOUNDS = Bounds(minimum=3, maximum=20, default=5)
PAGE_BOUNDS = Bounds(minimum=1, maximum=50, default=5)
SEGMENT_COUNT_BOUNDS = Bounds(minimum=1, maximum=8, default=2)
SEGMENT_SIZE_BOUNDS = Bounds(minimum=1, maximum=20, default=4)
REFERENCE_LENGTH_BOUNDS = Bounds(minimum=5, maximum=30, default=10)
TLB_SIZE_BOUNDS = Bounds(minimum=2, maximum=32, default=4)
TLB_REFERENCE_LENGTH_BOUNDS = Bounds(minimum=5, maximum=20, default=10)
TRANSLATION_SAMPLE_BOUNDS = Bounds(minimum=1, maximum=20, default=3)


def clamp(value: int | None, bounds: Bounds) -> int:
    """Clamp *value* into *bounds*.

    Args:
        value: The requested value, or None to take the default.
        bounds: The inclusive range to clamp into.

    Returns:
        The value itself if in range, otherwise the nearest bound.

    """
    if value is None:
        return bounds.default
    return max(bounds.minimum, min(bounds.maximum, value))


@dataclass(frozen=True)
class ProcessSpec:
    """Definition of a process before it is registered.

    Attributes:
        name: Human-readable label.
        page_count: Number of pages in the logical address space.
        segments: ``(base_kb, limit_kb)`` pairs, one per segment.

    """

    name: str
    page_count: int
    segments: tuple[tuple[int, int], ...]


DEFAULT_PROCESSES = (
    ProcessSpec(name="Process A", page_count=8, segments=((0, 8), (8, 12), (20, 4))),
    ProcessSpec(name="Process B", page_count=6, segments=((0, 16), (16, 8))),
)
