"""Physical memory — the frame table.

Physical memory is divided into fixed-size **frames**.  Each frame is
either free or holds exactly one page of one process.  The frame table
is the single place where frame state changes: loading a page, marking
a hit, clearing a reference bit for the Clock policy, and evicting.
Everything else (policies, the simulator, the driver) only reads it.

Per-frame bookkeeping mirrors what the hardware and kernel keep:

    owner          (pid, page) currently resident, or None when free
    reference bit  set on load and on every hit; Clock clears it
    modify bit     whether the page was written (display only)
    load time      last time the page was loaded *or hit*; LRU key
    age counter    reserved for aging policies, never read here

Why ``owner: Resident | None`` instead of ``page = -1``?
    A free frame simply has no owner.  There is no magic number to
    compare against, so "is this frame free?" cannot be answered wrong.
"""

from dataclasses import dataclass, replace


class AllocationError(Exception):
    """Raise when a frame table cannot be created or is not available."""


@dataclass(frozen=True)
class Resident:
    """Identify a page of a process — the owner of an occupied frame."""

    pid: int
    page: int

    def __str__(self) -> str:
        """Format as ``P<pid>:<page>``."""
        return f"P{self.pid}:{self.page}"


@dataclass
class Frame:
    """One physical frame and its bookkeeping bits."""

    index: int
    owner: Resident | None = None
    reference_bit: bool = False
    modify_bit: bool = False
    load_time: int | None = None
    age_counter: int = 0

    @property
    def occupied(self) -> bool:
        """Return True if a page is resident in this frame."""
        return self.owner is not None


class FrameTable:
    """The fixed-capacity array of physical frames.

    Capacity is set at construction and never changes; reconfiguring
    memory means building a new table.
    """

    def __init__(self, *, capacity: int) -> None:
        """Create a frame table with every frame free.

        Args:
            capacity: Number of physical frames.

        Raises:
            AllocationError: If the table cannot be allocated.

        """
        if capacity <= 0:
            msg = f"Cannot allocate a frame table with {capacity} frames"
            raise AllocationError(msg)
        try:
            self._frames = [Frame(index=i) for i in range(capacity)]
        except MemoryError as exc:
            msg = f"Cannot allocate a frame table with {capacity} frames"
            raise AllocationError(msg) from exc

    @property
    def capacity(self) -> int:
        """Return the number of physical frames."""
        return len(self._frames)

    @property
    def used_count(self) -> int:
        """Return the number of occupied frames."""
        return sum(1 for f in self._frames if f.occupied)

    @property
    def frames(self) -> list[Frame]:
        """Return copies of all frames in index order."""
        return [replace(f) for f in self._frames]

    def frame(self, index: int) -> Frame:
        """Return a copy of a single frame."""
        return replace(self._frames[index])

    def occupied(self) -> list[Frame]:
        """Return copies of the occupied frames in index order."""
        return [replace(f) for f in self._frames if f.occupied]

    def find_free_frame(self) -> int | None:
        """Return the lowest-index free frame, or None if memory is full."""
        for frame in self._frames:
            if not frame.occupied:
                return frame.index
        return None

    def find(self, *, pid: int, page: int) -> int | None:
        """Return the frame holding ``(pid, page)``, or None if not resident."""
        wanted = Resident(pid=pid, page=page)
        for frame in self._frames:
            if frame.owner == wanted:
                return frame.index
        return None

    def load_page(
        self,
        frame: int,
        *,
        pid: int,
        page: int,
        timestamp: int,
        modified: bool = False,
    ) -> None:
        """Make a page resident in a free frame.

        Args:
            frame: Index of the target frame (must be free).
            pid: Owning process.
            page: Page number within that process.
            timestamp: Current simulation clock.
            modified: Initial modify bit.

        Raises:
            ValueError: If the frame is occupied or the page is already
                resident somewhere else.

        """
        target = self._frames[frame]
        if target.occupied:
            msg = f"Frame {frame} is occupied by {target.owner}"
            raise ValueError(msg)
        existing = self.find(pid=pid, page=page)
        if existing is not None:
            msg = f"P{pid}:{page} is already resident in frame {existing}"
            raise ValueError(msg)
        target.owner = Resident(pid=pid, page=page)
        target.reference_bit = True
        target.modify_bit = modified
        target.load_time = timestamp

    def touch(self, frame: int, *, timestamp: int) -> None:
        """Record a hit: set the reference bit and refresh the timestamp."""
        target = self._frames[frame]
        if not target.occupied:
            msg = f"Frame {frame} is free"
            raise ValueError(msg)
        target.reference_bit = True
        target.load_time = timestamp

    def clear_reference_bit(self, frame: int) -> None:
        """Clear a frame's reference bit (Clock's second chance)."""
        self._frames[frame].reference_bit = False

    def evict(self, frame: int) -> Resident:
        """Free a frame and return the page that was resident in it.

        Raises:
            ValueError: If the frame is already free.

        """
        target = self._frames[frame]
        owner = target.owner
        if owner is None:
            msg = f"Frame {frame} is already free"
            raise ValueError(msg)
        target.owner = None
        target.reference_bit = False
        target.modify_bit = False
        target.load_time = None
        return owner

    def reset(self) -> None:
        """Free every frame."""
        self._frames = [Frame(index=i) for i in range(len(self._frames))]
