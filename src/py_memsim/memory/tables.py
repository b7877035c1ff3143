"""Page tables, segment tables, and the processes that own them.

Each process has its own **page table** — one entry per page of its
logical address space — and a **segment table** describing the
variable-size regions (code, data, stack, ...) the same address space
can be carved into.

A page table entry says whether the page is currently resident
(*valid*), which frame holds it, and carries the recency/reference/
modify bits the kernel keeps.  The frame table (see ``frames``) is the
other half of the picture: an entry is valid exactly when some frame
records that page as its owner, and the simulator keeps both sides in
step.

Design choices:
    - ``frame`` and ``last_used`` are ``int | None`` — an invalid entry
      has no frame, rather than frame ``-1``.
    - **PageFaultError** is raised by ``PageTable.translate`` on access
      to a non-resident page, the way the MMU traps into the kernel.
      The address translator turns it back into an outcome value.
    - Segment table entries are frozen: segments never change after the
      process is created.
"""

from dataclasses import dataclass, replace


class PageFaultError(Exception):
    """Raised when a page has no resident frame."""


class ProcessLimitError(Exception):
    """Raise when no more processes can be registered."""


@dataclass
class PageTableEntry:
    """Residency and bookkeeping for one page of a process."""

    page: int
    valid: bool = False
    frame: int | None = None
    last_used: int | None = None
    reference_bit: bool = False
    modify_bit: bool = False


@dataclass(frozen=True)
class SegmentTableEntry:
    """A segment's placement in the logical address space.

    Attributes:
        segment: Segment number.
        base: Start of the segment, in KB.
        limit: Size of the segment, in KB.
        valid: Whether the segment may be accessed at all.

    """

    segment: int
    base: int
    limit: int
    valid: bool = True

    @property
    def end(self) -> int:
        """Return the first KB past the end of the segment."""
        return self.base + self.limit


class PageTable:
    """Map each page of one process to its residency state."""

    def __init__(self, *, page_count: int, modify_bits: list[bool] | None = None) -> None:
        """Create a page table with every page invalid.

        Args:
            page_count: Number of pages in the address space.
            modify_bits: Initial modify bit per page (all clear if None).

        """
        bits = modify_bits or [False] * page_count
        self._entries = [PageTableEntry(page=i, modify_bit=bits[i]) for i in range(page_count)]

    def __len__(self) -> int:
        """Return the number of pages in the address space."""
        return len(self._entries)

    def __contains__(self, page: object) -> bool:
        """Return True if *page* is a page number of this address space."""
        return isinstance(page, int) and 0 <= page < len(self._entries)

    @property
    def entries(self) -> list[PageTableEntry]:
        """Return copies of all entries in page order."""
        return [replace(e) for e in self._entries]

    def entry(self, page: int) -> PageTableEntry:
        """Return a copy of one entry.

        Raises:
            IndexError: If the page is outside the address space.

        """
        if page not in self:
            msg = f"Page {page} is outside the address space (0-{len(self._entries) - 1})"
            raise IndexError(msg)
        return replace(self._entries[page])

    def translate(self, page: int) -> int:
        """Return the frame holding *page*.

        Raises:
            IndexError: If the page is outside the address space.
            PageFaultError: If the page is not resident.

        """
        entry = self.entry(page)
        if not entry.valid or entry.frame is None:
            msg = f"Page {page} is not resident"
            raise PageFaultError(msg)
        return entry.frame

    def map(self, page: int, *, frame: int, timestamp: int) -> None:
        """Mark a page resident in *frame* and referenced at *timestamp*."""
        entry = self._entries[page]
        entry.valid = True
        entry.frame = frame
        entry.last_used = timestamp
        entry.reference_bit = True

    def touch(self, page: int, *, timestamp: int) -> None:
        """Record a hit on a resident page (no-op for an invalid entry)."""
        entry = self._entries[page]
        if entry.valid:
            entry.last_used = timestamp
            entry.reference_bit = True

    def unmap(self, page: int) -> None:
        """Mark a page non-resident (it was evicted)."""
        entry = self._entries[page]
        entry.valid = False
        entry.frame = None

    def invalidate_all(self) -> None:
        """Reset every entry to non-resident, keeping modify bits."""
        for entry in self._entries:
            entry.valid = False
            entry.frame = None
            entry.last_used = None
            entry.reference_bit = False

    def resident_pages(self) -> list[int]:
        """Return the page numbers currently marked valid."""
        return [e.page for e in self._entries if e.valid]


class Process:
    """A process as far as memory management is concerned.

    Only the pieces the memory subsystem needs: identity, a page table,
    and a segment table.
    """

    def __init__(
        self,
        *,
        pid: int,
        name: str,
        page_table: PageTable,
        segments: list[SegmentTableEntry],
    ) -> None:
        """Create a process with an existing page table and segments.

        Args:
            pid: Process identifier (1-based).
            name: Human-readable label.
            page_table: The process's page table.
            segments: The process's segment table, in segment order.

        """
        self._pid = pid
        self._name = name
        self._page_table = page_table
        self._segments = tuple(segments)

    @property
    def pid(self) -> int:
        """Return the process identifier."""
        return self._pid

    @property
    def name(self) -> str:
        """Return the process name."""
        return self._name

    @property
    def page_table(self) -> PageTable:
        """Return the process's page table."""
        return self._page_table

    @property
    def page_count(self) -> int:
        """Return the number of pages in the address space."""
        return len(self._page_table)

    @property
    def segments(self) -> tuple[SegmentTableEntry, ...]:
        """Return the segment table."""
        return self._segments

    def segment(self, number: int) -> SegmentTableEntry | None:
        """Return segment *number*, or None if the process has no such segment."""
        if 0 <= number < len(self._segments):
            return self._segments[number]
        return None

    def __repr__(self) -> str:
        """Return a debug representation."""
        return f"Process(pid={self._pid}, name={self._name!r}, pages={self.page_count})"


def contiguous_segments(limits: list[int]) -> list[SegmentTableEntry]:
    """Lay segments out back to back, starting at base 0.

    Args:
        limits: Segment sizes in KB, in segment order.

    Returns:
        Segment table entries whose bases are the running total of
        the previous limits.

    """
    segments: list[SegmentTableEntry] = []
    base = 0
    for number, limit in enumerate(limits):
        segments.append(SegmentTableEntry(segment=number, base=base, limit=limit))
        base += limit
    return segments
