"""Address translation — logical addresses to physical addresses.

Paging::

    logical address  →  (page number, offset within page)
    page table[page] →  frame number
    physical address →  frame * frame_size + offset

Segmentation (pure, no paging underneath)::

    logical address  =  segment.base * 1 KB + offset
    offset < segment.limit * 1 KB  →  physical address = logical address
    otherwise                      →  segmentation fault

Faults here are *outcomes*, not errors: a page fault tells the caller
the page has to be demand-loaded first, an invalid address tells it
the program asked for something outside its address space.  Every
translation returns a ``Translation`` value and bumps a per-status
counter, so nothing is silently dropped.
"""

from collections import Counter
from dataclasses import dataclass
from enum import StrEnum

from py_memsim.config import KB, PAGE_SIZE
from py_memsim.memory.tables import PageFaultError, Process


class TranslationStatus(StrEnum):
    """How a translation attempt ended."""

    OK = "ok"
    PAGE_FAULT = "page_fault"
    INVALID_ADDRESS = "invalid_address"
    SEGMENT_FAULT = "segment_fault"


@dataclass(frozen=True)
class Translation:
    """The result of translating one address.

    Attributes:
        status: The outcome.
        pid: The process whose address space was used.
        logical_address: The address that was translated.
        page: Page number (paging only).
        offset: Offset within the page or segment.
        frame: Frame number when the page was resident.
        segment: Segment number (segmentation only).
        physical_address: The translated address when status is OK.

    """

    status: TranslationStatus
    pid: int
    logical_address: int
    offset: int
    page: int | None = None
    frame: int | None = None
    segment: int | None = None
    physical_address: int | None = None

    @property
    def ok(self) -> bool:
        """Return True if the address was translated."""
        return self.status is TranslationStatus.OK


class AddressTranslator:
    """Translate paged and segmented addresses for any process."""

    def __init__(self, *, page_size: int = PAGE_SIZE) -> None:
        """Create a translator.

        Args:
            page_size: Bytes per page; frames are the same size.

        """
        self._page_size = page_size
        self._outcomes: Counter[TranslationStatus] = Counter()

    @property
    def page_size(self) -> int:
        """Return the page (and frame) size in bytes."""
        return self._page_size

    @property
    def outcomes(self) -> dict[TranslationStatus, int]:
        """Return how many translations ended in each status."""
        return {status: self._outcomes[status] for status in TranslationStatus}

    def split(self, logical_address: int) -> tuple[int, int]:
        """Split a logical address into ``(page, offset)``."""
        return logical_address // self._page_size, logical_address % self._page_size

    def translate_address(self, process: Process, logical_address: int) -> Translation:
        """Translate a paged logical address.

        Args:
            process: The process whose page table to consult.
            logical_address: A byte address in the process's address space.

        Returns:
            The translation outcome.

        """
        page, offset = self.split(logical_address)
        if logical_address < 0:
            return self._record(
                Translation(
                    status=TranslationStatus.INVALID_ADDRESS,
                    pid=process.pid,
                    logical_address=logical_address,
                    page=page,
                    offset=offset,
                )
            )
        return self._translate(process, page=page, offset=offset, logical_address=logical_address)

    def translate_page(self, process: Process, page: int, offset: int = 0) -> Translation:
        """Translate an explicit page number and offset.

        Raises:
            ValueError: If the offset does not fit inside one page.

        """
        if not 0 <= offset < self._page_size:
            msg = f"Offset {offset} is outside a {self._page_size}-byte page"
            raise ValueError(msg)
        logical_address = page * self._page_size + offset
        return self._translate(process, page=page, offset=offset, logical_address=logical_address)

    def _translate(self, process: Process, *, page: int, offset: int, logical_address: int) -> Translation:
        if page not in process.page_table:
            status = TranslationStatus.INVALID_ADDRESS
            return self._record(
                Translation(
                    status=status,
                    pid=process.pid,
                    logical_address=logical_address,
                    page=page,
                    offset=offset,
                )
            )
        try:
            frame = process.page_table.translate(page)
        except PageFaultError:
            return self._record(
                Translation(
                    status=TranslationStatus.PAGE_FAULT,
                    pid=process.pid,
                    logical_address=logical_address,
                    page=page,
                    offset=offset,
                )
            )
        return self._record(
            Translation(
                status=TranslationStatus.OK,
                pid=process.pid,
                logical_address=logical_address,
                page=page,
                offset=offset,
                frame=frame,
                physical_address=frame * self._page_size + offset,
            )
        )

    def translate_segment(self, process: Process, segment: int, offset: int) -> Translation:
        """Translate a ``(segment, offset)`` pair under pure segmentation.

        The segment is not relocated: a legal access has a physical
        address equal to its logical address.

        Args:
            process: The process whose segment table to consult.
            segment: Segment number.
            offset: Byte offset from the segment base.

        Returns:
            The translation outcome.

        """
        entry = process.segment(segment)
        if entry is None or not entry.valid or offset < 0:
            base = entry.base * KB if entry is not None else 0
            return self._record(
                Translation(
                    status=TranslationStatus.INVALID_ADDRESS,
                    pid=process.pid,
                    logical_address=base + offset,
                    segment=segment,
                    offset=offset,
                )
            )
        logical_address = entry.base * KB + offset
        if offset >= entry.limit * KB:
            return self._record(
                Translation(
                    status=TranslationStatus.SEGMENT_FAULT,
                    pid=process.pid,
                    logical_address=logical_address,
                    segment=segment,
                    offset=offset,
                )
            )
        return self._record(
            Translation(
                status=TranslationStatus.OK,
                pid=process.pid,
                logical_address=logical_address,
                segment=segment,
                offset=offset,
                physical_address=logical_address,
            )
        )

    def reset_counters(self) -> None:
        """Zero the per-status counters."""
        self._outcomes.clear()

    def _record(self, translation: Translation) -> Translation:
        self._outcomes[translation.status] += 1
        return translation
