"""Memory subsystem — frames, page tables, replacement, translation, TLB.

Re-exports public symbols so callers can write::

    from py_memsim.memory import FrameTable, LRUPolicy, TLBCache
"""

from py_memsim.memory.frames import AllocationError, Frame, FrameTable, Resident
from py_memsim.memory.replacement import (
    ClockPolicy,
    FIFOPolicy,
    LRUPolicy,
    OptimalPolicy,
    PolicyName,
    ReplacementError,
    ReplacementPolicy,
    create_policy,
)
from py_memsim.memory.tables import (
    PageFaultError,
    PageTable,
    PageTableEntry,
    Process,
    ProcessLimitError,
    SegmentTableEntry,
)
from py_memsim.memory.tlb import TLBCache, TLBEntry, TLBReport, TLBSimulation
from py_memsim.memory.translation import AddressTranslator, Translation, TranslationStatus

__all__ = [
    "AddressTranslator",
    "AllocationError",
    "ClockPolicy",
    "FIFOPolicy",
    "Frame",
    "FrameTable",
    "LRUPolicy",
    "OptimalPolicy",
    "PageFaultError",
    "PageTable",
    "PageTableEntry",
    "PolicyName",
    "Process",
    "ProcessLimitError",
    "ReplacementError",
    "ReplacementPolicy",
    "Resident",
    "SegmentTableEntry",
    "TLBCache",
    "TLBEntry",
    "TLBReport",
    "TLBSimulation",
    "Translation",
    "TranslationStatus",
    "create_policy",
]
