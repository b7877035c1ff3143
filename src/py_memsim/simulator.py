"""The simulation context and the page-reference simulator.

``SimulationContext`` bundles everything one simulation owns — the
frame table, the registered processes, the TLB, the address translator,
the running counters and the event log — so every operation receives
its state explicitly instead of reaching for globals.  The frame table
belongs to exactly one context: reconfiguring memory drops the old
table before installing the new one, and ``shutdown`` releases it.

``ReferenceSimulator`` drives a reference string through the context
one reference at a time::

    clock += 1
    page resident?   → hit:   touch frame + page table entry
    otherwise        → fault: free frame available?  load it there
                              else ask the policy for a victim,
                              invalidate the victim's page table entry,
                              load the page into the victim's frame

Each ``step()`` returns the post-step ``Snapshot`` so a driver can
render it and decide itself how long to wait before the next step.
Every run starts from a full reset, so re-running the same policy on the
same input reproduces the same hits, faults and victims.  The random
modify bits repeat too when the context was created with a seed.
"""

from __future__ import annotations

import random
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

from py_memsim.config import (
    DEFAULT_PROCESSES,
    FRAME_BOUNDS,
    MAX_PROCESSES,
    PAGE_BOUNDS,
    SEGMENT_COUNT_BOUNDS,
    SEGMENT_SIZE_BOUNDS,
    TLB_SIZE_BOUNDS,
    TRANSLATION_SAMPLE_BOUNDS,
    Bounds,
    ProcessSpec,
    clamp,
)
from py_memsim.logging import Logger, LogLevel
from py_memsim.memory.frames import AllocationError, Frame, FrameTable, Resident
from py_memsim.memory.replacement import PolicyName, ReplacementPolicy, create_policy
from py_memsim.memory.tables import (
    PageTable,
    PageTableEntry,
    Process,
    ProcessLimitError,
    SegmentTableEntry,
    contiguous_segments,
)
from py_memsim.memory.tlb import TLBCache, TLBEntry, TLBReport, TLBSimulation, synthetic_frame
from py_memsim.memory.translation import AddressTranslator, Translation, TranslationStatus
from py_memsim.workload import random_logical_address, random_segment_access

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Sequence

_MODIFY_PROBABILITY = 0.5


class SimulationFinishedError(Exception):
    """Raise when stepping past the end of the reference string."""


@dataclass(frozen=True)
class SimulationStats:
    """Hit and fault totals for a run."""

    hits: int
    faults: int

    @property
    def references(self) -> int:
        """Return the number of references processed."""
        return self.hits + self.faults

    @property
    def hit_ratio(self) -> float:
        """Return hits / references (0.0 before any reference)."""
        return self.hits / self.references if self.references else 0.0

    @property
    def fault_ratio(self) -> float:
        """Return faults / references (0.0 before any reference)."""
        return self.faults / self.references if self.references else 0.0


@dataclass(frozen=True)
class Snapshot:
    """Everything a driver needs to render the current state."""

    step: int
    hits: int
    faults: int
    frames: tuple[Frame, ...]
    page_tables: dict[int, tuple[PageTableEntry, ...]]
    segment_tables: dict[int, tuple[SegmentTableEntry, ...]]
    tlb: tuple[TLBEntry | None, ...]

    def to_dict(self) -> dict[str, Any]:
        """Convert to plain dicts and lists (JSON friendly)."""
        return asdict(self)


@dataclass(frozen=True)
class StepResult:
    """What happened on one reference.

    Attributes:
        position: Index of the reference in the reference string.
        page: The page referenced.
        hit: True if the page was already resident.
        frame: The frame that holds the page after the step.
        victim: The page evicted to make room, if any.
        snapshot: State after the step.

    """

    position: int
    page: int
    hit: bool
    frame: int
    victim: Resident | None
    snapshot: Snapshot


class SimulationContext:
    """All state belonging to one simulation.

    Processes are registered up front (the two textbook processes by
    default); physical memory must be configured before any reference
    run, exactly like the frames have to exist before a page can be
    loaded.
    """

    def __init__(
        self,
        *,
        frame_count: int | None = None,
        tlb_size: int | None = None,
        seed: int | None = None,
        processes: Iterable[ProcessSpec] = DEFAULT_PROCESSES,
    ) -> None:
        """Create a context.

        Args:
            frame_count: If given, configure physical memory immediately.
            tlb_size: TLB slot count (clamped; default when None).
            seed: Seed for every pseudo-random choice (modify bits).
            processes: Processes to register, in pid order.

        """
        self._logger = Logger()
        self._seed = seed
        self._rng = random.Random(seed)
        self._frames: FrameTable | None = None
        self._processes: list[Process] = []
        self._translator = AddressTranslator()
        self.clock = 0
        self.hits = 0
        self.faults = 0
        self._tlb = TLBCache(capacity=self.clamp_setting("TLB size", tlb_size, TLB_SIZE_BOUNDS))
        self._tlb_clock = 0
        for spec in processes:
            self.register(spec)
        if frame_count is not None:
            self.configure_memory(frame_count)

    # -- Accessors -------------------------------------------------------------

    @property
    def logger(self) -> Logger:
        """Return the event log."""
        return self._logger

    @property
    def rng(self) -> random.Random:
        """Return the random source for the current run."""
        return self._rng

    @property
    def translator(self) -> AddressTranslator:
        """Return the address translator."""
        return self._translator

    @property
    def tlb(self) -> TLBCache:
        """Return the TLB."""
        return self._tlb

    @property
    def has_memory(self) -> bool:
        """Return True if a frame table is installed."""
        return self._frames is not None

    @property
    def frames(self) -> FrameTable:
        """Return the frame table.

        Raises:
            AllocationError: If memory has not been configured.

        """
        if self._frames is None:
            msg = "Memory not initialized; configure frames first"
            raise AllocationError(msg)
        return self._frames

    @property
    def processes(self) -> tuple[Process, ...]:
        """Return the registered processes in pid order."""
        return tuple(self._processes)

    def process(self, pid: int) -> Process:
        """Return the process with *pid*.

        Raises:
            KeyError: If no such process is registered.

        """
        for proc in self._processes:
            if proc.pid == pid:
                return proc
        msg = f"No process with PID {pid}"
        raise KeyError(msg)

    def stats(self) -> SimulationStats:
        """Return the hit and fault counters."""
        return SimulationStats(hits=self.hits, faults=self.faults)

    # -- Configuration -----------------------------------------------------------

    def clamp_setting(self, label: str, value: int | None, bounds: Bounds) -> int:
        """Clamp a configuration value, logging a warning if it changed."""
        result = clamp(value, bounds)
        if value is not None and result != value:
            self._logger.log(
                LogLevel.WARNING,
                f"{label} {value} out of range {bounds.minimum}-{bounds.maximum}; using {result}",
                source="config",
                step=self.clock,
            )
        return result

    def configure_memory(self, frame_count: int | None) -> int:
        """Install a fresh frame table, replacing any existing one.

        All page table entries are invalidated because their frames no
        longer exist.

        Args:
            frame_count: Requested frame count (clamped).

        Returns:
            The frame count actually used.

        Raises:
            AllocationError: If the frame table cannot be allocated.

        """
        count = self.clamp_setting("Frame count", frame_count, FRAME_BOUNDS)
        self._release_frames()
        try:
            self._frames = FrameTable(capacity=count)
        except AllocationError:
            self._logger.log(LogLevel.ERROR, f"Allocation of {count} frames failed", source="memory")
            raise
        self._logger.log(LogLevel.INFO, f"Memory initialized with {count} frames", source="memory")
        return count

    def shutdown(self) -> None:
        """Release the frame table (no-op if none is installed)."""
        if self._frames is None:
            return
        self._release_frames()
        self._logger.log(LogLevel.INFO, "Memory released", source="memory")

    def _release_frames(self) -> None:
        self._frames = None
        for proc in self._processes:
            proc.page_table.invalidate_all()

    def configure_tlb(self, size: int | None) -> int:
        """Replace the TLB with an empty one of the given size (clamped)."""
        capacity = self.clamp_setting("TLB size", size, TLB_SIZE_BOUNDS)
        self._tlb = TLBCache(capacity=capacity)
        self._tlb_clock = 0
        self._logger.log(LogLevel.INFO, f"TLB configured with {capacity} entries", source="tlb")
        return capacity

    def register(self, spec: ProcessSpec) -> Process:
        """Register a process with an explicit segment layout.

        Page count and segment limits are clamped; extra segments are
        dropped.

        Raises:
            ProcessLimitError: If the process table is full.

        """
        if len(self._processes) >= MAX_PROCESSES:
            msg = f"Cannot add more processes; maximum is {MAX_PROCESSES}"
            raise ProcessLimitError(msg)
        page_count = self.clamp_setting("Page count", spec.page_count, PAGE_BOUNDS)
        layout = list(spec.segments[: SEGMENT_COUNT_BOUNDS.maximum])
        segments = [
            SegmentTableEntry(
                segment=number,
                base=base,
                limit=self.clamp_setting("Segment size", limit, SEGMENT_SIZE_BOUNDS),
            )
            for number, (base, limit) in enumerate(layout)
        ]
        page_table = PageTable(
            page_count=page_count,
            modify_bits=[self._rng.random() < _MODIFY_PROBABILITY for _ in range(page_count)],
        )
        proc = Process(pid=len(self._processes) + 1, name=spec.name, page_table=page_table, segments=segments)
        self._processes.append(proc)
        self._logger.log(
            LogLevel.INFO,
            f"Registered {proc.name} (PID {proc.pid}) with {page_count} pages and {len(segments)} segments",
            source="memory",
        )
        return proc

    def add_process(self, name: str, *, page_count: int, segment_sizes: Sequence[int]) -> Process:
        """Register a process whose segments are laid out back to back.

        Args:
            name: Process name (defaults to "Process" when blank).
            page_count: Number of pages (clamped).
            segment_sizes: Size of each segment in KB (count and sizes
                clamped; missing segments get the default size).

        Raises:
            ProcessLimitError: If the process table is full.

        """
        count = self.clamp_setting("Segment count", len(segment_sizes), SEGMENT_COUNT_BOUNDS)
        sizes = list(segment_sizes[:count])
        sizes += [SEGMENT_SIZE_BOUNDS.default] * (count - len(sizes))
        limits = [self.clamp_setting("Segment size", size, SEGMENT_SIZE_BOUNDS) for size in sizes]
        layout = tuple((s.base, s.limit) for s in contiguous_segments(limits))
        return self.register(ProcessSpec(name=name.strip() or "Process", page_count=page_count, segments=layout))

    # -- Runs --------------------------------------------------------------------

    def begin_run(self) -> None:
        """Reset frames, page tables and counters for a new run."""
        self.frames.reset()
        for proc in self._processes:
            proc.page_table.invalidate_all()
        self.clock = 0
        self.hits = 0
        self.faults = 0
        self._rng = random.Random(self._seed)

    def snapshot(self) -> Snapshot:
        """Capture the current state for rendering."""
        frames = tuple(self._frames.frames) if self._frames is not None else ()
        return Snapshot(
            step=self.clock,
            hits=self.hits,
            faults=self.faults,
            frames=frames,
            page_tables={p.pid: tuple(p.page_table.entries) for p in self._processes},
            segment_tables={p.pid: p.segments for p in self._processes},
            tlb=tuple(self._tlb.slots),
        )

    # -- Translation ---------------------------------------------------------------

    def translate(self, pid: int, logical_address: int) -> Translation:
        """Translate a paged logical address for a process."""
        result = self._translator.translate_address(self.process(pid), logical_address)
        self._log_translation(result)
        return result

    def translate_segment(self, pid: int, segment: int, offset: int) -> Translation:
        """Translate a ``(segment, offset)`` pair for a process."""
        result = self._translator.translate_segment(self.process(pid), segment, offset)
        self._log_translation(result)
        return result

    def sample_translations(
        self,
        count: int | None,
        *,
        rng: random.Random,
        segmented: bool = False,
    ) -> list[Translation]:
        """Translate random addresses of randomly chosen processes.

        Paged samples fall anywhere in the process's address space;
        segmented samples use offsets up to twice the segment limit, so
        both legal accesses and segmentation faults turn up.

        Args:
            count: Number of samples (clamped).
            rng: Source of randomness for the choices.
            segmented: Sample ``(segment, offset)`` pairs instead of
                paged addresses.

        Raises:
            AllocationError: If paged samples are requested before memory
                has been configured.
            KeyError: If no process is registered.

        """
        if not self._processes:
            msg = "No processes registered"
            raise KeyError(msg)
        if not segmented and not self.has_memory:
            msg = "Memory not initialized; configure frames first"
            raise AllocationError(msg)
        results: list[Translation] = []
        for _ in range(self.clamp_setting("Translation count", count, TRANSLATION_SAMPLE_BOUNDS)):
            proc = self._processes[rng.randrange(len(self._processes))]
            if segmented:
                segment, offset = random_segment_access(proc, rng=rng)
                results.append(self.translate_segment(proc.pid, segment, offset))
            else:
                address = random_logical_address(proc, page_size=self._translator.page_size, rng=rng)
                results.append(self.translate(proc.pid, address))
        return results

    def _log_translation(self, result: Translation) -> None:
        level = LogLevel.DEBUG if result.ok else LogLevel.WARNING
        where = f"segment {result.segment}" if result.segment is not None else f"page {result.page}"
        self._logger.log(
            level,
            f"PID {result.pid} address {result.logical_address} ({where}, offset {result.offset}): {result.status}",
            source="translator",
            step=self.clock,
        )

    def translate_with_tlb(
        self,
        page: int,
        *,
        offset: int = 0,
        loader: ReferenceSimulator | None = None,
    ) -> tuple[Translation, bool]:
        """Translate a page of the simulated process through the TLB.

        A TLB hit is re-validated against the page table; a stale entry
        is invalidated and handled as a miss.  On a miss the full
        translation runs; a page fault is resolved by *loader* (if one
        is given) before the mapping is cached.

        Args:
            page: Page number of the loader's process (PID 1 without one).
            offset: Byte offset within the page.
            loader: Simulator used to demand-load faulting pages.

        Returns:
            The translation and whether it was served by the TLB.

        """
        proc = loader.process if loader is not None else self.process(1)

        def is_current(cached: TLBEntry) -> bool:
            entry = proc.page_table.entry(page) if page in proc.page_table else None
            if entry is not None and entry.valid and entry.frame == cached.frame:
                return True
            self._logger.log(LogLevel.INFO, f"Stale TLB entry for page {page} dropped", source="tlb", step=self.clock)
            return False

        self._tlb_clock += 1
        if self._tlb.lookup(page, timestamp=self._tlb_clock, is_current=is_current) is not None:
            result = self._translator.translate_page(proc, page, offset)
            self._logger.log(LogLevel.DEBUG, f"TLB hit for page {page}", source="tlb", step=self.clock)
            return result, True
        result = self._translator.translate_page(proc, page, offset)
        if result.status is TranslationStatus.PAGE_FAULT and loader is not None:
            loader.access(page)
            result = self._translator.translate_page(proc, page, offset)
        if result.ok and result.frame is not None:
            evicted = self._tlb.insert(page, result.frame, timestamp=self._tlb_clock)
            if evicted is not None:
                self._logger.log(
                    LogLevel.DEBUG,
                    f"TLB evicted page {evicted.page} for page {page}",
                    source="tlb",
                    step=self.clock,
                )
        return result, False

    def run_tlb_simulation(
        self,
        references: Iterable[int],
        *,
        hit_time: int,
        miss_time: int,
        size: int | None = None,
    ) -> TLBReport:
        """Replay a reference string through a fresh TLB.

        Misses are resolved with ``synthetic_frame`` so the demo does not
        depend on which pages happen to be resident.
        """
        if size is not None:
            self.configure_tlb(size)
        else:
            self._tlb.clear()
        simulation = TLBSimulation(self._tlb, resolve=synthetic_frame, hit_time=hit_time, miss_time=miss_time)
        report = simulation.run(references)
        self._logger.log(
            LogLevel.INFO,
            f"TLB run: {report.hits} hits, {report.misses} misses, "
            f"avg {report.average_access_time:.2f}ns, speedup {report.speedup:.2f}x",
            source="tlb",
        )
        return report


class ReferenceSimulator:
    """Step a reference string through a context with one policy.

    The policy is chosen once, at construction.  References outside the
    process's address space are clamped into it.
    """

    def __init__(
        self,
        context: SimulationContext,
        *,
        policy: PolicyName | str | ReplacementPolicy,
        references: Sequence[int],
        pid: int = 1,
    ) -> None:
        """Create a simulator and reset the context for a new run.

        Args:
            context: The simulation to drive.
            policy: A policy name or an already-built policy.
            references: The page reference string.
            pid: Process whose pages are referenced.

        Raises:
            AllocationError: If the context has no frame table.
            KeyError: If the process does not exist.
            ValueError: If the policy name is unknown.

        """
        self._context = context
        self._policy = create_policy(policy) if isinstance(policy, str) else policy
        self._process = context.process(pid)
        page_bounds = Bounds(minimum=0, maximum=self._process.page_count - 1, default=0)
        self._references = [context.clamp_setting("Page reference", p, page_bounds) for p in references]
        self._position = 0
        self.reset()

    @property
    def policy(self) -> ReplacementPolicy:
        """Return the replacement policy for this run."""
        return self._policy

    @property
    def process(self) -> Process:
        """Return the process being simulated."""
        return self._process

    @property
    def references(self) -> list[int]:
        """Return the (clamped) reference string."""
        return list(self._references)

    @property
    def position(self) -> int:
        """Return the index of the next reference."""
        return self._position

    @property
    def finished(self) -> bool:
        """Return True once every reference has been processed."""
        return self._position >= len(self._references)

    @property
    def stats(self) -> SimulationStats:
        """Return the counters so far."""
        return self._context.stats()

    def reset(self) -> None:
        """Start over: free frames, invalidate pages, rewind the policy."""
        self._context.begin_run()
        self._policy.reset()
        self._position = 0
        self._context.logger.log(
            LogLevel.INFO,
            f"Starting {self._policy.name} run over {len(self._references)} references "
            f"with {self._context.frames.capacity} frames",
            source="simulator",
        )

    def step(self) -> StepResult:
        """Process the next reference.

        Raises:
            SimulationFinishedError: If the reference string is exhausted.

        """
        if self.finished:
            msg = "Reference string exhausted"
            raise SimulationFinishedError(msg)
        position = self._position
        self._position += 1
        result = self._reference(self._references[position], position=position)
        if self.finished:
            stats = self.stats
            self._context.logger.log(
                LogLevel.INFO,
                f"{self._policy.name} finished: {stats.hits} hits, {stats.faults} faults, "
                f"hit ratio {stats.hit_ratio:.2f}",
                source="simulator",
                step=self._context.clock,
            )
        return result

    def __iter__(self) -> Iterator[StepResult]:
        """Yield the remaining steps."""
        while not self.finished:
            yield self.step()

    def run(self) -> SimulationStats:
        """Reset, process the whole reference string, and return the totals."""
        self.reset()
        for _ in self:
            pass
        return self.stats

    def access(self, page: int) -> StepResult:
        """Reference a page outside the reference string (demand load).

        Optimal sees no future for such an access.
        """
        return self._reference(page, position=len(self._references))

    def _reference(self, page: int, *, position: int) -> StepResult:
        ctx = self._context
        frames = ctx.frames
        ctx.clock += 1
        now = ctx.clock
        pid = self._process.pid
        victim: Resident | None = None
        frame = frames.find(pid=pid, page=page)
        hit = frame is not None
        if frame is not None:
            ctx.hits += 1
            frames.touch(frame, timestamp=now)
            self._process.page_table.touch(page, timestamp=now)
            ctx.logger.log(LogLevel.DEBUG, f"Hit: page {page} in frame {frame}", source="simulator", step=now)
        else:
            ctx.faults += 1
            free = frames.find_free_frame()
            if free is not None:
                frame = free
                ctx.logger.log(
                    LogLevel.INFO,
                    f"Fault: loading page {page} into free frame {frame}",
                    source="simulator",
                    step=now,
                )
            else:
                frame = self._policy.select_victim(frames, references=self._references, position=position)
                victim = frames.evict(frame)
                ctx.process(victim.pid).page_table.unmap(victim.page)
                ctx.logger.log(
                    LogLevel.INFO,
                    f"Fault: {self._policy.name} replaced page {victim.page} with page {page} in frame {frame}",
                    source="replacement",
                    step=now,
                )
            modified = ctx.rng.random() < _MODIFY_PROBABILITY
            frames.load_page(frame, pid=pid, page=page, timestamp=now, modified=modified)
            self._process.page_table.map(page, frame=frame, timestamp=now)
        return StepResult(
            position=position,
            page=page,
            hit=hit,
            frame=frame,
            victim=victim,
            snapshot=ctx.snapshot(),
        )
