"""Simulation event log.

Every interesting thing the simulator does (a frame table being
allocated, a page fault, a victim being chosen, a configuration value
being clamped) is recorded as a structured entry.  The driver reads the
log back to narrate what happened; nothing is printed from the core.

- **LogLevel** — severity levels ordered for filtering (DEBUG < ERROR).
- **LogEntry** — a single structured record (level, message, source, step).
- **Logger** — an append-only log with filtering, per-step lookup and
  clearing.

Design choices:
    - **IntEnum for levels** so they compare naturally with ``<``.
    - **Frozen dataclass for entries** — log records should be immutable.
    - **The step is part of the record** so a driver can line entries up
      with the snapshot produced by the same simulation step.
"""

from dataclasses import dataclass
from enum import IntEnum


class LogLevel(IntEnum):
    """Severity levels for log entries."""

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3


@dataclass(frozen=True)
class LogEntry:
    """A single structured log record.

    Attributes:
        level: The severity of this event.
        message: A human-readable description of what happened.
        source: The component that generated the event (e.g. "tlb").
        step: The simulation clock value when the event occurred
            (0 outside of a reference run).

    """

    level: LogLevel
    message: str
    source: str
    step: int = 0

    def __str__(self) -> str:
        """Format as ``[LEVEL] source@step: message``."""
        return f"[{self.level.name}] {self.source}@{self.step}: {self.message}"


class Logger:
    """Append-only log buffer with filtering."""

    def __init__(self) -> None:
        """Create an empty logger."""
        self._entries: list[LogEntry] = []

    @property
    def entries(self) -> list[LogEntry]:
        """Return all log entries in chronological order."""
        return list(self._entries)

    def log(
        self,
        level: LogLevel,
        message: str,
        *,
        source: str,
        step: int = 0,
    ) -> None:
        """Append a new entry to the log.

        Args:
            level: Severity of the event.
            message: Human-readable event description.
            source: Component that generated the event.
            step: Simulation clock value associated with the event.

        """
        self._entries.append(LogEntry(level=level, message=message, source=source, step=step))

    def filter(
        self,
        *,
        min_level: LogLevel | None = None,
        source: str | None = None,
    ) -> list[LogEntry]:
        """Return entries matching the given criteria.

        Args:
            min_level: If set, only return entries at or above this level.
            source: If set, only return entries from this source.

        Returns:
            A filtered list of log entries.

        """
        result = self._entries
        if min_level is not None:
            result = [e for e in result if e.level >= min_level]
        if source is not None:
            result = [e for e in result if e.source == source]
        return result if result is not self._entries else list(result)

    def __len__(self) -> int:
        """Return the number of entries recorded so far."""
        return len(self._entries)

    def for_step(self, step: int, *, start: int = 0) -> list[LogEntry]:
        """Return the entries recorded at simulation step *step*.

        The clock restarts with every run, so callers interested in a
        single run pass ``start=len(logger)`` taken when the run began.

        Args:
            step: Simulation clock value to match.
            start: Index of the first entry to consider.

        Returns:
            Matching entries in chronological order.

        """
        return [e for e in self._entries[start:] if e.step == step]

    def clear(self) -> None:
        """Remove all log entries."""
        self._entries.clear()
