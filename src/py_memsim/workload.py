"""Workload generation — reference strings and demo addresses.

Real programs do not touch pages uniformly at random: loops and
sequential data access keep hitting the same few pages (**locality of
reference**).  The generator models that with one knob: with
probability ``locality`` the next reference stays within one page of
the previous one, otherwise it jumps anywhere in the address space.

Every function takes an explicit ``random.Random`` so the same seed
always yields the same workload.
"""

import random

from py_memsim.config import DEFAULT_LOCALITY, KB
from py_memsim.memory.tables import Process


def generate_reference_string(
    length: int,
    *,
    page_count: int,
    rng: random.Random,
    locality: float = DEFAULT_LOCALITY,
) -> list[int]:
    """Generate page references with locality.

    Args:
        length: Number of references.
        page_count: References fall in ``0 .. page_count - 1``.
        rng: Source of randomness.
        locality: Probability that a reference is within one page of the
            previous one.

    Returns:
        The reference string.

    Raises:
        ValueError: If page_count is not positive or locality is not a
            probability.

    """
    if page_count <= 0:
        msg = f"page_count must be positive, got {page_count}"
        raise ValueError(msg)
    if not 0.0 <= locality <= 1.0:
        msg = f"locality must be between 0 and 1, got {locality}"
        raise ValueError(msg)
    references: list[int] = []
    for i in range(length):
        if i > 0 and rng.random() < locality:
            nearby = references[-1] + rng.randint(-1, 1)
            references.append(max(0, min(page_count - 1, nearby)))
        else:
            references.append(rng.randrange(page_count))
    return references


def generate_tlb_references(length: int, *, rng: random.Random, page_span: int = 10) -> list[int]:
    """Generate uniformly random page references in ``0 .. page_span - 1``."""
    return [rng.randrange(page_span) for _ in range(length)]


def random_logical_address(process: Process, *, page_size: int, rng: random.Random) -> int:
    """Pick a byte address inside the process's paged address space."""
    return rng.randrange(process.page_count * page_size)


def random_segment_access(process: Process, *, rng: random.Random) -> tuple[int, int]:
    """Pick a ``(segment, offset)`` pair for a segmentation demo.

    The offset ranges up to twice the segment's limit, so roughly half of
    the accesses land out of bounds.
    """
    segment = rng.randrange(len(process.segments))
    limit = process.segments[segment].limit * KB
    return segment, rng.randrange(limit * 2)
