"""Tests for reference string and address generation."""

import random

import pytest

from py_memsim.config import KB, PAGE_SIZE
from py_memsim.memory.tables import PageTable, Process, contiguous_segments
from py_memsim.workload import (
    generate_reference_string,
    generate_tlb_references,
    random_logical_address,
    random_segment_access,
)

LENGTH = 200
PAGES = 8
SEED = 7


def _process() -> Process:
    return Process(pid=1, name="w", page_table=PageTable(page_count=PAGES), segments=contiguous_segments([4, 8]))


class TestReferenceString:
    """Verify reference string generation."""

    def test_length_and_range(self) -> None:
        """Every reference should be a valid page number."""
        refs = generate_reference_string(LENGTH, page_count=PAGES, rng=random.Random(SEED))
        assert len(refs) == LENGTH
        assert all(0 <= p < PAGES for p in refs)

    def test_same_seed_same_string(self) -> None:
        """Generation should be reproducible from a seed."""
        first = generate_reference_string(LENGTH, page_count=PAGES, rng=random.Random(SEED))
        second = generate_reference_string(LENGTH, page_count=PAGES, rng=random.Random(SEED))
        assert first == second

    def test_full_locality_stays_nearby(self) -> None:
        """With locality 1.0 each reference is within one page of the last."""
        refs = generate_reference_string(LENGTH, page_count=PAGES, rng=random.Random(SEED), locality=1.0)
        assert all(abs(a - b) <= 1 for a, b in zip(refs, refs[1:], strict=False))

    def test_single_page(self) -> None:
        """A one-page process can only reference page 0."""
        refs = generate_reference_string(10, page_count=1, rng=random.Random(SEED))
        assert set(refs) == {0}

    def test_bad_page_count(self) -> None:
        """A process without pages cannot be referenced."""
        with pytest.raises(ValueError, match="page_count"):
            generate_reference_string(5, page_count=0, rng=random.Random(SEED))

    def test_bad_locality(self) -> None:
        """Locality must be a probability."""
        with pytest.raises(ValueError, match="locality"):
            generate_reference_string(5, page_count=PAGES, rng=random.Random(SEED), locality=1.5)


class TestOtherGenerators:
    """Verify TLB references and demo addresses."""

    def test_tlb_references_in_span(self) -> None:
        """TLB references should fall in 0..9 by default."""
        refs = generate_tlb_references(LENGTH, rng=random.Random(SEED))
        span = 10
        assert all(0 <= p < span for p in refs)

    def test_logical_address_in_space(self) -> None:
        """Random addresses should stay inside the paged address space."""
        rng = random.Random(SEED)
        for _ in range(50):
            assert 0 <= random_logical_address(_process(), page_size=PAGE_SIZE, rng=rng) < PAGES * PAGE_SIZE

    def test_segment_access_up_to_twice_limit(self) -> None:
        """Segment offsets should stay below twice the segment limit."""
        rng = random.Random(SEED)
        proc = _process()
        for _ in range(50):
            segment, offset = random_segment_access(proc, rng=rng)
            assert 0 <= offset < 2 * proc.segments[segment].limit * KB
