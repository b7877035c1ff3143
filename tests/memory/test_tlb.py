"""Tests for the TLB cache and the TLB access-time simulation."""

import pytest

from py_memsim.memory.tlb import TLBCache, TLBEntry, TLBSimulation, synthetic_frame

CAPACITY = 2
HIT_TIME = 10
MISS_TIME = 100


class TestTLBCache:
    """Verify lookup, insertion and LRU eviction."""

    def test_zero_capacity_raises(self) -> None:
        """A TLB needs at least one slot."""
        with pytest.raises(ValueError, match="positive"):
            TLBCache(capacity=0)

    def test_miss_then_hit(self) -> None:
        """An inserted mapping should be found on the next lookup."""
        tlb = TLBCache(capacity=CAPACITY)
        assert tlb.lookup(3, timestamp=1) is None
        tlb.insert(3, 7, timestamp=1)
        expected_frame = 7
        assert tlb.lookup(3, timestamp=2) == expected_frame
        assert tlb.hits == 1
        assert tlb.misses == 1

    def test_empty_slot_used_before_eviction(self) -> None:
        """Nothing should be evicted while a slot is empty."""
        tlb = TLBCache(capacity=CAPACITY)
        assert tlb.insert(0, 1, timestamp=1) is None
        assert tlb.insert(1, 3, timestamp=2) is None
        assert tlb.evictions == 0

    def test_evicts_least_recently_used(self) -> None:
        """A lookup should protect an entry from eviction."""
        tlb = TLBCache(capacity=CAPACITY)
        tlb.insert(0, 1, timestamp=1)
        tlb.insert(1, 3, timestamp=2)
        tlb.lookup(0, timestamp=3)
        evicted = tlb.insert(2, 5, timestamp=4)
        assert evicted == TLBEntry(page=1, frame=3, last_used=2)
        assert {e.page for e in tlb.entries()} == {0, 2}
        assert tlb.evictions == 1

    def test_tie_evicts_lowest_slot(self) -> None:
        """Equal timestamps should evict slot 0."""
        tlb = TLBCache(capacity=CAPACITY)
        tlb.insert(0, 1, timestamp=1)
        tlb.insert(1, 3, timestamp=1)
        evicted = tlb.insert(2, 5, timestamp=2)
        assert evicted is not None
        assert evicted.page == 0

    def test_insert_cached_page_updates_in_place(self) -> None:
        """Re-inserting a cached page should not take a second slot."""
        tlb = TLBCache(capacity=CAPACITY)
        tlb.insert(0, 1, timestamp=1)
        tlb.insert(0, 9, timestamp=2)
        assert len(tlb.entries()) == 1
        expected_frame = 9
        assert tlb.lookup(0, timestamp=3) == expected_frame

    def test_rejected_entry_is_a_miss(self) -> None:
        """An entry refused by the validity check should be dropped and missed."""
        tlb = TLBCache(capacity=CAPACITY)
        tlb.insert(0, 1, timestamp=1)
        assert tlb.lookup(0, timestamp=2, is_current=lambda entry: entry.frame == 2) is None
        assert tlb.hits == 0
        assert tlb.misses == 1
        assert tlb.stale == 1
        assert tlb.entries() == []

    def test_accepted_entry_is_a_hit(self) -> None:
        """An entry passing the validity check should be a normal hit."""
        tlb = TLBCache(capacity=CAPACITY)
        tlb.insert(0, 1, timestamp=1)
        assert tlb.lookup(0, timestamp=2, is_current=lambda entry: entry.frame == 1) == 1
        assert tlb.hits == 1
        assert tlb.stale == 0

    def test_invalidate(self) -> None:
        """Invalidating should free the slot and report whether it existed."""
        tlb = TLBCache(capacity=CAPACITY)
        tlb.insert(0, 1, timestamp=1)
        assert tlb.invalidate(0)
        assert not tlb.invalidate(0)
        assert tlb.slots == [None, None]

    def test_clear_zeroes_counters(self) -> None:
        """Clear should empty every slot and reset the counters."""
        tlb = TLBCache(capacity=CAPACITY)
        tlb.insert(0, 1, timestamp=1)
        tlb.lookup(0, timestamp=2)
        tlb.clear()
        assert tlb.entries() == []
        assert tlb.hits == 0


class TestTLBSimulation:
    """Verify access pricing and the summary report."""

    def test_costs(self) -> None:
        """Misses cost hit + miss time, hits cost only the hit time."""
        sim = TLBSimulation(TLBCache(capacity=CAPACITY), resolve=synthetic_frame, hit_time=HIT_TIME, miss_time=MISS_TIME)
        report = sim.run([1, 2, 1])
        assert [a.hit for a in report.accesses] == [False, False, True]
        expected_total = 2 * (HIT_TIME + MISS_TIME) + HIT_TIME
        assert report.total_time == expected_total
        expected_without = 3 * MISS_TIME
        assert report.time_without_tlb == expected_without
        assert report.hit_ratio == pytest.approx(1 / 3)
        assert report.speedup == pytest.approx(expected_without / expected_total)

    def test_resolver_used_on_miss(self) -> None:
        """The frame recorded on a miss should come from the resolver."""
        sim = TLBSimulation(TLBCache(capacity=CAPACITY), resolve=synthetic_frame)
        access = sim.access(4)
        expected_frame = 9
        assert access.frame == expected_frame

    def test_eviction_is_reported(self) -> None:
        """An access that evicts should carry the evicted entry."""
        sim = TLBSimulation(TLBCache(capacity=CAPACITY), resolve=synthetic_frame)
        sim.run([0, 1])
        access = sim.access(2)
        assert access.evicted is not None
        assert access.evicted.page == 0

    @pytest.mark.parametrize("capacity", [2, 4, 8])
    def test_one_past_capacity_evicts_first_inserted(self, capacity: int) -> None:
        """N + 1 distinct pages should cause exactly one eviction, of the first page."""
        sim = TLBSimulation(TLBCache(capacity=capacity), resolve=synthetic_frame)
        report = sim.run(range(capacity + 1))
        assert sim.cache.evictions == 1
        evicted = [a.evicted for a in report.accesses if a.evicted is not None]
        assert [e.page for e in evicted] == [0]

    def test_empty_report(self) -> None:
        """A run with no references should report zeros."""
        report = TLBSimulation(TLBCache(capacity=CAPACITY), resolve=synthetic_frame).run([])
        assert report.references == 0
        assert report.hit_ratio == 0.0
        assert report.average_access_time == 0.0
        assert report.speedup == 0.0


class TestSyntheticFrame:
    """Verify the stand-in frame mapping."""

    def test_formula(self) -> None:
        """Page p should map to frame 2p + 1."""
        assert [synthetic_frame(p) for p in range(4)] == [1, 3, 5, 7]
