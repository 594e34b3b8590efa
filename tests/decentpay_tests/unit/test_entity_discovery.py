"""
Tests for highest-ID discovery.
"""

import pytest

from decentpay.contracts.entity_discovery import EntityDiscovery
from decentpay.core.ledger_exceptions import NetworkError, ProtocolError, ValidationError


class StubReader:
    """``read_entity`` backed by a set of existing IDs, with scripted failures."""

    def __init__(self, existing, failures=None):
        self.existing = set(existing)
        self.failures = dict(failures or {})
        self.probes = []

    async def read_entity(self, escrow_id):
        self.probes.append(escrow_id)
        pending = self.failures.get(escrow_id)
        if pending:
            self.failures[escrow_id] = pending[1:]
            raise pending[0]
        return object() if escrow_id in self.existing else None


class FadingReader(StubReader):
    """IDs in ``fading`` read once and are gone afterwards."""

    def __init__(self, existing, fading):
        super().__init__(existing)
        self.fading = set(fading)

    async def read_entity(self, escrow_id):
        result = await super().read_entity(escrow_id)
        if escrow_id in self.fading:
            self.existing.discard(escrow_id)
        return result


class TestFindHighestExistingId:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "existing,bound,expected",
        [
            ({1, 2, 3, 5}, 20, 5),
            ({1, 2, 3, 5}, 8, 5),
            (set(), 20, 0),
            ({1}, 1, 1),
            (set(range(1, 51)), 50, 50),
            (set(range(1, 13)), 50, 12),
        ],
    )
    async def test_boundary(self, existing, bound, expected):
        discovery = EntityDiscovery(StubReader(existing))
        assert await discovery.find_highest_existing_id(bound) == expected

    @pytest.mark.asyncio
    async def test_result_never_exceeds_bound(self):
        discovery = EntityDiscovery(StubReader(range(1, 40)))
        assert await discovery.find_highest_existing_id(10) == 10

    @pytest.mark.asyncio
    async def test_probes_are_sequential_and_bounded(self):
        reader = StubReader({1, 2, 3})
        discovery = EntityDiscovery(reader)

        await discovery.find_highest_existing_id(50)

        assert max(reader.probes) <= 50
        assert len(reader.probes) < 20

    @pytest.mark.asyncio
    async def test_verification_stays_within_window(self):
        reader = StubReader({1, 2, 3, 4, 5})
        discovery = EntityDiscovery(reader, verify_window=5)

        assert await discovery.find_highest_existing_id(20) == 5
        # binary search reads 10, 5, 7, 6; verification scans 6-9 and re-reads 5
        assert reader.probes == [10, 5, 7, 6, 6, 7, 8, 9, 5]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("window", [0, 1, 2, 5])
    async def test_verification_read_budget(self, window):
        reader = StubReader({1, 2, 3, 5})
        discovery = EntityDiscovery(reader, verify_window=window)

        await discovery.find_highest_existing_id(8)

        # 4, 2 and 3 are the binary search reads
        assert len(reader.probes) - 3 <= window

    @pytest.mark.asyncio
    async def test_candidate_stepped_down_when_it_stops_reading(self):
        reader = FadingReader({1, 2, 3, 4, 5}, fading={5})
        discovery = EntityDiscovery(reader, verify_window=2)

        assert await discovery.find_highest_existing_id(5) == 4

    @pytest.mark.asyncio
    async def test_transient_errors_retried(self):
        reader = StubReader({1, 2, 3}, failures={2: [NetworkError("blip")], 3: [NetworkError("blip")]})
        discovery = EntityDiscovery(reader, probe_retries=2)

        assert await discovery.find_highest_existing_id(8) == 3

    @pytest.mark.asyncio
    async def test_persistent_transient_error_reads_as_absent(self):
        failures = {4: [ProtocolError("down")] * 10}
        reader = StubReader({1, 2, 3, 4, 5}, failures=failures)
        discovery = EntityDiscovery(reader, probe_retries=1)

        # 5 is still found by the linear pass over the gap at 4
        assert await discovery.find_highest_existing_id(5) == 5

    @pytest.mark.asyncio
    async def test_non_recoverable_error_propagates(self):
        reader = StubReader({1}, failures={1: [ProtocolError("bad request", recoverable=False)]})
        discovery = EntityDiscovery(reader)

        with pytest.raises(ProtocolError):
            await discovery.find_highest_existing_id(1)

    @pytest.mark.asyncio
    async def test_invalid_bound(self):
        with pytest.raises(ValidationError):
            await EntityDiscovery(StubReader(set())).find_highest_existing_id(0)
