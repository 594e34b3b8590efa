"""
Discovery of the highest existing escrow ID.

Escrow IDs are dense and 1-based, so a binary search over ``[1, upper_bound]``
with ``read_entity`` as the oracle finds the boundary. A short linear pass
afterwards absorbs gaps: an ID that failed to read can hide higher IDs that
do exist.
"""

import logging

from decentpay.contracts.entity_reader import EntityReader
from decentpay.core.config import DISCOVERY_PROBE_RETRIES, DISCOVERY_VERIFY_WINDOW
from decentpay.core.ledger_exceptions import LedgerError, ValidationError

logger = logging.getLogger(__name__)


class EntityDiscovery:
    def __init__(
        self,
        reader: EntityReader,
        probe_retries: int = DISCOVERY_PROBE_RETRIES,
        verify_window: int = DISCOVERY_VERIFY_WINDOW,
    ) -> None:
        self.reader = reader
        self.probe_retries = probe_retries
        self.verify_window = verify_window

    async def _exists(self, escrow_id: int) -> bool:
        """Probe one ID; recoverable failures are retried, then read as absent."""
        for attempt in range(self.probe_retries + 1):
            try:
                return await self.reader.read_entity(escrow_id) is not None
            except LedgerError as e:
                if not e.recoverable:
                    raise
                logger.warning(
                    f"Probe of escrow {escrow_id} failed (attempt {attempt + 1}): {e}",
                    extra={"event": "discovery.probe_failed", "escrow_id": escrow_id},
                )
        return False

    async def find_highest_existing_id(self, upper_bound: int) -> int:
        """
        Highest existing escrow ID in ``[1, upper_bound]``, or 0 if none exist.

        Probes run strictly one after another. After the binary search at
        most ``verify_window`` further probes are made.
        """
        if upper_bound < 1:
            raise ValidationError(f"upper_bound must be positive, got {upper_bound}")

        low, high = 1, upper_bound
        candidate = 0
        while low <= high:
            mid = (low + high) // 2
            if await self._exists(mid):
                candidate = mid
                low = mid + 1
            else:
                high = mid - 1

        logger.debug(
            f"Binary search converged on {candidate}",
            extra={"event": "discovery.converged", "candidate": candidate},
        )

        # Verification shares one budget of verify_window probes; one is
        # held back to re-confirm a candidate found by the search.
        budget = self.verify_window
        reserve = 1 if candidate and budget else 0

        # Gaps above the candidate
        confirmed = False
        next_id = candidate + 1
        while budget > reserve and next_id <= upper_bound:
            budget -= 1
            if await self._exists(next_id):
                candidate = next_id
                confirmed = True
            next_id += 1

        # Re-confirm, stepping down while the candidate does not read
        while not confirmed and candidate and budget:
            budget -= 1
            if await self._exists(candidate):
                break
            candidate -= 1

        logger.info(
            f"Highest existing escrow ID: {candidate}",
            extra={"event": "discovery.result", "highest_id": candidate, "upper_bound": upper_bound},
        )
        return candidate
