"""One sync cycle: fetch → normalize → build bundle → submit.

Workflow:
1. Fetch the trailing window of samples from the SampleSource
2. Normalize every sample and sort newest first
3. Build one collection Bundle
4. Submit it once and return the SyncOutcome

The cycle holds no global "syncing" flag.  ``start()`` returns a SyncHandle
whose state is derived from the underlying asyncio task, and a second
``start()`` while a handle is still running returns that same handle.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from enum import Enum

from fhir_sync.base import NormalizedDataPoint, SampleSource, SyncOutcome
from fhir_sync.bundle import BundleBuilder
from fhir_sync.client import SyncClient
from fhir_sync.config import Settings, get_settings
from fhir_sync.normalizer import UnitNormalizer

logger = logging.getLogger("fhir_sync.sync.cycle")


class SyncState(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    COMPLETED = "completed"


class SyncHandle:
    """Observable view of one in-flight or finished sync run."""

    def __init__(self, task: asyncio.Task[SyncOutcome]) -> None:
        self._task = task

    @property
    def state(self) -> SyncState:
        return SyncState.COMPLETED if self._task.done() else SyncState.SYNCING

    @property
    def outcome(self) -> SyncOutcome | None:
        """The outcome once the run has finished, otherwise None."""
        if not self._task.done() or self._task.cancelled():
            return None
        if self._task.exception() is not None:
            return None
        return self._task.result()

    async def wait(self) -> SyncOutcome:
        return await self._task


class SyncCycle:
    """Run sync cycles from a SampleSource to the backend.

    Usage::

        cycle = SyncCycle(source=AppleHealthExportSource(path), client=SyncClient())
        outcome = await cycle.run(days=7)

    Args:
        source:     Where raw samples come from.
        client:     Backend client used for the single submission.
        settings:   Window size and device id defaults.
        normalizer: Sample normalizer.
        bundles:    Bundle builder.
    """

    def __init__(
        self,
        source: SampleSource,
        client: SyncClient | None = None,
        settings: Settings | None = None,
        normalizer: UnitNormalizer | None = None,
        bundles: BundleBuilder | None = None,
    ) -> None:
        self._source = source
        self._settings = settings or get_settings()
        self._client = client or SyncClient(settings=self._settings)
        self._normalizer = normalizer or UnitNormalizer()
        self._bundles = bundles or BundleBuilder()
        self._current: SyncHandle | None = None
        self._previous_outcome: SyncOutcome | None = None

    @property
    def state(self) -> SyncState:
        return self._current.state if self._current else SyncState.IDLE

    @property
    def last_outcome(self) -> SyncOutcome | None:
        """Outcome of the most recent finished run."""
        if self._current is not None and self._current.outcome is not None:
            return self._current.outcome
        return self._previous_outcome

    async def gather(self, days: int | None = None) -> list[NormalizedDataPoint]:
        """Fetch and normalize the trailing ``days`` of samples, newest first.

        Raises:
            Exception: Whatever the source raises while fetching.
        """
        window = days if days is not None else self._settings.sync_window_days
        end = datetime.now(timezone.utc)
        start = end - timedelta(days=window)

        samples = await self._source.fetch_samples(start, end)
        points = self._normalizer.normalize_all(samples)
        logger.info(
            "Collected %d data points from %s (last %d days)",
            len(points), self._source.DISPLAY_NAME, window,
        )
        return points

    async def collect(self, days: int | None = None) -> list[NormalizedDataPoint]:
        """Like ``gather``, but a failing source is logged and yields an empty list."""
        try:
            return await self.gather(days)
        except Exception as exc:
            logger.error("Fetching samples from %s failed: %s", self._source.DISPLAY_NAME, exc)
            return []

    async def run(self, days: int | None = None, device_id: str | None = None) -> SyncOutcome:
        try:
            points = await self.gather(days)
        except Exception as exc:
            logger.error("Fetching samples from %s failed: %s", self._source.DISPLAY_NAME, exc)
            return SyncOutcome(success=False, message=f"Source error: {exc}")

        if not points:
            return SyncOutcome(success=True, message="No data to sync")

        bundle = self._bundles.build(points)
        outcome = await self._client.submit(bundle, device_id=device_id)
        logger.info(
            "Sync complete: success=%s accepted=%d rejected=%d",
            outcome.success, outcome.accepted, outcome.rejected,
        )
        return outcome

    async def _run_to_outcome(self, days: int | None, device_id: str | None) -> SyncOutcome:
        try:
            return await self.run(days=days, device_id=device_id)
        except Exception as exc:
            logger.exception("Sync run failed")
            return SyncOutcome(success=False, message=f"Sync failed: {exc}")

    def start(self, days: int | None = None, device_id: str | None = None) -> SyncHandle:
        """Schedule a run on the current event loop.

        Returns the in-flight handle instead of starting a second run.
        """
        if self._current is not None and self._current.state is SyncState.SYNCING:
            logger.debug("Sync already in progress; returning existing handle")
            return self._current

        self._previous_outcome = self.last_outcome
        task = asyncio.create_task(self._run_to_outcome(days, device_id))
        self._current = SyncHandle(task)
        return self._current
