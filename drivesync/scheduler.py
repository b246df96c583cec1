"""
Periodic full syncs per owner, run as asyncio tasks in the API process.
"""

import asyncio
import logging
from datetime import datetime

from drivesync.metadata.store import MetadataStore
from drivesync.models import OperationResult, SyncResult, SyncStatus, utcnow
from drivesync.reconcile import Reconciler


class PeriodicSync:
    def __init__(self, reconciler: Reconciler, metadata: MetadataStore, interval: float = 300):
        self.reconciler = reconciler
        self.metadata = metadata
        self.interval = interval
        self._tasks: dict[str, asyncio.Task] = {}
        self._intervals: dict[str, float] = {}
        self._running: set[str] = set()
        self._last: dict[str, tuple[datetime, SyncResult]] = {}

    def start_owner(self, owner: str, interval: float | None = None) -> None:
        """(Re)start the periodic sync of owner"""
        self.stop_owner(owner)
        interval = interval or self.interval
        self._intervals[owner] = interval
        self._tasks[owner] = asyncio.create_task(self._loop(owner, interval), name=f"periodic-sync-{owner}")
        logging.info(f"Started periodic sync for {owner} every {interval} seconds")

    def stop_owner(self, owner: str) -> bool:
        task = self._tasks.pop(owner, None)
        self._intervals.pop(owner, None)
        if task is None:
            return False
        task.cancel()
        logging.info(f"Stopped periodic sync for {owner}")
        return True

    async def start_all(self) -> list[str]:
        """Start periodic syncs for every owner in the metadata database"""
        owners = await self.metadata.list_owners()
        logging.info(f"Starting periodic sync for {len(owners)} owners")
        for owner in owners:
            self.start_owner(owner)
        return owners

    async def stop_all(self) -> None:
        tasks = list(self._tasks.values())
        for owner in list(self._tasks):
            self.stop_owner(owner)
        await asyncio.gather(*tasks, return_exceptions=True)

    def status(self) -> list[SyncStatus]:
        result = []
        for owner in sorted(set(self._tasks) | set(self._last) | self._running):
            last_run, last = self._last.get(owner, (None, None))
            result.append(
                SyncStatus(
                    owner_id=owner,
                    is_active=owner in self._tasks,
                    running=owner in self._running,
                    interval=self._intervals.get(owner),
                    last_run=last_run,
                    last_success=last.success if last else None,
                    last_message=last.message if last else None,
                )
            )
        return result

    async def run_once(self, owner: str) -> SyncResult | None:
        """Run a full sync of owner, or return None if one is still running"""
        if owner in self._running:
            logging.info(f"Skipping sync of {owner}: the previous pass is still running")
            return None
        self._running.add(owner)
        try:
            result = await self.reconciler.perform_full_sync(owner)
        finally:
            self._running.discard(owner)
        self._last[owner] = (utcnow(), result)
        if result.success:
            logging.info(f"Periodic sync completed for {owner}: {result.message}")
        else:
            logging.warning(f"Periodic sync failed for {owner}: {result.message}")
        return result

    async def sync_all_now(self) -> OperationResult:
        owners = await self.metadata.list_owners()
        results = await asyncio.gather(*[self.run_once(owner) for owner in owners])
        report = []
        succeeded = 0
        for owner, result in zip(owners, results):
            if result is None:
                report.append(dict(owner_id=owner, status="skipped"))
                continue
            succeeded += result.success
            report.append(dict(owner_id=owner, status="completed", result=result.model_dump(mode="json")))
        skipped = sum(result is None for result in results)
        return OperationResult(
            success=succeeded == len(owners) - skipped,
            message=f"Synced {len(owners) - skipped} owners, {succeeded} succeeded, {skipped} skipped",
            stats=dict(results=report),
        )

    async def _loop(self, owner: str, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self.run_once(owner)
