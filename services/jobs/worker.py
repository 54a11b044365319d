"""
Job Worker

Background service that pulls content jobs from the database queue and runs
them through the pipeline.

Handles:
- Claiming jobs under a lease, several at a time
- Extending the lease while a job is running
- Reclaiming jobs whose worker died (expired lease)
- Failing jobs that exhausted their attempts
"""

import asyncio
import logging
import os
import socket
import uuid
from typing import Optional

from core.config import Config, get_config

from .pipeline import JobPipeline
from .store import JobStore

logger = logging.getLogger(__name__)


class JobQueue:
    """
    Submit side of the queue.

    The job row itself is the durable queue entry; ``submit`` only wakes
    idle workers in this process so they do not wait for the next poll.
    """

    def __init__(self):
        self._wakeup = asyncio.Event()

    def submit(self, job_id) -> None:
        logger.info(f"Job {job_id} submitted")
        self._wakeup.set()

    async def wait(self, timeout: float) -> None:
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass
        finally:
            self._wakeup.clear()


class JobWorker:
    def __init__(
        self,
        store: JobStore,
        pipeline: JobPipeline,
        queue: Optional[JobQueue] = None,
        config: Optional[Config] = None,
        worker_id: Optional[str] = None,
    ):
        self.store = store
        self.pipeline = pipeline
        self.queue = queue or JobQueue()
        self.config = config or get_config()
        self.worker_id = worker_id or f"{socket.gethostname()}-{os.getpid()}-{uuid.uuid4().hex[:6]}"

        self._running = False
        self._tasks: list[asyncio.Task] = []

    @property
    def lease_seconds(self) -> int:
        return self.config.worker.lease_seconds

    async def start(self):
        """Start the worker slots and the maintenance loop (returns immediately)."""
        if self._running:
            return
        self._running = True
        concurrency = max(1, self.config.worker.concurrency)
        logger.info(f"Job worker {self.worker_id} starting with {concurrency} slots")

        await self.recover()
        self._tasks = [
            asyncio.create_task(self._slot(n), name=f"job-slot-{n}") for n in range(concurrency)
        ]
        self._tasks.append(asyncio.create_task(self._maintenance(), name="job-maintenance"))

    async def stop(self):
        """Stop the worker. Jobs in flight keep their lease and get reclaimed later."""
        self._running = False
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info(f"Job worker {self.worker_id} stopped")

    async def recover(self) -> list:
        """Fail jobs that were abandoned more times than allowed."""
        return await self.store.fail_abandoned(self.config.worker.max_attempts)

    async def run_once(self) -> bool:
        """Claim and process one job. Returns False when the queue is empty."""
        job = await self.store.claim_next(
            self.worker_id,
            lease_seconds=self.lease_seconds,
            max_attempts=self.config.worker.max_attempts,
        )
        if job is None:
            return False

        heartbeat = asyncio.create_task(self._heartbeat(job["id"]))
        try:
            await self.pipeline.run(job, worker_id=self.worker_id)
        finally:
            heartbeat.cancel()
            await asyncio.gather(heartbeat, return_exceptions=True)
        return True

    async def _slot(self, n: int):
        while self._running:
            try:
                processed = await self.run_once()
                if not processed:
                    await self.queue.wait(self.config.worker.poll_interval)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Worker slot {n} error: {type(e).__name__}: {e}")
                await asyncio.sleep(self.config.worker.poll_interval)

    async def _heartbeat(self, job_id):
        interval = max(1.0, self.lease_seconds / 3)
        while True:
            await asyncio.sleep(interval)
            if not await self.store.extend_lease(job_id, self.worker_id, self.lease_seconds):
                logger.warning(f"Lost lease on job {job_id}")
                return

    async def _maintenance(self):
        while self._running:
            await asyncio.sleep(self.lease_seconds)
            try:
                await self.recover()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Queue maintenance failed: {type(e).__name__}: {e}")
