import asyncio
import logging
import os
import socket
from typing import Optional

from domain.errors import JobNotFound, RevisionConflict, StalledTooManyTimes
from domain.schemas import StallReport

logger = logging.getLogger("queue_consumer")


class QueueConsumer:
    """Pulls job references off the queue and runs them through the pipeline.

    Each worker slot processes one job at a time end to end. A separate loop
    releases expired leases every ``stall_interval`` seconds and fails the
    jobs that stalled more often than the queue allows.

    Queue calls and PDF extraction run in threads. Job record writes stay on
    the event loop; run several worker processes to scale past a few slots.
    """

    def __init__(
        self,
        queue,
        pipeline,
        store,
        *,
        concurrency: int = 1,
        poll_interval: float = 1.0,
        stall_interval: float = 30.0,
        worker_name: Optional[str] = None,
    ):
        self.queue = queue
        self.pipeline = pipeline
        self.store = store
        self.concurrency = max(1, int(concurrency))
        self.poll_interval = poll_interval
        self.stall_interval = stall_interval
        self.worker_name = worker_name or f"{socket.gethostname()}:{os.getpid()}"
        self._stopping = asyncio.Event()

    async def process_next(self, worker_id: str) -> bool:
        """Process one job if one is waiting. Returns False on an empty queue."""
        lease = await asyncio.to_thread(self.queue.claim, worker_id)
        if lease is None:
            return False
        logger.info("Worker %s picked up %s", worker_id, lease.job_id)
        try:
            await self.pipeline.run(lease.job_id)
        except RevisionConflict:
            # another worker owns the record now; our lease is stale or expires
            logger.warning("Worker %s lost %s to another worker", worker_id, lease.job_id)
            return True
        except Exception as exc:
            error = str(exc) or exc.__class__.__name__
            logger.error("Worker job failed %s: %s", lease.job_id, error)
            if not self._fail_record(lease.job_id, error):
                logger.error("Job %s left unacknowledged; it will be redelivered", lease.job_id)
                return True
            await asyncio.to_thread(self.queue.fail, lease, error)
            return True
        await asyncio.to_thread(self.queue.complete, lease)
        return True

    def _fail_record(self, job_id: str, error: str) -> bool:
        """Make sure the job record is terminal. False if it could not be written."""
        try:
            self.store.fail(job_id, error)
        except JobNotFound:
            logger.warning("Job %s has no record", job_id)
        except Exception:
            logger.exception("Could not mark job %s failed", job_id)
            return False
        return True

    def check_stalled(self) -> StallReport:
        report = self.queue.recover_stalled()
        for job_id in report.failed:
            error = StalledTooManyTimes(job_id, self.queue.max_stalled_count + 1)
            if self._fail_record(job_id, str(error)):
                self.queue.mark_failed(job_id)
        return report

    async def run(self) -> None:
        logger.info("Worker %s started with %d slot(s)", self.worker_name, self.concurrency)
        tasks = [
            asyncio.create_task(self._slot(f"{self.worker_name}#{i}"))
            for i in range(self.concurrency)
        ]
        tasks.append(asyncio.create_task(self._stall_loop()))
        try:
            await asyncio.gather(*tasks)
        finally:
            for t in tasks:
                t.cancel()
            logger.info("Worker %s stopped", self.worker_name)

    def stop(self) -> None:
        self._stopping.set()

    async def _slot(self, worker_id: str) -> None:
        while not self._stopping.is_set():
            try:
                handled = await self.process_next(worker_id)
            except Exception:
                # queue backend errors; keep the slot alive
                logger.exception("Worker %s could not poll the queue", worker_id)
                handled = False
            if not handled:
                await self._wait(self.poll_interval)

    async def _stall_loop(self) -> None:
        while not self._stopping.is_set():
            try:
                await asyncio.to_thread(self.check_stalled)
            except Exception:
                logger.exception("Stalled-job check failed")
            await self._wait(self.stall_interval)

    async def _wait(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
