"""Durable lease-based work queue on the service database.

Every state change is a conditional UPDATE, so several worker processes can
share one queue: a message has at most one active lease at any instant, and
acknowledgements from a worker that lost its lease are ignored.
"""
import uuid
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from domain.errors import StalledTooManyTimes
from domain.schemas import StallReport
from infra.db.session import SessionLocal, utcnow
from infra.db.models import QueueMessageRecord

logger = logging.getLogger("job_queue")

WAITING = "waiting"
ACTIVE = "active"
COMPLETED = "completed"
FAILED = "failed"
# over the stall cap; becomes FAILED once the job record says so
FAILING = "failing"


@dataclass(frozen=True)
class QueueMessage:
    id: str
    job_id: str
    state: str
    stalled_count: int
    last_error: Optional[str] = None


@dataclass(frozen=True)
class Lease:
    message_id: str
    job_id: str
    token: str
    worker_id: str
    expires_at: datetime


def _to_message(rec: QueueMessageRecord) -> QueueMessage:
    return QueueMessage(id=rec.id, job_id=rec.job_id, state=rec.state,
                        stalled_count=rec.stalled_count, last_error=rec.last_error)


class JobQueue:
    def __init__(
        self,
        name: str = "evaluation",
        *,
        lease_seconds: float = 300.0,
        max_stalled_count: int = 3,
        session_factory=SessionLocal,
        clock=utcnow,
    ):
        self.name = name
        self.lease_seconds = lease_seconds
        self.max_stalled_count = max_stalled_count
        self._session_factory = session_factory
        self._clock = clock

    def enqueue(self, job_id: str) -> QueueMessage:
        """Add a job reference; a job id already on the queue is not added twice."""
        now = self._clock()
        with self._session_factory() as s:
            existing = s.scalar(select(QueueMessageRecord).where(QueueMessageRecord.job_id == job_id))
            if existing is not None:
                return _to_message(existing)
            rec = QueueMessageRecord(
                id=f"msg_{uuid.uuid4().hex}", queue_name=self.name, job_id=job_id,
                state=WAITING, stalled_count=0, enqueued_at=now, updated_at=now)
            s.add(rec)
            try:
                s.commit()
            except IntegrityError:
                s.rollback()
                existing = s.scalar(select(QueueMessageRecord).where(QueueMessageRecord.job_id == job_id))
                return _to_message(existing)
            logger.info("Enqueued %s as %s", job_id, rec.id)
            return _to_message(rec)

    def claim(self, worker_id: str, attempts: int = 5) -> Optional[Lease]:
        """Take the lease on the oldest waiting message, or return None."""
        for _ in range(attempts):
            with self._session_factory() as s:
                candidate = s.scalar(
                    select(QueueMessageRecord)
                    .where(QueueMessageRecord.queue_name == self.name,
                           QueueMessageRecord.state == WAITING)
                    .order_by(QueueMessageRecord.enqueued_at, QueueMessageRecord.id)
                    .limit(1)
                )
                if candidate is None:
                    return None
                now = self._clock()
                token = uuid.uuid4().hex
                expires_at = now + timedelta(seconds=self.lease_seconds)
                res = s.execute(
                    update(QueueMessageRecord)
                    .where(QueueMessageRecord.id == candidate.id,
                           QueueMessageRecord.state == WAITING)
                    .values(state=ACTIVE, worker_id=worker_id, lease_token=token,
                            lease_expires_at=expires_at, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
                s.commit()
                if res.rowcount == 1:
                    logger.debug("Worker %s leased %s until %s", worker_id, candidate.job_id, expires_at)
                    return Lease(message_id=candidate.id, job_id=candidate.job_id,
                                 token=token, worker_id=worker_id, expires_at=expires_at)
            # another worker took it between select and update
        return None

    def _finish(self, lease: Lease, state: str, error: Optional[str]) -> bool:
        with self._session_factory() as s:
            res = s.execute(
                update(QueueMessageRecord)
                .where(QueueMessageRecord.id == lease.message_id,
                       QueueMessageRecord.state == ACTIVE,
                       QueueMessageRecord.lease_token == lease.token)
                .values(state=state, lease_token=None, lease_expires_at=None,
                        last_error=error, updated_at=self._clock())
                .execution_options(synchronize_session=False)
            )
            s.commit()
        if res.rowcount != 1:
            logger.warning("Lease on %s held by %s is no longer valid; %s ignored",
                           lease.job_id, lease.worker_id, state)
            return False
        return True

    def complete(self, lease: Lease) -> bool:
        return self._finish(lease, COMPLETED, None)

    def fail(self, lease: Lease, error: str) -> bool:
        return self._finish(lease, FAILED, error)

    def recover_stalled(self) -> StallReport:
        """Release expired leases and report the messages over the stall cap.

        Those move to ``failing`` and are reported by every scan until
        ``mark_failed`` closes them.
        """
        report = StallReport()
        now = self._clock()
        with self._session_factory() as s:
            stalled = s.scalars(
                select(QueueMessageRecord)
                .where(QueueMessageRecord.queue_name == self.name,
                       QueueMessageRecord.state == ACTIVE,
                       QueueMessageRecord.lease_expires_at <= now)
            ).all()
            for rec in stalled:
                count = rec.stalled_count + 1
                if count > self.max_stalled_count:
                    values = dict(state=FAILING,
                                  last_error=str(StalledTooManyTimes(rec.job_id, count)))
                else:
                    values = dict(state=WAITING)
                res = s.execute(
                    update(QueueMessageRecord)
                    .where(QueueMessageRecord.id == rec.id,
                           QueueMessageRecord.state == ACTIVE,
                           QueueMessageRecord.lease_token == rec.lease_token)
                    .values(stalled_count=count, worker_id=None, lease_token=None,
                            lease_expires_at=None, updated_at=now, **values)
                    .execution_options(synchronize_session=False)
                )
                if res.rowcount != 1:
                    continue
                if values["state"] == FAILING:
                    logger.error("Job %s stalled %d times; giving up", rec.job_id, count)
                else:
                    logger.warning("Job %s stalled (%d/%d); requeued",
                                   rec.job_id, count, self.max_stalled_count)
                    report.requeued.append(rec.job_id)
            s.commit()
            # includes messages whose job record a previous scan could not fail
            report.failed = list(s.scalars(
                select(QueueMessageRecord.job_id)
                .where(QueueMessageRecord.queue_name == self.name,
                       QueueMessageRecord.state == FAILING)
                .order_by(QueueMessageRecord.updated_at, QueueMessageRecord.id)
            ))
        return report

    def mark_failed(self, job_id: str) -> bool:
        """Close out a ``failing`` message once its job record is terminal."""
        with self._session_factory() as s:
            res = s.execute(
                update(QueueMessageRecord)
                .where(QueueMessageRecord.queue_name == self.name,
                       QueueMessageRecord.job_id == job_id,
                       QueueMessageRecord.state == FAILING)
                .values(state=FAILED, updated_at=self._clock())
                .execution_options(synchronize_session=False)
            )
            s.commit()
        return res.rowcount == 1

    def get(self, job_id: str) -> Optional[QueueMessage]:
        with self._session_factory() as s:
            rec = s.scalar(select(QueueMessageRecord).where(QueueMessageRecord.job_id == job_id))
            return _to_message(rec) if rec is not None else None

    def counts(self) -> Dict[str, int]:
        with self._session_factory() as s:
            rows = s.execute(
                select(QueueMessageRecord.state, func.count())
                .where(QueueMessageRecord.queue_name == self.name)
                .group_by(QueueMessageRecord.state)
            ).all()
        out = {WAITING: 0, ACTIVE: 0, COMPLETED: 0, FAILING: 0, FAILED: 0}
        out.update({state: int(n) for state, n in rows})
        return out
