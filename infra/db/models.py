from sqlalchemy import Column, String, Integer, Text, DateTime, JSON, Index
from sqlalchemy.sql import func
from infra.db.session import Base

class FileRecord(Base):
    __tablename__ = "files"
    id = Column(String, primary_key=True)
    type = Column(String, nullable=False)   # 'cv' | 'project'
    path = Column(String, nullable=False)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

class JobRecord(Base):
    __tablename__ = "jobs"
    id = Column(String, primary_key=True)
    status = Column(String, nullable=False, default="queued")
    step = Column(String, nullable=True)
    # input columns are written once by create()
    job_title = Column(String, nullable=False)
    cv_file_id = Column(String, nullable=False)
    project_file_id = Column(String, nullable=False)
    result = Column(JSON, nullable=True)
    error = Column(Text, nullable=True)
    revision = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

class QueueMessageRecord(Base):
    __tablename__ = "queue_messages"
    id = Column(String, primary_key=True)
    queue_name = Column(String, nullable=False)
    job_id = Column(String, nullable=False, unique=True)
    state = Column(String, nullable=False, default="waiting")  # waiting | active | completed | failing | failed
    worker_id = Column(String, nullable=True)
    lease_token = Column(String, nullable=True)
    lease_expires_at = Column(DateTime(timezone=True), nullable=True)
    stalled_count = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    enqueued_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_queue_messages_claim", "queue_name", "state", "enqueued_at"),
    )
