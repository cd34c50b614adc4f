"""Models exchanged between the task queue and the indexing pipeline."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class IndexingTask(BaseModel):
    """Queue payload for indexing one document.

    Content is never carried on the queue; the worker reads it from the
    document store. tenant, category and title are denormalized so vector
    payloads can be enriched without an extra lookup.
    """

    document_id: str
    tenant: str
    category: str
    title: str


class IndexingStage(str, Enum):
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    COMPLETED = "completed"


class IndexingProgress(BaseModel):
    """Progress event reported by the pipeline after each stage transition or batch."""

    stage: IndexingStage
    total_chunks: int = 0
    chunks_processed: int = 0
    progress: int = 0


class JobState(str, Enum):
    QUEUED = "queued"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


class IndexingJob(BaseModel):
    """Bookkeeping record the queue keeps per indexing job."""

    job_id: str
    task: IndexingTask
    state: JobState = JobState.QUEUED
    attempts_made: int = 0
    progress: IndexingProgress | None = None
    error: str | None = None
    enqueued_at: datetime
    finished_at: datetime | None = None
