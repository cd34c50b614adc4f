from datetime import datetime

from pydantic import BaseModel

from shared.models.document import Document, DocumentMetadata
from shared.models.indexing import IndexingJob, IndexingProgress
from shared.models.retrieval import RetrievedFragment


class DocumentItem(BaseModel):
    id: str
    tenant: str
    title: str
    category: str
    status: str
    chunk_count: int
    file_type: str | None = None
    created_at: datetime | None = None
    indexed_at: datetime | None = None
    error_message: str | None = None
    metadata: DocumentMetadata

    @classmethod
    def from_document(cls, document: Document) -> "DocumentItem":
        return cls(
            id=document.id,
            tenant=document.tenant,
            title=document.title,
            category=document.category.value,
            status=document.status.value,
            chunk_count=document.chunk_count,
            file_type=document.file_type.value if document.file_type else None,
            created_at=document.created_at,
            indexed_at=document.indexed_at,
            error_message=document.error_message,
            metadata=document.metadata,
        )


class DocumentListResponse(BaseModel):
    documents: list[DocumentItem]
    total: int


class DocumentCreatedResponse(BaseModel):
    document_id: str
    job_id: str
    status: str
    message: str = "Document queued for indexing."


class ActionResponse(BaseModel):
    success: bool = True
    message: str
    job_id: str | None = None


class JobResponse(BaseModel):
    job_id: str
    document_id: str
    state: str
    attempts_made: int
    progress: IndexingProgress | None = None
    error: str | None = None
    enqueued_at: datetime
    finished_at: datetime | None = None

    @classmethod
    def from_job(cls, job: IndexingJob) -> "JobResponse":
        return cls(
            job_id=job.job_id,
            document_id=job.task.document_id,
            state=job.state.value,
            attempts_made=job.attempts_made,
            progress=job.progress,
            error=job.error,
            enqueued_at=job.enqueued_at,
            finished_at=job.finished_at,
        )


class SearchResultItem(BaseModel):
    chunk_id: str
    score: float
    content: str
    document_title: str
    document_id: str | None = None
    category: str | None = None

    @classmethod
    def from_fragment(cls, fragment: RetrievedFragment) -> "SearchResultItem":
        return cls(
            chunk_id=fragment.id,
            score=fragment.score,
            content=fragment.content,
            document_title=fragment.get_document_title(),
            document_id=fragment.metadata.get("document_id"),
            category=fragment.metadata.get("category"),
        )


class SearchResponse(BaseModel):
    query: str
    results: list[SearchResultItem]
    max_score: float
    total: int


class HealthResponse(BaseModel):
    status: str
    vector_store: str
    embedding: str
    timestamp: datetime
