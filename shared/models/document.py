"""Pydantic models for knowledge documents and their chunks.

Hierarchy:
  DocumentMetadata: free-form descriptive fields attached to a document.
  Document: one tenant-owned knowledge document and its indexing state.
  Chunk: one indexed fragment of a document, linked to a vector point.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class DocumentCategory(str, Enum):
    PRICING = "pricing"
    TECHNICAL = "technical"
    GENERAL = "general"
    FAQ = "faq"


class DocumentStatus(str, Enum):
    PENDING = "pending"
    INDEXING = "indexing"
    INDEXED = "indexed"
    FAILED = "failed"


class ChunkType(str, Enum):
    TITLE = "title"
    LIST = "list"
    CODE = "code"
    PARAGRAPH = "paragraph"


class FileType(str, Enum):
    PDF = "pdf"
    DOCX = "docx"
    TXT = "txt"
    TEXT = "text"


class DocumentMetadata(BaseModel):
    """Descriptive metadata supplied on intake."""

    source: str | None = None
    author: str | None = None
    tags: list[str] = []
    language: str = "vi"


class Document(BaseModel):
    """A knowledge document owned by a tenant.

    status and chunk_count are written by the indexing pipeline only;
    re-index resets status to pending.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant: str
    title: str
    category: DocumentCategory
    content: str | None = None
    file_path: str | None = None
    file_type: FileType | None = None
    status: DocumentStatus = DocumentStatus.PENDING
    chunk_count: int = 0
    indexed_at: datetime | None = None
    error_message: str | None = None
    metadata: DocumentMetadata = DocumentMetadata()
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Chunk(BaseModel):
    """A fragment of a document as persisted in the document store.

    vector_point_id references exactly one point in the vector store once set.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant: str
    document_id: str
    chunk_index: int
    content: str
    vector_point_id: str | None = None
    chunk_type: ChunkType = ChunkType.PARAGRAPH
    category: DocumentCategory | None = None
    document_title: str | None = None
    indexed_at: datetime | None = None
