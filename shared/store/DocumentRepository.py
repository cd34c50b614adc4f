from enum import Enum
from typing import Any

from sqlalchemy import delete, select

from shared.exceptions import DocumentNotFoundError
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import Chunk, Document, DocumentMetadata
from shared.store.database import Database
from shared.store.orm import ChunkRecord, DocumentRecord, utcnow


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, DocumentMetadata):
        return value.model_dump()
    return value


class DocumentRepository:
    """
    Repository providing CRUD operations for documents and their chunks.
    Every method opens its own session and commits before returning.
    """

    def __init__(self, database: Database, helper_config: HelperConfig):
        self.database = database
        self.logging = helper_config.get_logger()

    ##########################################
    ############## CONVERTERS ################
    ##########################################

    @staticmethod
    def _to_document(record: DocumentRecord) -> Document:
        return Document(
            id=record.id,
            tenant=record.tenant,
            title=record.title,
            category=record.category,
            content=record.content,
            file_path=record.file_path,
            file_type=record.file_type,
            status=record.status,
            chunk_count=record.chunk_count,
            indexed_at=record.indexed_at,
            error_message=record.error_message,
            metadata=DocumentMetadata(**(record.doc_metadata or {})),
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    @staticmethod
    def _to_chunk(record: ChunkRecord) -> Chunk:
        return Chunk.model_validate(record)

    ##########################################
    ############### DOCUMENTS ################
    ##########################################

    async def create_document(self, document: Document) -> Document:
        record = DocumentRecord(
            id=document.id,
            tenant=document.tenant,
            title=document.title,
            category=_plain(document.category),
            content=document.content,
            file_path=document.file_path,
            file_type=_plain(document.file_type),
            status=_plain(document.status),
            chunk_count=document.chunk_count,
            doc_metadata=document.metadata.model_dump(),
        )
        async with self.database.session() as db:
            db.add(record)
            await db.commit()
            await db.refresh(record)
        self.logging.info("Document created | id=%s | tenant=%s", record.id, record.tenant)
        return self._to_document(record)

    async def find_document(self, document_id: str) -> Document | None:
        async with self.database.session() as db:
            record = await db.get(DocumentRecord, document_id)
            return self._to_document(record) if record else None

    async def get_document(self, document_id: str) -> Document:
        """Like find_document, but raises DocumentNotFoundError when absent."""
        document = await self.find_document(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document

    async def list_documents(self, tenant: str | None = None, status: str | None = None, category: str | None = None) -> list[Document]:
        """List documents matching all given filters, newest first."""
        query = select(DocumentRecord)
        if tenant:
            query = query.where(DocumentRecord.tenant == tenant)
        if status:
            query = query.where(DocumentRecord.status == _plain(status))
        if category:
            query = query.where(DocumentRecord.category == _plain(category))
        query = query.order_by(DocumentRecord.created_at.desc())
        async with self.database.session() as db:
            out = await db.execute(query)
            return [self._to_document(r) for r in out.scalars().all()]

    async def find_documents_by_status(self, status: str) -> list[Document]:
        async with self.database.session() as db:
            out = await db.execute(
                select(DocumentRecord)
                .where(DocumentRecord.status == _plain(status))
                .order_by(DocumentRecord.created_at.asc())
            )
            return [self._to_document(r) for r in out.scalars().all()]

    async def update_document(self, document_id: str, **fields: Any) -> Document:
        """Set the given columns on a document.

        Raises:
            DocumentNotFoundError: If the document does not exist.
        """
        async with self.database.session() as db:
            record = await db.get(DocumentRecord, document_id)
            if record is None:
                raise DocumentNotFoundError(document_id)
            for key, value in fields.items():
                column = "doc_metadata" if key == "metadata" else key
                setattr(record, column, _plain(value))
            record.updated_at = utcnow()
            await db.commit()
            await db.refresh(record)
            return self._to_document(record)

    async def delete_document(self, document_id: str) -> bool:
        async with self.database.session() as db:
            out = await db.execute(delete(DocumentRecord).where(DocumentRecord.id == document_id))
            await db.commit()
        deleted = (out.rowcount or 0) > 0
        self.logging.info("Document deleted | id=%s | existed=%s", document_id, deleted)
        return deleted

    ##########################################
    ################ CHUNKS ##################
    ##########################################

    async def insert_chunks(self, chunks: list[Chunk]) -> None:
        if not chunks:
            return
        async with self.database.session() as db:
            for chunk in chunks:
                db.add(
                    ChunkRecord(
                        id=chunk.id,
                        tenant=chunk.tenant,
                        document_id=chunk.document_id,
                        chunk_index=chunk.chunk_index,
                        content=chunk.content,
                        vector_point_id=chunk.vector_point_id,
                        chunk_type=_plain(chunk.chunk_type),
                        category=_plain(chunk.category),
                        document_title=chunk.document_title,
                        indexed_at=chunk.indexed_at,
                    )
                )
            await db.commit()

    async def list_chunks(self, document_id: str) -> list[Chunk]:
        async with self.database.session() as db:
            out = await db.execute(
                select(ChunkRecord)
                .where(ChunkRecord.document_id == document_id)
                .order_by(ChunkRecord.chunk_index.asc())
            )
            return [self._to_chunk(r) for r in out.scalars().all()]

    async def delete_chunks(self, document_id: str) -> int:
        async with self.database.session() as db:
            out = await db.execute(delete(ChunkRecord).where(ChunkRecord.document_id == document_id))
            await db.commit()
        return out.rowcount or 0

    async def delete_chunks_by_ids(self, chunk_ids: list[str]) -> int:
        if not chunk_ids:
            return 0
        async with self.database.session() as db:
            out = await db.execute(delete(ChunkRecord).where(ChunkRecord.id.in_(chunk_ids)))
            await db.commit()
        return out.rowcount or 0
