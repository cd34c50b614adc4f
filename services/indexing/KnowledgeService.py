"""Knowledge document lifecycle: intake, listing, deletion, re-index and search."""

import uuid
from pathlib import Path

from services.rag.RagService import RagService
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.exceptions import InvariantViolationError
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import Document, DocumentCategory, DocumentMetadata, DocumentStatus, FileType
from shared.models.indexing import IndexingJob, IndexingTask
from shared.models.retrieval import RetrievalResult
from shared.queue.DocumentLocks import DocumentLocks
from shared.queue.TaskQueue import TaskQueue
from shared.store.DocumentRepository import DocumentRepository

INTERRUPTED_MESSAGE = "indexing interrupted"


def _task_for(document: Document) -> IndexingTask:
    return IndexingTask(
        document_id=document.id,
        tenant=document.tenant,
        category=document.category.value,
        title=document.title,
    )


class KnowledgeService:
    def __init__(
        self,
        helper_config: HelperConfig,
        repository: DocumentRepository,
        rag_client: RAGClientInterface,
        rag_service: RagService,
        queue: TaskQueue,
        locks: DocumentLocks,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._repository = repository
        self._rag_client = rag_client
        self._rag_service = rag_service
        self._queue = queue
        self._locks = locks

    ##########################################
    ################ INTAKE ##################
    ##########################################

    async def create_document(
        self,
        tenant: str,
        title: str,
        category: DocumentCategory | str,
        content: str | None = None,
        file_path: str | None = None,
        file_type: FileType | str | None = None,
        metadata: DocumentMetadata | None = None,
    ) -> tuple[Document, IndexingJob]:
        """Store a new pending document and enqueue its indexing.

        Text of a referenced file is extracted later by the indexing pipeline.

        Raises:
            InvariantViolationError: If neither content nor a file reference is given.
        """
        content = content.strip() if content else None
        if not content and not file_path:
            raise InvariantViolationError("A document needs either content or a file reference")
        if file_path and not file_type:
            file_type = Path(file_path).suffix.lstrip(".").lower() or None
        if file_type is not None:
            try:
                file_type = FileType(file_type)
            except ValueError:
                raise InvariantViolationError(f"Unsupported file type: {file_type}")
        elif content:
            file_type = FileType.TEXT

        document = await self._repository.create_document(
            Document(
                id=str(uuid.uuid4()),
                tenant=tenant,
                title=title,
                category=category,
                content=content,
                file_path=file_path,
                file_type=file_type,
                status=DocumentStatus.PENDING,
                metadata=metadata or DocumentMetadata(),
            )
        )
        job = self._queue.enqueue(_task_for(document))
        self.logging.info("Enqueued indexing for new document '%s' (%s)", document.title, document.id)
        return document, job

    ##########################################
    ################# QUERY ##################
    ##########################################

    async def list_documents(self, tenant: str | None = None, status: str | None = None, category: str | None = None) -> list[Document]:
        return await self._repository.list_documents(tenant=tenant, status=status, category=category)

    async def get_document(self, document_id: str) -> Document:
        return await self._repository.get_document(document_id)

    def get_job(self, job_or_document_id: str) -> IndexingJob | None:
        """Look up a job by its id, falling back to the latest job of a document."""
        return self._queue.get_job(job_or_document_id) or self._queue.get_latest_job(job_or_document_id)

    async def search(self, query: str, tenant: str, category: str | None = None, top_k: int = 5) -> RetrievalResult:
        return await self._rag_service.retrieve(query=query, tenant=tenant, category=category, top_k=top_k)

    ##########################################
    ############### MUTATIONS ################
    ##########################################

    async def delete_document(self, document_id: str) -> Document:
        """Delete a document together with its vector entries and chunk rows.

        Waits for an in-flight indexing run of the same document.
        """
        document = await self._repository.get_document(document_id)
        async with self._locks.hold(document_id):
            await self._rag_client.do_delete_by_document_id(document_id)
            await self._repository.delete_chunks(document_id)
            await self._repository.delete_document(document_id)
        self.logging.info("Deleted document '%s' and %d chunks", document.title, document.chunk_count)
        return document

    async def reindex_document(self, document_id: str) -> IndexingJob:
        """Drop a document's vectors and chunk rows, reset it to pending and enqueue it again.

        Waits for an in-flight indexing run of the same document.
        """
        async with self._locks.hold(document_id):
            document = await self._repository.get_document(document_id)
            await self._rag_client.do_delete_by_document_id(document_id)
            await self._repository.delete_chunks(document_id)
            document = await self._repository.update_document(
                document_id, status=DocumentStatus.PENDING, error_message=None, chunk_count=0
            )
        job = self._queue.enqueue(_task_for(document))
        self.logging.info("Enqueued reindex for document '%s' (%s)", document.title, document.id)
        return job

    async def reconcile(self) -> tuple[int, int]:
        """Repair state left behind by a previous process.

        Documents stuck in indexing are marked failed; pending documents are
        enqueued again since queued jobs do not survive a restart.

        Returns:
            tuple[int, int]: (interrupted, requeued)
        """
        interrupted = await self._repository.find_documents_by_status(DocumentStatus.INDEXING)
        for document in interrupted:
            await self._repository.update_document(
                document.id, status=DocumentStatus.FAILED, error_message=INTERRUPTED_MESSAGE
            )
        pending = await self._repository.find_documents_by_status(DocumentStatus.PENDING)
        for document in pending:
            self._queue.enqueue(_task_for(document))
        if interrupted or pending:
            self.logging.warning(
                "Startup reconciliation: %d interrupted document(s) marked failed, %d pending re-enqueued",
                len(interrupted), len(pending),
            )
        return len(interrupted), len(pending)
