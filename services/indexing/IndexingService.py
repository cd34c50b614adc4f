"""Indexing pipeline.

Loads a document, resolves its text, segments it and pushes the fragments
through embedding, vector-store upsert and chunk persistence in sequential
batches of BATCH_SIZE, reporting progress along the way. A failed run
removes the points and chunk rows it created and marks the document failed.
"""

import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable

from services.indexing.Segmenter import Segment, segment
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import VectorPayload, VectorPoint
from shared.exceptions import InvariantViolationError
from shared.extraction.TextExtractor import TextExtractor
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import Chunk, Document, DocumentStatus
from shared.models.indexing import IndexingProgress, IndexingStage, IndexingTask
from shared.store.DocumentRepository import DocumentRepository

BATCH_SIZE = 15  # fragments per embed + upsert round trip

ProgressReporter = Callable[[IndexingProgress], Awaitable[None]]


async def _ignore_progress(progress: IndexingProgress) -> None:
    return None


class IndexingService:
    """Runs the indexing pipeline for one document at a time."""

    def __init__(
        self,
        helper_config: HelperConfig,
        repository: DocumentRepository,
        embed_client: EmbedClientInterface,
        rag_client: RAGClientInterface,
        extractor: TextExtractor,
        batch_size: int = BATCH_SIZE,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._repository = repository
        self._embed_client = embed_client
        self._rag_client = rag_client
        self._extractor = extractor
        self._batch_size = batch_size
        self._chunk_size = int(helper_config.get_number_val("CHUNK_SIZE", default=500))

    ##########################################
    ############### PIPELINE #################
    ##########################################

    async def process(self, task: IndexingTask, report_progress: ProgressReporter | None = None) -> int:
        """Index one document.

        Args:
            task (IndexingTask): The queued task.
            report_progress (ProgressReporter | None): Awaited after each stage and batch.

        Returns:
            int: Number of chunks indexed.

        Raises:
            DocumentNotFoundError: If the document no longer exists.
            InvariantViolationError: If the document has neither content nor a stored file.
            Exception: Any embedding, vector store or persistence failure, re-raised after cleanup.
        """
        report = report_progress or _ignore_progress
        document = await self._repository.get_document(task.document_id)
        self.logging.info("Indexing document %s ('%s')", document.id, document.title)

        created_point_ids: list[str] = []
        created_chunk_ids: list[str] = []
        try:
            document = await self._repository.update_document(document.id, status=DocumentStatus.INDEXING)
            content = await self._resolve_content(document)
            self.logging.debug("Content loaded for %s: %d chars", document.id, len(content))

            segments = segment(content, chunk_size=self._chunk_size)
            total = len(segments)
            await report(IndexingProgress(stage=IndexingStage.CHUNKING, total_chunks=total))
            self.logging.info("Document %s segmented into %d chunks", document.id, total)

            # drop whatever a previous run left behind
            await self._repository.delete_chunks(document.id)
            await self._rag_client.do_delete_by_document_id(document.id)

            processed = 0
            for batch_start in range(0, total, self._batch_size):
                batch = segments[batch_start: batch_start + self._batch_size]
                await self._index_batch(task, batch, created_point_ids, created_chunk_ids)
                processed += len(batch)
                await report(
                    IndexingProgress(
                        stage=IndexingStage.EMBEDDING,
                        total_chunks=total,
                        chunks_processed=processed,
                        progress=(100 * processed) // total,
                    )
                )
                self.logging.debug(
                    "Batch %d/%d done for %s",
                    batch_start // self._batch_size + 1, -(-total // self._batch_size), document.id,
                )

            await self._repository.update_document(
                document.id,
                status=DocumentStatus.INDEXED,
                chunk_count=total,
                indexed_at=datetime.now(timezone.utc),
                error_message=None,
            )
            await report(
                IndexingProgress(stage=IndexingStage.COMPLETED, total_chunks=total, chunks_processed=total, progress=100)
            )
            self.logging.info("Indexed document %s ('%s'): %d chunks", document.id, document.title, total)
            return total
        except Exception as e:
            self.logging.error("Failed to index document %s: %s", document.id, e)
            await self._compensate(document.id, created_point_ids, created_chunk_ids)
            await self._repository.update_document(document.id, status=DocumentStatus.FAILED, error_message=str(e))
            raise

    ##########################################
    ################ HELPERS #################
    ##########################################

    async def _resolve_content(self, document: Document) -> str:
        if document.content:
            return document.content
        if document.file_path and document.file_type:
            content = await self._extractor.extract_text(document.file_path, document.file_type)
            # persist so a retry does not extract again
            await self._repository.update_document(document.id, content=content)
            return content
        raise InvariantViolationError(f"Document {document.id} has no content or file")

    async def _index_batch(
        self,
        task: IndexingTask,
        batch: list[Segment],
        created_point_ids: list[str],
        created_chunk_ids: list[str],
    ) -> None:
        vectors = await self._embed_client.do_embed_batch([s.content for s in batch])

        points = [
            VectorPoint(
                id=str(uuid.uuid4()),
                vector=vector,
                payload=VectorPayload(
                    tenant=task.tenant,
                    document_id=task.document_id,
                    category=task.category,
                    document_title=task.title,
                    content=seg.content,
                    chunk_index=seg.index,
                ),
            )
            for seg, vector in zip(batch, vectors)
        ]
        await self._rag_client.do_upsert_points(points)
        created_point_ids.extend(p.id for p in points)

        now = datetime.now(timezone.utc)
        chunks = [
            Chunk(
                id=str(uuid.uuid4()),
                tenant=task.tenant,
                document_id=task.document_id,
                chunk_index=seg.index,
                content=seg.content,
                vector_point_id=point.id,
                chunk_type=seg.chunk_type,
                category=task.category,
                document_title=task.title,
                indexed_at=now,
            )
            for seg, point in zip(batch, points)
        ]
        await self._repository.insert_chunks(chunks)
        created_chunk_ids.extend(c.id for c in chunks)

    async def _compensate(self, document_id: str, point_ids: list[str], chunk_ids: list[str]) -> None:
        """Remove what this run created; cleanup failures are logged, the original error wins."""
        if not point_ids and not chunk_ids:
            return
        try:
            await self._rag_client.do_delete_points(point_ids)
        except Exception as e:
            self.logging.error("Could not remove %d points of document %s: %s", len(point_ids), document_id, e)
        try:
            await self._repository.delete_chunks_by_ids(chunk_ids)
        except Exception as e:
            self.logging.error("Could not remove %d chunks of document %s: %s", len(chunk_ids), document_id, e)
