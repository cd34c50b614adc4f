"""One-shot indexing runner.

Indexes documents without the API server: either the given document ids, or
every document that is pending or failed.

Usage:
    python -m services.indexing.indexing_runner [document_id ...]
"""

import asyncio
import sys

from services.indexing.IndexingService import IndexingService
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.extraction.TextExtractor import TextExtractor
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.models.document import DocumentStatus
from shared.models.indexing import IndexingTask
from shared.store.DocumentRepository import DocumentRepository
from shared.store.database import Database


async def main(document_ids: list[str]) -> int:
    """Run the indexing pipeline for the selected documents.

    Returns:
        int: Number of documents that failed.
    """
    logger = setup_logging()
    config = HelperConfig(logger=logger)
    embed_client = EmbedClientManager(helper_config=config).get_client()
    rag_client = RAGClientManager(helper_config=config).get_client()
    database = Database.from_config(config)

    try:
        # embed and rag clients are required, there is no point in indexing without either
        try:
            await embed_client.boot()
            await rag_client.boot()
            await rag_client.do_healthcheck()
        except Exception as e:
            logger.error(f"Error booting clients: {e}. Aborting.")
            return 1

        vector_size, distance = await embed_client.do_fetch_embedding_vector_size()
        await rag_client.do_ensure_collection(vector_size=vector_size, distance=distance)
        await database.init_db()

        repository = DocumentRepository(database=database, helper_config=config)
        service = IndexingService(
            helper_config=config,
            repository=repository,
            embed_client=embed_client,
            rag_client=rag_client,
            extractor=TextExtractor(logger=logger),
        )

        if document_ids:
            documents = [await repository.get_document(doc_id) for doc_id in document_ids]
        else:
            documents = await repository.find_documents_by_status(DocumentStatus.PENDING)
            documents += await repository.find_documents_by_status(DocumentStatus.FAILED)
        logger.info("Indexing %d document(s)...", len(documents))

        failed = 0
        for document in documents:
            task = IndexingTask(
                document_id=document.id,
                tenant=document.tenant,
                category=document.category.value,
                title=document.title,
            )
            try:
                await service.process(task)
            except Exception as e:
                failed += 1
                logger.error("Document %s failed: %s", document.id, e)
        logger.info("Indexing finished: %d succeeded, %d failed.", len(documents) - failed, failed)
        return failed
    finally:
        await embed_client.close()
        await rag_client.close()
        await database.dispose()


if __name__ == "__main__":
    sys.exit(1 if asyncio.run(main(sys.argv[1:])) else 0)
