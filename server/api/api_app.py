"""FastAPI application entry point for the Knowledge AI Bridge API."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import os
from server.api.routers.ChatRouter import chat_router
from server.api.routers.HealthRouter import health_router
from server.api.routers.KnowledgeRouter import knowledge_router
from services.indexing.IndexingService import IndexingService
from services.indexing.KnowledgeService import KnowledgeService
from services.rag.ChatService import ChatService
from services.rag.IntentService import IntentService
from services.rag.RagService import RagService
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.exceptions import DocumentNotFoundError, InvariantViolationError, UpstreamError
from shared.extraction.TextExtractor import TextExtractor
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.queue.DocumentLocks import DocumentLocks
from shared.queue.TaskQueue import TaskQueue
from shared.store.DocumentRepository import DocumentRepository
from shared.store.database import Database

logging = setup_logging()
app_config = HelperConfig(logger=logging)
app_version = os.getenv("APP_VERSION", "unknown")


def build_state(
    state,
    config: HelperConfig,
    embed_client: EmbedClientInterface,
    rag_client: RAGClientInterface,
    llm_client: LLMClientInterface,
    database: Database,
) -> None:
    """Wire repositories, queue and services onto the application state."""
    state.config = config
    state.logging = config.get_logger()
    state.embed_client = embed_client
    state.rag_client = rag_client
    state.llm_client = llm_client
    state.database = database

    repository = DocumentRepository(database=database, helper_config=config)
    locks = DocumentLocks()
    indexing_service = IndexingService(
        helper_config=config,
        repository=repository,
        embed_client=embed_client,
        rag_client=rag_client,
        extractor=TextExtractor(logger=state.logging),
    )
    state.task_queue = TaskQueue(helper_config=config, handler=indexing_service.process, locks=locks)
    rag_service = RagService(helper_config=config, embed_client=embed_client, rag_client=rag_client, llm_client=llm_client)
    state.knowledge_service = KnowledgeService(
        helper_config=config,
        repository=repository,
        rag_client=rag_client,
        rag_service=rag_service,
        queue=state.task_queue,
        locks=locks,
    )
    state.chat_service = ChatService(helper_config=config, intent_service=IntentService(), rag_service=rag_service)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown."""
    logger = logging
    config = app_config

    # Initialise clients
    embed_client = EmbedClientManager(helper_config=config).get_client()
    rag_client = RAGClientManager(helper_config=config).get_client()
    llm_client = LLMClientManager(helper_config=config).get_client()
    await embed_client.boot()
    await rag_client.boot()
    await llm_client.boot()

    # Vector store must be reachable; the collection is created if missing
    await rag_client.do_healthcheck()
    vector_size, distance = await embed_client.do_fetch_embedding_vector_size()
    await rag_client.do_ensure_collection(vector_size=vector_size, distance=distance)

    database = Database.from_config(config)
    await database.init_db()

    # Wire up services
    build_state(app.state, config, embed_client, rag_client, llm_client, database)
    await app.state.knowledge_service.reconcile()
    app.state.task_queue.start()

    logger.info("Knowledge AI Bridge API ready.")
    yield

    # Shutdown
    await app.state.task_queue.stop()
    await embed_client.close()
    await rag_client.close()
    await llm_client.close()
    await database.dispose()
    logger.info("Knowledge AI Bridge API shut down.")


app = FastAPI(
    title="Knowledge AI Bridge",
    description="Multi-tenant knowledge base with grounded chat answers and human escalation.",
    version=app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=app_config.get_list_val("CORS_ORIGINS", default=["*"]),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DocumentNotFoundError)
async def handle_not_found(request: Request, exc: DocumentNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvariantViolationError)
async def handle_invalid(request: Request, exc: InvariantViolationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(UpstreamError)
async def handle_upstream(request: Request, exc: UpstreamError) -> JSONResponse:
    request.app.state.logging.error("Upstream failure on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": "An upstream service failed."})


app.include_router(health_router)
app.include_router(chat_router)
app.include_router(knowledge_router)


# Server Start
if __name__ == "__main__":
    # start server
    import uvicorn
    logging.info(f"Starting Knowledge AI Bridge API v{app_version} from root dir: {os.getenv('ROOT_DIR', os.getcwd())} on port 8000...")
    uvicorn.run(app, host="0.0.0.0", port=8000)
