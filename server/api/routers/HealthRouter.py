from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from server.models.responses import HealthResponse

health_router = APIRouter(prefix="/api")


async def _is_healthy(client, logger) -> bool:
    try:
        return await client.do_healthcheck()
    except Exception as e:
        logger.warning("Healthcheck of %s %s failed: %s", client.get_client_type(), client.get_engine_name(), e)
        return False


@health_router.get("/health", tags=["Health"])
async def handle_health(request: Request) -> JSONResponse:
    """Report vector store and embedding service reachability. No auth required."""
    logger = request.app.state.logging
    vector_ok = await _is_healthy(request.app.state.rag_client, logger)
    embed_ok = await _is_healthy(request.app.state.embed_client, logger)
    result = HealthResponse(
        status="ok" if vector_ok and embed_ok else "degraded",
        vector_store="connected" if vector_ok else "disconnected",
        embedding="available" if embed_ok else "unavailable",
        timestamp=datetime.now(timezone.utc),
    )
    return JSONResponse(content=result.model_dump(mode="json"))
