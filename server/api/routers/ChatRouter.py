"""Chat router: answers visitor messages from the tenant's knowledge base."""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from server.models.requests import ChatRequest
from shared.dependencies.auth import verify_api_key
from shared.models.retrieval import ResponseConfig

chat_router = APIRouter(prefix="/api")


@chat_router.post(
    "/chat",
    dependencies=[Depends(verify_api_key)],
    tags=["Chat"],
)
async def handle_chat(request: Request, body: ChatRequest) -> JSONResponse:
    """Answer one visitor message.

    Defaults of the response configuration are applied here, once; the
    resulting immutable config is handed down the whole call chain.

    Raises:
        HTTPException: 503 on any failure other than rate limiting, without internal detail.
    """
    config = body.config.to_response_config() if body.config else ResponseConfig()
    chat_service = request.app.state.chat_service
    try:
        answer = await chat_service.process_message(
            message=body.message,
            tenant=body.tenant,
            history=body.conversation_history,
            config=config,
        )
    except Exception as e:
        request.app.state.logging.error("Chat failed for tenant %s: %s", body.tenant, e)
        raise HTTPException(status_code=503, detail="The assistant is temporarily unavailable.")
    return JSONResponse(content=answer.model_dump(mode="json"))
