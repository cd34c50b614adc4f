import time

from services.rag.IntentService import IntentService
from services.rag.RagService import RagService, decide_escalation
from shared.exceptions import RateLimitError
from shared.helper.HelperConfig import HelperConfig
from shared.models.retrieval import (
    ChatAnswer,
    ConversationTurn,
    EscalationReason,
    IntentCategory,
    ResponseConfig,
    RetrievedChunkSummary,
)

TOP_K = 5

HANDOFF_MESSAGE = {
    "vi": "Tôi sẽ kết nối bạn với nhân viên hỗ trợ ngay. Vui lòng chờ trong giây lát!",
    "en": "I will connect you with a support agent right away. Please wait a moment!",
}
BUSY_MESSAGE = {
    "vi": "Xin lỗi, hệ thống AI đang bận. Để tôi kết nối bạn với nhân viên hỗ trợ nhé!",
    "en": "Sorry, the AI assistant is busy right now. Let me connect you with a support agent!",
}


def _localized(messages: dict[str, str], language: str) -> str:
    return messages.get(language, messages["vi"])


class ChatService:
    """Answers a visitor message: intent, retrieval, generation, escalation."""

    def __init__(self, helper_config: HelperConfig, intent_service: IntentService, rag_service: RagService) -> None:
        self.logging = helper_config.get_logger()
        self._intent_service = intent_service
        self._rag_service = rag_service

    async def process_message(
        self,
        message: str,
        tenant: str,
        history: list[ConversationTurn],
        config: ResponseConfig,
    ) -> ChatAnswer:
        """Produce the chat answer for one visitor message.

        A rate limited generation backend degrades to an apology that asks
        for a handoff. Any other failure propagates to the caller.
        """
        started = time.monotonic()

        def elapsed_ms() -> int:
            return int((time.monotonic() - started) * 1000)

        intent = self._intent_service.detect_intent(message)
        if intent.is_escalation_request:
            self.logging.info("Visitor of tenant %s asked for a human", tenant)
            return ChatAnswer(
                response=_localized(HANDOFF_MESSAGE, config.language),
                confidence=1.0,
                intent=IntentCategory.ESCALATION,
                should_escalate=True,
                escalation_reason=EscalationReason.USER_REQUEST,
                processing_time=elapsed_ms(),
            )

        category = None
        if intent.category != IntentCategory.GENERAL:
            category = intent.category.value
            if config.enabled_categories and category not in config.enabled_categories:
                category = None

        retrieval = await self._rag_service.retrieve(query=message, tenant=tenant, category=category, top_k=TOP_K)
        chunks = [
            RetrievedChunkSummary(
                chunk_id=f.id,
                score=f.score,
                content=f.content,
                document_title=f.get_document_title(),
            )
            for f in retrieval.fragments
        ]

        try:
            result = await self._rag_service.generate(
                query=message,
                fragments=retrieval.fragments,
                history=history,
                config=config,
            )
        except RateLimitError as e:
            self.logging.warning("Generation rate limited for tenant %s: %s", tenant, e)
            return ChatAnswer(
                response=_localized(BUSY_MESSAGE, config.language),
                confidence=0.0,
                intent=intent.category,
                should_escalate=True,
                escalation_reason=EscalationReason.AI_RATE_LIMITED,
                retrieved_chunks=chunks,
                processing_time=elapsed_ms(),
            )

        reason = decide_escalation(result.confidence, len(retrieval.fragments), config.confidence_threshold)
        answer = ChatAnswer(
            response=result.response,
            confidence=result.confidence,
            intent=intent.category,
            should_escalate=reason is not None,
            escalation_reason=reason,
            retrieved_chunks=chunks,
            token_usage=result.token_usage,
            processing_time=elapsed_ms(),
        )
        self.logging.info(
            "Chat processed: intent=%s, confidence=%.2f, escalate=%s, %dms",
            intent.category.value, answer.confidence, answer.should_escalate, answer.processing_time,
        )
        return answer
