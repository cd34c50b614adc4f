"""Models for retrieval, generation and the chat answer flow."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict


class RetrievedFragment(BaseModel):
    """A single scored fragment returned by a vector search."""

    id: str
    score: float
    content: str
    metadata: dict = {}

    def get_document_title(self) -> str:
        return self.metadata.get("document_title") or ""


class RetrievalResult(BaseModel):
    """Fragments ordered by descending similarity, plus the best score (0 when empty)."""

    fragments: list[RetrievedFragment] = []
    max_score: float = 0.0


class ConversationTurn(BaseModel):
    role: Literal["visitor", "assistant"]
    content: str


class ResponseStyle(str, Enum):
    PROFESSIONAL = "professional"
    FRIENDLY = "friendly"


class ResponseConfig(BaseModel):
    """Per-request response configuration.

    Immutable once built; defaults are applied at the request boundary and the
    same instance is handed down the retrieval and generation call chain.
    """

    model_config = ConfigDict(frozen=True)

    response_style: ResponseStyle = ResponseStyle.FRIENDLY
    max_response_length: int | None = 300
    language: str = "vi"
    confidence_threshold: float = 0.7
    enabled_categories: tuple[str, ...] = ()
    ai_display_name: str = "AI Assistant"


class GenerationResult(BaseModel):
    response: str
    confidence: float
    token_usage: int = 0
    processing_time: int = 0


class EscalationReason(str, Enum):
    NO_CONTEXT = "no_context"
    LOW_CONFIDENCE = "low_confidence"
    USER_REQUEST = "user_request"
    AI_RATE_LIMITED = "ai_rate_limited"


class IntentCategory(str, Enum):
    PRICING = "pricing"
    TECHNICAL = "technical"
    GENERAL = "general"
    ESCALATION = "escalation"


class IntentResult(BaseModel):
    is_escalation_request: bool
    category: IntentCategory
    confidence: float


class RetrievedChunkSummary(BaseModel):
    chunk_id: str
    score: float
    content: str
    document_title: str


class ChatAnswer(BaseModel):
    """Outcome of one visitor message."""

    response: str
    confidence: float
    intent: IntentCategory
    should_escalate: bool
    escalation_reason: EscalationReason | None = None
    retrieved_chunks: list[RetrievedChunkSummary] = []
    token_usage: int = 0
    processing_time: int = 0
