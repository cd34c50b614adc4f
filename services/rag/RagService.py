"""Retrieval and grounded generation.

retrieve(): embed the query, then run a tenant-scoped similarity search.
generate(): build prompts from the retrieved fragments and a bounded
conversation history, call the generation backend and score confidence.
"""

import time

from services.rag.prompts import build_system_prompt, build_user_prompt
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.retrieval import (
    ConversationTurn,
    EscalationReason,
    GenerationResult,
    ResponseConfig,
    RetrievalResult,
    RetrievedFragment,
)

MAX_HISTORY = 10          # most recent conversation turns sent to the model
TEMPERATURE = 0.3
DEFAULT_MAX_TOKENS = 500
MAX_TOKENS_CEILING = 1000
NO_CONTEXT_CONFIDENCE = 0.1

UNCERTAINTY_PHRASES = (
    # vi
    "không có đủ thông tin",
    "chưa có đủ thông tin",
    "không biết",
    "không chắc",
    "nhân viên hỗ trợ",
    "kết nối bạn với",
    # en
    "not enough information",
    "don't have enough information",
    "not sure",
    "don't know",
    "connect you with",
)


def calculate_confidence(fragments: list[RetrievedFragment], response: str) -> float:
    """Score how well a response is grounded in the retrieved fragments.

    Averages the top three similarity scores; a response that signals
    uncertainty is capped at min(avg * 0.5, 0.4).
    """
    if not fragments:
        return NO_CONTEXT_CONFIDENCE
    top = fragments[:3]
    avg_score = sum(f.score for f in top) / len(top)
    lowered = response.lower()
    if any(phrase in lowered for phrase in UNCERTAINTY_PHRASES):
        confidence = min(avg_score * 0.5, 0.4)
    else:
        confidence = avg_score
    return round(confidence, 2)


def decide_escalation(confidence: float, fragment_count: int, threshold: float) -> EscalationReason | None:
    """Return the escalation reason, or None when the answer can stand on its own."""
    if confidence >= threshold:
        return None
    return EscalationReason.NO_CONTEXT if fragment_count == 0 else EscalationReason.LOW_CONFIDENCE


def max_tokens_for(config: ResponseConfig) -> int:
    if config.max_response_length:
        return min(config.max_response_length * 2, MAX_TOKENS_CEILING)
    return DEFAULT_MAX_TOKENS


class RagService:
    def __init__(
        self,
        helper_config: HelperConfig,
        embed_client: EmbedClientInterface,
        rag_client: RAGClientInterface,
        llm_client: LLMClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._embed_client = embed_client
        self._rag_client = rag_client
        self._llm_client = llm_client

    ##########################################
    ############### RETRIEVAL ################
    ##########################################

    async def retrieve(self, query: str, tenant: str, category: str | None = None, top_k: int = 5) -> RetrievalResult:
        """Find the fragments of a tenant most similar to the query.

        Args:
            query (str): Free text query.
            tenant (str): Tenant whose fragments may be returned.
            category (str | None): Optional category restriction.
            top_k (int): Maximum number of fragments.

        Returns:
            RetrievalResult: Fragments by descending score; max_score is 0 when empty.
        """
        vector = await self._embed_client.do_embed(query)
        fragments = await self._rag_client.do_search(vector=vector, tenant=tenant, category=category, top_k=top_k)
        max_score = fragments[0].score if fragments else 0.0
        self.logging.debug(
            "Retrieved %d fragment(s) for tenant=%s category=%s (max score %.3f)",
            len(fragments), tenant, category, max_score,
        )
        return RetrievalResult(fragments=fragments, max_score=max_score)

    ##########################################
    ############### GENERATION ###############
    ##########################################

    async def generate(
        self,
        query: str,
        fragments: list[RetrievedFragment],
        history: list[ConversationTurn],
        config: ResponseConfig,
    ) -> GenerationResult:
        """Generate a grounded answer and its confidence.

        Raises:
            RateLimitError: If the generation backend stays rate limited.
            UpstreamError: On any other generation failure.
        """
        started = time.monotonic()

        system_prompt = build_system_prompt(config)
        user_prompt = build_user_prompt(query, fragments, config.language)
        messages = [
            {"role": "user" if turn.role == "visitor" else "assistant", "content": turn.content}
            for turn in history[-MAX_HISTORY:]
        ]
        messages.append({"role": "user", "content": user_prompt})

        reply = await self._llm_client.do_chat(
            system_prompt=system_prompt,
            messages=messages,
            temperature=TEMPERATURE,
            max_tokens=max_tokens_for(config),
        )

        return GenerationResult(
            response=reply.text,
            confidence=calculate_confidence(fragments, reply.text),
            token_usage=reply.token_usage,
            processing_time=int((time.monotonic() - started) * 1000),
        )
