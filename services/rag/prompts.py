"""Prompt templates for grounded answer generation, per response language."""

from shared.models.retrieval import ResponseConfig, ResponseStyle, RetrievedFragment

NOT_ENOUGH_INFO = {
    "vi": "Tôi chưa có đủ thông tin về vấn đề này. Để tôi kết nối bạn với nhân viên hỗ trợ nhé!",
    "en": "I don't have enough information about this yet. Let me connect you with a support agent!",
}

_TONE = {
    "vi": {
        ResponseStyle.PROFESSIONAL: "Chuyên nghiệp, lịch sự, sử dụng kính ngữ",
        ResponseStyle.FRIENDLY: "Thân thiện, tự nhiên, gần gũi như nhân viên CSKH",
    },
    "en": {
        ResponseStyle.PROFESSIONAL: "Professional and courteous",
        ResponseStyle.FRIENDLY: "Friendly and natural, like a helpful customer care agent",
    },
}

_SYSTEM = {
    "vi": """Bạn là "{name}", trợ lý AI của doanh nghiệp trên nền tảng chat trực tuyến.

## Vai trò
- Hỗ trợ khách hàng giải đáp thắc mắc dựa trên tài liệu nội bộ
- Phong cách: {tone}
- Ngôn ngữ: Tiếng Việt

## Quy tắc BẮT BUỘC
1. CHỈ sử dụng thông tin từ "Context" được cung cấp, KHÔNG BAO GIỜ bịa đặt
2. Nếu Context không đủ thông tin, trả lời: "{fallback}"
3. Giữ câu trả lời ngắn gọn (2-4 câu). Dài hơn nếu cần giải thích chi tiết
4. Có thể trích dẫn nguồn: "Theo tài liệu [tên tài liệu]..."
5. KHÔNG đề cập đến "Context", "tài liệu tham khảo", "hệ thống"; nói như bạn TỰ BIẾT
6. Nếu khách hỏi ngoài phạm vi (chính trị, tôn giáo, 18+), từ chối lịch sự
7. Khi trả lời danh sách, dùng bullet points cho dễ đọc""",
    "en": """You are "{name}", the AI assistant of a business on an online chat platform.

## Role
- Help customers with their questions based on internal documentation
- Style: {tone}
- Language: English

## MANDATORY rules
1. ONLY use information from the provided "Context". NEVER make things up
2. If the Context is not sufficient, answer: "{fallback}"
3. Keep answers short (2-4 sentences). Go longer only when a detailed explanation is needed
4. You may cite sources: "According to [document title]..."
5. NEVER mention "Context", "reference documents" or "the system"; speak as if you KNOW it yourself
6. If the customer asks about out-of-scope topics (politics, religion, adult content), decline politely
7. Use bullet points when answering with a list""",
}

_QUESTION = {"vi": "Câu hỏi", "en": "Question"}
_SOURCE = {"vi": "Nguồn", "en": "Source"}
_NO_CONTEXT = {
    "vi": "(Không tìm thấy tài liệu liên quan, hãy cho khách biết và đề nghị kết nối nhân viên)",
    "en": "(No relevant material was found. Tell the customer and offer to connect them with a support agent)",
}


def _lang(language: str) -> str:
    return language if language in _SYSTEM else "vi"


def build_system_prompt(config: ResponseConfig) -> str:
    lang = _lang(config.language)
    return _SYSTEM[lang].format(
        name=config.ai_display_name or "AI Assistant",
        tone=_TONE[lang][config.response_style],
        fallback=NOT_ENOUGH_INFO[lang],
    )


def build_user_prompt(query: str, fragments: list[RetrievedFragment], language: str) -> str:
    lang = _lang(language)
    if not fragments:
        return f"{_QUESTION[lang]}: {query}\n\n{_NO_CONTEXT[lang]}"

    context = "\n\n".join(
        f"[{i}] ({_SOURCE[lang]}: {fragment.get_document_title() or 'N/A'}, Relevance: {int(fragment.score * 100 + 0.5)}%)\n{fragment.content}"
        for i, fragment in enumerate(fragments, start=1)
    )
    return f"Context:\n{context}\n\n{_QUESTION[lang]}: {query}"
