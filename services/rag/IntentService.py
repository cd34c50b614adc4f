"""Keyword based intent detection for visitor messages."""

from shared.models.retrieval import IntentCategory, IntentResult

ESCALATION_KEYWORDS = frozenset({
    "người", "nhân viên", "hỗ trợ", "human", "agent",
    "tư vấn viên", "chuyên viên", "nói chuyện với người",
    "gặp nhân viên", "kết nối nhân viên", "chuyển cho",
})

PRICING_KEYWORDS = frozenset({
    "giá", "bao nhiêu", "price", "cost", "phí",
    "gói", "package", "thanh toán", "payment", "chi phí",
    "báo giá", "bảng giá", "khuyến mãi", "giảm giá",
})

TECHNICAL_KEYWORDS = frozenset({
    "lỗi", "bug", "error", "không hoạt động", "hỏng",
    "cài đặt", "setup", "cấu hình", "config", "kết nối",
    "không được", "bị lỗi", "trục trặc", "sự cố",
    "hướng dẫn", "cách dùng", "cách sử dụng",
})


def _matches_any(text: str, keywords: frozenset[str]) -> bool:
    return any(keyword in text for keyword in keywords)


class IntentService:
    def detect_intent(self, message: str) -> IntentResult:
        """Classify a message; an explicit request for a human wins over everything else."""
        normalized = message.lower().strip()

        if _matches_any(normalized, ESCALATION_KEYWORDS):
            return IntentResult(is_escalation_request=True, category=IntentCategory.ESCALATION, confidence=0.9)
        if _matches_any(normalized, PRICING_KEYWORDS):
            return IntentResult(is_escalation_request=False, category=IntentCategory.PRICING, confidence=0.8)
        if _matches_any(normalized, TECHNICAL_KEYWORDS):
            return IntentResult(is_escalation_request=False, category=IntentCategory.TECHNICAL, confidence=0.8)
        return IntentResult(is_escalation_request=False, category=IntentCategory.GENERAL, confidence=0.5)
