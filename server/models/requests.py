from pydantic import BaseModel, Field

from shared.models.document import DocumentCategory, DocumentMetadata, FileType
from shared.models.retrieval import ConversationTurn, ResponseConfig, ResponseStyle


class ChatConfigRequest(BaseModel):
    """Optional per-request overrides; anything left out gets its default."""

    response_style: ResponseStyle | None = None
    max_response_length: int | None = Field(default=None, gt=0)
    language: str | None = None
    confidence_threshold: float | None = Field(default=None, ge=0.0, le=1.0)
    enabled_categories: list[str] | None = None
    ai_display_name: str | None = None

    def to_response_config(self) -> ResponseConfig:
        values = self.model_dump(exclude_none=True)
        if "enabled_categories" in values:
            values["enabled_categories"] = tuple(values["enabled_categories"])
        return ResponseConfig(**values)


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
    tenant: str = Field(min_length=1)
    conversation_history: list[ConversationTurn] = []
    config: ChatConfigRequest | None = None


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    tenant: str = Field(min_length=1)
    category: DocumentCategory | None = None
    top_k: int = Field(default=5, ge=1, le=50)


class CreateDocumentRequest(BaseModel):
    """Intake of a document given inline or as a reference to an already stored file."""

    tenant: str = Field(min_length=1)
    title: str = Field(min_length=1)
    category: DocumentCategory
    content: str | None = None
    file_path: str | None = None
    file_type: FileType | None = None
    metadata: DocumentMetadata | None = None
