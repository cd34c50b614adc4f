"""VectorPoint model: one (id, vector, payload) triple stored in a RAG backend."""

from pydantic import BaseModel


class VectorPayload(BaseModel):
    """Metadata payload stored alongside each chunk vector.

    The tenant field is mandatory and enforced as an isolation invariant on
    every upsert and search operation and must never be empty.

    Attributes:
        tenant:          MANDATORY. Tenant identifier; used for isolation filtering.
        document_id:     ID of the owning document in the document store.
        category:        Document category; used for optional category filtering.
        document_title:  Human-readable document title, shown as the fragment source.
        content:         Raw text of this chunk.
        chunk_index:     Zero-based position of this chunk within the document.
    """

    tenant: str
    document_id: str
    category: str
    document_title: str
    content: str
    chunk_index: int


class VectorPoint(BaseModel):
    """A point ready for upsert. The id also becomes the chunk's vector_point_id."""

    id: str
    vector: list[float]
    payload: VectorPayload

    def to_request_dict(self) -> dict:
        return {"id": self.id, "vector": self.vector, "payload": self.payload.model_dump()}
