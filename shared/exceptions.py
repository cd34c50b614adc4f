"""Exception hierarchy shared by clients, services and the API layer."""


class KnowledgeBridgeError(Exception):
    """Base class for all errors raised by the knowledge bridge."""
    pass


class DocumentNotFoundError(KnowledgeBridgeError):
    """Raised when a referenced document does not exist."""

    def __init__(self, document_id: str):
        super().__init__(f"Document {document_id} not found")
        self.document_id = document_id


class InvariantViolationError(KnowledgeBridgeError):
    """Raised when a record is in a state the pipeline cannot work with.

    E.g. a document that has neither content nor a file reference.
    Fatal for the current task and never retried.
    """
    pass


class UpstreamError(KnowledgeBridgeError):
    """Raised when an embedding, vector store or generation backend fails."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(UpstreamError):
    """Raised when a generation backend keeps signalling rate limiting after all retries."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message, status_code=429)
        self.attempts = attempts
