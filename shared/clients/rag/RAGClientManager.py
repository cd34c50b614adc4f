from shared.clients.ClientManager import ClientManager
from shared.clients.rag.RAGClientInterface import RAGClientInterface


class RAGClientManager(ClientManager[RAGClientInterface]):
    """Vector store client selected by RAG_ENGINE (qdrant)."""

    client_type = "rag"
    class_prefix = "RAGClient"
    default_engine = "qdrant"
