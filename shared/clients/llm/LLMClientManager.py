from shared.clients.ClientManager import ClientManager
from shared.clients.llm.LLMClientInterface import LLMClientInterface


class LLMClientManager(ClientManager[LLMClientInterface]):
    """Generation client selected by LLM_ENGINE (gemini, ollama)."""

    client_type = "llm"
    class_prefix = "LLMClient"
    default_engine = "gemini"
