from typing import Tuple

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class EmbedClientOllama(EmbedClientInterface):
    """Embeddings from a self-hosted Ollama server (POST /api/embed).

    EMBED_OLLAMA_VECTOR_SIZE may pin the dimension; when it is 0 the dimension is
    read from /api/show and, for models that do not report it, measured by
    embedding a probe text.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._vector_size = int(self.get_config_val("VECTOR_SIZE", default=0, val_type="number"))
        self._keep_alive = self.get_config_val("KEEP_ALIVE", default="", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    def _get_engine_name(self) -> str:
        return "Ollama"

    def _get_default_model(self) -> str:
        return "nomic-embed-text"

    def _get_default_batch_limit(self) -> int:
        return 64

    def _get_required_config(self) -> list[EnvConfig]:
        return [EnvConfig(env_key="BASE_URL")]

    def _get_auth_header(self) -> dict:
        # only set when the server sits behind an authenticating proxy
        return {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}

    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/api/version"

    def get_endpoint_embedding(self) -> str:
        return "/api/embed"

    def get_embed_payload(self, texts: list[str]) -> dict:
        # truncate instead of failing on fragments longer than the model context
        payload = {"model": self.embed_model, "input": texts, "truncate": True}
        if self._keep_alive:
            payload["keep_alive"] = self._keep_alive
        return payload

    ##########################################
    ################ PARSING #################
    ##########################################

    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        vectors = response_data.get("embeddings") or []
        if not vectors or not all(vectors):
            raise ValueError(f"Ollama returned no usable embeddings for model {self.embed_model}")
        return vectors

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_fetch_embedding_vector_size(self) -> Tuple[int, str]:
        if self._vector_size > 0:
            return self._vector_size, self.embed_distance

        response = await self.do_request(
            method="POST",
            endpoint="/api/show",
            json={"model": self.embed_model},
            raise_on_error=True,
        )
        details = response.json().get("model_info") or {}
        size = next((int(v) for k, v in details.items() if k.endswith(".embedding_length")), 0)
        if not size:
            self.logging.info("Model %s does not report its dimension, probing", self.embed_model)
            size = len(await self.do_embed("dimension probe"))
        return size, self.embed_distance
