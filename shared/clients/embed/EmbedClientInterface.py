from abc import abstractmethod

from typing import Tuple
from shared.clients.ClientInterface import ClientInterface
from shared.exceptions import UpstreamError

from shared.helper.HelperConfig import HelperConfig


class EmbedClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # model and embedding config
        self.embed_distance = helper_config.get_string_val(f"{self.get_client_type().upper()}_DISTANCE", default="Cosine")
        self.embed_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_MODEL", default=self._get_default_model())
        self.embed_batch_limit = int(helper_config.get_number_val(f"{self.get_client_type().upper()}_BATCH_LIMIT", default=self._get_default_batch_limit()))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "rag"
        """
        return "embed"

    @abstractmethod
    def _get_default_model(self) -> str:
        """
        Returns the model used when EMBED_MODEL is not set.
        """
        pass

    @abstractmethod
    def _get_default_batch_limit(self) -> int:
        """
        Returns the maximum number of texts the backend accepts in one embedding request.
        """
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def get_endpoint_embedding(self) -> str:
        """
        Returns the endpoint path for (batched) embedding requests.

        Returns:
            str: The endpoint path for embedding requests (e.g. "/api/embed")
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the backend-specific request body for an embedding request.

        Args:
            texts (list[str]): The texts to embed. Never longer than the batch limit.

        Returns:
            dict: JSON-serialisable request body (e.g. {"model": "...", "input": [...]}).
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from a raw embedding API response.

        Response format differs by backend:
        - Ollama /api/embed: {"embeddings": [[...], [...]]}
        - Gemini batchEmbedContents: {"embeddings": [{"values": [...]}, ...]}

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the input texts.

        Raises:
            ValueError: If the response format is invalid or embeddings are empty.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @abstractmethod
    async def do_fetch_embedding_vector_size(self) -> Tuple[int, str]:
        """
        Fetch the output vector dimension and distance metric of the configured embedding model.

        Returns:
            Tuple[int, str]: The number of dimensions produced by the embedding model and the distance metric.
        """
        pass

    async def do_embed(self, text: str) -> list[float]:
        """Embed a single text.

        Args:
            text (str): The text to embed.

        Returns:
            list[float]: The embedding vector.
        """
        vectors = await self._do_embed_request([text])
        return vectors[0]

    async def do_embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed many texts, split into requests of at most embed_batch_limit texts.

        Args:
            texts (list[str]): The texts to embed.

        Returns:
            list[list[float]]: One vector per input text, in input order.
        """
        if not texts:
            return []

        vectors: list[list[float]] = []
        total_requests = (len(texts) + self.embed_batch_limit - 1) // self.embed_batch_limit
        for request_no, start in enumerate(range(0, len(texts), self.embed_batch_limit), start=1):
            batch = texts[start:start + self.embed_batch_limit]
            vectors.extend(await self._do_embed_request(batch))
            self.logging.debug("Embedded request %d/%d (%d texts)", request_no, total_requests, len(batch))
        return vectors

    async def _do_embed_request(self, texts: list[str]) -> list[list[float]]:
        """Send one embedding request and validate that every input got a vector.

        Raises:
            UpstreamError: If the HTTP request fails or the vector count does not match.
            ValueError: If the response does not contain valid embeddings.
        """
        response = await self.do_request(
            method="POST",
            endpoint=self.get_endpoint_embedding(),
            json=self.get_embed_payload(texts),
            raise_on_error=True,
        )
        vectors = self.extract_embeddings_from_response(response.json())
        if len(vectors) != len(texts):
            raise UpstreamError(
                f"Embedding backend returned {len(vectors)} vectors for {len(texts)} texts"
            )
        return vectors
