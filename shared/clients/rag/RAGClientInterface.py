from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.models.retrieval import RetrievedFragment

from shared.helper.HelperConfig import HelperConfig

# payload keys that are filtered on and get a keyword index
TENANT_KEY = "tenant"
CATEGORY_KEY = "category"
DOCUMENT_KEY = "document_id"


class RAGClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "rag"
        """
        return "rag"

    @abstractmethod
    def get_collection_name(self) -> str:
        """
        Returns the name of the collection all tenants share.
        """
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_points(self) -> str:
        """
        Returns the endpoint path for points upsert requests.
        """
        pass

    @abstractmethod
    def _get_endpoint_search(self) -> str:
        """
        Returns the endpoint path for similarity search requests.
        """
        pass

    @abstractmethod
    def _get_endpoint_delete_points(self) -> str:
        """
        Returns the endpoint path for deleting points by filter or by id.
        """
        pass

    @abstractmethod
    def _get_endpoint_check_collection_existence(self) -> str:
        """
        Returns the endpoint path for collection existence check requests.
        """
        pass

    @abstractmethod
    def _get_endpoint_create_collection(self) -> str:
        """
        Returns the endpoint path for create collection requests.
        """
        pass

    @abstractmethod
    def _get_endpoint_payload_index(self) -> str:
        """
        Returns the endpoint path for creating a payload field index.
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_match_condition(self, key: str, value: str) -> dict:
        """
        Builds a backend-specific exact-match condition on a payload key.
        """
        pass

    @abstractmethod
    def get_create_collection_payload(self, vector_size: int, distance: str) -> dict:
        """
        Builds the request body for creating the collection.
        """
        pass

    @abstractmethod
    def get_upsert_payload(self, points: list[VectorPoint]) -> dict:
        """
        Builds the request body for upserting points.
        """
        pass

    @abstractmethod
    def get_search_payload(self, vector: list[float], conditions: list[dict], limit: int) -> dict:
        """
        Builds the request body for a filtered similarity search.

        Args:
            vector (list[float]): The query embedding.
            conditions (list[dict]): Conditions that all must match.
            limit (int): Maximum number of hits.
        """
        pass

    @abstractmethod
    def get_delete_by_filter_payload(self, conditions: list[dict]) -> dict:
        """
        Builds the request body for deleting every point matching all conditions.
        """
        pass

    @abstractmethod
    def get_delete_by_ids_payload(self, point_ids: list[str]) -> dict:
        """
        Builds the request body for deleting points by id.
        """
        pass

    ################ RESPONSE PARSER ##################
    @abstractmethod
    def extract_search_hits(self, raw_response: dict) -> list[RetrievedFragment]:
        """
        Converts a raw search response into fragments ordered by descending score.
        """
        pass

    @abstractmethod
    def extract_existence(self, raw_response: dict) -> bool:
        """
        Reads the existence flag from a raw existence check response.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_existence_check(self) -> bool:
        """Check if the collection exists in the rag backend.

        Returns:
            bool: True if the collection exists, False otherwise.
        """
        resp = await self.do_request(
            method="GET",
            endpoint=self._get_endpoint_check_collection_existence(),
            raise_on_error=True,
        )
        return self.extract_existence(resp.json())

    async def do_create_collection(self, vector_size: int, distance: str = "Cosine") -> None:
        """Create the collection and keyword indexes for the filtered payload keys.

        Args:
            vector_size (int): The dimension of the vectors in the collection.
            distance (str): The distance metric for the vectors.
        """
        await self.do_request(
            method="PUT",
            json=self.get_create_collection_payload(vector_size, distance),
            endpoint=self._get_endpoint_create_collection(),
            raise_on_error=True,
        )
        for field_name in (TENANT_KEY, CATEGORY_KEY, DOCUMENT_KEY):
            await self.do_request(
                method="PUT",
                json={"field_name": field_name, "field_schema": "keyword"},
                endpoint=self._get_endpoint_payload_index(),
                raise_on_error=True,
            )
        self.logging.info(
            "Created collection '%s' (size=%d, distance=%s) on %s",
            self.get_collection_name(), vector_size, distance, self.get_engine_name(),
        )

    async def do_ensure_collection(self, vector_size: int, distance: str = "Cosine") -> bool:
        """Create the collection if it does not exist yet.

        Returns:
            bool: True if the collection was created, False if it already existed.
        """
        if await self.do_existence_check():
            self.logging.info("Collection '%s' already exists.", self.get_collection_name())
            return False
        await self.do_create_collection(vector_size=vector_size, distance=distance)
        return True

    async def do_upsert_points(self, points: list[VectorPoint]) -> None:
        """Upsert points into the collection.

        Inserts new points or replaces existing ones if a point with the same ID already exists.

        Args:
            points (list[VectorPoint]): The points to upsert.

        Raises:
            ValueError: If a point payload carries no tenant (isolation invariant).
        """
        if not points:
            return
        for point in points:
            if not point.payload.tenant:
                raise ValueError(f"Point {point.id} has no tenant. This is an isolation invariant.")
        await self.do_request(
            method="PUT",
            json=self.get_upsert_payload(points),
            endpoint=self._get_endpoint_points(),
            raise_on_error=True,
        )

    async def do_search(self, vector: list[float], tenant: str, category: str | None = None, top_k: int = 5) -> list[RetrievedFragment]:
        """Search for similar vectors, always pre-filtered by tenant.

        The tenant filter is unconditionally injected and cannot be removed by callers.

        Args:
            vector (list[float]): The query embedding vector.
            tenant (str): The tenant whose points may be returned.
            category (str | None): Optional category filter.
            top_k (int): Maximum number of results to return.

        Returns:
            list[RetrievedFragment]: Matching fragments ordered by descending score.
        """
        if not tenant:
            raise ValueError("Search requires a tenant. This is an isolation invariant.")
        conditions = [self.get_match_condition(TENANT_KEY, tenant)]
        if category:
            conditions.append(self.get_match_condition(CATEGORY_KEY, category))
        resp = await self.do_request(
            method="POST",
            json=self.get_search_payload(vector, conditions, top_k),
            endpoint=self._get_endpoint_search(),
            raise_on_error=True,
        )
        return self.extract_search_hits(resp.json())

    async def do_delete_by_document_id(self, document_id: str) -> None:
        """Delete every point whose payload references the given document.

        Args:
            document_id (str): The document whose points to remove.
        """
        await self.do_request(
            method="POST",
            json=self.get_delete_by_filter_payload([self.get_match_condition(DOCUMENT_KEY, document_id)]),
            endpoint=self._get_endpoint_delete_points(),
            raise_on_error=True,
        )
        self.logging.debug("Deleted all points for document_id=%s", document_id)

    async def do_delete_points(self, point_ids: list[str]) -> None:
        """Delete points by id.

        Args:
            point_ids (list[str]): The ids of the points to remove.
        """
        if not point_ids:
            return
        await self.do_request(
            method="POST",
            json=self.get_delete_by_ids_payload(point_ids),
            endpoint=self._get_endpoint_delete_points(),
            raise_on_error=True,
        )
