from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.retrieval import RetrievedFragment


class RAGClientQdrant(RAGClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="http://localhost:6333", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._collection_name = self.get_config_val("COLLECTION", default="knowledge_base", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Qdrant"

    def get_collection_name(self) -> str:
        return self._collection_name

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="http://localhost:6333"),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="COLLECTION", val_type="string", default="knowledge_base")
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"api-key": f"{self._api_key}"}
        else:
            return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/healthz"

    def _get_endpoint_points(self) -> str:
        return f"/collections/{self._collection_name}/points?wait=true"

    def _get_endpoint_search(self) -> str:
        return f"/collections/{self._collection_name}/points/search"

    def _get_endpoint_delete_points(self) -> str:
        return f"/collections/{self._collection_name}/points/delete?wait=true"

    def _get_endpoint_check_collection_existence(self) -> str:
        return f"/collections/{self._collection_name}/exists"

    def _get_endpoint_create_collection(self) -> str:
        return f"/collections/{self._collection_name}"

    def _get_endpoint_payload_index(self) -> str:
        return f"/collections/{self._collection_name}/index?wait=true"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def get_match_condition(self, key: str, value: str) -> dict:
        return {"key": key, "match": {"value": value}}

    def get_create_collection_payload(self, vector_size: int, distance: str) -> dict:
        return {"vectors": {"size": vector_size, "distance": distance}}

    def get_upsert_payload(self, points: list[VectorPoint]) -> dict:
        return {"points": [point.to_request_dict() for point in points]}

    def get_search_payload(self, vector: list[float], conditions: list[dict], limit: int) -> dict:
        return {
            "vector": vector,
            "filter": {"must": conditions},
            "limit": limit,
            "with_payload": True,
        }

    def get_delete_by_filter_payload(self, conditions: list[dict]) -> dict:
        return {"filter": {"must": conditions}}

    def get_delete_by_ids_payload(self, point_ids: list[str]) -> dict:
        return {"points": point_ids}

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_search_hits(self, raw_response: dict) -> list[RetrievedFragment]:
        fragments: list[RetrievedFragment] = []
        for hit in raw_response.get("result", []):
            payload = hit.get("payload") or {}
            fragments.append(
                RetrievedFragment(
                    id=str(hit.get("id")),
                    score=float(hit.get("score", 0.0)),
                    content=payload.get("content") or "",
                    metadata=payload,
                )
            )
        # qdrant already ranks by score; keep the contract explicit
        fragments.sort(key=lambda f: f.score, reverse=True)
        return fragments

    def extract_existence(self, raw_response: dict) -> bool:
        return bool(raw_response.get("result", {}).get("exists"))
