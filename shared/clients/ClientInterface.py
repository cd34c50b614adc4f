from abc import ABC, abstractmethod
from typing import Any

import httpx
from httpx._types import QueryParamTypes, RequestContent

from shared.exceptions import UpstreamError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class ClientInterface(ABC):
    """Base for every HTTP backend client (embed, rag, llm).

    A client is identified by its type and engine, e.g. ("rag", "qdrant"). Engine
    settings are read from <TYPE>_<ENGINE>_<KEY> variables, the request timeout
    from <TYPE>_TIMEOUT. Required settings are checked on construction, the HTTP
    client itself is only created by boot().
    """

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self.timeout = helper_config.get_number_val(f"{self.get_client_type().upper()}_TIMEOUT", default=30.0)
        self._client: httpx.AsyncClient | None = None

        for setting in self._get_required_config():
            self.get_config_val(setting.env_key, default=setting.default, val_type=setting.val_type)

    ##########################################
    ############### IDENTITY #################
    ##########################################

    def get_client_type(self) -> str:
        return self._get_client_type().lower()

    def get_engine_name(self) -> str:
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_client_type(self) -> str:
        """E.g. "rag"."""
        pass

    @abstractmethod
    def _get_engine_name(self) -> str:
        """E.g. "qdrant"."""
        pass

    ##########################################
    ################ CONFIG ##################
    ##########################################

    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """Settings that must resolve for the engine to work."""
        pass

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """Read an engine setting, e.g. raw_key "API_KEY" on the qdrant rag client reads RAG_QDRANT_API_KEY.

        Raises:
            ValueError: If the setting is required and missing, or val_type is unknown.
        """
        key = f"{self.get_client_type()}_{self.get_engine_name()}_{raw_key}".upper()
        readers = {
            "string": self._helper_config.get_string_val,
            "number": self._helper_config.get_number_val,
            "bool": self._helper_config.get_bool_val,
            "list": self._helper_config.get_list_val,
        }
        if val_type not in readers:
            raise ValueError(f"Unsupported value type '{val_type}' for setting '{key}'.")
        return readers[val_type](key, default=default)

    ##########################################
    ############### BACKEND ##################
    ##########################################

    @abstractmethod
    def _get_auth_header(self) -> dict:
        """Headers sent with every request; empty when no credential is configured."""
        pass

    @abstractmethod
    def _get_base_url(self) -> str:
        """E.g. "http://localhost:6333"."""
        pass

    @abstractmethod
    def _get_endpoint_healthcheck(self) -> str:
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def boot(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Create the HTTP client. Tests pass an httpx.MockTransport."""
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=transport)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def do_healthcheck(self) -> bool:
        """Return True when the backend answers its health endpoint.

        Raises:
            UpstreamError: If the backend answers with an error status.
        """
        await self.do_request(method="GET", endpoint=self._get_endpoint_healthcheck(), raise_on_error=True)
        return True

    async def do_request(
        self,
        method: str = "GET",
        endpoint: str = "",
        json: dict | None = None,
        content: RequestContent | None = None,
        params: QueryParamTypes | None = None,
        additional_headers: dict | None = None,
        raise_on_error: bool = False,
    ) -> httpx.Response:
        """Send a request to <base url>/<endpoint> with the auth header applied.

        A raw ``content`` body wins over ``json`` when both are given.

        Raises:
            RuntimeError: If boot() has not been called.
            UpstreamError: On connection errors and timeouts, and on a status >= 300
                when raise_on_error is set.
        """
        if self._client is None:
            raise RuntimeError(f"{self.get_client_type()} client used before boot()")

        path = endpoint.strip().lstrip("/")
        url = self._get_base_url().rstrip("/") + (f"/{path}" if path else "")
        headers = {**self._get_auth_header(), **(additional_headers or {})}

        body: dict = {}
        if content is not None:
            body["content"] = content
        elif json is not None:
            body["json"] = json

        try:
            response = await self._client.request(method, url, headers=headers, params=params, **body)
        except httpx.HTTPError as e:
            self.logging.error("%s %s could not be completed: %s", method, url, e)
            raise UpstreamError(f"{self.get_client_type().upper()} backend unreachable at /{path}: {e}") from e

        if raise_on_error and response.status_code >= 300:
            self.logging.error("%s %s returned %d: %s", method, url, response.status_code, response.text[:300])
            raise UpstreamError(
                f"{self.get_client_type().upper()} request to /{path} failed with status {response.status_code}",
                status_code=response.status_code,
            )
        return response
