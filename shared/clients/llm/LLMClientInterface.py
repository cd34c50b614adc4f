from abc import abstractmethod
import asyncio

import httpx
from shared.clients.ClientInterface import ClientInterface
from shared.clients.llm.models.LLMResponse import CallOutcome, LLMResponse
from shared.exceptions import RateLimitError, UpstreamError
from shared.helper.HelperConfig import HelperConfig

# markers a backend puts into the error body when a quota is exhausted
RATE_LIMIT_MARKERS = ("RESOURCE_EXHAUSTED", "quota")


class LLMClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # chat / completion config
        self.chat_model = helper_config.get_string_val("LLM_CHAT_MODEL", default=self._get_default_model())
        self.max_retries = int(helper_config.get_number_val("LLM_MAX_RETRIES", default=3))
        self.retry_delay = helper_config.get_number_val("LLM_RETRY_DELAY", default=5.0)

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def is_rate_limited(self, response: httpx.Response) -> bool:
        """Check whether a failed response signals rate limiting.

        Args:
            response (httpx.Response): The failed backend response.

        Returns:
            bool: True for HTTP 429 or a quota marker in the body.
        """
        if response.status_code == 429:
            return True
        body = response.text or ""
        return any(marker in body for marker in RATE_LIMIT_MARKERS)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "llm"

    @abstractmethod
    def _get_default_model(self) -> str:
        """Returns the chat model used when LLM_CHAT_MODEL is not set."""
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_chat(self) -> str:
        """Returns the endpoint path for chat/completion requests (e.g. "/api/chat")."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_chat_payload(self, system_prompt: str, messages: list[dict], temperature: float, max_tokens: int) -> dict:
        """Build the backend-specific request body for a chat/completion request.

        Args:
            system_prompt (str): The system instruction.
            messages (list[dict]): Conversation in the neutral format
                [{"role": "user" | "assistant", "content": "..."}].
            temperature (float): Sampling temperature.
            max_tokens (int): Upper bound for generated tokens.

        Returns:
            dict: JSON-serialisable request body.
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_chat_response(self, response_data: dict) -> LLMResponse:
        """Extract the reply from a raw chat API response.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            LLMResponse: Text, token usage and finish reason.

        Raises:
            ValueError: If the response does not contain a valid reply.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def _attempt(self, body: dict) -> CallOutcome:
        """Run a single generation request and classify its result."""
        try:
            response = await self.do_request(method="POST", endpoint=self._get_endpoint_chat(), json=body)
        except UpstreamError as e:
            return CallOutcome.fatal(e)

        if response.status_code >= 300:
            if self.is_rate_limited(response):
                return CallOutcome.rate_limited()
            self.logging.error(
                "Chat request failed: status %d, body: %s",
                response.status_code,
                response.text[:300],
            )
            return CallOutcome.fatal(
                UpstreamError(f"LLM request failed with status {response.status_code}", status_code=response.status_code)
            )

        try:
            return CallOutcome.ok(self.extract_chat_response(response.json()))
        except ValueError as e:
            return CallOutcome.fatal(UpstreamError(str(e)))

    async def do_chat(self, system_prompt: str, messages: list[dict], temperature: float = 0.7, max_tokens: int = 500) -> LLMResponse:
        """Send a chat request, backing off while the backend is rate limited.

        Waits retry_delay * 2**attempt between attempts (5s, 10s, 20s by default).

        Args:
            system_prompt (str): The system instruction.
            messages (list[dict]): Conversation turns, oldest first.
            temperature (float): Sampling temperature.
            max_tokens (int): Upper bound for generated tokens.

        Returns:
            LLMResponse: The generated reply.

        Raises:
            RateLimitError: If the backend is still rate limited after all retries.
            UpstreamError: On any other backend failure.
        """
        body = self.get_chat_payload(system_prompt, messages, temperature, max_tokens)

        for attempt in range(self.max_retries + 1):
            outcome = await self._attempt(body)
            if outcome.kind == "ok":
                return outcome.response
            if outcome.kind == "fatal":
                raise outcome.error
            if attempt >= self.max_retries:
                break
            delay = self.retry_delay * (2 ** attempt)
            self.logging.warning(
                "%s rate limited, retrying in %.0fs (attempt %d/%d)",
                self.get_engine_name(), delay, attempt + 1, self.max_retries,
            )
            await asyncio.sleep(delay)

        raise RateLimitError(
            f"{self.get_engine_name()} still rate limited after {self.max_retries} retries",
            attempts=self.max_retries + 1,
        )

    async def do_complete(self, system_prompt: str, user_prompt: str, temperature: float = 0.7, max_tokens: int = 500) -> LLMResponse:
        """Single-turn convenience wrapper around do_chat."""
        return await self.do_chat(
            system_prompt=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
            temperature=temperature,
            max_tokens=max_tokens,
        )
