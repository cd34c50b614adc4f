from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.llm.models.LLMResponse import LLMResponse
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class LLMClientOllama(LLMClientInterface):
    """Answers from a self-hosted Ollama server via non-streaming POST /api/chat."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._context_window = int(self.get_config_val("NUM_CTX", default=0, val_type="number"))

    ##########################################
    ################ GETTER ##################
    ##########################################

    def _get_engine_name(self) -> str:
        return "Ollama"

    def _get_default_model(self) -> str:
        return "llama3.1"

    def _get_required_config(self) -> list[EnvConfig]:
        return [EnvConfig(env_key="BASE_URL")]

    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}

    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/api/version"

    def _get_endpoint_chat(self) -> str:
        return "/api/chat"

    def get_chat_payload(self, system_prompt: str, messages: list[dict], temperature: float, max_tokens: int) -> dict:
        options = {"temperature": temperature, "num_predict": max_tokens}
        if self._context_window:
            options["num_ctx"] = self._context_window
        return {
            "model": self.chat_model,
            "messages": [{"role": "system", "content": system_prompt}, *messages],
            "options": options,
            "stream": False,
        }

    ##########################################
    ################ PARSING #################
    ##########################################

    def extract_chat_response(self, response_data: dict) -> LLMResponse:
        """Read the reply text and token counts of an /api/chat answer.

        Raises:
            ValueError: If the answer carries no message content.
        """
        reply = (response_data.get("message") or {}).get("content")
        if reply is None:
            raise ValueError(f"Ollama chat answer without message content for model {self.chat_model}")
        used = sum(int(response_data.get(k) or 0) for k in ("prompt_eval_count", "eval_count"))
        return LLMResponse(text=reply.strip(), token_usage=used, finish_reason=response_data.get("done_reason"))
