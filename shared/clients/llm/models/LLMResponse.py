from typing import Literal

from pydantic import BaseModel, ConfigDict


class LLMResponse(BaseModel):
    """Normalised reply of a generation backend.

    Attributes:
        text:          The generated text, stripped.
        token_usage:   Prompt plus completion tokens as reported by the backend (0 if unknown).
        finish_reason: Backend finish reason, e.g. "STOP" or "MAX_TOKENS".
    """

    text: str
    token_usage: int = 0
    finish_reason: str | None = None


class CallOutcome(BaseModel):
    """Result of a single generation attempt.

    Exactly one of the following applies:
        ok            -> response is set
        rate_limited  -> the backend asked us to back off
        fatal         -> error is set and must be raised as is
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    kind: Literal["ok", "rate_limited", "fatal"]
    response: LLMResponse | None = None
    error: Exception | None = None

    @classmethod
    def ok(cls, response: LLMResponse) -> "CallOutcome":
        return cls(kind="ok", response=response)

    @classmethod
    def rate_limited(cls) -> "CallOutcome":
        return cls(kind="rate_limited")

    @classmethod
    def fatal(cls, error: Exception) -> "CallOutcome":
        return cls(kind="fatal", error=error)
