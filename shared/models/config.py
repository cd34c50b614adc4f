from typing import Literal

from pydantic import BaseModel


class EnvConfig(BaseModel):
    """
    Represents a single configuration parameter a client reads from the environment.

    The full variable name is built by the client as <TYPE>_<ENGINE>_<env_key>,
    e.g. "RAG_QDRANT_BASE_URL" or "LLM_GEMINI_API_KEY".

    Attributes:
        env_key (str): The raw key of the environment variable, without the client prefix.
        val_type (str): The expected value type: "string", "number", "bool" or "list".
        default (str | int | float | bool | list | None): Fallback if the variable is not set.
            None means the variable is required and validation fails when it is missing.
    """

    env_key: str
    val_type: Literal["string", "number", "bool", "list"] = "string"
    default: str | int | float | bool | list | None = None
