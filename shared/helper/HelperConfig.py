"""Environment-backed settings for the knowledge AI bridge."""

import logging
import os
from typing import Any


class HelperConfig:
    """Reads every setting from environment variables.

    Keys are case-insensitive; a variable set to an empty string counts as unset.
    Passing default=None marks a setting as required.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def _read(self, key: str, default: Any) -> tuple[str, str | None]:
        """Return (normalized key, raw value or None), enforcing required settings."""
        key = key.upper()
        raw = os.getenv(key) or None
        if raw is None and default is None:
            raise ValueError(f"Environment variable '{key}' is not set.")
        return key, raw

    def get_string_val(self, key: str, default: str | None = None) -> str:
        """Read a string setting, stripped of surrounding whitespace.

        Raises:
            ValueError: If the variable is not set and no default is provided.
        """
        _, raw = self._read(key, default)
        return raw.strip() if raw is not None else default

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """Read a numeric setting. "5" gives an int, "5.0" a float.

        Raises:
            ValueError: If the variable is missing without default or is not a number.
        """
        key, raw = self._read(key, default)
        if raw is None:
            return default
        try:
            return float(raw) if "." in raw else int(raw)
        except ValueError:
            raise ValueError(f"Environment variable '{key}' is not a valid number: '{raw}'.")

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        """Read a boolean setting; true, 1 and yes are truthy."""
        _, raw = self._read(key, default)
        if raw is None:
            return default
        return raw.strip().lower() in ("true", "1", "yes")

    def get_list_val(self, key: str, default: list | None = None, separator: str = ",", element_type: type = str) -> list:
        """Read a list setting written as "[elem1,elem2,...]".

        Example:
            CORS_ORIGINS="[https://a.example,https://b.example]" -> ["https://a.example", "https://b.example"]

        Raises:
            ValueError: If the value is not bracketed or an element cannot be cast.
        """
        key, raw = self._read(key, default)
        if raw is None:
            return default
        raw = raw.strip()
        if not (raw.startswith("[") and raw.endswith("]")):
            raise ValueError(f"Environment variable '{key}' must look like '[elem1{separator}elem2]'. Got: '{raw}'")
        try:
            return [element_type(v.strip()) for v in raw[1:-1].split(separator) if v.strip()]
        except ValueError as e:
            raise ValueError(f"Environment variable '{key}' has an element that is not a {element_type.__name__}: {e}")

    def get_logger(self) -> logging.Logger:
        return self._logger
