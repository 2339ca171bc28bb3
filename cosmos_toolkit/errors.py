"""Tool-level error taxonomy and the JSON error shape returned to callers."""

from __future__ import annotations

import json
from typing import Optional


class ToolError(Exception):
    """Base class for errors a tool reports back as ``{"error": ...}``."""


class ValidationError(ToolError):
    """Missing, out-of-range or malformed input, raised before any I/O."""


class ConfigurationError(ValidationError):
    """A required environment variable is missing.

    Reported with the same shape as a parameter error.
    """

    def __init__(self, variable: str) -> None:
        super().__init__(f"Missing required environment variable {variable}.")
        self.variable = variable


class EmbeddingError(ToolError):
    """The embedding service call failed."""

    prefix = "Failed to generate embedding: "

    def __str__(self) -> str:
        return f"{self.prefix}{super().__str__()}"


def error_json(message: str, status_code: Optional[int] = None) -> str:
    """Serialize the uniform error object; ``statusCode`` only when known."""
    payload = {"error": message}
    if status_code is not None:
        payload["statusCode"] = int(status_code)
    return json.dumps(payload)


def message_json(message: str) -> str:
    return json.dumps({"message": message})
