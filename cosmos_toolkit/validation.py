"""Parameter validation for tool inputs.

Cosmos DB binds literal values (``@id``, ``@searchPhrase``) but not property
paths, so any caller-supplied property name is concatenated into query text.
The identifier pattern below is the only thing standing between that text
and injection: letters, digits and underscores, optionally dot-separated,
never starting with a digit.
"""

from __future__ import annotations

import re
from typing import Any, List

from cosmos_toolkit.errors import ValidationError

IDENTIFIER_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*")

# ASCII only: str.isdigit() also accepts superscripts that int() rejects
WHOLE_NUMBER_PATTERN = re.compile(r"[+-]?[0-9]+")

WILDCARD = "*"


def is_identifier(value: Any) -> bool:
    return isinstance(value, str) and IDENTIFIER_PATTERN.fullmatch(value) is not None


def require_text(name: str, value: Any) -> str:
    """Return *value* unchanged if it is a non-blank string."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Parameter '{name}' is required.")
    return value


def require_location(database_id: Any, container_id: Any) -> None:
    """Both the database and container ids must be present."""
    for value in (database_id, container_id):
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(
                "Parameters 'databaseId' and 'containerId' are required."
            )


def require_count(name: str, value: Any, minimum: int, maximum: int) -> int:
    """Coerce *value* to an int inside ``[minimum, maximum]``.

    Integral floats (``5.0``) and digit strings (``"5"``) are accepted since
    JSON-RPC clients are loose about numbers; booleans are not.
    """
    message = (
        f"Parameter '{name}' must be a whole number between {minimum} and {maximum}."
    )
    if isinstance(value, bool) or value is None:
        raise ValidationError(message)
    if isinstance(value, int):
        number = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(message)
        number = int(value)
    elif isinstance(value, str) and WHOLE_NUMBER_PATTERN.fullmatch(value.strip()):
        number = int(value.strip())
    else:
        raise ValidationError(message)
    if number < minimum or number > maximum:
        raise ValidationError(message)
    return number


def require_identifier(name: str, value: Any, example: str = "name or profile.name") -> str:
    """Reject anything that is not a plain (dotted) property path."""
    require_text(name, value)
    if not is_identifier(value):
        raise ValidationError(
            f"Invalid {name} name. Use dot notation with letters, digits, "
            f"and underscores only (e.g., {example})."
        )
    return value


def parse_select_properties(value: Any) -> List[str]:
    """Split a comma-separated projection list and validate every element."""
    require_text("selectProperties", value)
    if WILDCARD in value:
        raise ValidationError(
            "Parameter 'selectProperties' cannot contain '*' wildcard. "
            "Please specify explicit property names separated by commas."
        )
    properties = [part.strip() for part in value.split(",") if part.strip()]
    if not properties:
        raise ValidationError("Parameter 'selectProperties' is required.")
    for prop in properties:
        if not is_identifier(prop):
            raise ValidationError(
                f"Invalid property name '{prop}' in selectProperties. Use dot "
                "notation with letters, digits, and underscores only "
                "(e.g., 'id', 'title', 'metadata.author')."
            )
    return properties
