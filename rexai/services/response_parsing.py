"""
Normalisation of model response shapes.

Providers disagree on how an array answer is wrapped: a bare array, an object
keyed by "insights", "recommendations", "medications"... Each stage declares an
ordered tuple of ParseStrategy objects; the first one that yields a list wins.
Supporting a new provider quirk means appending one strategy.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from rexai.services.llm_service import LLMResponseError

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


@dataclass(frozen=True)
class ParseStrategy:
    name: str
    extract: Callable[[Any], Optional[list]]


def bare_array() -> ParseStrategy:
    """The response is the array itself."""
    return ParseStrategy("bare_array", lambda payload: payload if isinstance(payload, list) else None)


def unwrap_key(key: str) -> ParseStrategy:
    """The array sits under a single key of an object."""

    def extract(payload):
        if isinstance(payload, dict) and isinstance(payload.get(key), list):
            return payload[key]
        return None

    return ParseStrategy(f"unwrap_key:{key}", extract)


def single_item(required_key: str) -> ParseStrategy:
    """The model returned one item as an object instead of a one-element array."""

    def extract(payload):
        if isinstance(payload, dict) and required_key in payload:
            return [payload]
        return None

    return ParseStrategy(f"single_item:{required_key}", extract)


def extract_items(payload: Any, strategies: tuple[ParseStrategy, ...]) -> list:
    """
    Apply strategies in order and return the first list found.

    Raises:
        LLMResponseError: If no strategy recognises the payload shape
    """
    for strategy in strategies:
        items = strategy.extract(payload)
        if items is not None:
            logger.debug("Response shape matched strategy %s", strategy.name)
            return items

    raise LLMResponseError(
        f"Unrecognised response shape (tried: {', '.join(s.name for s in strategies)})",
        response_content=str(payload),
    )


def as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def validate_items(items: list, schema: type[SchemaT], label: str) -> list[SchemaT]:
    """Validate each item independently, dropping (and logging) the ones that fail."""
    validated = []
    for index, item in enumerate(items):
        try:
            validated.append(schema.model_validate(item))
        except ValidationError as e:
            logger.warning(
                "Dropping malformed %s item %d: %s", label, index, e.errors()[0]["msg"] if e.errors() else e
            )
    return validated
