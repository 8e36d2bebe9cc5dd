"""Extract a structured JSON object from free-form model text.

Models asked to "return JSON only" still wrap their answer in prose or
markdown fences often enough that a plain json.loads() is not reliable.
parse_structured() scans for the first balanced {...} span that decodes to
a JSON object and optionally validates it against a pydantic model.
Callers always handle StructuredOutputError with their own fallback.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from typing import Any, TypeVar, overload

from pydantic import BaseModel, ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


class StructuredOutputError(ValueError):
    """Raised when no usable JSON object can be recovered from model text."""


def _balanced_spans(text: str) -> Iterator[str]:
    """Yield every balanced {...} span, in order of its opening brace.

    Braces inside JSON string literals (including escaped quotes) are not
    counted.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    yield text[start : i + 1]
                    break
        start = text.find("{", start + 1)


@overload
def parse_structured(text: str) -> dict[str, Any]: ...


@overload
def parse_structured(text: str, model: type[ModelT]) -> ModelT: ...


def parse_structured(text: str, model: type[ModelT] | None = None) -> Any:
    """Return the first JSON object embedded in text.

    Args:
        text: Raw model output, possibly surrounded by prose.
        model: Optional pydantic model to validate the object against.

    Returns:
        The decoded dict, or an instance of model when one is given.

    Raises:
        StructuredOutputError: If no span decodes to a JSON object, or the
            decoded object does not validate against model.
    """
    payload: dict[str, Any] | None = None
    for span in _balanced_spans(text):
        try:
            candidate = json.loads(span)
        except json.JSONDecodeError:
            continue
        if isinstance(candidate, dict):
            payload = candidate
            break

    if payload is None:
        raise StructuredOutputError("No JSON object found in model output")

    if model is None:
        return payload

    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise StructuredOutputError(
            f"Model output does not match {model.__name__}: {exc.error_count()} error(s)"
        ) from exc
