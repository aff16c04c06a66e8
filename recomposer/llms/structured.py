from __future__ import annotations

import json
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import ValidationError

from recomposer.app.errors import StrategyParseError

T = TypeVar("T")


def extract_json(text: str) -> Dict[str, Any]:
    """
    Best-effort JSON extraction:
    - Accepts raw JSON
    - Or JSON wrapped in markdown fences
    """
    if not text:
        return {}

    s = text.strip()

    # Strip markdown fences
    if s.startswith("```"):
        s = s.strip("`")
        # sometimes starts with ```json
        if s.startswith("json"):
            s = s[len("json"):]

    # Try parse directly
    try:
        data = json.loads(s)
        return data if isinstance(data, dict) else {}
    except json.JSONDecodeError:
        pass

    # Fallback: attempt to locate first { ... } block
    start = s.find("{")
    end = s.rfind("}")
    if start != -1 and end != -1 and end > start:
        candidate = s[start : end + 1]
        try:
            data = json.loads(candidate)
            return data if isinstance(data, dict) else {}
        except json.JSONDecodeError:
            return {}

    return {}


def validate_with_pydantic(data: Dict[str, Any], model_cls: Type[T]) -> T:
    """
    Validate dict against a Pydantic model class (v2 compatible).
    """
    return model_cls.model_validate(data)  # type: ignore[attr-defined]


def structured_output(
    raw_text: str,
    *,
    model_cls: Optional[Type[T]] = None,
) -> Any:
    """
    Convert LLM raw text -> dict, and optionally validate into Pydantic model.
    Raises StrategyParseError when nothing usable comes back.
    """
    data = extract_json(raw_text)
    if model_cls is None:
        return data
    if not data:
        raise StrategyParseError("generator output contained no JSON object")
    try:
        return validate_with_pydantic(data, model_cls)
    except ValidationError as ve:
        first = ve.errors()[0].get("msg", "unknown") if ve.errors() else "unknown"
        raise StrategyParseError(f"generator output failed schema validation: {first}") from ve
