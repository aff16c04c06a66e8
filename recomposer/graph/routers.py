from __future__ import annotations
from typing import Any, Dict, Literal

Route = Literal["continue", "stop"]


def _routing(state: Dict[str, Any]) -> Dict[str, Any]:
    pipeline = state.get("pipeline") or {}
    return pipeline.get("routing") or {}


def route_after_prepare(state: Dict[str, Any]) -> Route:
    """Missing model or container: end the run without touching anything."""
    if (_routing(state).get("input") or "").upper() == "READY":
        return "continue"
    return "stop"


def route_after_generate(state: Dict[str, Any]) -> Route:
    """A failed generator call never reaches compose; nothing partial gets committed."""
    if (_routing(state).get("generate") or "").upper() == "OK" and state.get("strategy") is not None:
        return "continue"
    return "stop"
