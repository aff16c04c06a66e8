from __future__ import annotations

from recomposer.llms import prompt_registry, structured, providers

__all__ = [
    "prompt_registry",
    "structured",
    "providers",
]
