from __future__ import annotations

from recomposer.tools.rules import scoping

__all__ = [
    "scoping",
]
