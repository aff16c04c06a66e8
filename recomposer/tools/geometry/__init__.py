from __future__ import annotations

from recomposer.tools.geometry import transforms, overrides

__all__ = [
    "transforms",
    "overrides",
]
