from __future__ import annotations

from recomposer.tools import image_ops, geometry, rules

__all__ = [
    "image_ops",
    "geometry",
    "rules",
]
