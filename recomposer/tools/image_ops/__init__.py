from __future__ import annotations

from recomposer.tools.image_ops import optical_bounds, compose_layers

__all__ = [
    "optical_bounds",
    "compose_layers",
]
