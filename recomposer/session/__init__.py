from __future__ import annotations

"""
Session layer:
- per-instance audit log (bounded)
- debounced preview scheduling
- the reviewer unit that owns instance state and runs the graph
"""

from recomposer.session import debounce, memory, reviewer_unit

__all__ = [
    "debounce",
    "memory",
    "reviewer_unit",
]
