from __future__ import annotations

"""
LangGraph workflow topology + routers.
"""

from recomposer.graph import build_graph, routers

__all__ = [
    "build_graph",
    "routers",
]
