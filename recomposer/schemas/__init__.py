from __future__ import annotations

"""
Pydantic models shared by every stage:
- layer tree / geometry
- strategies, overrides and derived output
"""

from recomposer.schemas import geometry_schema, strategy_schema

__all__ = [
    "geometry_schema",
    "strategy_schema",
]
