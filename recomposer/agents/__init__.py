from __future__ import annotations

"""
Pipeline agents:
- per-instance state + staleness tracking
- strategy / preview generators
- graph node functions
"""

from recomposer.agents import state, staleness, strategy_agent, preview_agent, nodes

__all__ = [
    "state",
    "staleness",
    "strategy_agent",
    "preview_agent",
    "nodes",
]
