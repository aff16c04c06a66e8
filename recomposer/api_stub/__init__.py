from __future__ import annotations

"""
Minimal callable entrypoint for running one audit outside a host application.
"""

from recomposer.api_stub import runner

__all__ = ["runner"]
