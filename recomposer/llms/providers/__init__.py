from __future__ import annotations

"""
Providers (Gemini)
"""

from recomposer.llms.providers import gemini_client

__all__ = [
    "gemini_client",
]
