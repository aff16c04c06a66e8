from __future__ import annotations

"""
Small shared helpers: id generation and clock access.
"""

from recomposer.core import clock, ids

__all__ = [
    "clock",
    "ids",
]
