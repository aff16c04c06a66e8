from __future__ import annotations

"""
recomposer: optical-geometric reconciliation for layered image documents.
"""

__version__ = "0.1.0"
