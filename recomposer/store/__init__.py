from __future__ import annotations

"""
External collaborators the pipeline reads from / writes to:
- document store (rasters by layer id)
- graph registry (payloads by unit id + slot id)
"""

from recomposer.store import document_store, registry

__all__ = [
    "document_store",
    "registry",
]
