from __future__ import annotations

from typing import Any, Dict, Optional, Protocol


class DocumentStore(Protocol):
    """Raster access for a decoded layered document, addressed by layer path id."""

    def get_raster_for_layer(self, layer_id: str) -> Optional[Any]:
        ...


class InMemoryDocumentStore:
    """
    Dict-backed store. Values are Pillow images or (h, w, 4) RGBA arrays.
    Decoding the source document format happens before anything lands here.
    """

    def __init__(self, rasters: Optional[Dict[str, Any]] = None):
        self._rasters: Dict[str, Any] = dict(rasters or {})

    def put(self, layer_id: str, raster: Any) -> None:
        self._rasters[layer_id] = raster

    def get_raster_for_layer(self, layer_id: str) -> Optional[Any]:
        return self._rasters.get(layer_id)

    def __contains__(self, layer_id: str) -> bool:
        return layer_id in self._rasters

    def __len__(self) -> int:
        return len(self._rasters)
