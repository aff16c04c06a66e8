from __future__ import annotations

import logging
from typing import Any, List, Optional

import numpy as np
from PIL import Image

from recomposer.app.errors import ScanError
from recomposer.schemas.geometry_schema import LayerNode, OpticalMetrics, Point, Rect
from recomposer.store.document_store import DocumentStore

logger = logging.getLogger(__name__)


def as_rgba_array(raster: Any) -> np.ndarray:
    """Coerce a Pillow image or an (h, w, 4) array into an RGBA uint8 array."""
    if isinstance(raster, Image.Image):
        return np.asarray(raster.convert("RGBA"))
    arr = np.asarray(raster)
    if arr.ndim != 3 or arr.shape[2] != 4:
        raise ValueError(f"expected an (h, w, 4) RGBA buffer, got shape {arr.shape}")
    return arr


def scan_optical_bounds(raster: Any) -> Optional[OpticalMetrics]:
    """
    Measure the trimmed non-transparent footprint of a raster.

    Returns None when no pixel has alpha > 0. Callers fall back to the layer's
    geometric box in that case; None is never a zero-sized box.
    """
    arr = as_rgba_array(raster)
    h, w = arr.shape[0], arr.shape[1]
    if w == 0 or h == 0:
        return None

    opaque = arr[..., 3] > 0
    count = int(np.count_nonzero(opaque))
    if count == 0:
        return None

    rows = np.flatnonzero(opaque.any(axis=1))
    cols = np.flatnonzero(opaque.any(axis=0))
    min_y, max_y = int(rows[0]), int(rows[-1])
    min_x, max_x = int(cols[0]), int(cols[-1])

    bw = max_x - min_x + 1
    bh = max_y - min_y + 1

    return OpticalMetrics(
        bounds=Rect(x=min_x, y=min_y, w=bw, h=bh),
        # plain bounding-box midpoint, not alpha weighted
        visual_center=Point(x=min_x + bw / 2, y=min_y + bh / 2),
        pixel_density=count / (w * h),
    )


def density_label(density: float) -> str:
    if density > 0.8:
        return "Solid"
    if density > 0.3:
        return "Standard"
    if density > 0.05:
        return "Sparse"
    return "Ghost"


def annotate_optics(layers: List[LayerNode], store: DocumentStore) -> List[LayerNode]:
    """Return a copy of the tree with `optics` measured for every raster layer."""
    out: List[LayerNode] = []
    for layer in layers:
        if layer.is_group:
            out.append(layer.model_copy(update={"children": annotate_optics(layer.children, store)}))
            continue

        if layer.kind != "raster":
            out.append(layer.model_copy())
            continue

        try:
            raster = store.get_raster_for_layer(layer.id)
            if raster is None:
                logger.debug("no raster for layer, keeping geometric bounds", extra={"layer_id": layer.id})
                out.append(layer.model_copy())
                continue
            optics = scan_optical_bounds(raster)
        except (ValueError, KeyError, OSError) as e:
            err = ScanError(f"optical scan failed for {layer.name or layer.id}: {e}")
            logger.warning(str(err), extra={"layer_id": layer.id})
            out.append(layer.model_copy())
            continue

        out.append(layer.model_copy(update={"optics": optics}))
    return out
