from __future__ import annotations

"""
Coordinate spaces:
- raster-local: pixel space of one layer's raster (where optics are measured)
- document-global: the layered document's canvas
- container-relative: global minus the active container's origin
- normalized: container-relative divided by canvas size (resolution independent)

The normalized stage is separate and never folded into the relative one.
"""

from typing import Any, Dict, List, Optional

from recomposer.schemas.geometry_schema import (
    ContainerBounds,
    GeometricModel,
    LayerNode,
    OpticalMetrics,
    Point,
    Rect,
)
from recomposer.tools.image_ops.optical_bounds import density_label

MAX_PROMPT_LAYERS = 100


def to_container_relative(rect: Rect, container: Rect) -> Rect:
    return Rect(x=rect.x - container.x, y=rect.y - container.y, w=rect.w, h=rect.h)


def to_document_global(rect: Rect, container: Rect) -> Rect:
    """Inverse of to_container_relative."""
    return Rect(x=rect.x + container.x, y=rect.y + container.y, w=rect.w, h=rect.h)


def local_to_global(point: Point, layer_origin: Point) -> Point:
    return Point(x=layer_origin.x + point.x, y=layer_origin.y + point.y)


def global_to_relative(point: Point, container: Rect) -> Point:
    return Point(x=point.x - container.x, y=point.y - container.y)


def relative_visual_center(layer_origin: Point, optics: OpticalMetrics, container: Rect) -> Point:
    """raster-local visual center -> document-global -> container-relative."""
    return global_to_relative(local_to_global(optics.visual_center, layer_origin), container)


def normalize(rect: Rect, canvas_w: float, canvas_h: float) -> Rect:
    if canvas_w <= 0 or canvas_h <= 0:
        raise ValueError(f"canvas size must be positive, got {canvas_w}x{canvas_h}")
    return Rect(x=rect.x / canvas_w, y=rect.y / canvas_h, w=rect.w / canvas_w, h=rect.h / canvas_h)


def annotate_for_container(layers: List[LayerNode], container: Rect) -> List[LayerNode]:
    """Copy of the tree with `relative` (and `relative_visual_center` where optics exist) set.
    Always recomputed from `coords`, so re-annotating for another container is safe."""
    out: List[LayerNode] = []
    for layer in layers:
        update: Dict[str, Any] = {
            "relative": to_container_relative(layer.coords, container),
            "relative_visual_center": None,
        }
        if layer.optics is not None:
            update["relative_visual_center"] = relative_visual_center(
                layer.coords.origin, layer.optics, container
            )
        if layer.children:
            update["children"] = annotate_for_container(layer.children, container)
        out.append(layer.model_copy(update=update))
    return out


def build_geometric_model(
    layers: List[LayerNode],
    container: ContainerBounds,
    **fields: Any,
) -> GeometricModel:
    """Wrap a (usually optics-annotated) tree into a GeometricModel for `container`."""
    fields.setdefault("target_container", container.name or None)
    return GeometricModel(
        layers=annotate_for_container(layers, container),
        container=container,
        **fields,
    )


def flatten_for_prompt(
    model: GeometricModel,
    *,
    limit: Optional[int] = MAX_PROMPT_LAYERS,
) -> List[Dict[str, Any]]:
    """
    Flat, depth-annotated descriptors of the model for the strategy generator.
    `geometric` is container-relative pixels; relX/relY are the normalized stage.
    """
    c = model.container
    flat: List[Dict[str, Any]] = []

    def _walk(layers: List[LayerNode], depth: int) -> None:
        for layer in layers:
            rel = layer.relative or to_container_relative(layer.coords, c)
            item: Dict[str, Any] = {
                "id": layer.id,
                "name": layer.name,
                "type": layer.kind,
                "depth": depth,
                "geometric": {"x": rel.x, "y": rel.y, "w": rel.w, "h": rel.h},
                "width": layer.coords.w,
                "height": layer.coords.h,
            }
            if c.w > 0 and c.h > 0:
                n = normalize(rel, c.w, c.h)
                item["relX"] = n.x
                item["relY"] = n.y
            if layer.optics is not None:
                b = layer.optics.bounds
                item["optical"] = {"x": b.x, "y": b.y, "w": b.w, "h": b.h}
                vc = layer.relative_visual_center or layer.optics.visual_center
                item["visualCenter"] = {"x": vc.x, "y": vc.y}
                item["density"] = layer.optics.pixel_density
                item["densityLabel"] = density_label(layer.optics.pixel_density)
            flat.append(item)
            if layer.children:
                _walk(layer.children, depth + 1)

    _walk(model.layers, 0)
    return flat[:limit] if limit is not None else flat
