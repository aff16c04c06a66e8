from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from recomposer.schemas.geometry_schema import GeometricModel, LayerNode, Point, Rect, iter_layers
from recomposer.schemas.strategy_schema import DerivedGeometry, Override, Strategy

logger = logging.getLogger(__name__)


def index_overrides(overrides: Sequence[Override]) -> Dict[str, Override]:
    """One override per layer id; the first occurrence wins."""
    by_id: Dict[str, Override] = {}
    for ov in overrides:
        if ov.layer_id in by_id:
            logger.warning("duplicate override ignored", extra={"layer_id": ov.layer_id})
            continue
        by_id[ov.layer_id] = ov
    return by_id


def _moved_rect(rect: Rect, ov: Override) -> Rect:
    s = ov.individual_scale
    return Rect(x=rect.x + ov.x_offset, y=rect.y + ov.y_offset, w=rect.w * s, h=rect.h * s)


def _apply_one(layer: LayerNode, ov: Override, children: List[LayerNode]) -> LayerNode:
    s = ov.individual_scale
    coords = _moved_rect(layer.coords, ov)
    t = layer.transform

    update: Dict[str, Any] = {
        "coords": coords,
        "transform": t.model_copy(update={
            "scale_x": t.scale_x * s,
            "scale_y": t.scale_y * s,
            "offset_x": coords.x,
            "offset_y": coords.y,
            "rotation": t.rotation + ov.rotation,
        }),
        "children": children,
        "base_coords": layer.base_coords or layer.coords,
    }

    # keep container-relative annotations in step with the move
    if layer.relative is not None:
        rel = _moved_rect(layer.relative, ov)
        update["relative"] = rel
        if layer.relative_visual_center is not None:
            vc = layer.relative_visual_center
            update["relative_visual_center"] = Point(
                x=rel.x + (vc.x - layer.relative.x) * s,
                y=rel.y + (vc.y - layer.relative.y) * s,
            )

    return layer.model_copy(update=update)


def _rebuild(layers: List[LayerNode], by_id: Dict[str, Override]) -> List[LayerNode]:
    out: List[LayerNode] = []
    for layer in layers:
        children = _rebuild(layer.children, by_id) if layer.children else []
        ov = by_id.get(layer.id)
        if ov is None:
            out.append(layer.model_copy(update={"children": children}))
        else:
            # group overrides move the group box only, never its children
            out.append(_apply_one(layer, ov, children))
    return out


def apply_overrides(layers: List[LayerNode], overrides: Sequence[Override]) -> List[LayerNode]:
    """
    Copy-on-write rebuild of the tree with overrides applied.

    Input nodes are never mutated or aliased into the result. Overrides for ids
    that are not in the tree are no-ops; layers without an override are copied
    unchanged. Child order is preserved.
    """
    by_id = index_overrides(overrides)
    result = _rebuild(layers, by_id)

    if by_id:
        seen = {layer.id for layer in iter_layers(layers)}
        for missing in sorted(set(by_id) - seen):
            logger.debug("override targets unknown layer", extra={"layer_id": missing})
    return result


def apply_strategy(model: GeometricModel, strategy: Optional[Strategy]) -> DerivedGeometry:
    """Derive final geometry from the model. Always starts from the model, so re-applying is idempotent."""
    overrides = list(strategy.overrides) if strategy is not None else []
    return DerivedGeometry(
        layers=apply_overrides(model.layers, overrides),
        container=model.container,
        source_generation_id=model.generation_id,
        is_polished=bool(overrides),
        strategy=strategy,
    )
