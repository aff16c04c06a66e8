from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, model_validator

# -----------------------------
# Core Types
# -----------------------------

LayerKind = Literal[
    "raster",
    "group",
    "generative",    # placeholder for content produced by a generator
]

# Opaque, equality-only version token attached to upstream payloads.
GenerationMarker = Optional[Union[int, str]]

# -----------------------------
# Geometry primitives
# -----------------------------

class Point(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    x: float
    y: float


class Rect(BaseModel):
    """Top-left based rect. Which space it lives in depends on the field holding it."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    x: float
    y: float
    w: float = Field(..., ge=0.0)
    h: float = Field(..., ge=0.0)

    @property
    def origin(self) -> Point:
        return Point(x=self.x, y=self.y)


class ContainerBounds(Rect):
    """A placement region in document-global space."""
    name: str = ""


class LayerTransform(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    scale_x: float = 1.0
    scale_y: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0
    rotation: float = 0.0    # degrees


class OpticalMetrics(BaseModel):
    """True visual footprint of a raster, all values in raster-local space."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    bounds: Rect
    visual_center: Point
    pixel_density: float = Field(..., ge=0.0, le=1.0)

# -----------------------------
# Layer tree
# -----------------------------

class LayerNode(BaseModel):
    """One addressable element of a layered document.

    `children` is front-to-back and only populated for groups. `coords` is the
    current document-global box; `base_coords` keeps the box the layer had
    before the first derivation touched it.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    name: str = ""
    kind: LayerKind = "raster"
    is_visible: bool = True
    opacity: float = Field(default=1.0, ge=0.0, le=1.0)
    coords: Rect
    transform: LayerTransform = Field(default_factory=LayerTransform)
    children: List["LayerNode"] = Field(default_factory=list)
    optics: Optional[OpticalMetrics] = None
    base_coords: Optional[Rect] = None

    # filled by the transform stage, relative to the active container
    relative: Optional[Rect] = None
    relative_visual_center: Optional[Point] = None

    @model_validator(mode="after")
    def _children_only_on_groups(self) -> "LayerNode":
        if self.children and self.kind != "group":
            raise ValueError(f"layer '{self.id}' of kind '{self.kind}' cannot have children")
        return self

    @property
    def is_group(self) -> bool:
        return self.kind == "group"


LayerNode.model_rebuild()


class GeometricModel(BaseModel):
    """Layer tree annotated for one container, plus the upstream flags that drive staleness."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    layers: List[LayerNode] = Field(default_factory=list)
    container: ContainerBounds
    generation_id: GenerationMarker = None
    requires_generation: bool = False
    is_confirmed: bool = False
    preview_url: Optional[str] = None
    target_container: Optional[str] = None
    scale_factor: float = 1.0
    directives: List[str] = Field(default_factory=list)
    meta: Dict[str, Any] = Field(default_factory=dict)


def iter_layers(layers: List[LayerNode]):
    """Depth-first walk, parents before children, authored order preserved."""
    for layer in layers:
        yield layer
        if layer.children:
            yield from iter_layers(layer.children)


def find_layer(layers: List[LayerNode], layer_id: str) -> Optional[LayerNode]:
    for layer in iter_layers(layers):
        if layer.id == layer_id:
            return layer
    return None
