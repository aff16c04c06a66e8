from __future__ import annotations

from typing import Any, List, Literal, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from recomposer.schemas.geometry_schema import ContainerBounds, GenerationMarker, LayerNode

Method = Literal["GEOMETRIC", "GENERATIVE", "HYBRID"]

# -----------------------------
# Overrides / Strategy
# -----------------------------

class Override(BaseModel):
    """Declarative per-layer delta.
    Offsets are additive, scale is multiplicative, rotation is additive (degrees)."""
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    layer_id: str = Field(..., validation_alias=AliasChoices("layer_id", "layerId"))
    x_offset: float = Field(default=0.0, validation_alias=AliasChoices("x_offset", "xOffset"))
    y_offset: float = Field(default=0.0, validation_alias=AliasChoices("y_offset", "yOffset"))
    individual_scale: float = Field(
        default=1.0, gt=0.0, validation_alias=AliasChoices("individual_scale", "individualScale")
    )
    rotation: float = Field(default=0.0, validation_alias=AliasChoices("rotation", "rotationDelta"))
    cited_rule: Optional[str] = Field(default=None, validation_alias=AliasChoices("cited_rule", "citedRule"))


class Strategy(BaseModel):
    """What the strategy generator returns. Immutable once committed."""
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    overrides: List[Override] = Field(default_factory=list)
    method: Method = "GEOMETRIC"
    reasoning: str = Field(default="", validation_alias=AliasChoices("reasoning", "CARO_Audit", "audit"))
    directives: List[str] = Field(default_factory=list)
    generative_prompt: str = Field(default="", validation_alias=AliasChoices("generative_prompt", "generativePrompt"))
    knowledge_applied: bool = Field(default=False, validation_alias=AliasChoices("knowledge_applied", "knowledgeApplied"))
    knowledge_muted: bool = False

    @field_validator("overrides", mode="before")
    @classmethod
    def _overrides_as_list(cls, v: Any) -> List[Any]:
        # generators occasionally answer with a bare object for a single override
        if v is None:
            return []
        return v if isinstance(v, list) else [v]

    @property
    def wants_preview(self) -> bool:
        return self.method in ("GENERATIVE", "HYBRID") and bool(self.generative_prompt.strip())

# -----------------------------
# Derived output
# -----------------------------

class DerivedGeometry(BaseModel):
    """Result of applying a strategy to a geometric model.
    Structurally isomorphic to the source tree."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    layers: List[LayerNode] = Field(default_factory=list)
    container: ContainerBounds
    source_generation_id: GenerationMarker = None
    is_polished: bool = False
    strategy: Optional[Strategy] = None
