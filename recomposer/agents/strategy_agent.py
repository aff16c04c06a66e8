from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Tuple

from google.genai import types

from recomposer.app.errors import GeneratorTimeout
from recomposer.app.settings import Settings
from recomposer.llms.prompt_registry import get_prompt
from recomposer.llms.providers.gemini_client import GeminiClient
from recomposer.llms.structured import structured_output
from recomposer.schemas.geometry_schema import GeometricModel
from recomposer.schemas.strategy_schema import Override, Strategy
from recomposer.tools.geometry.transforms import flatten_for_prompt

logger = logging.getLogger(__name__)


@dataclass
class VisualContext:
    """What the generator sees besides the geometry: the current render and the conversation."""
    image_jpeg: Optional[bytes] = None
    current_overrides: List[Override] = field(default_factory=list)
    instruction: Optional[str] = None
    rules_text: str = ""
    knowledge_muted: bool = False
    history: List[Dict[str, str]] = field(default_factory=list)
    # (image bytes, mime type) style references from the knowledge base
    visual_anchors: List[Tuple[bytes, str]] = field(default_factory=list)


MAX_VISUAL_ANCHORS = 3


class StrategyGenerator(Protocol):
    async def generate(
        self,
        model: GeometricModel,
        ruleset: List[str],
        visual_context: VisualContext,
    ) -> Strategy:
        ...


# Gemini response schema (OpenAPI subset understood by google-genai)
STRATEGY_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "reasoning": {"type": "STRING"},
        "method": {"type": "STRING", "enum": ["GEOMETRIC", "GENERATIVE", "HYBRID"]},
        "directives": {"type": "ARRAY", "items": {"type": "STRING"}},
        "generativePrompt": {"type": "STRING"},
        "knowledgeApplied": {"type": "BOOLEAN"},
        "overrides": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "layerId": {"type": "STRING"},
                    "xOffset": {"type": "NUMBER"},
                    "yOffset": {"type": "NUMBER"},
                    "individualScale": {"type": "NUMBER"},
                    "rotation": {"type": "NUMBER"},
                    "citedRule": {"type": "STRING"},
                },
                "required": ["layerId", "xOffset", "yOffset", "individualScale", "citedRule"],
            },
        },
    },
    "required": ["reasoning", "overrides"],
}


def build_audit_prompt(model: GeometricModel, ruleset: List[str], ctx: VisualContext) -> str:
    if ctx.instruction:
        mode = get_prompt("audit_mode_interactive").render(instruction=ctx.instruction)
    else:
        mode = get_prompt("audit_mode_auto").render()

    if ctx.current_overrides:
        dumped = json.dumps([o.model_dump() for o in ctx.current_overrides])
        current_state = f"CURRENT STATE: the image reflects these overrides on the original layout: {dumped}."
    else:
        current_state = "CURRENT STATE: Baseline procedural layout."

    rules = ctx.rules_text
    if not rules and ruleset:
        rules = "[RULES]:\n" + "\n".join(ruleset)

    c = model.container
    return get_prompt("audit").render(
        mode=mode,
        target=model.target_container or c.name or "UNKNOWN",
        width=int(round(c.w)),
        height=int(round(c.h)),
        scale_factor=model.scale_factor,
        directives=", ".join(model.directives) if model.directives else "None",
        current_state=current_state,
        rules=("\n" + rules) if rules else "",
    )


def parse_strategy(raw_text: str, *, knowledge_muted: bool = False) -> Strategy:
    """Raw generator text -> Strategy; raises StrategyParseError."""
    strategy = structured_output(raw_text, model_cls=Strategy)
    if knowledge_muted:
        strategy = strategy.model_copy(update={"knowledge_muted": True})
    return strategy


class GeminiStrategyGenerator:
    """Default strategy generator: one structured Gemini call with the render attached."""

    def __init__(self, settings: Settings, client: Optional[GeminiClient] = None):
        self.settings = settings
        self.client = client or GeminiClient(api_key=settings.gemini_api_key)

    async def generate(
        self,
        model: GeometricModel,
        ruleset: List[str],
        visual_context: VisualContext,
    ) -> Strategy:
        prompt = build_audit_prompt(model, ruleset, visual_context)
        hierarchy = flatten_for_prompt(model, limit=50)

        parts: List[types.Part] = [
            types.Part.from_text(text=prompt),
            types.Part.from_text(text=f"ORIGINAL LAYER HIERARCHY:\n{json.dumps(hierarchy)}"),
        ]
        if visual_context.history:
            lines = [f"{m['role'].upper()}: {m['content']}" for m in visual_context.history]
            parts.append(types.Part.from_text(text="CONVERSATION SO FAR:\n" + "\n".join(lines)))
        if visual_context.image_jpeg:
            parts.append(types.Part.from_bytes(data=visual_context.image_jpeg, mime_type="image/jpeg"))
        if visual_context.visual_anchors:
            parts.append(types.Part.from_text(text="VISUAL STYLE REFERENCES:"))
            for data, mime in visual_context.visual_anchors[:MAX_VISUAL_ANCHORS]:
                parts.append(types.Part.from_bytes(data=data, mime_type=mime))

        try:
            raw = await asyncio.wait_for(
                self.client.generate_json(
                    model=self.settings.strategy_model,
                    parts=parts,
                    response_schema=STRATEGY_RESPONSE_SCHEMA,
                    thinking_budget=self.settings.thinking_budget,
                ),
                timeout=self.settings.generator_timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise GeneratorTimeout(
                f"strategy generator timed out after {self.settings.generator_timeout_s}s"
            ) from e

        strategy = parse_strategy(raw, knowledge_muted=visual_context.knowledge_muted)
        logger.info("strategy generated: %d overrides, method=%s", len(strategy.overrides), strategy.method)
        return strategy
