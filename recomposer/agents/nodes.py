from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from recomposer.agents.strategy_agent import StrategyGenerator, VisualContext
from recomposer.app.errors import MissingInputError
from recomposer.app.settings import Settings
from recomposer.core.clock import now_ms
from recomposer.schemas.geometry_schema import GeometricModel
from recomposer.schemas.strategy_schema import Strategy
from recomposer.store.document_store import DocumentStore
from recomposer.tools.geometry.overrides import apply_strategy
from recomposer.tools.geometry.transforms import build_geometric_model
from recomposer.tools.image_ops.compose_layers import encode_image, render_composite
from recomposer.tools.image_ops.optical_bounds import annotate_optics

logger = logging.getLogger(__name__)


@dataclass
class PipelineServices:
    """Collaborators a run needs; carried in the graph state under `services`."""
    store: DocumentStore
    generator: StrategyGenerator
    settings: Settings


def _start(state: Dict[str, Any], name: str) -> int:
    pipeline = state.setdefault("pipeline", {})
    pipeline.setdefault("agents_run", []).append(name)
    pipeline.setdefault("timings_ms", {})
    pipeline.setdefault("routing", {})
    return now_ms()


def _finish(state: Dict[str, Any], name: str, t0: int) -> None:
    state["pipeline"]["timings_ms"][name] = now_ms() - t0


def _log_extra(state: Dict[str, Any]) -> Dict[str, Any]:
    return {"unit_id": state.get("unit_id"), "instance": state.get("instance"), "run_id": state.get("run_id")}


async def prepare_node(state: Dict[str, Any]) -> Dict[str, Any]:
    """MissingInput check: no model or no container means the run is a no-op."""
    t0 = _start(state, "prepare")
    model: Optional[GeometricModel] = state.get("model")
    ready = model is not None and model.container.w > 0 and model.container.h > 0
    state["pipeline"]["routing"]["input"] = "READY" if ready else "MISSING"
    if not ready:
        err = MissingInputError("no geometric model or empty container, run skipped")
        logger.info(str(err), extra=_log_extra(state))
        state.setdefault("errors", []).append({"stage": "prepare", "error": str(err), "type": type(err).__name__})
    _finish(state, "prepare", t0)
    return state


async def scan_node(state: Dict[str, Any]) -> Dict[str, Any]:
    t0 = _start(state, "scan")
    services: PipelineServices = state["services"]
    model: GeometricModel = state["model"]
    state["scanned_layers"] = annotate_optics(model.layers, services.store)
    _finish(state, "scan", t0)
    return state


async def transform_node(state: Dict[str, Any]) -> Dict[str, Any]:
    t0 = _start(state, "transform")
    model: GeometricModel = state["model"]
    carried = model.model_dump(exclude={"layers", "container"})
    state["model"] = build_geometric_model(state["scanned_layers"], model.container, **carried)
    _finish(state, "transform", t0)
    return state


async def visual_context_node(state: Dict[str, Any]) -> Dict[str, Any]:
    """Render what the generator will look at: the model with the current strategy applied."""
    t0 = _start(state, "visual_context")
    services: PipelineServices = state["services"]
    model: GeometricModel = state["model"]
    current: Optional[Strategy] = state.get("current_strategy")

    effective = apply_strategy(model, current)
    image = render_composite(effective, services.store, background=services.settings.audit_background)
    state["visual_context"] = VisualContext(
        image_jpeg=encode_image(image, fmt="JPEG", quality=services.settings.audit_jpeg_quality),
        current_overrides=list(current.overrides) if current else [],
        instruction=state.get("instruction"),
        rules_text=state.get("rules_text", ""),
        knowledge_muted=bool(state.get("is_muted")),
        history=list(state.get("history") or []),
        visual_anchors=list(state.get("visual_anchors") or []),
    )
    _finish(state, "visual_context", t0)
    return state


async def generate_node(state: Dict[str, Any]) -> Dict[str, Any]:
    """The only suspension point of a run. Failures are recorded, never raised."""
    t0 = _start(state, "generate")
    services: PipelineServices = state["services"]
    ruleset: List[str] = state.get("ruleset") or []
    try:
        strategy = await services.generator.generate(state["model"], ruleset, state["visual_context"])
    except Exception as e:  # pipeline boundary: any generator failure ends the run cleanly
        logger.error("strategy generation failed: %s", e, exc_info=True, extra=_log_extra(state))
        state.setdefault("errors", []).append({"stage": "generate", "error": str(e), "type": type(e).__name__})
        state["pipeline"]["routing"]["generate"] = "FAIL"
    else:
        state["strategy"] = strategy
        state["pipeline"]["routing"]["generate"] = "OK"
    _finish(state, "generate", t0)
    return state


async def compose_node(state: Dict[str, Any]) -> Dict[str, Any]:
    t0 = _start(state, "compose")
    state["derived"] = apply_strategy(state["model"], state["strategy"])
    _finish(state, "compose", t0)
    return state


async def render_node(state: Dict[str, Any]) -> Dict[str, Any]:
    t0 = _start(state, "render")
    services: PipelineServices = state["services"]
    skipped: List[str] = []
    image = render_composite(
        state["derived"],
        services.store,
        background=services.settings.audit_background,
        skipped=skipped,
    )
    png = encode_image(image, fmt="PNG")
    state["audit_png"] = png
    state["audit_sha256"] = hashlib.sha256(png).hexdigest()
    state["skipped_layers"] = skipped
    _finish(state, "render", t0)
    return state
