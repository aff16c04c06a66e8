from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Sequence, Tuple
from dotenv import load_dotenv

load_dotenv()  # Load .env file

from recomposer.agents.preview_agent import GeminiPreviewGenerator, PreviewGenerator
from recomposer.agents.strategy_agent import GeminiStrategyGenerator, StrategyGenerator
from recomposer.app.logging import setup_logging
from recomposer.app.settings import load_settings, require_api_key
from recomposer.core.ids import new_unit_id
from recomposer.schemas.geometry_schema import GeometricModel
from recomposer.session.reviewer_unit import ReviewerUnit
from recomposer.store.document_store import InMemoryDocumentStore
from recomposer.store.registry import GraphRegistry, input_slot, output_slot


async def run_audit(
    *,
    model: GeometricModel,
    rasters: Optional[Mapping[str, Any]] = None,
    instruction: Optional[str] = None,
    scopes: Optional[Mapping[str, Sequence[str]]] = None,
    muted: bool = False,
    visual_anchors: Optional[Sequence[Tuple[bytes, str]]] = None,
    generator: Optional[StrategyGenerator] = None,
    preview_generator: Optional[PreviewGenerator] = None,
) -> Dict[str, Any]:
    """
    One-shot audit of a single container instance:
    - load settings + logging
    - wire an in-memory document store and graph registry
    - publish `model` into the unit's first input slot and run it
    - wait for a debounced preview, if the strategy asked for one
    - return {unit_id, strategy, chat_history, output, audit_png, preview_url}

    Without an explicit generator the Gemini-backed ones are used (needs GEMINI_API_KEY).
    """
    s = load_settings()
    setup_logging(s.log_level)

    if generator is None:
        require_api_key(s)
        generator = GeminiStrategyGenerator(s)
        if preview_generator is None:
            preview_generator = GeminiPreviewGenerator(s)

    store = InMemoryDocumentStore(dict(rasters or {}))
    registry = GraphRegistry()
    unit_id = new_unit_id()

    unit = ReviewerUnit(
        unit_id,
        registry,
        store,
        generator,
        preview_generator=preview_generator,
        scopes=scopes,
        visual_anchors=visual_anchors,
        settings=s,
    )
    unit.set_muted(0, muted)

    registry.publish(unit_id, input_slot(0), model)
    unit.observe_upstream(0)
    try:
        strategy = await unit.run(0, instruction=instruction)
        preview_url = await unit.wait_for_preview(0)
    finally:
        unit.close()

    state = unit.state(0)
    output = registry.read(unit_id, output_slot(0))
    return {
        "unit_id": unit_id,
        "strategy": strategy.model_dump() if strategy else None,
        "chat_history": [m.model_dump(mode="json") for m in state.chat_history],
        "output": output.model_dump() if output is not None else None,
        "audit_png": unit.last_audit_png.get(0),
        "preview_url": preview_url,
    }
