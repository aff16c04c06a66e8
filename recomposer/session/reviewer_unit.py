from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from recomposer.agents.nodes import PipelineServices
from recomposer.agents.preview_agent import PreviewGenerator
from recomposer.agents.staleness import Invalidation, StalenessTracker, is_baseline_only
from recomposer.agents.state import InstanceState
from recomposer.agents.strategy_agent import StrategyGenerator
from recomposer.app.settings import Settings
from recomposer.core.ids import new_run_id
from recomposer.graph.build_graph import build_graph
from recomposer.schemas.geometry_schema import GeometricModel
from recomposer.schemas.strategy_schema import DerivedGeometry, Strategy
from recomposer.session.debounce import Debouncer
from recomposer.session.memory import AuditLog, MemoryConfig
from recomposer.store.document_store import DocumentStore
from recomposer.store.registry import GraphRegistry, input_slot, output_slot, preview_slot
from recomposer.tools.geometry.overrides import apply_strategy
from recomposer.tools.geometry.transforms import build_geometric_model
from recomposer.tools.image_ops.optical_bounds import annotate_optics
from recomposer.tools.rules.scoping import effective_ruleset, format_rules_context

logger = logging.getLogger(__name__)

Scopes = Mapping[str, Sequence[str]]
Anchor = Tuple[bytes, str]


class ReviewerUnit:
    """
    Editing unit that audits one or more container instances.

    Each instance index reads its GeometricModel from `payload-in-{i}` under this
    unit's id and publishes DerivedGeometry to `polished-out-{i}`. Instances share
    nothing but the collaborators; runs for different indices may overlap.
    """

    def __init__(
        self,
        unit_id: str,
        registry: GraphRegistry,
        store: DocumentStore,
        generator: StrategyGenerator,
        *,
        preview_generator: Optional[PreviewGenerator] = None,
        scopes: Optional[Scopes] = None,
        visual_anchors: Optional[Sequence[Anchor]] = None,
        settings: Optional[Settings] = None,
    ):
        self.unit_id = unit_id
        self.registry = registry
        self.store = store
        self.generator = generator
        self.preview_generator = preview_generator
        self.scopes: Dict[str, List[str]] = {k: list(v) for k, v in (scopes or {}).items()}
        self.visual_anchors: List[Anchor] = list(visual_anchors or [])
        self.settings = settings or Settings()

        self._states: Dict[int, InstanceState] = {}
        self._trackers: Dict[int, StalenessTracker] = {}
        self._log = AuditLog(MemoryConfig(max_messages=self.settings.max_chat_messages))
        self._debouncer = Debouncer(self.settings.preview_debounce_s)
        self._graph = build_graph().compile()

        # last run artifacts per instance, for callers that want to show the audit render
        self.last_audit_png: Dict[int, bytes] = {}
        self.previews: Dict[int, str] = {}

    # ---------- State ----------
    def state(self, index: int) -> InstanceState:
        if index not in self._states:
            self._states[index] = InstanceState()
        return self._states[index]

    def _tracker(self, index: int) -> StalenessTracker:
        if index not in self._trackers:
            self._trackers[index] = StalenessTracker()
        return self._trackers[index]

    def input_model(self, index: int) -> Optional[GeometricModel]:
        payload = self.registry.read(self.unit_id, input_slot(index))
        if isinstance(payload, GeometricModel):
            return payload
        if payload is not None:
            logger.warning(
                "unexpected payload type %s in input slot", type(payload).__name__,
                extra={"unit_id": self.unit_id, "instance": index},
            )
        return None

    def can_run(self, index: int) -> bool:
        if self.state(index).in_flight:
            return False
        model = self.input_model(index)
        return model is not None and model.container.w > 0 and model.container.h > 0

    def set_muted(self, index: int, muted: bool) -> None:
        self.state(index).is_muted = muted

    def set_scopes(self, scopes: Optional[Scopes]) -> None:
        self.scopes = {k: list(v) for k, v in (scopes or {}).items()}

    def set_visual_anchors(self, anchors: Optional[Sequence[Anchor]]) -> None:
        self.visual_anchors = list(anchors or [])

    def anchors_for(self, index: int) -> List[Anchor]:
        """Style reference images for the instance; none when muted."""
        if self.state(index).is_muted:
            return []
        return list(self.visual_anchors)

    def rules_for(self, index: int, model: GeometricModel) -> Tuple[List[str], str]:
        """(ruleset, prompt block) for the instance; both empty when muted."""
        if self.state(index).is_muted:
            return [], ""
        target = model.target_container or model.container.name
        return effective_ruleset(self.scopes, target), format_rules_context(self.scopes, target)

    # ---------- Upstream ----------
    def observe_upstream(self, index: int) -> Optional[Invalidation]:
        """Feed the current input into the staleness tracker and refresh the output slot."""
        model = self.input_model(index)
        if model is None:
            return None
        st = self.state(index)
        outcome = self._tracker(index).observe(model.generation_id, is_baseline_only(model), st)
        if outcome in (Invalidation.ANNOTATED, Invalidation.WIPED):
            self._cancel_preview(index)
        self._publish(index, model, st.current_strategy)
        return outcome

    def _publish(self, index: int, model: GeometricModel, strategy: Optional[Strategy]) -> DerivedGeometry:
        """Derive from `model` with the same scan + annotate steps a run uses, then publish."""
        carried = model.model_dump(exclude={"layers", "container"})
        scanned = annotate_optics(model.layers, self.store)
        derived = apply_strategy(build_geometric_model(scanned, model.container, **carried), strategy)
        self.registry.publish(self.unit_id, output_slot(index), derived)
        return derived

    # ---------- Runs ----------
    def _graph_input(self, index: int, model: GeometricModel, instruction: Optional[str], run_id: str) -> Dict[str, Any]:
        st = self.state(index)
        ruleset, rules_text = self.rules_for(index, model)
        return {
            "services": PipelineServices(store=self.store, generator=self.generator, settings=self.settings),
            "model": model,
            "current_strategy": st.current_strategy,
            "instruction": instruction,
            "ruleset": ruleset,
            "rules_text": rules_text,
            "is_muted": st.is_muted,
            "history": self._log.get_context_messages(st),
            "visual_anchors": self.anchors_for(index),
            "unit_id": self.unit_id,
            "instance": index,
            "run_id": run_id,
        }

    def _is_stale(self, index: int, st: InstanceState, run_id: str, marker: Any) -> bool:
        if st.run_id != run_id:
            return True
        tracker = self._tracker(index)
        if tracker.has_marker and tracker.previous_marker != marker:
            return True
        current = self.input_model(index)
        return current is None or current.generation_id != marker

    async def run(self, index: int, instruction: Optional[str] = None) -> Optional[Strategy]:
        """
        One audit of instance `index`. Returns the committed Strategy, or None when
        the run was skipped, failed or discarded as stale.
        """
        extra = {"unit_id": self.unit_id, "instance": index}
        st = self.state(index)
        if st.in_flight:
            logger.info("run already in flight, request ignored", extra=extra)
            return None
        model = self.input_model(index)
        if model is None:
            logger.info("no input model, run skipped", extra=extra)
            return None

        tracker = self._tracker(index)
        if not tracker.has_marker or tracker.previous_marker != model.generation_id:
            # upstream moved without being observed; settle it before auditing
            self.observe_upstream(index)

        run_id = new_run_id()
        marker = model.generation_id
        st.in_flight = True
        st.run_id = run_id
        extra["run_id"] = run_id

        if instruction:
            self._log.append(st, role="user", content=instruction)

        try:
            final = await self._graph.ainvoke(self._graph_input(index, model, instruction, run_id))
        except Exception as e:  # pipeline boundary: a broken stage must not leave the unit stuck
            logger.error("audit run crashed: %s", e, exc_info=True, extra=extra)
            self._log.append(st, role="model", content=f"[SYSTEM]: Audit failed: {e}", is_system=True)
            return None
        finally:
            st.in_flight = False

        routing = (final.get("pipeline") or {}).get("routing") or {}
        if routing.get("input") != "READY":
            return None

        strategy: Optional[Strategy] = final.get("strategy")
        if routing.get("generate") != "OK" or strategy is None:
            errors = final.get("errors") or [{}]
            reason = errors[-1].get("error") or "unknown error"
            self._log.append(st, role="model", content=f"[SYSTEM]: Audit failed: {reason}", is_system=True)
            return None

        if self._states.get(index) is not st:
            logger.info("instance was reset during the run, response dropped", extra=extra)
            return None
        if self.settings.strict_runs and self._is_stale(index, st, run_id, marker):
            logger.info("stale strategy response discarded", extra={**extra, "generation_id": marker})
            return None

        st.current_strategy = strategy
        self._log.append(
            st,
            role="model",
            content=strategy.reasoning or "Layout audit complete.",
            strategy_snapshot=strategy.model_dump(),
        )
        current = self.input_model(index)
        if current is not None and current.generation_id != marker:
            # late commit: derive from the payload upstream holds now
            self._publish(index, current, strategy)
        else:
            self.registry.publish(self.unit_id, output_slot(index), final["derived"])
        if final.get("audit_png"):
            self.last_audit_png[index] = final["audit_png"]

        logger.info(
            "strategy committed: %d overrides", len(strategy.overrides),
            extra={**extra, "generation_id": marker},
        )

        if strategy.wants_preview and self.preview_generator is not None:
            self._schedule_preview(index, strategy)
        return strategy

    # ---------- Preview ----------
    def _schedule_preview(self, index: int, strategy: Strategy) -> None:
        async def _fire() -> None:
            await self._generate_preview(index, strategy)

        self._debouncer.schedule(index, _fire)

    def _cancel_preview(self, index: int) -> None:
        self._debouncer.cancel(index)

    def preview_pending(self, index: int) -> bool:
        return self._debouncer.is_pending(index)

    async def wait_for_preview(self, index: int) -> Optional[str]:
        """Await a scheduled preview, if any, and return the current preview URL."""
        task = self._debouncer.pending(index)
        if task is not None:
            await task
        return self.previews.get(index)

    async def _generate_preview(self, index: int, strategy: Strategy) -> Optional[str]:
        extra = {"unit_id": self.unit_id, "instance": index}
        try:
            url = await self.preview_generator.generate_preview(
                strategy.generative_prompt, self.last_audit_png.get(index)
            )
        except Exception as e:  # preview is best effort; the committed strategy stands
            logger.error("preview generation failed: %s", e, exc_info=True, extra=extra)
            return None

        if url is None:
            return None
        if self.state(index).current_strategy is not strategy:
            logger.info("preview arrived for a superseded strategy, dropped", extra=extra)
            return None
        self.previews[index] = url
        self.registry.publish(self.unit_id, preview_slot(index), url)
        return url

    # ---------- Reset ----------
    def reset(self, index: int) -> None:
        """
        Back to empty log, no strategy, unmuted. The published output and preview
        are withdrawn; the tracker keeps its marker since upstream has not moved.
        """
        self._cancel_preview(index)
        self._states[index] = InstanceState()
        self.registry.remove(self.unit_id, output_slot(index))
        self.registry.remove(self.unit_id, preview_slot(index))
        self.previews.pop(index, None)
        self.last_audit_png.pop(index, None)
        logger.info("instance reset", extra={"unit_id": self.unit_id, "instance": index})

    def close(self) -> None:
        self._debouncer.cancel_all()
