from __future__ import annotations

import enum
import logging
from typing import Optional

from recomposer.agents.state import ChatMessage, InstanceState
from recomposer.schemas.geometry_schema import GenerationMarker, GeometricModel

logger = logging.getLogger(__name__)

INVALIDATED_NOTICE = "[SYSTEM]: Upstream change detected. Previous audit invalidated."

_UNSET = object()


class Invalidation(str, enum.Enum):
    RECORDED = "recorded"    # first marker seen, nothing compared
    VALID = "valid"          # committed strategy still applies
    ANNOTATED = "annotated"  # strategy cleared, notice appended to the log
    WIPED = "wiped"          # strategy and log cleared


def is_baseline_only(model: GeometricModel) -> bool:
    """No pending generation, not confirmed, no preview attached.

    A compound condition: an unconfirmed, preview-less payload that is
    mid-generation is *not* baseline-only.
    """
    return not model.requires_generation and not model.is_confirmed and not model.preview_url


class StalenessTracker:
    """Decides whether a committed strategy survives a new upstream generation marker."""

    def __init__(self):
        self._previous = _UNSET

    @property
    def previous_marker(self) -> Optional[GenerationMarker]:
        return None if self._previous is _UNSET else self._previous

    @property
    def has_marker(self) -> bool:
        return self._previous is not _UNSET

    def forget(self) -> None:
        self._previous = _UNSET

    def observe(
        self,
        marker: GenerationMarker,
        baseline_only: bool,
        state: InstanceState,
    ) -> Invalidation:
        """
        Apply one observation to `state` in place and record `marker`.

        A marker change appends a single notice and keeps the rest of the log;
        a baseline-only payload clears the log entirely. Neither touches a
        state that has nothing to clear.
        """
        previous = self._previous
        self._previous = marker

        if previous is _UNSET:
            return Invalidation.RECORDED

        changed = marker != previous
        if not changed and not baseline_only:
            return Invalidation.VALID

        if not state.has_audit():
            return Invalidation.VALID

        state.current_strategy = None
        if baseline_only:
            state.chat_history = []
            logger.info("baseline payload, audit wiped", extra={"generation_id": marker})
            return Invalidation.WIPED

        state.chat_history = state.chat_history + [
            ChatMessage(role="model", content=INVALIDATED_NOTICE, is_system=True)
        ]
        logger.info("upstream marker changed, audit invalidated", extra={"generation_id": marker})
        return Invalidation.ANNOTATED
