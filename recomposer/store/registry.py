from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

SlotKey = Tuple[str, str]


def input_slot(index: int) -> str:
    return f"payload-in-{index}"


def output_slot(index: int) -> str:
    return f"polished-out-{index}"


def preview_slot(index: int) -> str:
    return f"preview-out-{index}"


class GraphRegistry:
    """
    Shared key/value store between editing units, keyed by (unit_id, slot_id).
    Passed by reference; each unit only writes keys under its own unit_id.
    Wiring (which slot feeds which) lives outside this class.
    """

    def __init__(self):
        self._payloads: Dict[SlotKey, Any] = {}

    def publish(self, unit_id: str, slot_id: str, payload: Any) -> None:
        self._payloads[(unit_id, slot_id)] = payload
        logger.debug("published %s/%s", unit_id, slot_id, extra={"unit_id": unit_id})

    def read(self, unit_id: str, slot_id: str) -> Optional[Any]:
        return self._payloads.get((unit_id, slot_id))

    def remove(self, unit_id: str, slot_id: str) -> bool:
        """Drop one slot. Returns True if something was there."""
        return self._payloads.pop((unit_id, slot_id), None) is not None

    def flush_unit(self, unit_id: str) -> int:
        keys = [k for k in self._payloads if k[0] == unit_id]
        for k in keys:
            del self._payloads[k]
        return len(keys)

    def slots_for(self, unit_id: str) -> List[str]:
        return sorted(slot for uid, slot in self._payloads if uid == unit_id)

    def __contains__(self, key: SlotKey) -> bool:
        return key in self._payloads
