from __future__ import annotations

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional, Literal
from datetime import datetime

from recomposer.core.clock import utc_now
from recomposer.core.ids import new_message_id
from recomposer.schemas.strategy_schema import Strategy


Role = Literal["user", "model"]


class ChatMessage(BaseModel):
    """
    One entry of an instance's audit log.
    System notices (invalidations, errors) are `model` messages flagged `is_system`.
    """
    id: str = Field(default_factory=new_message_id)
    role: Role
    content: str
    ts: datetime = Field(default_factory=utc_now)
    is_system: bool = False
    strategy_snapshot: Optional[Dict[str, Any]] = None


class InstanceState(BaseModel):
    """
    Exposed per-instance state of an editing unit.
    `in_flight` / `run_id` are run bookkeeping and are cleared by reset as well.
    """
    chat_history: List[ChatMessage] = Field(default_factory=list)
    current_strategy: Optional[Strategy] = None
    is_muted: bool = False

    in_flight: bool = Field(default=False, exclude=True)
    run_id: Optional[str] = Field(default=None, exclude=True)

    def has_audit(self) -> bool:
        return bool(self.chat_history) or self.current_strategy is not None
