from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from recomposer.agents.state import ChatMessage, InstanceState, Role


@dataclass
class MemoryConfig:
    """
    Keep the audit log deterministic + bounded.
    """
    max_messages: int = 50          # rolling window


class AuditLog:
    """
    Append helper for an instance's chat history.
    Always replaces the list instead of mutating it, so snapshots handed out earlier stay intact.
    """

    def __init__(self, config: Optional[MemoryConfig] = None):
        self.config = config or MemoryConfig()

    def append(
        self,
        state: InstanceState,
        *,
        role: Role,
        content: str,
        is_system: bool = False,
        strategy_snapshot: Optional[Dict] = None,
    ) -> ChatMessage:
        msg = ChatMessage(role=role, content=content, is_system=is_system, strategy_snapshot=strategy_snapshot)
        state.chat_history = self._trim_messages(state.chat_history + [msg])
        return msg

    def get_context_messages(self, state: InstanceState) -> List[Dict[str, str]]:
        """
        Return role/content pairs for prompt building.
        """
        return [{"role": m.role, "content": m.content} for m in state.chat_history]

    # -------------------------
    # internal trimming helpers
    # -------------------------
    def _trim_messages(self, msgs: List[ChatMessage]) -> List[ChatMessage]:
        if len(msgs) <= self.config.max_messages:
            return msgs
        return msgs[-self.config.max_messages :]
