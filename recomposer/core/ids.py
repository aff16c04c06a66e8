from __future__ import annotations
import secrets

def _tok(nbytes: int = 12) -> str:
    return secrets.token_urlsafe(nbytes)

def new_unit_id() -> str:
    return f"unit_{_tok()}"

def new_run_id() -> str:
    return f"run_{_tok()}"

def new_message_id() -> str:
    return f"msg_{_tok()}"
