from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

# reserved bucket that applies to every target container
GLOBAL_SCOPE_KEY = "GLOBAL CONTEXT"

Scopes = Mapping[str, Sequence[str]]


class RuleScopeResolver(Protocol):
    """Splits free-text rules into buckets keyed by container name or GLOBAL_SCOPE_KEY."""

    def scope(self, rule_text: str) -> Dict[str, List[str]]:
        ...


def _canonical(scopes: Optional[Scopes]) -> Dict[str, List[str]]:
    """Upper-case keys; buckets that collide after folding are concatenated in input order."""
    out: Dict[str, List[str]] = {}
    for key, rules in (scopes or {}).items():
        out.setdefault(key.strip().upper(), []).extend(rules)
    return out


def split_ruleset(scopes: Optional[Scopes], target_name: Optional[str]) -> Tuple[List[str], List[str]]:
    """(global rules, rules specific to target_name)."""
    canon = _canonical(scopes)
    global_rules = list(canon.get(GLOBAL_SCOPE_KEY, []))
    specific: List[str] = []
    if target_name:
        key = target_name.strip().upper()
        if key != GLOBAL_SCOPE_KEY:
            specific = list(canon.get(key, []))
    return global_rules, specific


def effective_ruleset(scopes: Optional[Scopes], target_name: Optional[str]) -> List[str]:
    """Global bucket first, then the target's bucket, original numbering kept."""
    global_rules, specific = split_ruleset(scopes, target_name)
    return global_rules + specific


def format_rules_context(scopes: Optional[Scopes], target_name: Optional[str]) -> str:
    """Prompt block for the strategy generator; empty string when there are no rules."""
    global_rules, specific = split_ruleset(scopes, target_name)
    name = (target_name or "UNKNOWN").upper()

    parts: List[str] = []
    if specific:
        parts.append(
            f"[SPECIFIC PROTOCOLS FOR '{name}']:\n"
            f"The following rules are extracted from the // {name} CONTAINER block. "
            "They are STRICT HARD CONSTRAINTS.\n" + "\n".join(specific)
        )
    if global_rules:
        parts.append("[GLOBAL BRAND GUIDELINES]:\n" + "\n".join(global_rules))
    return "\n\n".join(parts)
