from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class Prompt:
    name: str
    template: str

    def render(self, **kwargs: object) -> str:
        return self.template.format(**kwargs)


PROMPTS: Dict[str, Prompt] = {
    "audit": Prompt(
        name="audit",
        template=(
            "ROLE: Layout auditor for a layered design recomposition.\n"
            "{mode}\n"
            "\n"
            "CONTEXT:\n"
            "- Target Container: \"{target}\" ({width}x{height})\n"
            "- Scale Factor: {scale_factor}\n"
            "- Directives: {directives}\n"
            "- {current_state}\n"
            "{rules}\n"
            "\n"
            "INPUT DATA:\n"
            "1. VISUAL STATE: an image of the current layout; (0,0) is the top-left of the target container.\n"
            "2. METADATA: JSON of the layer hierarchy in container-relative pixels.\n"
            "\n"
            "ALIGNMENT: use 'optical' bounds and 'visualCenter' where present; geometric bounds include\n"
            "transparent padding.\n"
            "\n"
            "CONSTRAINTS:\n"
            "- MODIFY ONLY: xOffset, yOffset, individualScale, rotation.\n"
            "- Do not add, delete or rename layers. Use the layerId strings from the metadata.\n"
            "- Every override must cite the rule it enforces in 'citedRule'.\n"
            "- method must be GEOMETRIC unless the rules explicitly authorize generative fill.\n"
            "\n"
            "Return JSON with keys: reasoning, method, directives, generativePrompt, knowledgeApplied, overrides.\n"
        ),
    ),
    "audit_mode_auto": Prompt(
        name="audit_mode_auto",
        template=(
            "MODE: AUTOMATED COMPLIANCE AUDIT.\n"
            "TASK: Scan the layout for rule violations and correct them with minimal geometric deltas."
        ),
    ),
    "audit_mode_interactive": Prompt(
        name="audit_mode_interactive",
        template=(
            "MODE: INTERACTIVE REFINEMENT. User request: \"{instruction}\".\n"
            "TASK: Execute the request while keeping every rule satisfied."
        ),
    ),
    "preview": Prompt(
        name="preview",
        template="Generate a draft sketch (256x256) for: {prompt}",
    ),
}


def get_prompt(name: str) -> Prompt:
    """
    Fetch a prompt by name. Raises KeyError if missing.
    """
    return PROMPTS[name]
