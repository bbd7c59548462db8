"""Role registry — the four fixed roles the pipeline invokes.

The only place where system instructions and default verbosity are defined.
Prompt bodies come from ``copilot.agents.prompts``.
"""

from __future__ import annotations

from dataclasses import dataclass

AUTHOR = "author"
REVIEWER = "reviewer"
MANAGER = "manager"
SYNTHESIZER = "synthesizer"


@dataclass(frozen=True)
class RoleDefinition:
    name: str
    description: str
    system_instruction: str
    default_verbosity: str


ROLE_REGISTRY: dict[str, RoleDefinition] = {
    AUTHOR: RoleDefinition(
        name=AUTHOR,
        description="Drafts and revises the structured surgical plan.",
        system_instruction=(
            "You create structured, safe, conservative surgical plans "
            "and return ONLY the <SurgicalPlan> XML."
        ),
        default_verbosity="high",
    ),
    REVIEWER: RoleDefinition(
        name=REVIEWER,
        description="Accepts or rejects a plan with a short rationale.",
        system_instruction=(
            "Return only a verify tag and a feedback tag for the safety review."
        ),
        default_verbosity="medium",
    ),
    MANAGER: RoleDefinition(
        name=MANAGER,
        description="Arbitrates a rejection that survived every revision round.",
        system_instruction=(
            "Return only a decision tag and a note tag for the override review."
        ),
        default_verbosity="medium",
    ),
    SYNTHESIZER: RoleDefinition(
        name=SYNTHESIZER,
        description="Renders an approved plan as a Markdown operative note.",
        system_instruction="You write clean, professional operative plans in Markdown.",
        default_verbosity="high",
    ),
}


def resolve_role(name: str) -> RoleDefinition:
    """Look up a role by name. Raises ValueError if not found."""
    if name not in ROLE_REGISTRY:
        raise ValueError(
            f"Unknown role '{name}'. Available roles: {list(ROLE_REGISTRY.keys())}"
        )
    return ROLE_REGISTRY[name]
