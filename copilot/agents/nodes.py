"""LangGraph node functions — one per pipeline stage.

Each node builds its role prompt, calls the role through the runner (which
applies the retry policy), extracts tags and returns a partial state update.
Errors are not caught here: a role call that exhausts its retries aborts the
run and surfaces from ``graph.ainvoke``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from copilot.agents.prompts import (
    author_prompt,
    manager_prompt,
    reviewer_prompt,
    synthesizer_prompt,
)
from copilot.agents.registry import AUTHOR, MANAGER, REVIEWER, SYNTHESIZER
from copilot.agents.tags import (
    ACCEPT,
    REJECT,
    extract_payload,
    is_superficial_concern,
    parse_manager_decision,
    parse_review,
)
from copilot.agents.state import PipelineState, RunOptions

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

SOURCE_REVIEWER = "reviewer"
SOURCE_HEURISTIC = "heuristic"
SOURCE_MANAGER = "manager"

REASON_REVIEWER_ACCEPTED = "reviewer_accepted"
REASON_SUPERFICIAL = "superficial_concern_override"
REASON_MANAGER_OVERRIDE = "manager_override"
REASON_MANAGER_REJECTED = "manager_rejected"

SUPERFICIAL_OVERRIDE_NOTE = (
    "Auto-override: the remaining objection concerns formatting or presentation only."
)


class RoleRunner(Protocol):
    """What the nodes need from the orchestrator."""

    async def invoke_role(self, role: str, user: str, options: RunOptions) -> str: ...

    def verbosity(self, role: str, options: RunOptions) -> str: ...


# ---------------------------------------------------------------------------
# Node factories
# ---------------------------------------------------------------------------


def make_author_node(runner: RoleRunner, payload_tag: str) -> Callable:
    """Authoring: first plan for the case, no critique."""

    async def author_node(state: PipelineState) -> dict:
        options = state["options"]
        prompt = author_prompt(state["case_text"], runner.verbosity(AUTHOR, options))
        text = await runner.invoke_role(AUTHOR, prompt, options)
        payload = extract_payload(text, payload_tag)
        if not payload.strip():
            logger.warning("Author returned no text; reviewing an empty plan")
        logger.info(f"Author drafted plan ({len(payload)} chars)")
        return {"payload": payload, "round": 1}

    return author_node


def make_reviser_node(runner: RoleRunner, payload_tag: str) -> Callable:
    """Revising: new plan addressing the latest critique; advances the round."""

    async def reviser_node(state: PipelineState) -> dict:
        options = state["options"]
        prompt = author_prompt(
            state["case_text"],
            runner.verbosity(AUTHOR, options),
            critique=state["comment"],
        )
        text = await runner.invoke_role(AUTHOR, prompt, options)
        payload = extract_payload(text, payload_tag)
        if not payload.strip():
            logger.warning("Author returned no revision; keeping the previous plan")
            payload = state["payload"]
        next_round = state["round"] + 1
        logger.info(f"Author revised plan for round {next_round} ({len(payload)} chars)")
        return {
            "payload": payload,
            "round": next_round,
            "revisions": state["revisions"] + 1,
        }

    return reviser_node


def make_reviewer_node(runner: RoleRunner) -> Callable:
    """Reviewing: verdict + comment on the current plan."""

    async def reviewer_node(state: PipelineState) -> dict:
        options = state["options"]
        prompt = reviewer_prompt(state["payload"], runner.verbosity(REVIEWER, options))
        text = await runner.invoke_role(REVIEWER, prompt, options)
        outcome = parse_review(text)
        logger.info(f"Review round {state['round']}: {outcome.verdict}")

        update: dict = {
            "verdict": outcome.verdict,
            "comment": outcome.comment,
            "raw_review": text,
            "reviews": state["reviews"] + 1,
        }
        if outcome.accepted:
            update["source"] = SOURCE_REVIEWER
            update["reason"] = REASON_REVIEWER_ACCEPTED
        return update

    return reviewer_node


def make_override_node(runner: RoleRunner) -> Callable:
    """Overriding: heuristic fast-path, else one manager call."""

    async def override_node(state: PipelineState) -> dict:
        comment = state["comment"]

        if is_superficial_concern(comment):
            logger.info("Standing rejection is superficial — auto-override to accept")
            return {
                "verdict": ACCEPT,
                "source": SOURCE_HEURISTIC,
                "reason": REASON_SUPERFICIAL,
                "manager_note": SUPERFICIAL_OVERRIDE_NOTE,
            }

        options = state["options"]
        prompt = manager_prompt(state["payload"], comment, runner.verbosity(MANAGER, options))
        text = await runner.invoke_role(MANAGER, prompt, options)
        decision = parse_manager_decision(text)
        logger.info(f"Manager decision: {decision.decision}")

        if decision.accepted:
            return {
                "verdict": ACCEPT,
                "source": SOURCE_MANAGER,
                "reason": REASON_MANAGER_OVERRIDE,
                "manager_note": decision.note,
            }
        return {
            "verdict": REJECT,
            "source": SOURCE_MANAGER,
            "reason": REASON_MANAGER_REJECTED,
            "manager_note": decision.note,
        }

    return override_node


def make_synthesizer_node(runner: RoleRunner) -> Callable:
    """Synthesizing: render the accepted plan as Markdown."""

    async def synthesizer_node(state: PipelineState) -> dict:
        options = state["options"]
        prompt = synthesizer_prompt(state["payload"], runner.verbosity(SYNTHESIZER, options))
        markdown = await runner.invoke_role(SYNTHESIZER, prompt, options)
        logger.info(f"Synthesizer rendered document ({len(markdown)} chars)")
        return {"markdown": markdown}

    return synthesizer_node


# ---------------------------------------------------------------------------
# Routing functions — decide the next node from state
# ---------------------------------------------------------------------------


def route_review(state: PipelineState, max_rounds: int) -> str:
    """Route after the reviewer node.

    Returns:
        "__accepted__"  — reviewer accepted, go synthesize
        "__revise__"    — rejected with rounds left
        "__override__"  — rejected on the last round
    """
    if state["verdict"] == ACCEPT:
        return "__accepted__"

    if state["round"] < max_rounds:
        logger.info(f"Plan rejected, revising (round {state['round']}/{max_rounds})")
        return "__revise__"

    logger.warning(f"Plan still rejected after {max_rounds} round(s) — escalating")
    return "__override__"


def route_override(state: PipelineState) -> str:
    """Route after the override node: synthesize or stop with a final rejection."""
    return "__accepted__" if state["verdict"] == ACCEPT else "__rejected__"
