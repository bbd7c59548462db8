"""Graph builder — wires the fixed review pipeline into a LangGraph StateGraph.

START → [author] → [reviewer] → conditional (route_review)
  → "__accepted__" → [synthesizer] → END
  → "__revise__"   → [reviser] → [reviewer]
  → "__override__" → [override] → conditional (route_override)
      → "__accepted__" → [synthesizer] → END
      → "__rejected__" → END
"""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING

from langgraph.graph import END, StateGraph

from copilot.agents.nodes import (
    make_author_node,
    make_override_node,
    make_reviewer_node,
    make_reviser_node,
    make_synthesizer_node,
    route_override,
    route_review,
)
from copilot.agents.state import PipelineState

if TYPE_CHECKING:
    from langgraph.graph.state import CompiledStateGraph

    from copilot.agents.nodes import RoleRunner

logger = logging.getLogger(__name__)

MAX_ROUNDS = 3


def recursion_limit(max_rounds: int) -> int:
    """Graph steps for the longest possible run, with headroom."""
    # author + rounds reviews + (rounds - 1) revisions + override + synthesizer
    return 2 * max_rounds + 2 + 5


def build_graph(
    runner: RoleRunner,
    *,
    max_rounds: int = MAX_ROUNDS,
    payload_tag: str = "SurgicalPlan",
) -> CompiledStateGraph:
    """Build and compile the pipeline graph around a role runner."""
    graph = StateGraph(PipelineState)

    graph.add_node("author", make_author_node(runner, payload_tag))
    graph.add_node("reviewer", make_reviewer_node(runner))
    graph.add_node("reviser", make_reviser_node(runner, payload_tag))
    graph.add_node("override", make_override_node(runner))
    graph.add_node("synthesizer", make_synthesizer_node(runner))

    graph.set_entry_point("author")
    graph.add_edge("author", "reviewer")

    graph.add_conditional_edges(
        "reviewer",
        partial(route_review, max_rounds=max_rounds),
        {
            "__accepted__": "synthesizer",
            "__revise__": "reviser",
            "__override__": "override",
        },
    )
    graph.add_edge("reviser", "reviewer")

    graph.add_conditional_edges(
        "override",
        route_override,
        {
            "__accepted__": "synthesizer",
            "__rejected__": END,
        },
    )
    graph.add_edge("synthesizer", END)

    logger.info(f"Built pipeline graph (max_rounds={max_rounds}, payload_tag={payload_tag})")
    return graph.compile()
