"""LangGraph shared state — flows between nodes during one pipeline run."""

from dataclasses import dataclass

from typing_extensions import TypedDict


@dataclass(frozen=True)
class RunOptions:
    """Per-request knobs shared by every role call in a run."""

    model: str
    reasoning_effort: str | None = None
    verbosity: str | None = None


class PipelineState(TypedDict):
    """State passed through every node in the graph.

    case_text     — the submitted case; never modified during the run.
    options       — model / effort / verbosity for every role call.
    payload       — the current plan; replaced wholesale by author and reviser.
    round         — current review round, 1-based; only the reviser increments it.
    reviews       — reviewer calls made so far.
    revisions     — reviser calls made so far.
    verdict       — "accept" | "reject" | None before the first review.
    comment       — feedback from the latest review.
    raw_review    — unparsed text of the latest review.
    source        — who settled the verdict: "reviewer" | "heuristic" | "manager".
    reason        — machine-readable reason for the final verdict.
    manager_note  — override note (heuristic or manager), "" if none.
    markdown      — rendered document; only set on acceptance.
    """

    case_text: str
    options: RunOptions
    payload: str
    round: int
    reviews: int
    revisions: int
    verdict: str | None
    comment: str
    raw_review: str
    source: str | None
    reason: str | None
    manager_note: str
    markdown: str | None
