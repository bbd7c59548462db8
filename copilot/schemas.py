"""Request/response models — the contract between the service and clients.

Wire names are camelCase; required text fields are optional here so the
routes can answer a missing or blank value with 400 instead of 422.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ReasoningEffort = Literal["minimal", "low", "medium", "high"]
Verbosity = Literal["low", "medium", "high"]


class GenerationOptions(BaseModel):
    """Knobs shared by every POST route."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    model: str | None = None
    reasoning_effort: ReasoningEffort | None = Field(default=None, alias="reasoningEffort")
    verbosity: Verbosity | None = None


class PlanRequest(GenerationOptions):
    case_text: str | None = Field(default=None, alias="caseText")


class ReviewRequest(GenerationOptions):
    planner_xml: str | None = Field(default=None, alias="plannerXml")


class SynthesizeRequest(GenerationOptions):
    approved_planner_xml: str | None = Field(default=None, alias="approvedPlannerXml")


class GenerateRequest(PlanRequest):
    """Same body as /plan; runs the whole pipeline."""


class PlanResponse(BaseModel):
    xml: str


class ReviewResponse(BaseModel):
    verdict: Literal["accept", "reject"]
    comment: str


class SynthesizeResponse(BaseModel):
    markdown: str
