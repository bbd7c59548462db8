"""Runtime — bridges HTTP requests to role calls and the LangGraph pipeline.

``Orchestrator`` owns the configuration, the shared generation client and the
compiled graph. Every role call goes through ``invoke_role``, which applies
the retry policy. One ``generate`` call is one sequential pipeline run whose
state lives only inside that call.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from copilot.agents.builder import build_graph, recursion_limit
from copilot.agents.client import GenerationClient, RoleInvocation
from copilot.agents.prompts import author_prompt, reviewer_prompt, synthesizer_prompt
from copilot.agents.registry import AUTHOR, REVIEWER, SYNTHESIZER, resolve_role
from copilot.agents.retry import RandomFn, SleepFn, with_retry
from copilot.agents.state import PipelineState, RunOptions
from copilot.agents.tags import ACCEPT, ReviewOutcome, extract_payload, read_review

if TYPE_CHECKING:
    from copilot.config import CopilotConfig

logger = logging.getLogger(__name__)


class PipelineError(RuntimeError):
    """A stage failed after its retry budget. ``stage`` names the failed operation."""

    def __init__(self, stage: str, cause: BaseException) -> None:
        super().__init__(f"{stage} failed: {type(cause).__name__}")
        self.stage = stage
        self.cause = cause


@dataclass(frozen=True)
class PipelineResult:
    """Terminal outcome of one generate run: accepted (with markdown) or rejected."""

    verdict: str
    source: str
    reason: str
    comment: str
    manager_note: str
    xml: str
    markdown: str | None
    raw_review: str
    rounds: int
    revisions: int

    @property
    def accepted(self) -> bool:
        return self.verdict == ACCEPT

    @classmethod
    def from_state(cls, state: PipelineState) -> PipelineResult:
        accepted = state["verdict"] == ACCEPT
        return cls(
            verdict=state["verdict"] or "reject",
            source=state["source"] or "reviewer",
            reason=state["reason"] or "",
            comment=state["comment"],
            manager_note=state["manager_note"],
            xml=state["payload"],
            markdown=state["markdown"] if accepted else None,
            raw_review=state["raw_review"],
            rounds=state["reviews"],
            revisions=state["revisions"],
        )

    def as_response(self) -> dict[str, Any]:
        """Body for POST /generate; ``markdown`` only on acceptance."""
        body: dict[str, Any] = {
            "verdict": self.verdict,
            "source": self.source,
            "reason": self.reason,
            "comment": self.comment,
            "manager_note": self.manager_note,
            "xml": self.xml,
            "raw_review": self.raw_review,
        }
        if self.accepted:
            body["markdown"] = self.markdown or ""
        return body


class Orchestrator:
    """Sequences role invocations. Safe to share across concurrent requests."""

    def __init__(
        self,
        config: CopilotConfig,
        client: Any | None = None,
        *,
        sleep: SleepFn = asyncio.sleep,
        random_fn: RandomFn = random.uniform,
    ) -> None:
        self.config = config
        self.client = client or GenerationClient(config)
        self._sleep = sleep
        self._random_fn = random_fn
        self._retry_policy = config.retry.policy()
        self._max_rounds = config.pipeline.max_rounds
        self._payload_tag = config.pipeline.payload_tag
        self.graph = build_graph(
            self, max_rounds=self._max_rounds, payload_tag=self._payload_tag
        )

    # -----------------------------------------------------------------------
    # Role invocation
    # -----------------------------------------------------------------------

    def options(
        self,
        model: str | None = None,
        reasoning_effort: str | None = None,
        verbosity: str | None = None,
    ) -> RunOptions:
        """Request options with the configured default model filled in."""
        return RunOptions(
            model=model or self.config.default_model,
            reasoning_effort=reasoning_effort,
            verbosity=verbosity,
        )

    def verbosity(self, role: str, options: RunOptions) -> str:
        return options.verbosity or resolve_role(role).default_verbosity

    async def invoke_role(self, role: str, user: str, options: RunOptions) -> str:
        """One role turn with the retry policy applied. May return ``""``."""
        definition = resolve_role(role)
        invocation = RoleInvocation(
            role=role,
            system=definition.system_instruction,
            user=user,
            model=options.model,
            effort=options.reasoning_effort,
        )
        return await with_retry(
            lambda: self.client.generate(invocation),
            self._retry_policy,
            label=f"Role '{role}'",
            sleep=self._sleep,
            random_fn=self._random_fn,
        )

    # -----------------------------------------------------------------------
    # Single-stage operations (/plan, /review, /synthesize)
    # -----------------------------------------------------------------------

    async def plan(self, case_text: str, options: RunOptions) -> str:
        """Author one plan; returns the extracted payload or the raw text."""
        try:
            prompt = author_prompt(case_text, self.verbosity(AUTHOR, options))
            text = await self.invoke_role(AUTHOR, prompt, options)
        except Exception as e:
            logger.error(f"Planner failed: {e}", exc_info=True)
            raise PipelineError("planner", e) from e
        return extract_payload(text, self._payload_tag)

    async def review(self, plan_xml: str, options: RunOptions) -> ReviewOutcome:
        """One reviewer turn. Verdict and comment fall back independently;
        the loop's malformed-output policy does not apply here."""
        try:
            prompt = reviewer_prompt(plan_xml, self.verbosity(REVIEWER, options))
            text = await self.invoke_role(REVIEWER, prompt, options)
        except Exception as e:
            logger.error(f"Review failed: {e}", exc_info=True)
            raise PipelineError("review", e) from e
        return read_review(text)

    async def synthesize(self, plan_xml: str, options: RunOptions) -> str:
        try:
            prompt = synthesizer_prompt(plan_xml, self.verbosity(SYNTHESIZER, options))
            return await self.invoke_role(SYNTHESIZER, prompt, options)
        except Exception as e:
            logger.error(f"Synthesis failed: {e}", exc_info=True)
            raise PipelineError("synth", e) from e

    # -----------------------------------------------------------------------
    # Full pipeline (/generate)
    # -----------------------------------------------------------------------

    async def generate(self, case_text: str, options: RunOptions) -> PipelineResult:
        """Run author → review loop → override → synthesis for one case.

        Raises PipelineError if any role call fails after its retries; a final
        rejection is a normal result, not an error.
        """
        logger.info(
            f"Executing pipeline: model={options.model}, "
            f"effort={options.reasoning_effort}, max_rounds={self._max_rounds}"
        )
        initial_state: PipelineState = {
            "case_text": case_text,
            "options": options,
            "payload": "",
            "round": 0,
            "reviews": 0,
            "revisions": 0,
            "verdict": None,
            "comment": "",
            "raw_review": "",
            "source": None,
            "reason": None,
            "manager_note": "",
            "markdown": None,
        }

        try:
            final_state = await self.graph.ainvoke(
                initial_state,
                config={"recursion_limit": recursion_limit(self._max_rounds)},
            )
        except Exception as e:
            logger.error(f"Pipeline execution error: {e}", exc_info=True)
            raise PipelineError("generate", e) from e

        result = PipelineResult.from_state(final_state)
        logger.info(
            f"Pipeline finished: verdict={result.verdict}, source={result.source}, "
            f"reason={result.reason}, rounds={result.rounds}, revisions={result.revisions}"
        )
        return result
