"""Shared fixtures: scripted upstream client, recorded sleeps, test config."""

from __future__ import annotations

import pytest

from copilot.agents.client import RoleInvocation
from copilot.config import CopilotConfig
from copilot.runtime import Orchestrator

PLAN_XML = (
    "<SurgicalPlan><step><action_name>Wide local excision</action_name>"
    "<description>Excise with 1 cm margins; send frozen sections.</description></step>"
    "</SurgicalPlan>"
)
SUBSTANTIVE_COMMENT = (
    "Nodal management is not addressed and no recipient vessel is named for the free flap."
)
MARKDOWN = "### Preoperative Plan\n- Confirm staging imaging.\n"


def review_text(verdict: str, comment: str) -> str:
    return (
        f"<SurgicalBoard_Verify>{verdict}</SurgicalBoard_Verify>"
        f"<Feedback_Comment>{comment}</Feedback_Comment>"
    )


def manager_text(decision: str, note: str) -> str:
    return f"<Manager_Decision>{decision}</Manager_Decision><Manager_Note>{note}</Manager_Note>"


class ScriptedClient:
    """Stands in for GenerationClient.

    Each role gets a queue of texts or exceptions; items are consumed in
    order and the last one repeats for any further calls.
    """

    def __init__(self, **scripts: list) -> None:
        self.scripts = {role: list(items) for role, items in scripts.items()}
        self.calls: list[RoleInvocation] = []

    async def generate(self, invocation: RoleInvocation) -> str:
        self.calls.append(invocation)
        queue = self.scripts.get(invocation.role)
        if not queue:
            raise AssertionError(f"unexpected call for role '{invocation.role}'")
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, BaseException):
            raise item
        return item

    def count(self, role: str) -> int:
        return sum(1 for c in self.calls if c.role == role)

    def prompts(self, role: str) -> list[str]:
        return [c.user for c in self.calls if c.role == role]


class SleepRecorder:
    """Async sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def config() -> CopilotConfig:
    return CopilotConfig(openai_api_key="test-key")


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_orchestrator(config, sleeps):
    def _make(client: ScriptedClient, cfg: CopilotConfig | None = None) -> Orchestrator:
        return Orchestrator(cfg or config, client, sleep=sleeps)

    return _make
