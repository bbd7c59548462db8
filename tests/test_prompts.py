"""Tests for role prompt builders and the role registry."""

from __future__ import annotations

import pytest

from copilot.agents.prompts import (
    author_prompt,
    manager_prompt,
    reviewer_prompt,
    synthesizer_prompt,
)
from copilot.agents.registry import ROLE_REGISTRY, resolve_role

CASE = "62M, T2N1 oral tongue SCC, planned hemiglossectomy."
PLAN = "<SurgicalPlan><step/></SurgicalPlan>"


class TestAuthorPrompt:
    def test_contains_case_and_tag_contract(self):
        prompt = author_prompt(CASE)
        assert CASE in prompt
        assert "<SurgicalPlan>" in prompt
        assert "HIGH VERBOSITY" in prompt

    def test_deterministic(self):
        assert author_prompt(CASE, "low") == author_prompt(CASE, "low")

    def test_critique_addendum(self):
        prompt = author_prompt(CASE, "medium", critique="Name the recipient vessel.")
        assert "Name the recipient vessel." in prompt
        assert "EVERY critique item" in prompt
        assert "MEDIUM VERBOSITY" in prompt

    def test_blank_critique_is_ignored(self):
        assert author_prompt(CASE, critique="  ") == author_prompt(CASE)

    def test_unknown_verbosity_uses_default(self):
        assert "HIGH VERBOSITY" in author_prompt(CASE, "extreme")


class TestOtherPrompts:
    def test_reviewer(self):
        prompt = reviewer_prompt(PLAN)
        assert PLAN in prompt
        assert "<SurgicalBoard_Verify>" in prompt
        assert "<Feedback_Comment>" in prompt
        assert "MEDIUM VERBOSITY" in prompt

    def test_manager(self):
        prompt = manager_prompt(PLAN, "Airway plan missing.")
        assert PLAN in prompt
        assert "Airway plan missing." in prompt
        assert "<Manager_Decision>" in prompt
        assert "<Manager_Note>" in prompt

    def test_manager_without_comment(self):
        assert "(no comment given)" in manager_prompt(PLAN, "")

    def test_synthesizer(self):
        prompt = synthesizer_prompt(PLAN, "low")
        assert PLAN in prompt
        assert "### Key Contingency Plans" in prompt
        assert "LOW VERBOSITY" in prompt


class TestRegistry:
    def test_four_roles(self):
        assert set(ROLE_REGISTRY) == {"author", "reviewer", "manager", "synthesizer"}

    def test_every_role_has_instruction(self):
        for role in ROLE_REGISTRY.values():
            assert role.system_instruction.strip()
            assert role.default_verbosity in ("low", "medium", "high")

    def test_unknown_role(self):
        with pytest.raises(ValueError, match="Unknown role"):
            resolve_role("editor")
