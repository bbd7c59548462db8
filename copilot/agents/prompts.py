"""Role prompt builders — pure functions from inputs to instruction text.

No I/O and no shared state: the same inputs always produce the same text.
``verbosity`` is folded into the prompt wording rather than sent upstream.
"""

from __future__ import annotations

VERBOSITY_LEVELS = ("low", "medium", "high")


def _style(verbosity: str | None, default: str) -> str:
    value = (verbosity or default).strip().lower()
    if value not in VERBOSITY_LEVELS:
        value = default
    return value.upper()


def author_prompt(case_text: str, verbosity: str | None = None, critique: str | None = None) -> str:
    """Planner instructions for a case; ``critique`` turns it into a revision request."""
    style = _style(verbosity, "high")
    prompt = f"""Role: You are an expert head and neck reconstructive microsurgeon with 20 years of experience at a leading academic cancer center. You specialise in complex cases requiring free tissue transfer.

Objective: Write a comprehensive, step-by-step surgical plan for the patient case below. The plan must be conditional: anticipate common intraoperative findings and state the action for each. Write style: {style} VERBOSITY.

Patient Case:
{case_text.strip()}

Instructions for Your Plan:
1. Enclose the entire plan in <SurgicalPlan> ... </SurgicalPlan> tags.
2. Each distinct action is a <step> containing <action_name> and <description>.
3. Use <if_block condition='...'> for alternative outcomes. Do NOT use "else"; write one <if_block> per path.
4. Do not assume unknowns. If information is missing, add a step to obtain it.
5. Give specific doses, suture sizes, drain types, vessel choices, flap dimensions, monitoring plan and airway strategy wherever they apply."""

    critique = (critique or "").strip()
    if critique:
        prompt += f"""

Review Board Critique of Your Previous Plan:
{critique}

Revision Instructions:
- Address EVERY critique item above explicitly in the new plan.
- Return a complete replacement plan, not a diff or a list of changes."""
    return prompt


def reviewer_prompt(plan_xml: str, verbosity: str | None = None) -> str:
    """Review board instructions for one plan."""
    style = _style(verbosity, "medium")
    return f"""Role: You are the Surgical Review Board at a major teaching hospital. You evaluate a proposed surgical plan for safety, completeness and adherence to the standard of care. You are strict and detail-oriented, and you justify every decision. Write style: {style} VERBOSITY.

Task: Analyse the plan below and decide whether to "accept" or "reject" it, with a brief justification based on the checklist.

Proposed Surgical Plan to Review:
{plan_xml.strip()}

Evaluation Checklist:
1. Oncologic Soundness: Are the ablation strategy and margins appropriate? Is nodal management addressed?
2. Reconstructive Soundness: Is the reconstructive choice appropriate for this defect and patient?
3. Contingency Planning: Are common complications and alternative findings anticipated with actions?
4. Clarity and Logic: Is the plan logical, unambiguous and stepwise?

Response Format (both tags required):
<SurgicalBoard_Verify>accept|reject</SurgicalBoard_Verify><Feedback_Comment>{{RATIONALE_MAX_1200_CHARS}}</Feedback_Comment>"""


def manager_prompt(plan_xml: str, comment: str, verbosity: str | None = None) -> str:
    """Override instructions: judge whether a standing rejection should block the plan."""
    style = _style(verbosity, "medium")
    return f"""Role: You are the Chief of Surgery. The Surgical Review Board has rejected the plan below after several revision rounds. Decide whether the remaining objections are safety-relevant or only superficial. Write style: {style} VERBOSITY.

Surgical Plan:
{plan_xml.strip()}

Standing Review Board Objection:
{(comment or "").strip() or "(no comment given)"}

Decision Rules:
1. Override the rejection only if the plan is safe and the objection concerns wording, formatting or non-critical detail.
2. Uphold the rejection if the objection identifies a gap in oncologic safety, reconstruction, airway or contingency planning.

Response Format (both tags required):
<Manager_Decision>override-accept|override-reject</Manager_Decision><Manager_Note>{{ONE_PARAGRAPH_RATIONALE}}</Manager_Note>"""


def synthesizer_prompt(plan_xml: str, verbosity: str | None = None) -> str:
    """Instructions to render an approved plan as a Markdown operative note."""
    style = _style(verbosity, "high")
    return f"""Role: You are the Chief Surgical Resident. The attending has approved the plan. Convert the structured plan into a formal "Surgical Operative Plan" note for the medical record and team briefing. Write style: {style} VERBOSITY.

Approved Structured Plan:
{plan_xml.strip()}

Output Format (Markdown):
### Preoperative Plan
### Intraoperative Plan: Ablation
### Intraoperative Plan: Reconstruction
### Key Contingency Plans

Constraints: Be concise but complete, keep every conditional branch, and use professional clinical language."""
