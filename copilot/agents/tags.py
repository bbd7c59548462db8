"""Tag extraction — pulls delimited fields out of free-form generated text.

Each field has a fixed fallback when its tag is missing or malformed:

    field          default
    -------------  ------------------------------------------
    payload        the raw text itself (never empty, never None)
    verdict        "reject"   (fail-closed)
    comment        ""         (trimmed)
    decision       "reject"   (fail-closed)
    note           ""         (trimmed)

Nothing in this module raises on bad input.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

ACCEPT = "accept"
REJECT = "reject"

VERDICT_TAG = "SurgicalBoard_Verify"
COMMENT_TAG = "Feedback_Comment"
DECISION_TAG = "Manager_Decision"
NOTE_TAG = "Manager_Note"

# ``None`` means the raw text itself is the fallback.
FIELD_DEFAULTS: dict[str, str | None] = {
    "payload": None,
    "verdict": REJECT,
    "comment": "",
    "decision": REJECT,
    "note": "",
}

NO_FEEDBACK_COMMENT = (
    "Reviewer returned no structured feedback — treating as a minor formatting issue."
)

# Lexical markers of a rejection that is about presentation rather than substance.
SUPERFICIAL_CONCERN_PATTERNS: tuple[str, ...] = (
    r"format",
    r"\btags?\b",
    r"layout",
    r"structur",
    r"\bstyle\b",
    r"no structured feedback",
)
_SUPERFICIAL_RE = re.compile("|".join(SUPERFICIAL_CONCERN_PATTERNS), re.IGNORECASE)


def extract_tag(text: str, name: str, default: str | None = None) -> str | None:
    """Return the content of the first ``<name>…</name>`` in ``text``, or ``default``.

    Matching is case-insensitive and non-greedy, and spans newlines.
    """
    if not text:
        return default
    pattern = rf"<{re.escape(name)}\s*>([\s\S]*?)</{re.escape(name)}\s*>"
    match = re.search(pattern, text, re.IGNORECASE)
    return match.group(1) if match else default


def extract_payload(text: str, root: str = "SurgicalPlan") -> str:
    """Return the whole ``<root …>…</root>`` block, or the raw text when absent."""
    text = text or ""
    pattern = rf"<{re.escape(root)}\b[\s\S]*?</{re.escape(root)}\s*>"
    match = re.search(pattern, text, re.IGNORECASE)
    if match:
        return match.group(0)
    default = FIELD_DEFAULTS["payload"]
    return text if default is None else default


def _token(raw: str) -> str:
    return re.sub(r"[^a-z]", "", raw.lower())


def normalize_verdict(token: str | None) -> str:
    """Map a raw verdict token to accept/reject. Anything unrecognized is a reject."""
    if token is None:
        return FIELD_DEFAULTS["verdict"]
    return ACCEPT if _token(token) == ACCEPT else REJECT


def extract_verdict(text: str) -> str:
    return normalize_verdict(extract_tag(text, VERDICT_TAG))


def extract_comment(text: str) -> str:
    return (extract_tag(text, COMMENT_TAG, FIELD_DEFAULTS["comment"]) or "").strip()


def extract_decision(text: str) -> str:
    """``override-accept`` (or a bare ``accept``) accepts; anything else rejects."""
    raw = extract_tag(text, DECISION_TAG)
    if raw is None:
        return FIELD_DEFAULTS["decision"]
    return ACCEPT if _token(raw) in ("overrideaccept", ACCEPT) else REJECT


def extract_note(text: str) -> str:
    return (extract_tag(text, NOTE_TAG, FIELD_DEFAULTS["note"]) or "").strip()


@dataclass(frozen=True)
class ReviewOutcome:
    """One reviewer turn after tag extraction and malformed-output handling."""

    verdict: str
    comment: str
    well_formed: bool
    raw: str = ""

    @property
    def accepted(self) -> bool:
        return self.verdict == ACCEPT


def read_review(text: str) -> ReviewOutcome:
    """Verdict and comment from reviewer output, each with its own field default."""
    text = text or ""
    comment = extract_comment(text)
    well_formed = extract_tag(text, VERDICT_TAG) is not None and bool(comment)
    return ReviewOutcome(
        verdict=extract_verdict(text), comment=comment, well_formed=well_formed, raw=text
    )


def parse_review(text: str) -> ReviewOutcome:
    """Reviewer output as seen by the revision loop.

    Output missing either tag, or carrying an empty comment, is a reject with
    a synthesized comment flagging the missing feedback.
    """
    outcome = read_review(text)
    if outcome.well_formed:
        return outcome

    logger.warning(
        f"Malformed reviewer output (verdict={outcome.verdict}, "
        f"comment={'yes' if outcome.comment else 'no'}), treating as reject"
    )
    return ReviewOutcome(
        verdict=REJECT, comment=NO_FEEDBACK_COMMENT, well_formed=False, raw=outcome.raw
    )


@dataclass(frozen=True)
class ManagerDecision:
    """Override decision from the manager role."""

    decision: str  # "accept" | "reject"
    note: str

    @property
    def accepted(self) -> bool:
        return self.decision == ACCEPT


def parse_manager_decision(text: str) -> ManagerDecision:
    """Extract the override decision (default reject) and note (default empty)."""
    text = text or ""
    return ManagerDecision(decision=extract_decision(text), note=extract_note(text))


def is_superficial_concern(comment: str | None) -> bool:
    """True when a rejection comment is empty or only about presentation.

    Plain keyword matching: a substantive comment that happens to mention
    formatting also matches.
    """
    if not comment or not comment.strip():
        return True
    return _SUPERFICIAL_RE.search(comment) is not None
