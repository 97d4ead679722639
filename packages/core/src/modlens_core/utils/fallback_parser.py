"""Best-effort recovery of a decision from a prose model response.

Used when the model ignores the JSON instruction. Precision is secondary:
this must always return a decision and never raise.
"""

from __future__ import annotations

import re

DEFAULT_CONFIDENCE = 0.7
MARKER_CONFIDENCE = 0.95
SHORT_TEXT_LIMIT = 200

_LABEL = re.compile(r"\b(?:decision|verdict|action|result)\s*:[\s*\"']*(approve|reject|spam)\b", re.I)
_QUOTED_LABEL = re.compile(r"\"(?:decision|verdict|action|result)\"\s*:\s*\"(approve|reject|spam)\"", re.I)

_APPROVE_WORDS = re.compile(r"\b(approve|accepted|good|legitimate|positive|helpful)\b", re.I)
_REJECT_WORDS = re.compile(r"\b(reject|deny|inappropriate|offensive|negative|harmful|abusive)\b", re.I)
_SPAM_WORDS = re.compile(r"\b(spam|promotional|advertisement|scam|marketing|commercial)\b", re.I)

_SHORT_POSITIVE = re.compile(r"\b(good|great|excellent|helpful|useful)\b", re.I)
_SHORT_NEGATIVE = re.compile(r"\b(bad|terrible|useless|inappropriate|offensive)\b", re.I)

# Links, bare domains and phone-number-like runs.
_LINK = re.compile(r"(https?://|www\.|\+?\d[\d\-.() ]{8,}\d)")
_PROMO_PHRASE = re.compile(r"\b(amazing|best deals|cheap|buy now|check out|marketing|bot)\b", re.I)
_REPEATED_PUNCTUATION = re.compile(r"(!{2,}|\?{2,})")
_SPAM_MARKER = re.compile(r"(marketing bot|spam-site\.com)", re.I)

_CONFIDENCE = re.compile(r"(?:confidence|certainty|score)\s*:\s*(\d+(?:\.\d+)?)", re.I)
_REASONING = re.compile(r"(?:reasoning|explanation|analysis|because|reason)\s*:\s*(.+)", re.I)


def _guess_decision(text: str) -> str:
    match = _LABEL.search(text) or _QUOTED_LABEL.search(text)
    if match:
        return match.group(1).lower()

    if _APPROVE_WORDS.search(text):
        return "approve"
    if _REJECT_WORDS.search(text):
        return "reject"
    if _SPAM_WORDS.search(text):
        return "spam"

    if _LINK.search(text) or _PROMO_PHRASE.search(text):
        return "spam"

    if len(text) < SHORT_TEXT_LIMIT:
        if _SHORT_POSITIVE.search(text):
            return "approve"
        if _SHORT_NEGATIVE.search(text):
            return "reject"
        return "approve"

    if _REPEATED_PUNCTUATION.search(text):
        return "spam"
    return "approve"


def parse_text_response(text: str) -> dict:
    """Return {"decision", "confidence", "reasoning"} recovered from free text."""
    text = text or ""
    decision = _guess_decision(text)
    confidence = DEFAULT_CONFIDENCE
    reasoning = text.strip()

    if decision == "spam" and _SPAM_MARKER.search(text):
        confidence = MARKER_CONFIDENCE
        reasoning = "Comment contains a marketing bot author or a known spam link"

    match = _CONFIDENCE.search(text)
    if match:
        confidence = min(1.0, max(0.0, float(match.group(1))))

    match = _REASONING.search(text)
    if match:
        reasoning = match.group(1).strip()

    return {"decision": decision, "confidence": confidence, "reasoning": reasoning}
