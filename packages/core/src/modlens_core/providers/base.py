"""Base classifier implementing the Template Method pattern.

All providers share the same classification algorithm:
    classify() → build_prompt()
               → _call_with_retry() → _call_api()   ← only this differs per provider
               → _parse()

Subclasses implement two things only:
  - __init__: validate and store the SDK client
  - _call_api: make one raw API call and return the model's text output

classify() never raises. Any failure in transport, the API, the response
shape or validation comes back as a ClassificationFailure the caller can
log and leave for a later attempt.
"""

from __future__ import annotations

import json
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Union

from modlens_core.utils.fallback_parser import parse_text_response

logger = logging.getLogger(__name__)

VALID_DECISIONS = ("approve", "reject", "spam")

# Failure codes.
CONNECTION_ERROR = "connection_error"
API_ERROR = "api_error"
INCOMPLETE_RESPONSE = "incomplete_response"
INVALID_RESPONSE = "invalid_response"
INVALID_RESPONSE_FORMAT = "invalid_response_format"
INVALID_AI_RESPONSE = "invalid_ai_response"
INVALID_DECISION = "invalid_decision"
PARSE_ERROR = "parse_error"

FALLBACK_NOTE = "Fallback text parsing used (JSON response was malformed)"
TEXT_MODE_NOTE = "Text response parsing used (model limitation)"

SYSTEM_PROMPT = (
    "You are a comment moderator. Analyze comments fairly and objectively to determine if they should be "
    "approved, rejected, or marked as spam. Consider context, relevance, and content quality."
)
JSON_INSTRUCTION = (
    'Respond with JSON format: {"decision": "approve/reject/spam", "confidence": 0.00-1.00, '
    '"reasoning": "Your detailed reasoning"}'
)


@dataclass
class CommentInput:
    """The part of a comment the model gets to see."""

    author: str
    content: str
    document_title: str = ""
    author_email: str = ""
    author_url: str = ""


@dataclass
class RawOutput:
    """What one successful API call produced, before parsing."""

    text: str
    tokens_used: int | None = None
    parameters_used: dict = field(default_factory=dict)
    parameter_notes: list[str] = field(default_factory=list)


@dataclass
class Classification:
    decision: str
    confidence: float
    reasoning: str
    model: str = ""
    tokens_used: int | None = None
    parameters_used: dict = field(default_factory=dict)
    parameter_notes: list[str] = field(default_factory=list)

    ok = True


@dataclass
class ClassificationFailure:
    code: str
    message: str
    model: str = ""
    details: Any = None

    ok = False


ClassificationResult = Union[Classification, ClassificationFailure]


class ClassifierError(Exception):
    """Raised inside a classifier to abort the current attempt with a failure code."""

    def __init__(self, code: str, message: str, details: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details


def _decode_json(text: str) -> dict | None:
    """Decode a JSON object, tolerating a markdown fence or prose around it."""
    cleaned = re.sub(r"^```(?:json)?\s*", "", text.strip())
    cleaned = re.sub(r"\s*```$", "", cleaned.strip())
    candidates = [cleaned]
    embedded = re.search(r"\{.*\}", cleaned, re.S)
    if embedded and embedded.group(0) != cleaned:
        candidates.append(embedded.group(0))
    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    return None


class BaseClassifier(ABC):
    MAX_RETRIES: int = 2

    def __init__(
        self,
        model: str,
        max_tokens: int = 800,
        temperature: float = 0.1,
        reasoning_effort: str = "low",
        max_retries: int | None = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.reasoning_effort = reasoning_effort
        self.max_retries = self.MAX_RETRIES if max_retries is None else max_retries

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def classify(self, comment: CommentInput, prompt: str | None = None) -> ClassificationResult:
        """Classify one comment. Never raises."""
        user_prompt = prompt if prompt is not None else self.build_prompt(comment)
        try:
            raw = self._call_with_retry(SYSTEM_PROMPT, user_prompt)
            return self._parse(raw)
        except ClassifierError as e:
            return ClassificationFailure(code=e.code, message=e.message, model=self.model, details=e.details)
        except Exception as e:
            logger.exception("%s: unexpected error while classifying", self.__class__.__name__)
            return ClassificationFailure(
                code=PARSE_ERROR,
                message=f"Failed to parse AI response: {e}",
                model=self.model,
            )

    def build_prompt(self, comment: CommentInput) -> str:
        """Render the per-comment user prompt.

        Kept in base so every provider asks the same question with the same
        decision guidelines; only the transport differs.
        """
        return f"""Analyze the following comment and make a decisive classification.

COMMENT TO ANALYZE:
Author: "{comment.author}"
Content: "{comment.content}"
Post: "{comment.document_title}"

DECISION GUIDELINES (be confident and decisive):

APPROVE (confidence 0.8+) if:
- Comment is relevant to the post topic
- No spam/promotional links or content
- Not abusive, hateful, or harassing
- Short comments (like "Nice post!", "Thanks!", "Great!") are OKAY - approve them
- Casual/informal language is OKAY - approve it
- Brief feedback or reactions are OKAY - approve them

SPAM (confidence 0.9+) if:
- Contains external promotional links
- Generic/template spam ("Nice info, check out...", "Great post, visit...")
- Obvious bot patterns (unrelated pharmaceutical/casino/loan mentions)
- Classic scam patterns (Nigerian prince, lottery winner, etc.)

REJECT (confidence 0.9+) if:
- Abusive, hateful, or harassing language
- Direct personal attacks or insults
- Threats or doxxing attempts

Be DECISIVE. If it's not clearly spam or abusive, APPROVE it with high confidence (0.8-0.95). \
Only use confidence below 0.7 for truly ambiguous edge cases.

Respond with JSON: {{"decision": "approve/spam/reject", "confidence": 0.75-0.95, "reasoning": "Brief explanation"}}"""

    # ------------------------------------------------------------------ #
    # Abstract: implement in each provider                                #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, system_prompt: str, user_prompt: str) -> RawOutput:
        """Make a single API call and return the model's text output.

        Raise ClassifierError on failure; use CONNECTION_ERROR for transport
        problems so _call_with_retry knows the attempt may be repeated.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _call_with_retry(self, system_prompt: str, user_prompt: str) -> RawOutput:
        """Retry transport failures up to max_retries times with exponential backoff.

        API errors and bad responses are not retried: the same request would
        get the same answer, and the comment stays pending for a later run.
        """
        for attempt in range(self.max_retries + 1):
            try:
                return self._call_api(system_prompt, user_prompt)
            except ClassifierError as e:
                if e.code != CONNECTION_ERROR or attempt == self.max_retries:
                    raise
                delay = 2**attempt
                logger.warning(
                    "%s connection error (attempt %d/%d): %s. Retrying in %ds...",
                    self.__class__.__name__,
                    attempt + 1,
                    self.max_retries + 1,
                    e.message,
                    delay,
                )
                time.sleep(delay)
        raise AssertionError("unreachable")

    def _parse(self, raw: RawOutput) -> ClassificationResult:
        """Turn the model's text into a validated Classification.

        Structured JSON first, then the heuristic text parser. Kept in base
        because the expected schema is the same for every provider.
        """
        notes = list(raw.parameter_notes)

        data = _decode_json(raw.text)
        if data is None or "decision" not in data or "confidence" not in data:
            fallback = parse_text_response(raw.text) if raw.text.strip() else None
            if fallback is None:
                return ClassificationFailure(
                    code=INVALID_AI_RESPONSE,
                    message="Invalid AI response format - unable to parse AI response even with fallback methods",
                    model=self.model,
                    details={"raw_response": raw.text, "json_parse_result": data, "fallback_result": fallback},
                )
            logger.warning("%s: JSON response malformed, used text fallback: %s", self.__class__.__name__, raw.text[:200])
            data = fallback
            notes.append(FALLBACK_NOTE)

        decision = str(data["decision"]).strip().lower()
        if decision not in VALID_DECISIONS:
            return ClassificationFailure(
                code=INVALID_DECISION,
                message="Invalid decision returned by AI",
                model=self.model,
                details=data,
            )

        try:
            confidence = float(data["confidence"])
        except (TypeError, ValueError):
            return ClassificationFailure(
                code=INVALID_AI_RESPONSE,
                message="Invalid AI response format - confidence is not a number",
                model=self.model,
                details={"raw_response": raw.text, "json_parse_result": data},
            )
        if not 0.0 <= confidence <= 1.0:
            confidence = 0.5

        return Classification(
            decision=decision,
            confidence=confidence,
            reasoning=str(data.get("reasoning") or "No reasoning provided"),
            model=self.model,
            tokens_used=raw.tokens_used,
            parameters_used=raw.parameters_used,
            parameter_notes=notes,
        )
