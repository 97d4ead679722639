"""Model capability descriptors.

Every per-model quirk the classifier has to respect lives in one table:
which request shape to use, what the output-size parameter is called,
whether JSON mode is honoured, whether temperature can be changed, and how
long to wait. Unknown models fall back by substring match on the reasoning
families, then to the conventional legacy shape.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

CHAT_TIMEOUT = 60.0
REASONING_TIMEOUT = 120.0
CONNECT_TIMEOUT = 10.0

# Temperature the restricted models always run at.
DEFAULT_TEMPERATURE = 1.0

# Substrings that mark a model as reasoning-capable (responses endpoint).
REASONING_FAMILIES = ("gpt-5",)


@dataclass(frozen=True)
class ModelCapabilities:
    reasoning: bool = False
    token_param: str = "max_tokens"
    json_mode: bool = False
    fixed_temperature: float | None = None
    timeout: float = CHAT_TIMEOUT

    def temperature_for(self, requested: float) -> float:
        return requested if self.fixed_temperature is None else self.fixed_temperature


_LEGACY = ModelCapabilities()
_MODERN = ModelCapabilities(token_param="max_completion_tokens", json_mode=True)
_REASONING = ModelCapabilities(
    reasoning=True,
    token_param="max_completion_tokens",
    json_mode=True,
    fixed_temperature=DEFAULT_TEMPERATURE,
    timeout=REASONING_TIMEOUT,
)

MODEL_CAPABILITIES: dict[str, ModelCapabilities] = {
    "gpt-3.5-turbo-0125": _MODERN,
    "gpt-3.5-turbo-1106": _MODERN,
    "gpt-4-0125-preview": _MODERN,
    "gpt-4-1106-preview": _MODERN,
    "gpt-4-turbo": _MODERN,
    "gpt-4-turbo-preview": _MODERN,
    "gpt-4o": _MODERN,
    "gpt-4o-mini": _MODERN,
    "gpt-4.1-nano": replace(_MODERN, fixed_temperature=DEFAULT_TEMPERATURE),
    "gpt-5": _REASONING,
    "gpt-5-mini": _REASONING,
    "gpt-5-nano": _REASONING,
    "o1": replace(_LEGACY, fixed_temperature=DEFAULT_TEMPERATURE),
    "o1-mini": replace(_LEGACY, fixed_temperature=DEFAULT_TEMPERATURE),
    "o1-preview": replace(_LEGACY, fixed_temperature=DEFAULT_TEMPERATURE),
}


def get_capabilities(model: str) -> ModelCapabilities:
    """Return the capability descriptor for a model identifier."""
    caps = MODEL_CAPABILITIES.get(model)
    if caps is not None:
        return caps
    lowered = model.lower()
    if any(family in lowered for family in REASONING_FAMILIES):
        return _REASONING
    return _LEGACY
