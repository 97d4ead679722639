"""Tests for the model capability table."""

from modlens_core.capabilities import (
    CHAT_TIMEOUT,
    MODEL_CAPABILITIES,
    REASONING_FAMILIES,
    REASONING_TIMEOUT,
    get_capabilities,
)


class TestGetCapabilities:
    def test_reasoning_models_use_responses_shape(self):
        for model in ("gpt-5", "gpt-5-mini", "gpt-5-nano"):
            caps = get_capabilities(model)
            assert caps.reasoning is True
            assert caps.timeout == REASONING_TIMEOUT

    def test_reasoning_family_is_a_single_prefix(self):
        assert REASONING_FAMILIES == ("gpt-5",)
        assert get_capabilities("gpt-5-nano-2025-08-07").reasoning is True
        assert get_capabilities("gpt-4o").reasoning is False

    def test_unknown_reasoning_variant_matched_by_substring(self):
        caps = get_capabilities("gpt-5-mini-2025-08-07")
        assert caps.reasoning is True

    def test_modern_chat_model(self):
        caps = get_capabilities("gpt-4o-mini")
        assert caps.reasoning is False
        assert caps.token_param == "max_completion_tokens"
        assert caps.json_mode is True
        assert caps.fixed_temperature is None
        assert caps.timeout == CHAT_TIMEOUT

    def test_unknown_model_gets_legacy_shape(self):
        caps = get_capabilities("gpt-3.5-turbo")
        assert caps.reasoning is False
        assert caps.token_param == "max_tokens"
        assert caps.json_mode is False

    def test_fixed_temperature_models(self):
        assert get_capabilities("gpt-4.1-nano").temperature_for(0.1) == 1.0
        assert get_capabilities("o1-mini").temperature_for(0.3) == 1.0

    def test_free_temperature_passes_through(self):
        assert get_capabilities("gpt-4o").temperature_for(0.1) == 0.1

    def test_every_entry_is_consistent(self):
        for model, caps in MODEL_CAPABILITIES.items():
            if caps.reasoning:
                assert caps.json_mode, model
            assert caps.token_param in ("max_tokens", "max_completion_tokens"), model
