"""Tests for backend model resolution"""
import pytest

from models.resolution import is_native_model, resolve_target_model

MODEL_MAP = {
    "opus": "anthropic/claude-opus-4",
    "sonnet": "openai/gpt-4o",
    "haiku": "google/gemini-flash",
}


@pytest.mark.unit
class TestResolveTargetModel:
    """Test suite for resolve_target_model"""

    def test_passthrough_without_configuration(self):
        """Test the requested model is used when nothing is configured"""
        assert resolve_target_model("openai/gpt-4o") == "openai/gpt-4o"

    def test_default_model_replaces_requested(self):
        """Test a configured default wins over the requested name"""
        assert resolve_target_model("anything", default_model="x-ai/grok-4") == "x-ai/grok-4"

    @pytest.mark.parametrize("requested,expected", [
        ("claude-opus-4-20250514", "anthropic/claude-opus-4"),
        ("claude-sonnet-4-20250514", "openai/gpt-4o"),
        ("Claude-3-5-HAIKU", "google/gemini-flash"),
    ])
    def test_family_mapping(self, requested, expected):
        """Test family substrings map to configured models"""
        assert resolve_target_model(requested, model_map=MODEL_MAP) == expected

    def test_family_mapping_beats_default(self):
        """Test a family mapping overrides the default model"""
        assert resolve_target_model(
            "claude-sonnet-4", default_model="x-ai/grok-4", model_map=MODEL_MAP,
        ) == "openai/gpt-4o"

    def test_unmapped_family_falls_back_to_default(self):
        """Test an empty mapping entry does not apply"""
        assert resolve_target_model(
            "claude-opus-4", default_model="x-ai/grok-4", model_map={"opus": ""},
        ) == "x-ai/grok-4"


@pytest.mark.unit
class TestIsNativeModel:
    """Test suite for native model detection"""

    @pytest.mark.parametrize("model_id,expected", [
        ("claude-opus-4-20250514", True),
        ("claude-3-5-haiku-20241022", True),
        ("anthropic/claude-opus-4", False),
        ("openai/gpt-4o", False),
        ("", True),
    ])
    def test_slash_marks_aggregator_ids(self, model_id, expected):
        """Test only vendor/model ids are sent to the aggregator"""
        assert is_native_model(model_id) is expected
