"""Tests for the stored routing configuration."""

from unittest.mock import Mock

import pytest

from models.routing_config import (
    DEFAULT_CONFIDENCE_THRESHOLD,
    DEFAULT_MODEL,
    RoutingConfiguration,
    default_configuration,
    provider_for_model,
)
from storage.configuration import REDACTED, ConfigurationProvider
from storage.kv_store import CONFIG_KEY


@pytest.fixture
def provider(store, credentials):
    return ConfigurationProvider(store, credentials)


class TestRoutingConfiguration:
    """Validation never raises; bad values fall back to defaults."""

    def test_defaults(self):
        config = default_configuration()
        assert config.enabled is True
        assert config.auto_assign is False
        assert config.enable_triage is True
        assert config.selected_model == DEFAULT_MODEL
        assert config.min_confidence_threshold == DEFAULT_CONFIDENCE_THRESHOLD
        assert set(config.model_configs) == {"openai", "anthropic", "google"}

    def test_model_outside_allow_list_replaced(self):
        assert RoutingConfiguration.from_record({"selectedModel": "gpt-99"}).selected_model == DEFAULT_MODEL

    @pytest.mark.parametrize("value", [1.5, -0.1, "0.7", None])
    def test_invalid_threshold_uses_default(self, value):
        config = RoutingConfiguration.from_record({"minConfidenceThreshold": value})
        assert config.min_confidence_threshold == DEFAULT_CONFIDENCE_THRESHOLD

    def test_non_list_filters_become_empty(self):
        config = RoutingConfiguration.from_record({"projectFilter": "PROJ", "issueTypeFilter": ["Bug"]})
        assert config.project_filter == []
        assert config.issue_type_filter == ["Bug"]

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_threshold_uses_default(self, value):
        config = RoutingConfiguration.from_record({"minConfidenceThreshold": value})
        assert config.min_confidence_threshold == DEFAULT_CONFIDENCE_THRESHOLD

    @pytest.mark.parametrize("field", ["maxSimilarIssues", "similarIssueTimeRange", "retentionDays"])
    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_counts_use_defaults(self, field, value):
        config = RoutingConfiguration.from_record({field: value})
        assert config.to_record()[field] == default_configuration().to_record()[field]

    def test_max_similar_issues_capped(self):
        assert RoutingConfiguration.from_record({"maxSimilarIssues": 500}).max_similar_issues == 50
        assert RoutingConfiguration.from_record({"maxSimilarIssues": 0}).max_similar_issues == 10

    def test_partial_model_config_merged_onto_defaults(self):
        config = RoutingConfiguration.from_record({"modelConfigs": {"openai": {"apiKey": "sk-1"}}})
        assert config.model_configs["openai"].api_key == "sk-1"
        assert config.model_configs["openai"].models
        assert "google" in config.model_configs

    def test_record_round_trip_keeps_camel_case(self):
        record = default_configuration().to_record()
        assert "autoSetPriority" in record
        assert RoutingConfiguration.from_record(record).to_record()["autoSetPriority"] is False

    def test_provider_for_model(self):
        assert provider_for_model("anthropic-claude") == "anthropic"
        assert provider_for_model("mystery") == "unknown"


class TestConfigurationProvider:
    def test_first_read_persists_defaults(self, provider, store):
        config = provider.get()
        assert config.enabled is True
        assert store.get(CONFIG_KEY)["selectedModel"] == DEFAULT_MODEL

    def test_reads_are_idempotent(self, provider):
        first = provider.get().to_record()
        second = provider.get().to_record()
        assert first == second

    def test_store_failure_degrades_to_defaults(self, credentials):
        broken = Mock()
        broken.get.side_effect = Exception("store down")
        config = ConfigurationProvider(broken, credentials).get()
        assert config.to_record()["enabled"] is True

    @pytest.mark.parametrize("stored", [["garbage"], "garbage", {"modelConfigs": "garbage"}])
    def test_unreadable_record_degrades_to_defaults(self, provider, store, stored):
        store.set(CONFIG_KEY, stored)
        config = provider.get()
        assert config.selected_model == DEFAULT_MODEL
        assert config.enabled is True

    def test_update_merges_and_stamps(self, provider, store):
        before = provider.get()
        updated = provider.update({"autoAssign": True, "min_confidence_threshold": 0.8})

        assert updated.auto_assign is True
        assert updated.min_confidence_threshold == 0.8
        assert updated.enabled is True
        assert updated.updated_at >= before.updated_at
        assert store.get(CONFIG_KEY)["autoAssign"] is True

    def test_update_with_invalid_values_is_sanitized(self, provider):
        updated = provider.update({"selectedModel": "not-a-model", "enabled": "yes please"})
        assert updated.selected_model == DEFAULT_MODEL
        assert updated.enabled is True

    def test_reset_to_defaults(self, provider):
        provider.update({"autoAssign": True})
        assert provider.reset_to_defaults().auto_assign is False

    def test_update_model_config_and_export_redacts(self, provider):
        provider.update_model_config("anthropic", {"apiKey": "sk-ant-secret"})

        exported = provider.export()
        assert exported["modelConfigs"]["anthropic"]["apiKey"] == REDACTED
        assert provider.get_model_config("anthropic-claude").api_key == "sk-ant-secret"

    def test_available_models(self, provider):
        # OpenAI key comes from the environment credentials
        assert provider.is_model_configured("openai-gpt4")
        assert not provider.is_model_configured("google-gemini")
        available = provider.get_available_models()
        assert "openai-gpt4" in available
        assert "google-gemini" not in available

    def test_summary(self, provider):
        provider.update({"projectFilter": ["PROJ", "OPS"]})
        summary = provider.summary()
        assert summary["enabled"] is True
        assert summary["projectsFilter"] == 2
        assert summary["minConfidence"] == DEFAULT_CONFIDENCE_THRESHOLD
