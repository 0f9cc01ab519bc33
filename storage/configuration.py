"""
Configuration provider backed by the key-value store.

Reads merge the stored record onto the canonical defaults and never fail;
a storage error degrades to defaults. Writes validate, stamp ``updatedAt``
and overwrite the whole record (last write wins).
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from models.config_models import CredentialsConfig
from models.routing_config import (
    ProviderConfig,
    RoutingConfiguration,
    default_configuration,
    provider_for_model,
)
from storage.kv_store import CONFIG_KEY, KeyValueStore

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"


class ConfigurationProvider:
    """Loads and persists the routing configuration."""

    def __init__(self, store: KeyValueStore, credentials: Optional[CredentialsConfig] = None):
        """
        Args:
            store: Key-value store holding the ``app-configuration`` record
            credentials: Process credentials; their LLM keys count as
                         configured when the stored record has none
        """
        self.store = store
        self.credentials = credentials

    def get(self) -> RoutingConfiguration:
        """Return the current configuration. Persists defaults on first use."""
        try:
            stored = self.store.get(CONFIG_KEY)
        except Exception as e:
            logger.error(f"Error loading configuration, using defaults: {e}")
            return default_configuration()

        if not stored:
            logger.info("No configuration found, using defaults")
            config = default_configuration()
            try:
                self.store.set(CONFIG_KEY, config.to_record())
            except Exception as e:
                logger.error(f"Failed to persist default configuration: {e}")
            return config

        try:
            config = RoutingConfiguration.from_record(stored)
        except (ValidationError, TypeError, ValueError) as e:
            logger.error(f"Stored configuration is unreadable, using defaults: {e}")
            return default_configuration()

        logger.debug(f"Loaded configuration (enabled={config.enabled}, model={config.selected_model})")
        return config

    def save(self, config: RoutingConfiguration) -> RoutingConfiguration:
        """Validate and persist a full configuration with a fresh ``updatedAt``."""
        record = config.to_record() if isinstance(config, RoutingConfiguration) else dict(config)
        record["updatedAt"] = datetime.now(timezone.utc).isoformat()
        validated = RoutingConfiguration.from_record(record)

        self.store.set(CONFIG_KEY, validated.to_record())
        logger.info(f"✓ Configuration saved (enabled={validated.enabled}, model={validated.selected_model})")
        return validated

    def update(self, updates: Dict[str, Any]) -> RoutingConfiguration:
        """Merge a partial camelCase (or snake_case) update onto the current record."""
        current = self.get().to_record()
        normalized = {}
        for key, value in (updates or {}).items():
            field = RoutingConfiguration.model_fields.get(key)
            normalized[field.alias if field and field.alias else key] = value
        return self.save(RoutingConfiguration.from_record({**current, **normalized}))

    def reset_to_defaults(self) -> RoutingConfiguration:
        config = self.save(default_configuration())
        logger.info("Configuration reset to defaults")
        return config

    def get_model_config(self, model_name: str) -> Optional[ProviderConfig]:
        provider = provider_for_model(model_name)
        return self.get().model_configs.get(provider)

    def update_model_config(self, provider: str, updates: Dict[str, Any]) -> RoutingConfiguration:
        """Merge settings into one provider entry (e.g. a new API key)."""
        config = self.get().to_record()
        providers = config.get("modelConfigs", {})
        providers[provider] = {**providers.get(provider, {}), **(updates or {})}
        config["modelConfigs"] = providers
        return self.save(RoutingConfiguration.from_record(config))

    def _has_key(self, provider: str, provider_config: Optional[ProviderConfig]) -> bool:
        if provider_config and provider_config.api_key:
            return True
        return bool(self.credentials and self.credentials.api_key_for(provider))

    def is_model_configured(self, model_name: str) -> bool:
        provider = provider_for_model(model_name)
        return self._has_key(provider, self.get_model_config(model_name))

    def get_available_models(self) -> List[str]:
        """Models whose provider has an API key, stored or from the environment."""
        models: List[str] = []
        for provider, provider_config in self.get().model_configs.items():
            if self._has_key(provider, provider_config):
                models.extend(provider_config.models)
        return models

    def export(self) -> Dict[str, Any]:
        """Configuration record with API keys redacted, for backups and the UI."""
        record = self.get().to_record()
        for provider_config in record.get("modelConfigs", {}).values():
            if provider_config.get("apiKey"):
                provider_config["apiKey"] = REDACTED
        return record

    def summary(self) -> Dict[str, Any]:
        config = self.get()
        return {
            "enabled": config.enabled,
            "selectedModel": config.selected_model,
            "autoAssign": config.auto_assign,
            "autoSetPriority": config.auto_set_priority,
            "enableTriage": config.enable_triage,
            "configuredModels": self.get_available_models(),
            "projectsFilter": len(config.project_filter),
            "issueTypesFilter": len(config.issue_type_filter),
            "minConfidence": config.min_confidence_threshold,
            "lastUpdated": config.updated_at,
        }
