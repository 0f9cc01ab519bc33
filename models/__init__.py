"""Data models for the AI task router."""

from models.config_models import Config, CredentialsConfig
from models.data_models import RoutingSuggestions, TriageResult
from models.routing_config import RoutingConfiguration, default_configuration

__all__ = [
    "Config",
    "CredentialsConfig",
    "RoutingConfiguration",
    "RoutingSuggestions",
    "TriageResult",
    "default_configuration",
]
