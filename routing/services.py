"""Wiring for the long-lived collaborators shared by the API, CLI and event handler."""

import logging
from dataclasses import dataclass
from typing import Optional

from models.config_models import Config, CredentialsConfig
from storage.activity_log import ActivityLogger
from storage.configuration import ConfigurationProvider
from storage.kv_store import InMemoryKeyValueStore, KeyValueStore
from storage.supabase_client import SupabaseKeyValueStore
from tracker.jira_client import JiraClient

logger = logging.getLogger(__name__)


@dataclass
class Services:
    credentials: Optional[CredentialsConfig]
    store: KeyValueStore
    config_provider: ConfigurationProvider
    activity: ActivityLogger
    jira: JiraClient


def build_store(credentials: CredentialsConfig) -> KeyValueStore:
    """Pick the key-value backend named by KV_BACKEND."""
    if credentials.kv_backend == "memory":
        logger.warning("Using in-memory key-value store; state is lost on restart")
        return InMemoryKeyValueStore()

    return SupabaseKeyValueStore(credentials.supabase_url, credentials.supabase_key)


def build_services(config: Config, store: Optional[KeyValueStore] = None) -> Services:
    credentials = config.credentials
    store = store if store is not None else build_store(credentials)
    return Services(
        credentials=credentials,
        store=store,
        config_provider=ConfigurationProvider(store, credentials),
        activity=ActivityLogger(store),
        jira=JiraClient(credentials.jira_base_url, credentials.jira_email, credentials.jira_api_token),
    )
