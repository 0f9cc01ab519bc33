"""
Supabase-backed key-value store.

All router state lives in a single ``kv_store`` table:

    key         text primary key
    value       jsonb
    updated_at  timestamptz

Writes are upserts on ``key`` so every operation is idempotent and can be
safely re-run. The table is created by ``setup/setup_database.py``.
"""

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

from supabase import Client, create_client

from storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)


class SupabaseKeyValueStore(KeyValueStore):
    """Key-value store on top of a Supabase (PostgREST) table."""

    def __init__(self, supabase_url: str, supabase_key: str, table_name: str = "kv_store"):
        """
        Initialize Supabase client.

        Args:
            supabase_url: Supabase project URL
            supabase_key: Supabase API key (anon/public key)
            table_name: Table holding the key/value rows
        """
        self.client: Client = create_client(supabase_url, supabase_key)
        self.table_name = table_name
        logger.info(f"Initialized SupabaseKeyValueStore for {supabase_url}")

    def get(self, key: str) -> Optional[Any]:
        try:
            result = self.client.table(self.table_name).select("value").eq("key", key).execute()
            if result.data:
                return result.data[0]["value"]
            return None

        except Exception as e:
            logger.error(f"Failed to get key {key}: {e}")
            raise

    def set(self, key: str, value: Any) -> None:
        record = {
            "key": key,
            "value": value,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.client.table(self.table_name).upsert(record, on_conflict="key").execute()
            logger.debug(f"Stored key {key}")

        except Exception as e:
            logger.error(f"Failed to set key {key}: {e}")
            raise

    def delete(self, key: str) -> None:
        try:
            self.client.table(self.table_name).delete().eq("key", key).execute()
            logger.debug(f"Deleted key {key}")

        except Exception as e:
            logger.error(f"Failed to delete key {key}: {e}")
            raise

    def query(self, prefix: str, limit: int = 100, offset: int = 0) -> List[Tuple[str, Any]]:
        """
        List entries whose key starts with ``prefix``.

        Keys end in a millisecond timestamp, so ordering by key descending
        returns the newest records for one issue first. ``offset`` pages
        through longer listings.
        """
        try:
            result = (
                self.client.table(self.table_name)
                .select("key,value")
                .like("key", f"{prefix}%")
                .order("key", desc=True)
                .range(offset, offset + limit - 1)
                .execute()
            )
            return [(row["key"], row["value"]) for row in result.data]

        except Exception as e:
            logger.error(f"Failed to query prefix {prefix}: {e}")
            raise
