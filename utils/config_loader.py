"""Configuration loader that reads from .env and validates with Pydantic."""

import os
import sys
from pathlib import Path
from dotenv import load_dotenv
from pydantic import ValidationError

from models.config_models import Config, CredentialsConfig


def load_config() -> Config:
    """
    Load and validate process configuration from environment variables.

    Reads the .env file in the project root, then validates Jira, storage
    and LLM credentials. Routing behaviour (auto-assign, thresholds,
    filters) is not configured here; it lives in the key-value store.

    Returns:
        Config: Validated configuration object

    Raises:
        SystemExit: If configuration is invalid or missing required fields
    """
    env_path = Path(__file__).parent.parent / ".env"
    load_dotenv(dotenv_path=env_path)

    try:
        config = Config(
            credentials=CredentialsConfig(
                jira_base_url=os.getenv("JIRA_BASE_URL", ""),
                jira_email=os.getenv("JIRA_EMAIL", ""),
                jira_api_token=os.getenv("JIRA_API_TOKEN", ""),
                jira_app_account_id=os.getenv("JIRA_APP_ACCOUNT_ID") or None,
                kv_backend=os.getenv("KV_BACKEND", "supabase").lower(),
                supabase_url=os.getenv("SUPABASE_URL"),
                supabase_key=os.getenv("SUPABASE_KEY"),
                database_url=os.getenv("DATABASE_URL"),
                openai_api_key=os.getenv("OPENAI_API_KEY"),
                anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
                google_api_key=os.getenv("GOOGLE_API_KEY"),
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

        return config

    except ValidationError as e:
        print("❌ Configuration validation failed:", file=sys.stderr)
        print("\nPlease check your .env file. Missing or invalid fields:", file=sys.stderr)

        for error in e.errors():
            field_path = " → ".join(str(x) for x in error["loc"])
            message = error["msg"]
            print(f"  • {field_path}: {message}", file=sys.stderr)

        print("\nHint: Copy .env.example to .env and fill in your credentials.", file=sys.stderr)
        sys.exit(1)
