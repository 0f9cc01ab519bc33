"""Process configuration models (credentials and logging) validated with Pydantic."""

from typing import Literal, Optional
from pydantic import BaseModel, Field, field_validator, model_validator


class CredentialsConfig(BaseModel):
    """API credentials loaded from environment variables."""

    # Jira Cloud (required)
    jira_base_url: str = Field(..., min_length=1, description="Jira site URL, e.g. https://acme.atlassian.net")
    jira_email: str = Field(..., min_length=1, description="Account email used for basic auth")
    jira_api_token: str = Field(..., min_length=1, description="Jira API token")
    jira_app_account_id: Optional[str] = Field(None, description="Account id the router acts as (issues it creates are ignored)")

    # Key-value store backend
    kv_backend: Literal["supabase", "memory"] = Field(default="supabase", description="Where configuration and activity are stored")
    supabase_url: Optional[str] = Field(None, description="Supabase project URL")
    supabase_key: Optional[str] = Field(None, description="Supabase API key")
    database_url: Optional[str] = Field(None, description="PostgreSQL database URL (optional, for schema setup)")

    # LLM providers (used when the stored configuration carries no key)
    openai_api_key: Optional[str] = Field(None, description="OpenAI API key")
    anthropic_api_key: Optional[str] = Field(None, description="Anthropic API key for Claude")
    google_api_key: Optional[str] = Field(None, description="Google API key for Gemini")

    @field_validator("jira_base_url")
    @classmethod
    def validate_jira_base_url(cls, v: str) -> str:
        """Validate Jira URL format."""
        if v == "https://your-site.atlassian.net":
            raise ValueError("Jira base URL must be set in .env file")
        if not v.startswith("https://"):
            raise ValueError("Jira base URL must start with https://")
        return v.rstrip("/")

    @field_validator("jira_api_token")
    @classmethod
    def validate_jira_api_token(cls, v: str) -> str:
        """Reject the placeholder token from .env.example."""
        if v == "your_jira_api_token_here":
            raise ValueError("Jira API token must be set in .env file")
        return v

    @model_validator(mode='after')
    def validate_supabase_when_selected(self):
        """Supabase credentials are only required for the supabase backend."""
        if self.kv_backend != "supabase":
            return self
        if not self.supabase_url or self.supabase_url == "https://your-project.supabase.co":
            raise ValueError("Supabase URL must be set in .env file (or set KV_BACKEND=memory)")
        if not self.supabase_url.startswith("https://"):
            raise ValueError("Supabase URL must start with https://")
        if not self.supabase_key or self.supabase_key == "your_supabase_anon_key_here":
            raise ValueError("Supabase key must be set in .env file (or set KV_BACKEND=memory)")
        return self

    def api_key_for(self, provider: str) -> Optional[str]:
        """Return the environment API key for an LLM provider, if any."""
        return {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "google": self.google_api_key,
        }.get(provider)


class Config(BaseModel):
    """Application configuration."""

    credentials: CredentialsConfig
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v_upper
