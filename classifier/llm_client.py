"""
LLM client for sending prompts to OpenAI, Claude or Gemini.

Uses the OpenAI Python SDK for every provider: Anthropic and Google both
expose OpenAI-compatible chat completion endpoints, so one client class
covers the whole model allow-list.
"""

import logging
from typing import Any, Dict, Optional

from openai import OpenAI

from models.config_models import CredentialsConfig
from models.routing_config import RoutingConfiguration, provider_for_model

logger = logging.getLogger(__name__)

# Allow-listed model id -> (provider, provider model name)
MODEL_REGISTRY = {
    "openai-gpt4": ("openai", "gpt-4"),
    "openai-gpt3.5": ("openai", "gpt-3.5-turbo"),
    "anthropic-claude": ("anthropic", "claude-sonnet-4-5-20250929"),
    "google-gemini": ("google", "gemini-2.0-flash"),
}

PROVIDER_BASE_URLS = {
    "openai": None,
    "anthropic": "https://api.anthropic.com/v1",
    "google": "https://generativelanguage.googleapis.com/v1beta/openai/",
}


class LLMClient:
    """
    Client for interacting with LLM providers.

    Uses OpenAI SDK which supports OpenAI natively and Anthropic/Google
    through their OpenAI-compatible endpoints.
    """

    def __init__(
        self,
        provider: str,
        model: str,
        api_key: str,
        temperature: float = 0.2,
        max_tokens: int = 1000
    ):
        """
        Initialize LLM client.

        Args:
            provider: LLM provider - 'openai', 'anthropic' or 'google'
            model: Provider model name (e.g., 'gpt-4', 'claude-sonnet-4-5-20250929')
            api_key: API key for the provider
            temperature: Default sampling temperature
            max_tokens: Default maximum tokens in response

        Raises:
            ValueError: If provider is not supported or API key is missing
        """
        self.provider = provider.lower()
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

        if self.provider not in PROVIDER_BASE_URLS:
            raise ValueError(
                f"Unsupported provider: {provider}. Must be one of: {', '.join(PROVIDER_BASE_URLS)}"
            )

        if not api_key:
            raise ValueError(f"{provider} API key is required but not provided")

        base_url = PROVIDER_BASE_URLS[self.provider]
        if base_url:
            self.client = OpenAI(api_key=api_key, base_url=base_url)
        else:
            self.client = OpenAI(api_key=api_key)

        logger.info(f"Initialized LLMClient: provider={provider}, model={model}")

    def send_prompt(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> str:
        """
        Send a prompt to the LLM and get a text response.

        Args:
            prompt: The prompt text to send
            system: Optional system message
            temperature: Overrides the client default
            max_tokens: Overrides the client default
            json_mode: Ask the provider for a JSON object response

        Returns:
            Text response from the LLM

        Raises:
            Exception: If API call fails (auth, rate limit, etc.)
        """
        try:
            logger.debug(f"Sending prompt to {self.provider} ({len(prompt)} chars)")

            messages = [{"role": "user", "content": prompt}]
            if system:
                messages.insert(0, {"role": "system", "content": system})

            kwargs: Dict[str, Any] = {
                "model": self.model,
                "messages": messages,
                "temperature": self.temperature if temperature is None else temperature,
                "max_tokens": self.max_tokens if max_tokens is None else max_tokens,
            }
            if json_mode:
                kwargs["response_format"] = {"type": "json_object"}

            response = self.client.chat.completions.create(**kwargs)

            response_text = response.choices[0].message.content or ""

            if hasattr(response, "usage") and response.usage:
                logger.debug(
                    f"LLM usage: {response.usage.prompt_tokens} prompt tokens, "
                    f"{response.usage.completion_tokens} completion tokens, "
                    f"{response.usage.total_tokens} total"
                )

            logger.debug(f"Received response from {self.provider} ({len(response_text)} chars)")
            return response_text

        except Exception as e:
            logger.error(f"LLM API call failed: {e}")
            raise

    def send_json_prompt(
        self,
        system: str,
        prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Send a prompt that must be answered with a single JSON object."""
        return self.send_prompt(
            prompt,
            system=system,
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=True,
        )


def create_llm_client(
    config: RoutingConfiguration,
    credentials: Optional[CredentialsConfig] = None,
) -> LLMClient:
    """
    Build a client for the configured model.

    The API key comes from the stored provider config first, then from
    the environment credentials.

    Raises:
        ValueError: If the model is unknown or no API key is available
    """
    if config.selected_model not in MODEL_REGISTRY:
        raise ValueError(f"Unsupported model: {config.selected_model}")

    provider, model = MODEL_REGISTRY[config.selected_model]
    provider_config = config.model_configs.get(provider_for_model(config.selected_model))

    api_key = provider_config.api_key if provider_config else None
    if not api_key and credentials:
        api_key = credentials.api_key_for(provider)
    if not api_key:
        raise ValueError(f"{provider} API key not configured")

    return LLMClient(provider=provider, model=model, api_key=api_key)
