"""
Server-side settings read from the environment.

Rationale:
- One pydantic model holds every knob, so main reads configuration in one
  place and tests can build a Settings directly.
- The default provider config is handed back as a raw camelCase dict and
  validated by the dispatcher like any request config.
- GEMINI_API_KEY / GEMINI_MODEL still work when no CHARTGEN_* provider is set.
"""

import os
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from .prompting import DEFAULT_TEMPLATE_PATH


class Settings(BaseModel):
    """Server-side configuration, read from the environment (.env is loaded by main)."""

    log_level: str = Field("INFO", description="Root logging level.")
    system_prompt_path: str = Field(
        DEFAULT_TEMPLATE_PATH, description="Path of the chart system prompt template."
    )
    default_provider: Optional[str] = Field(
        None, description="Provider used when a request carries no config."
    )
    default_model: Optional[str] = Field(None, description="Model for the default provider.")
    default_api_key: Optional[str] = Field(None, description="API key for the default provider.")
    default_base_url: Optional[str] = Field(None, description="Base URL for the default provider.")

    @classmethod
    def from_env(cls) -> "Settings":
        provider = os.getenv("CHARTGEN_PROVIDER")
        model = os.getenv("CHARTGEN_MODEL")
        api_key = os.getenv("CHARTGEN_API_KEY")
        # Fall back to the usual Gemini variables
        if (provider or "GOOGLE").upper() == "GOOGLE" and os.getenv("GEMINI_API_KEY"):
            provider = provider or "GOOGLE"
            model = model or os.getenv("GEMINI_MODEL")
            api_key = api_key or os.getenv("GEMINI_API_KEY")
        return cls(
            log_level=os.getenv("CHARTGEN_LOG_LEVEL", "INFO").upper(),
            system_prompt_path=os.getenv("CHARTGEN_SYSTEM_PROMPT_PATH") or DEFAULT_TEMPLATE_PATH,
            default_provider=provider,
            default_model=model,
            default_api_key=api_key,
            default_base_url=os.getenv("CHARTGEN_BASE_URL"),
        )

    def default_provider_config(self) -> Optional[Dict[str, Any]]:
        """Raw config dict for the default provider; validated later like any request config."""
        if not self.default_provider:
            return None
        return {
            "provider": self.default_provider,
            "model": self.default_model or "",
            "apiKey": self.default_api_key,
            "baseUrl": self.default_base_url,
        }
