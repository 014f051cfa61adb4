"""Service configuration loaded from the environment (and a local .env)."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

DEFAULT_MODEL_PRIORITY: Tuple[str, ...] = (
    "gemini-2.5-flash",
    "gemini-2.0-flash",
    "gemini-3-flash-preview",
    "gemini-1.5-flash",
)

# Primary path first, then the stable API version.
DEFAULT_ENDPOINT_VARIANTS: Tuple[str, ...] = (
    "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent",
    "https://generativelanguage.googleapis.com/v1/models/{model}:generateContent",
)


@dataclass(frozen=True)
class GeneratorConfig:
    api_key: Optional[str] = None
    model_priority: Tuple[str, ...] = DEFAULT_MODEL_PRIORITY
    endpoint_variants: Tuple[str, ...] = DEFAULT_ENDPOINT_VARIANTS
    timeout: float = 30.0


def _split_csv(raw: str | None) -> List[str]:
    return [item.strip() for item in (raw or "").split(",") if item.strip()]


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass
class Settings:
    """Application settings read from environment variables."""

    gemini_api_key: Optional[str] = None
    gemini_models: List[str] = field(default_factory=lambda: list(DEFAULT_MODEL_PRIORITY))

    gateway_url: str = "https://ai.gateway.lovable.dev/v1"
    gateway_api_key: Optional[str] = None
    gateway_model: str = "google/gemini-3-flash-preview"

    amadeus_client_id: Optional[str] = None
    amadeus_client_secret: Optional[str] = None
    amadeus_base_url: str = "https://test.api.amadeus.com"

    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    supabase_access_token: Optional[str] = None
    agent_id: Optional[str] = None

    cache_dir: Optional[str] = None
    http_timeout: float = 30.0
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
            gemini_models=_split_csv(os.getenv("GEMINI_MODELS")) or list(DEFAULT_MODEL_PRIORITY),
            gateway_url=os.getenv("AI_GATEWAY_URL") or "https://ai.gateway.lovable.dev/v1",
            gateway_api_key=os.getenv("AI_GATEWAY_API_KEY") or None,
            gateway_model=os.getenv("AI_GATEWAY_MODEL") or "google/gemini-3-flash-preview",
            amadeus_client_id=os.getenv("AMADEUS_CLIENT_ID") or None,
            amadeus_client_secret=os.getenv("AMADEUS_CLIENT_SECRET") or None,
            amadeus_base_url=os.getenv("AMADEUS_BASE_URL") or "https://test.api.amadeus.com",
            supabase_url=os.getenv("SUPABASE_URL") or None,
            supabase_anon_key=os.getenv("SUPABASE_ANON_KEY") or None,
            supabase_access_token=os.getenv("SUPABASE_ACCESS_TOKEN") or None,
            agent_id=os.getenv("TRAVEL_COPILOT_AGENT_ID") or None,
            cache_dir=os.getenv("TRAVEL_COPILOT_CACHE_DIR") or None,
            http_timeout=_float_env("TRAVEL_COPILOT_HTTP_TIMEOUT", 30.0),
            allowed_origins=_split_csv(os.getenv("TRAVEL_COPILOT_ALLOWED_ORIGINS")) or ["*"],
        )

    def generator_config(self) -> GeneratorConfig:
        return GeneratorConfig(
            api_key=self.gemini_api_key,
            model_priority=tuple(self.gemini_models),
            endpoint_variants=DEFAULT_ENDPOINT_VARIANTS,
            timeout=self.http_timeout,
        )

    @property
    def remote_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key and self.agent_id)
