"""Environment configuration for the ClarityCompass Risk API."""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

LABEL_SCHEMES = ('quick', 'display')
BLEND_SCHEMES = ('survey_heavy', 'balanced')
DRIVER_MODES = ('ranked', 'placeholder')
PREDICTION_BACKENDS = ('local', 'remote')


@dataclass(frozen=True)
class Settings:
    """Runtime settings, read once from the environment."""
    allow_origins: List[str] = field(default_factory=lambda: ['*'])
    debug: bool = False
    risk_label_scheme: str = 'quick'
    fused_blend_scheme: str = 'survey_heavy'
    fused_driver_mode: str = 'ranked'
    prediction_backend: str = 'local'
    prediction_api_base_url: str = 'http://127.0.0.1:8000'
    prediction_api_timeout: float = 10.0
    history_max_items: int = 200


def _choice(name: str, default: str, allowed) -> str:
    value = os.getenv(name, default).strip().lower()
    if value not in allowed:
        raise ValueError(f"{name} must be one of {', '.join(allowed)}, got '{value}'")
    return value


def load_settings() -> Settings:
    """
    Build Settings from environment variables.

    Raises:
        ValueError: if a scheme name or number cannot be parsed
    """
    allow_origins = [o.strip() for o in os.getenv('ALLOW_ORIGINS', '*').split(',') if o.strip()]

    history_max_items = int(os.getenv('HISTORY_MAX_ITEMS', '200'))
    if history_max_items < 1:
        raise ValueError("HISTORY_MAX_ITEMS must be at least 1")

    return Settings(
        allow_origins=allow_origins or ['*'],
        debug=os.getenv('DEBUG', 'False').lower() == 'true',
        risk_label_scheme=_choice('RISK_LABEL_SCHEME', 'quick', LABEL_SCHEMES),
        fused_blend_scheme=_choice('FUSED_BLEND_SCHEME', 'survey_heavy', BLEND_SCHEMES),
        fused_driver_mode=_choice('FUSED_DRIVER_MODE', 'ranked', DRIVER_MODES),
        prediction_backend=_choice('PREDICTION_BACKEND', 'local', PREDICTION_BACKENDS),
        prediction_api_base_url=os.getenv('PREDICTION_API_BASE_URL', 'http://127.0.0.1:8000').rstrip('/'),
        prediction_api_timeout=float(os.getenv('PREDICTION_API_TIMEOUT', '10')),
        history_max_items=history_max_items,
    )


@lru_cache()
def get_settings() -> Settings:
    """FastAPI dependency returning the process settings."""
    return load_settings()
