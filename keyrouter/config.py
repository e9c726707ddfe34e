"""
Environment-driven configuration for the key router.
Values come from a .env file and environment variables; nothing is hardcoded
except the built-in default model list.
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


# ============================================================================
# Available Gemini Models
# ============================================================================

@dataclass
class ModelConfig:
    """Configuration for a Gemini model."""
    id: str                  # Model ID for API calls
    display_name: str        # Human-readable name
    description: str         # Short description
    recommended: bool = False


# Default fallback order - update this list as new models are released
AVAILABLE_MODELS = [
    ModelConfig(
        id="gemini-2.5-flash",
        display_name="Gemini 2.5 Flash",
        description="Best balance of quality and speed",
        recommended=True,
    ),
    ModelConfig(
        id="gemini-2.0-flash",
        display_name="Gemini 2.0 Flash",
        description="Fast and efficient, good for most use cases",
    ),
    ModelConfig(
        id="gemini-2.0-flash-lite",
        display_name="Gemini 2.0 Flash Lite",
        description="Lighter version, separate quota pool",
    ),
    ModelConfig(
        id="gemini-1.5-flash",
        display_name="Gemini 1.5 Flash",
        description="Older generation, last resort",
    ),
]

DEFAULT_MODELS = [m.id for m in AVAILABLE_MODELS]


def get_model_config(model_id: str) -> Optional[ModelConfig]:
    """Get configuration for a specific model."""
    for model in AVAILABLE_MODELS:
        if model.id == model_id:
            return model
    return None


def parse_model_list(value: Optional[str]) -> list[str]:
    """Split a comma-separated model list, dropping blanks."""
    if not value:
        return []
    return [m.strip() for m in value.split(",") if m.strip()]


def resolve_models(models: Optional[list[str]] = None, model: Optional[str] = None,
                   default: Optional[list[str]] = None) -> list[str]:
    """Pick the model list for a request.

    Priority: explicit list > single model > configured default > built-in.
    Blank names are ignored, so a list of blanks falls through to the next source.
    """
    names = [m.strip() for m in models or [] if m and m.strip()]
    if names:
        return names
    if model and model.strip():
        return [model.strip()]
    return list(default or DEFAULT_MODELS)


# ============================================================================
# Router Configuration
# ============================================================================

@dataclass
class RouterConfig:
    """Fully environment-driven router configuration."""

    database_url: str = "sqlite:///./data/keyrouter.db"
    encryption_key: str = ""
    default_models: list[str] = field(default_factory=lambda: list(DEFAULT_MODELS))
    log_level: str = "INFO"

    @property
    def fallback_api_key(self) -> Optional[str]:
        """Process fallback key, read fresh on every access."""
        return os.environ.get("GEMINI_API_KEY", "").strip() or None

    def validate(self):
        """Validate the configuration at startup."""
        if not self.encryption_key:
            logger.error("CREDENTIAL_ENCRYPTION_KEY is not set")
            raise ValueError("CREDENTIAL_ENCRYPTION_KEY is required to store API keys")
        if not self.default_models:
            raise ValueError("At least one default model is required")
        for model_id in self.default_models:
            if not get_model_config(model_id):
                logger.warning(f"⚠️ Default model '{model_id}' is not in the built-in catalogue")


def load_config(env_file: str = ".env") -> RouterConfig:
    """Load configuration from environment variables.

    Env vars:
        DATABASE_URL             : SQLAlchemy URL (SQLite by default)
        CREDENTIAL_ENCRYPTION_KEY: Fernet key for stored API keys
        GENERATIVE_MODELS        : comma-separated fallback model order
                                    (or GENERATIVE_MODEL for a single model)
        GEMINI_API_KEY           : process fallback key
        LOG_LEVEL                : logging level
    """
    load_dotenv(env_file)

    db_url = os.environ.get("DATABASE_URL", "sqlite:///./data/keyrouter.db")
    # Handle PostgreSQL URL format from some cloud providers
    if db_url.startswith("postgres://"):
        db_url = db_url.replace("postgres://", "postgresql://", 1)

    models = parse_model_list(os.environ.get("GENERATIVE_MODELS"))
    if not models:
        models = parse_model_list(os.environ.get("GENERATIVE_MODEL"))
    if not models:
        models = list(DEFAULT_MODELS)

    config = RouterConfig(
        database_url=db_url,
        encryption_key=os.environ.get("CREDENTIAL_ENCRYPTION_KEY", "").strip(),
        default_models=models,
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    )

    logger.info(f"Config loaded | Models: {', '.join(config.default_models)}")
    return config
