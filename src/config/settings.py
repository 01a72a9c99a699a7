"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK (Junior Developer Guide) ───────────────────────
#
# This class uses pydantic-settings to automatically read configuration
# from TWO sources (in priority order):
#
#   1. **Environment variables** - e.g., EXA_API_KEY=abc123
#      (highest priority - always wins)
#   2. **.env file** - key=value lines in the project root .env file
#      (lower priority - used for local development)
#
# The mapping is automatic: field name `exa_api_key` maps to env var
# `EXA_API_KEY` (pydantic-settings uppercases and matches).
#
# Tunables that are not secrets (timeouts, phase weights, caps) live in
# config/config.yaml instead; see src/config/loader.py.
#
# SECURITY: The .env file is in .gitignore - never committed to the repo.
# Use .env.example as a template showing what variables are available.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """FestiScout application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === Search gateway ===
    # Empty string = "not configured"; the health endpoint reports it and
    # every research run fails at its first gateway call.
    exa_api_key: str = ""
    exa_base_url: str = "https://api.exa.ai"

    # === Research storage ===
    research_db_path: str = "data/research.db"

    # === API access ===
    # Comma-separated allow-list of static API keys.  Empty disables the check.
    api_keys: str = ""
    cors_origins: str = "http://localhost:3000"

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def api_key_list(self) -> list[str]:
        """Return the configured API keys with blanks removed."""
        return [key.strip() for key in self.api_keys.split(",") if key.strip()]

    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]
