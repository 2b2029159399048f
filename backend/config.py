"""
Backend Configuration Module
============================
Centralized configuration using Pydantic Settings.
All settings are loaded from environment variables with sensible defaults.

Usage:
    from config import settings
    print(settings.FOUNDRY_ENDPOINT)
    print(settings.SYSTEM_PROMPT_PATH)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import computed_field
from pathlib import Path
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Uses Pydantic Settings for validation and type coercion.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ===== APPLICATION =====
    APP_NAME: str = "Document Analyzer"
    APP_ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # ===== SERVER =====
    BACKEND_HOST: str = "0.0.0.0"
    BACKEND_PORT: int = 8000
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    # ===== ENTRA ID (client credentials) =====
    AZURE_TENANT_ID: str = ""
    AZURE_CLIENT_ID: str = ""
    AZURE_CLIENT_SECRET: str = ""
    AUTHORITY_HOST: str = "https://login.microsoftonline.com"

    # ===== AI FOUNDRY AGENTS =====
    FOUNDRY_ENDPOINT: str = ""
    FOUNDRY_DEPLOYMENT_NAME: str = ""
    FOUNDRY_API_VERSION: str = "v1"
    FOUNDRY_SCOPE: str = "https://ai.azure.com/.default"

    # ===== MICROSOFT GRAPH =====
    GRAPH_BASE_URL: str = "https://graph.microsoft.com/v1.0"
    GRAPH_SCOPE: str = "https://graph.microsoft.com/.default"

    # ===== PROMPTS =====
    PROMPTS_DIR: str = "prompts"
    SYSTEM_PROMPT_FILE: str = "document-system-prompt.txt"

    # ===== RUN POLLING =====
    RUN_POLL_INTERVAL_MS: int = 500
    RUN_TIMEOUT_SECONDS: float = 300.0
    RUN_MAX_POLLS: Optional[int] = None
    DELETE_THREADS: bool = True

    # ===== HTTP / RETRY =====
    HTTP_TIMEOUT_SECONDS: float = 60.0
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_INITIAL_INTERVAL: float = 0.5

    # ===== COMPUTED PROPERTIES =====

    @computed_field
    @property
    def BACKEND_ROOT(self) -> Path:
        """Backend directory"""
        return Path(__file__).parent.resolve()

    @computed_field
    @property
    def PROMPTS_PATH(self) -> Path:
        """Absolute path to the prompts directory (relative values resolve against the backend)"""
        path = Path(self.PROMPTS_DIR)
        if not path.is_absolute():
            path = self.BACKEND_ROOT / path
        return path

    @computed_field
    @property
    def SYSTEM_PROMPT_PATH(self) -> Path:
        """Absolute path to the agent system prompt"""
        return self.PROMPTS_PATH / self.SYSTEM_PROMPT_FILE

    @computed_field
    @property
    def poll_interval_seconds(self) -> float:
        """Run status poll interval in seconds"""
        return self.RUN_POLL_INTERVAL_MS / 1000.0

    @computed_field
    @property
    def allowed_origins_list(self) -> List[str]:
        """List of allowed CORS origins"""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    @computed_field
    @property
    def token_endpoint(self) -> str:
        """OAuth2 token endpoint for the configured tenant"""
        return f"{self.AUTHORITY_HOST.rstrip('/')}/{self.AZURE_TENANT_ID}/oauth2/v2.0/token"

    @computed_field
    @property
    def is_development(self) -> bool:
        """Check if running in development mode"""
        return self.APP_ENV == "development"

    @computed_field
    @property
    def is_production(self) -> bool:
        """Check if running in production mode"""
        return self.APP_ENV == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Use this function to access settings throughout the application.

    Example:
        from config import get_settings
        settings = get_settings()
    """
    return Settings()


# Convenience: Direct access to settings singleton
settings = get_settings()
