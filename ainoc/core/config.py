"""
Centralized application settings

Values come from the environment or a local .env file.
"""
import json
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # API Settings
    API_TITLE: str = "Ainoc Analytics API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "Conversational analytics over invoice and stock data"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    API_DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = ""
    DB_CONNECT_TIMEOUT: int = 10
    DB_STATEMENT_TIMEOUT_MS: int = 15000
    DB_MAX_RETRIES: int = 3

    # CORS - Can be string (comma-separated) or JSON array
    ALLOWED_ORIGINS: Optional[str] = "http://localhost:3000"

    # Language model
    ANTHROPIC_API_KEY: str = ""
    CLAUDE_MODEL: str = "claude-sonnet-4-5"
    CLAUDE_MAX_TOKENS: int = 4096
    CHAT_MAX_STEPS: int = 7
    CHAT_MAX_HISTORY_MESSAGES: int = 20
    TOOL_TIMEOUT_SECONDS: float = 20.0
    MAX_CONSECUTIVE_TOOL_FAILURES: int = 3
    CHAT_RATE_LIMIT_PER_MINUTE: int = 30

    # Session tokens (shared secret with the auth provider)
    AUTH_SECRET: str = ""
    AUTH_ALGORITHM: str = "HS256"

    # Invoice documents
    INVOICE_PDF_BASE_URL: str = "https://ainoc-chatbot-files-bucket.s3.us-east-2.amazonaws.com"

    def get_allowed_origins(self) -> List[str]:
        """Parse ALLOWED_ORIGINS string into list"""
        if not self.ALLOWED_ORIGINS:
            return ["http://localhost:3000"]

        try:
            origins = json.loads(self.ALLOWED_ORIGINS)
            if isinstance(origins, list):
                return origins
        except (json.JSONDecodeError, ValueError):
            pass

        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]


settings = Settings()
