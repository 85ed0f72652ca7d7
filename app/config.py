from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # "json" or "console"

    # Demo data loaded into the in-memory store at startup
    SEED_DEMO_DATA: bool = True
    DEMO_USER_ID: str = "user-demo"
    DEMO_USER_EMAIL: str = "demo@kinso.dev"

    # =================================================================
    # PRIORITY ENGINE SETTINGS
    # =================================================================
    INACTIVITY_THRESHOLD_DAYS: int = 7
    DEFAULT_CONTACT_PRIORITY: int = 50
    DEFAULT_CONVERSATION_PRIORITY: int = 50

    # =================================================================
    # PAGINATION
    # =================================================================
    DEFAULT_CONVERSATION_PAGE_SIZE: int = 20
    DEFAULT_MESSAGE_PAGE_SIZE: int = 50
    MAX_PAGE_SIZE: int = 100

    # =================================================================
    # STREAMING (server-sent events)
    # =================================================================
    SSE_HEARTBEAT_SECONDS: float = 30.0
    SSE_QUEUE_MAXSIZE: int = 100

    # Proxy handling for request context
    TRUST_X_FORWARDED_FOR: bool = False
    TRUSTED_PROXY_IPS: list[str] = Field(default_factory=list)

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def should_seed_demo_data(self) -> bool:
        """Seed demo data unless disabled or running under tests."""
        if self.environment == "test":
            return False
        return self.SEED_DEMO_DATA


settings = Settings()

# =================================================================
# QUICK CONFIGURATION REFERENCE
# =================================================================
"""
Every value above can be overridden from the environment or .env.local:

LOCAL DEMO (default):
    SEED_DEMO_DATA=true
    LOG_FORMAT=console

TESTS:
    environment=test          # disables demo seeding

SLOW CLIENTS / PROXIES:
    SSE_HEARTBEAT_SECONDS=15
    SSE_QUEUE_MAXSIZE=500
"""
