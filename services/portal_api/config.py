"""Configuration management for the voting portal service."""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Service configuration
    SERVICE_NAME: str = "voting-portal"
    API_VERSION: str = "v1"
    DEBUG: bool = False

    # Server configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # PostgreSQL configuration
    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "voting_portal"
    POSTGRES_USER: str = "portal_user"
    POSTGRES_PASSWORD: str = "portal_pass"

    # Connection pool
    POSTGRES_POOL_MIN_SIZE: int = 1
    POSTGRES_POOL_MAX_SIZE: int = 5
    POSTGRES_COMMAND_TIMEOUT: int = 60

    # Apply schema.sql on startup
    APPLY_SCHEMA: bool = False

    # Durable session storage
    SESSION_FILE: str = "data/session.json"
    SESSION_KEY: str = "voting_user"

    # Rate limiting
    LOGIN_RATE_LIMIT: str = "30/minute"

    # CORS settings
    CORS_ORIGINS: list = ["http://localhost:3000", "http://localhost:5173"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list = ["*"]
    CORS_ALLOW_HEADERS: list = ["*"]

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def postgres_dsn(self) -> str:
        """Generate PostgreSQL connection string."""
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )


settings = Settings()
