"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
    
    # Environment
    ENV: str = "dev"
    
    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.03.00"
    
    # Logging
    LOG_LEVEL: str = "INFO"
    
    # Database
    DATABASE_URL: str = "sqlite:///./safespace.db"
    
    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 4
    
    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"
    
    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""  # Get from https://sentry.io
    
    # Rate Limiting (requests per minute per client IP; 0 disables the default limit)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_API: int = 0
    RATE_LIMIT_CONNECTION_REQUESTS: str = "20/minute"
    RATE_LIMIT_STORAGE_URI: str = "memory://"
    
    # Scheduling
    DEFAULT_TIMEZONE: str = "UTC"  # Used when a therapist has no availability rules
    DEFAULT_APPOINTMENT_DURATION_MINUTES: int = 60
    MAX_APPOINTMENT_DURATION_MINUTES: int = 240
    
    # Video session links (provisioning is skipped when empty)
    SESSION_LINK_BASE_URL: str = ""
    
    # In-app notifications (set False to silence the dispatcher entirely)
    NOTIFICATIONS_ENABLED: bool = True
    
    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]
    
    @property
    def jwt_secrets(self) -> list[str]:
        """Returns list of valid secrets (current first, then previous if set)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets
    

settings = Settings()
