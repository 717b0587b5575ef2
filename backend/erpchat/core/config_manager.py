"""
Engine Settings
MySQL pool and generation backend settings, read from the environment and .env
"""

import logging
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator, ValidationError


class AppSettings(BaseSettings):
    """Settings for the query engine process"""

    # Process
    app_name: str = Field(default="ERP Chat Query Engine", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=True, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level (DEBUG/INFO/WARNING/ERROR/CRITICAL)")
    log_file: str = Field(default="logs/erpchat.log", description="Rotating log file path")

    # ERP Database (MySQL) Configuration
    MYSQL_HOST: str = Field(default="localhost", min_length=1, max_length=255, description="MySQL host")
    MYSQL_PORT: int = Field(default=3306, ge=1, le=65535, description="MySQL port")
    MYSQL_USER: str = Field(default="root", min_length=1, max_length=128, description="MySQL user")
    MYSQL_PASSWORD: str = Field(default="", description="MySQL password (load from .env)")
    MYSQL_DATABASE: str = Field(
        default="thirupathybright",
        pattern=r"^[A-Za-z0-9_]+$",
        description="ERP schema name, also used to qualify every table name"
    )
    MYSQL_POOL_MIN_SIZE: int = Field(default=1, ge=0, le=100, description="Minimum pooled connections")
    MYSQL_POOL_MAX_SIZE: int = Field(default=10, ge=1, le=100, description="Maximum pooled connections")
    MYSQL_CONNECT_TIMEOUT: int = Field(default=10, ge=1, le=300, description="Connect timeout in seconds")

    # Text-generation backend (OpenAI-compatible chat completions endpoint)
    GENERATION_API_URL: str = Field(
        default="https://api.sarvam.ai/v1/chat/completions",
        description="Chat completions endpoint used for SQL synthesis"
    )
    GENERATION_API_KEY: Optional[str] = Field(default=None, description="Generation API key")
    GENERATION_MODEL: str = Field(default="sarvam-m", description="Generation model name")
    GENERATION_AUTH_HEADER: str = Field(
        default="api-subscription-key",
        description="Header carrying the generation API key"
    )
    GENERATION_TIMEOUT: Optional[float] = Field(
        default=None,
        gt=0,
        description="Client-side timeout in seconds (unset means wait indefinitely)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Restrict environment to the known profiles"""
        valid_environments = ["development", "staging", "production", "test"]
        if v not in valid_environments:
            raise ValueError(f"Environment must be one of: {valid_environments}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize log level to upper case"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    def __init__(self, **data):
        super().__init__(**data)
        self._validate_configuration()

    def _validate_configuration(self):
        """Cross-field checks pydantic cannot express per field"""
        if self.MYSQL_POOL_MIN_SIZE > self.MYSQL_POOL_MAX_SIZE:
            raise ValueError(
                f"MYSQL_POOL_MIN_SIZE ({self.MYSQL_POOL_MIN_SIZE}) cannot exceed "
                f"MYSQL_POOL_MAX_SIZE ({self.MYSQL_POOL_MAX_SIZE})"
            )
        self._validate_environment_specific()

    def _validate_environment_specific(self):
        """Production refuses debug mode and a missing generation key"""
        if self.environment == "production":
            if self.debug:
                raise ValueError("Debug mode must be disabled in production")
            if not self.GENERATION_API_KEY:
                raise ValueError("Missing required secret in production environment: GENERATION_API_KEY")

    @property
    def is_development(self) -> bool:
        """Key-value console logs instead of JSON"""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


class ConfigurationManager:
    """Process-wide settings holder"""

    _instance: Optional[AppSettings] = None
    _logger = logging.getLogger(__name__)

    @classmethod
    def get_settings(cls) -> AppSettings:
        """Load settings once and reuse them"""
        if cls._instance is None:
            try:
                cls._instance = AppSettings()
                cls._logger.info(f"Configuration loaded successfully for environment: {cls._instance.environment}")
            except ValidationError as e:
                cls._logger.error(f"Configuration validation failed: {e}")
                raise
        return cls._instance

    @classmethod
    def reload_settings(cls) -> AppSettings:
        """Discard the cached settings and load them again"""
        cls._instance = None
        return cls.get_settings()


# Loaded at import
settings = ConfigurationManager.get_settings()

# Convenience function
def get_settings() -> AppSettings:
    """Cached settings"""
    return ConfigurationManager.get_settings()
