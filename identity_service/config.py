"""
Configuration Management
Environment-based configuration for database, Redis, Supabase and OAuth settings
"""

from typing import Optional, List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
import logging

logger = logging.getLogger(__name__)


class DatabaseConfig(BaseSettings):
    """Database Configuration - uses service-specific credentials"""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False, env_file=".env", extra="ignore")

    identity_database_url: Optional[str] = None

    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "truenamepath"
    db_service_user: str = "identity_service"
    db_service_password: str = "identity_service_secure_pass_change_me"

    # Pool settings
    db_pool_min_size: int = 5
    db_pool_max_size: int = 20
    db_command_timeout: int = 60

    def get_database_url(self) -> str:
        """Full URL when provided, else built from individual settings"""
        if self.identity_database_url:
            return self.identity_database_url
        return f"postgresql://{self.db_service_user}:{self.db_service_password}@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"

    def log_config(self):
        """Log configuration (without sensitive data)"""
        logger.info(f"Database Host: {self.postgres_host}:{self.postgres_port}")
        logger.info(f"Database: {self.postgres_db}")
        logger.info(f"Pool Size: {self.db_pool_min_size}-{self.db_pool_max_size}")


class RedisConfig(BaseSettings):
    """Redis Configuration"""

    model_config = SettingsConfigDict(env_prefix="REDIS_", case_sensitive=False, env_file=".env", extra="ignore")

    sentinel_enabled: bool = False
    sentinel_host: str = "localhost"
    sentinel_port: int = 26379
    sentinel_master: str = "mymaster"

    host: str = "localhost"
    port: int = 6379
    password: Optional[str] = None
    db: int = 0

    @field_validator('port', 'sentinel_port')
    @classmethod
    def validate_port(cls, v):
        if not 1 <= v <= 65535:
            raise ValueError('Redis port must be between 1 and 65535')
        return v


class AppConfig(BaseSettings):
    """Application Configuration"""

    model_config = SettingsConfigDict(env_prefix="APP_", case_sensitive=False, env_file=".env", extra="ignore")

    # Service info
    service_name: str = "identity-service"
    service_version: str = "1.0.0"
    debug: bool = False

    # Supabase (optional second authentication source)
    supabase_url: str = ""
    supabase_anon_key: str = ""

    # OIDC claim defaults
    oidc_issuer: str = "https://truenameapi.demo"
    oidc_locale: str = "en-GB"
    oidc_zoneinfo: str = "Europe/London"
    claims_lifetime_seconds: int = 3600

    # OAuth sessions
    oauth_session_hours: int = 2
    client_id_max_attempts: int = 3
    session_token_max_attempts: int = 10

    # Dashboard login sessions
    login_session_days: int = 7
    remember_me_session_days: int = 30

    cors_origins: List[str] = ["*"]

    @field_validator('client_id_max_attempts', 'session_token_max_attempts', 'oauth_session_hours')
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError('Value must be at least 1')
        return v

    def log_config(self):
        """Log configuration (without sensitive data)"""
        logger.info(f"Service: {self.service_name} {self.service_version}")
        logger.info(f"OIDC issuer: {self.oidc_issuer}")
        logger.info(f"Supabase: {'configured' if self.supabase_url else 'disabled'}")


# Global configuration instances
_db_config: Optional[DatabaseConfig] = None
_redis_config: Optional[RedisConfig] = None
_app_config: Optional[AppConfig] = None


def get_db_config() -> DatabaseConfig:
    """Get database configuration instance"""
    global _db_config
    if _db_config is None:
        _db_config = DatabaseConfig()
    return _db_config


def get_redis_config() -> RedisConfig:
    """Get Redis configuration instance"""
    global _redis_config
    if _redis_config is None:
        _redis_config = RedisConfig()
    return _redis_config


def get_app_config() -> AppConfig:
    """Get application configuration instance"""
    global _app_config
    if _app_config is None:
        _app_config = AppConfig()
    return _app_config
