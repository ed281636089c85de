"""Configuration management for the Nodeflow workflow engine."""

import os
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator
from enum import Enum
from dotenv import load_dotenv

from .models.core import BranchSkipPolicy

ENV_PREFIX = "NODEFLOW_"


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AppConfig(BaseModel):
    """Application configuration settings."""

    # Application settings
    app_name: str = Field(default="Nodeflow", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server settings
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    reload: bool = Field(default=False, description="Enable auto-reload in development")

    # Run history
    enable_run_history: bool = Field(default=False, description="Store execution reports in the database")
    database_url: str = Field(
        default="sqlite:///./nodeflow.db",
        description="Database connection URL for run history"
    )
    database_echo: bool = Field(default=False, description="Enable SQLAlchemy query logging")

    # Execution engine settings
    node_timeout: Optional[float] = Field(
        default=None,
        description="Seconds a node handler may run; unset means no limit"
    )
    branch_skip_policy: BranchSkipPolicy = Field(
        default=BranchSkipPolicy.TRANSITIVE,
        description="Behavior after a condition evaluates false"
    )
    strict_edges: bool = Field(default=False, description="Reject edges referencing unknown nodes")

    # Outbound services
    llm_api_url: Optional[str] = Field(default=None, description="Base URL of the LLM text-processing service")
    llm_default_model: str = Field(default="gpt-3.5-turbo", description="Model used when a node names none")
    llm_default_service: str = Field(default="openai", description="Service used when a node names none")
    http_timeout: float = Field(default=30.0, description="Timeout in seconds for outbound HTTP calls")

    # Built-in LLM service
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key for the built-in LLM service")
    openai_max_tokens: int = Field(default=2048, description="Maximum tokens per completion")
    openai_temperature: float = Field(default=0.7, description="Sampling temperature")

    # Logging settings
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format"
    )
    log_structured: bool = Field(default=False, description="Emit JSON log records")
    log_file: Optional[str] = Field(default=None, description="Log file path")
    log_max_size: int = Field(default=10485760, description="Maximum log file size in bytes")  # 10MB
    log_backup_count: int = Field(default=5, description="Number of log backup files to keep")

    # Security settings
    cors_origins: list = Field(
        default=["*"],
        description="CORS allowed origins"
    )

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v):
        """Validate database URL format."""
        if not v:
            raise ValueError("Database URL cannot be empty")

        supported_schemes = ['sqlite', 'postgresql', 'mysql']
        scheme = v.split('://')[0].split('+')[0].lower()

        if scheme not in supported_schemes:
            raise ValueError(f"Unsupported database scheme: {scheme}. Supported: {supported_schemes}")

        return v

    @field_validator('port')
    @classmethod
    def validate_port(cls, v):
        """Validate port number."""
        if not 1 <= v <= 65535:
            raise ValueError("Port must be between 1 and 65535")
        return v

    @field_validator('node_timeout')
    @classmethod
    def validate_node_timeout(cls, v):
        if v is not None and v <= 0:
            return None
        return v

    @field_validator('http_timeout')
    @classmethod
    def validate_http_timeout(cls, v):
        if v <= 0:
            raise ValueError("HTTP timeout must be positive")
        return v

    @field_validator('llm_api_url')
    @classmethod
    def validate_llm_api_url(cls, v):
        if v is None or not v.strip():
            return None
        if not v.startswith(("http://", "https://")):
            raise ValueError("LLM API URL must start with http:// or https://")
        return v.rstrip("/")

    @property
    def is_sqlite(self) -> bool:
        """Check if using SQLite database."""
        return self.database_url.lower().startswith("sqlite")

    def get_database_connect_args(self) -> Dict[str, Any]:
        """Get database connection arguments based on database type."""
        if self.is_sqlite:
            return {"check_same_thread": False}
        return {}

    def get_uvicorn_config(self) -> Dict[str, Any]:
        """Get Uvicorn server configuration."""
        return {
            "host": self.host,
            "port": self.port,
            "reload": self.reload,
            "log_level": self.log_level.lower(),
            "access_log": self.debug
        }

    @classmethod
    def from_env(cls) -> 'AppConfig':
        """Create configuration from NODEFLOW_* environment variables."""
        def get_env(key: str, default=None, type_func=str):
            """Get environment variable with type conversion."""
            value = os.getenv(f"{ENV_PREFIX}{key}")
            if value is None:
                return default
            if type_func == bool:
                return str(value).lower() in ('true', '1', 'yes', 'on')
            elif type_func == list:
                return [item.strip() for item in value.split(',') if item.strip()] or default
            return type_func(value)

        return cls(
            app_name=get_env("APP_NAME", "Nodeflow"),
            app_version=get_env("APP_VERSION", "1.0.0"),
            debug=get_env("DEBUG", False, bool),
            host=get_env("HOST", "0.0.0.0"),
            port=get_env("PORT", 8000, int),
            reload=get_env("RELOAD", False, bool),
            enable_run_history=get_env("ENABLE_RUN_HISTORY", False, bool),
            database_url=get_env("DATABASE_URL", "sqlite:///./nodeflow.db"),
            database_echo=get_env("DATABASE_ECHO", False, bool),
            node_timeout=get_env("NODE_TIMEOUT", None, float),
            branch_skip_policy=BranchSkipPolicy(get_env("BRANCH_SKIP_POLICY", "transitive").lower()),
            strict_edges=get_env("STRICT_EDGES", False, bool),
            llm_api_url=get_env("LLM_API_URL", None),
            llm_default_model=get_env("LLM_DEFAULT_MODEL", "gpt-3.5-turbo"),
            llm_default_service=get_env("LLM_DEFAULT_SERVICE", "openai"),
            http_timeout=get_env("HTTP_TIMEOUT", 30.0, float),
            openai_api_key=get_env("OPENAI_API_KEY", os.getenv("OPENAI_API_KEY")),
            openai_max_tokens=get_env("OPENAI_MAX_TOKENS", 2048, int),
            openai_temperature=get_env("OPENAI_TEMPERATURE", 0.7, float),
            log_level=LogLevel(get_env("LOG_LEVEL", "INFO").upper()),
            log_format=get_env("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
            log_structured=get_env("LOG_STRUCTURED", False, bool),
            log_file=get_env("LOG_FILE", None),
            log_max_size=get_env("LOG_MAX_SIZE", 10485760, int),
            log_backup_count=get_env("LOG_BACKUP_COUNT", 5, int),
            cors_origins=get_env("CORS_ORIGINS", ["*"], list)
        )


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def load_config(config_file: Optional[str] = None) -> AppConfig:
    """Load configuration from a dotenv file and the environment."""
    global _config

    if config_file and os.path.exists(config_file):
        load_dotenv(config_file)
    elif os.path.exists('.env'):
        load_dotenv('.env')

    _config = AppConfig.from_env()

    return _config


def reset_config():
    """Reset the global configuration instance (mainly for testing)."""
    global _config
    _config = None


def validate_config(config: AppConfig) -> None:
    """Validate configuration settings."""
    errors = []

    if config.enable_run_history and config.is_sqlite:
        db_path = config.database_url.replace("sqlite:///", "")
        db_dir = os.path.dirname(db_path)
        if db_path != ":memory:" and db_dir and not os.path.exists(db_dir):
            try:
                os.makedirs(db_dir, exist_ok=True)
            except OSError as e:
                errors.append(f"Cannot create database directory {db_dir}: {e}")

    if config.log_file:
        log_dir = os.path.dirname(config.log_file)
        if log_dir and not os.path.exists(log_dir):
            try:
                os.makedirs(log_dir, exist_ok=True)
            except OSError as e:
                errors.append(f"Cannot create log directory {log_dir}: {e}")

    if errors:
        raise ValueError(f"Configuration validation failed: {'; '.join(errors)}")


# Environment-specific configurations
def get_development_config() -> AppConfig:
    """Get development configuration."""
    return AppConfig(
        debug=True,
        reload=True,
        log_level=LogLevel.DEBUG,
        database_echo=True
    )


def get_testing_config() -> AppConfig:
    """Get testing configuration."""
    return AppConfig(
        debug=True,
        enable_run_history=True,
        database_url="sqlite:///:memory:",
        log_level=LogLevel.WARNING,
        node_timeout=10
    )
