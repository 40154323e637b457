"""Config module initialization."""
from .settings import (
    # Paths
    BASE_DIR,
    DATA_DIR,
    STORAGE_DIR,
    SAMPLE_DATA_DIR,
    # Database configuration
    DATABASE_PATH,
    DATABASE_URL,
    DATABASE_TYPE,
    get_db_type,
    # LLM configuration
    LLM_MODELS,
    LLM_TEMPERATURE,
    MAX_LLM_TOKENS,
    LLM_MAX_ATTEMPTS,
    LLM_BACKOFF_BASE_SECONDS,
    LLM_BACKOFF_MAX_SECONDS,
    PROVIDER_KEY_ENV,
    # Pipeline settings
    DEFAULT_TARGET_DIALECT,
    default_target_dialect,
    dialect_for_database,
    DEFAULT_MAX_ITERATIONS,
    SAMPLE_ROW_LIMIT,
    RAW_PREVIEW_CHARS,
    PROMPT_SAMPLE_ROWS,
    INSERT_SAMPLE_ROWS,
    STATEMENT_DELAY_SECONDS,
    # State & checkpoints
    REDIS_URL,
    CHECKPOINT_DIR,
    CHECKPOINT_TTL_SECONDS,
    # System
    VERBOSE,
    LOG_LEVEL,
    ALLOWED_ORIGINS,
    # Validation
    ConfigurationError,
    validate_configuration,
)

__all__ = [
    # Paths
    "BASE_DIR",
    "DATA_DIR",
    "STORAGE_DIR",
    "SAMPLE_DATA_DIR",
    # Database configuration
    "DATABASE_PATH",
    "DATABASE_URL",
    "DATABASE_TYPE",
    "get_db_type",
    # LLM configuration
    "LLM_MODELS",
    "LLM_TEMPERATURE",
    "MAX_LLM_TOKENS",
    "LLM_MAX_ATTEMPTS",
    "LLM_BACKOFF_BASE_SECONDS",
    "LLM_BACKOFF_MAX_SECONDS",
    "PROVIDER_KEY_ENV",
    # Pipeline settings
    "DEFAULT_TARGET_DIALECT",
    "default_target_dialect",
    "dialect_for_database",
    "DEFAULT_MAX_ITERATIONS",
    "SAMPLE_ROW_LIMIT",
    "RAW_PREVIEW_CHARS",
    "PROMPT_SAMPLE_ROWS",
    "INSERT_SAMPLE_ROWS",
    "STATEMENT_DELAY_SECONDS",
    # State & checkpoints
    "REDIS_URL",
    "CHECKPOINT_DIR",
    "CHECKPOINT_TTL_SECONDS",
    # System
    "VERBOSE",
    "LOG_LEVEL",
    "ALLOWED_ORIGINS",
    # Validation
    "ConfigurationError",
    "validate_configuration",
]
