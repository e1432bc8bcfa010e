"""
Clusterwork Settings - Configuration management using Pydantic Settings.

Loads configuration from environment variables and .env files.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Find project root (where .env file is located)
PROJECT_ROOT = Path(__file__).parent.parent


class ClusterworkSettings(BaseSettings):
    """
    Clusterwork configuration settings.

    Settings are loaded from:
    1. Environment variables (highest priority)
    2. .env file in current directory
    3. Default values (lowest priority)
    """

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="CLW_",  # All Clusterwork env vars must start with CLW_
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR) (env: CLW_LOG_LEVEL)",
    )

    # Executor Configuration
    max_workers: int = Field(
        default=4,
        ge=1,
        description="Maximum number of tasks reconciled in parallel (env: CLW_MAX_WORKERS)",
    )

    fail_fast: bool = Field(
        default=False,
        description="Stop scheduling new tasks after the first failure (env: CLW_FAIL_FAST)",
    )

    run_timeout: float | None = Field(
        default=None,
        description="Seconds before a run stops scheduling new tasks (env: CLW_RUN_TIMEOUT)",
    )

    # Backend retry Configuration
    retry_max_attempts: int = Field(
        default=5,
        ge=1,
        description="Attempts per backend call before giving up (env: CLW_RETRY_MAX_ATTEMPTS)",
    )

    retry_base_delay: float = Field(
        default=0.5,
        description="Base delay in seconds for exponential backoff (env: CLW_RETRY_BASE_DELAY)",
    )

    retry_max_delay: float = Field(
        default=20.0,
        description="Maximum backoff delay in seconds (env: CLW_RETRY_MAX_DELAY)",
    )

    # Backend Configuration
    aws_region: str = Field(
        default="us-east-1",
        description="AWS region for the direct API target (env: CLW_AWS_REGION)",
    )

    terraform_out_dir: Path = Field(
        default=Path("out/terraform"),
        description="Directory for generated Terraform configuration (env: CLW_TERRAFORM_OUT_DIR)",
    )

    nodeup_root: Path = Field(
        default=Path("/"),
        description="Filesystem root that node tasks are applied under (env: CLW_NODEUP_ROOT)",
    )


# Global settings instance
_settings: ClusterworkSettings | None = None


def get_settings() -> ClusterworkSettings:
    """
    Get the global settings instance.

    Creates the settings instance on first call, then returns cached instance.

    Returns:
        ClusterworkSettings instance
    """
    global _settings
    if _settings is None:
        _settings = ClusterworkSettings()
    return _settings


def reload_settings() -> ClusterworkSettings:
    """
    Reload settings from environment/files.

    Useful for testing or when .env file changes.

    Returns:
        Fresh ClusterworkSettings instance
    """
    global _settings
    _settings = ClusterworkSettings()
    return _settings
