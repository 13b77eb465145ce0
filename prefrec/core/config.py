"""
Application settings management.

Settings are loaded from environment variables with .env file support.
All configuration is validated using Pydantic.
"""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment.

    Environment variables take precedence over .env file values.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # ==========================================================================
    # Paths
    # ==========================================================================

    config_dir: Path = Field(
        default=Path("config"),
        description="Directory containing YAML configuration files",
    )
    data_dir: Path = Field(
        default=Path("data"), description="Directory for database and other data files"
    )

    # ==========================================================================
    # Database
    # ==========================================================================

    database_path: Path = Field(
        default=Path("data/preferences.db"),
        description="Path to SQLite database holding the correlation graph and profiles",
    )

    # ==========================================================================
    # Logging
    # ==========================================================================

    log_dir: Path = Field(default=Path("logs"), description="Directory for run logs")
    log_sessions_to_keep: int = Field(
        default=5, ge=1, le=100, description="Number of run log files to retain"
    )

    # ==========================================================================
    # Server Configuration
    # ==========================================================================

    host: str = Field(default="127.0.0.1", description="Server host address")
    port: int = Field(default=8000, ge=1, le=65535, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")


# ============================================================================
# Recommender Configuration (from YAML)
# ============================================================================


class RecommendationConfig(BaseModel):
    """Batch scoring configuration."""

    batch_size: int = Field(
        default=100,
        ge=1,
        description="Number of candidate preferences scored per batch",
    )


class PropagationConfig(BaseModel):
    """Graph mutation propagation configuration."""

    treat_already_applied_as_success: bool = Field(
        default=True,
        description="Swallow conditional-write rejections for repeated mutations",
    )


class RecommenderConfig(BaseModel):
    """
    Complete recommender configuration loaded from recommender_config.yaml.
    """

    recommendation: RecommendationConfig = Field(default_factory=RecommendationConfig)
    propagation: PropagationConfig = Field(default_factory=PropagationConfig)


def load_recommender_config(config_path: Optional[Path] = None) -> RecommenderConfig:
    """
    Load recommender configuration from YAML file.

    Args:
        config_path: Path to recommender_config.yaml. If None, uses default path.

    Returns:
        RecommenderConfig with validated settings

    Raises:
        pydantic.ValidationError: If config validation fails
    """
    if config_path is None:
        # Default path: config/recommender_config.yaml relative to project root
        project_config = (
            Path(__file__).resolve().parent.parent.parent
            / "config"
            / "recommender_config.yaml"
        )
        cwd_config = Path.cwd() / "config" / "recommender_config.yaml"
        if project_config.exists():
            config_path = project_config
        elif cwd_config.exists():
            config_path = cwd_config
        else:
            return RecommenderConfig()

    config_path = Path(config_path).resolve()

    if not config_path.exists():
        return RecommenderConfig()

    with open(str(config_path)) as f:
        config_data = yaml.safe_load(f)

    if not config_data:
        return RecommenderConfig()

    return RecommenderConfig(**config_data)


# Global settings instance
settings = Settings()

# Global recommender config instance
recommender_config = load_recommender_config()
