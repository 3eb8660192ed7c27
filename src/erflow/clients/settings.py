"""Central configuration for workflow runs and external services."""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration loaded from environment variables.

    All fields have defaults; wandb credentials are only validated when a
    tracker is actually created.

    Environment variables:
        ERFLOW_N_TRIALS: Random-search trials per search (default: 100)
        ERFLOW_RANDOM_SEED: Run seed stage seeds are derived from (default: 42)
        WANDB_API_KEY: Weights & Biases API key (ERFLOW_WANDB_API_KEY also accepted)
        WANDB_PROJECT: W&B project name (default: "erflow")
        WANDB_ENTITY: W&B entity/team name (optional)

    Example:
        # Load from environment variables
        settings = Settings()
        print(settings.n_trials)

    Example (.env file):
        ERFLOW_N_TRIALS=200
        ERFLOW_RANDOM_SEED=7
        WANDB_API_KEY=...
        WANDB_PROJECT=erflow
    """

    # Auto-configuration
    n_trials: int = Field(default=100, ge=1)
    random_seed: int = Field(default=42, ge=0)

    # wandb (experiment tracking)
    wandb_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("wandb_api_key", "ERFLOW_WANDB_API_KEY", "WANDB_API_KEY"),
    )
    wandb_project: str = Field(
        default="erflow",
        validation_alias=AliasChoices("wandb_project", "ERFLOW_WANDB_PROJECT", "WANDB_PROJECT"),
    )
    wandb_entity: str | None = Field(
        default=None,
        validation_alias=AliasChoices("wandb_entity", "ERFLOW_WANDB_ENTITY", "WANDB_ENTITY"),
    )

    model_config = SettingsConfigDict(
        env_prefix="ERFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )
