"""Configuration management."""

import os
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env for local runs only where values are missing from the environment
BASE_DIR = Path(__file__).resolve().parent.parent
env_file = BASE_DIR / ".env"

if env_file.exists():
    file_env = dotenv_values(env_file)
    missing_keys = {k: v for k, v in file_env.items() if k not in os.environ and v is not None}
    for k, v in missing_keys.items():
        os.environ[k] = v


class Settings(BaseSettings):
    """Application settings pulled from ``STIPPLE_*`` environment variables."""

    model_config = SettingsConfigDict(env_prefix="STIPPLE_", extra="ignore")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Logging format (plain or json)")

    # Sampling
    sample_attempts: int = Field(default=60, ge=1, description="Rejection sampling attempts per site")
    point_density: int = Field(
        default=50, ge=1, description="Pixels per site when no site count is given"
    )
    seed: Optional[str] = Field(default=None, description="Default random seed")

    # Relaxation
    relaxation_factor: float = Field(default=1.8, gt=0, description="Step toward the weighted centroid")
    jitter_scale: float = Field(default=10.0, ge=0, description="Jitter amplitude of the first pass")
    jitter_decay: float = Field(default=0.8, ge=0, description="Exponent of the jitter annealing")
    default_iterations: int = Field(default=80, ge=0, description="Relaxation passes per run")


settings = Settings()
