"""Configuration models and YAML loader for the listings finder."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator


class ProviderConfig(BaseModel):
    """Listings provider (search-by-area HTTP API) settings."""

    base_url: str = "https://streeteasy-api.p.rapidapi.com"
    host: str = "streeteasy-api.p.rapidapi.com"
    api_key_env: str = "RAPIDAPI_KEY"
    timeout_seconds: float = Field(default=30.0, gt=0)
    max_limit: int = Field(default=20, ge=1)
    limit_per_result: int = Field(default=4, ge=1)


class ValuationConfig(BaseModel):
    """AI valuation service settings."""

    llm_provider: str = "anthropic"
    model: str | None = None
    batch_size: int = Field(default=50, ge=1)
    batch_delay_seconds: float = Field(default=1.0, ge=0.0)
    max_tokens: int = Field(default=2000, ge=1)
    temperature: float = Field(default=0.1, ge=0.0, le=1.0)
    cost_per_million_tokens: float = Field(default=1.25, ge=0.0)


class SearchTuning(BaseModel):
    """Fallback ladders and request caps."""

    threshold_steps: list[int] = Field(default_factory=lambda: [5, 4, 3, 2, 1])
    budget_multipliers: list[float] = Field(
        default_factory=lambda: [1.2, 1.5, 2.0, 3.0, 5.0, 10.0],
    )
    neighborhood_multipliers: list[float] = Field(
        default_factory=lambda: [1.0, 1.2, 1.5, 2.0],
    )
    relaxed_threshold: int = Field(default=1, ge=1, le=100)
    default_threshold: int = Field(default=15, ge=1, le=100)
    max_results_cap: int = Field(default=10, ge=1)
    trigger_max_results_cap: int = Field(default=5, ge=1)

    @field_validator("budget_multipliers", "neighborhood_multipliers")
    @classmethod
    def multipliers_positive(cls, v: list[float]) -> list[float]:
        if any(m <= 0 for m in v):
            msg = "multipliers must be positive"
            raise ValueError(msg)
        return v


class DatabaseConfig(BaseModel):
    """Audit database configuration."""

    path: str = "data/jobs.db"
    audit_enabled: bool = False


class ApiConfig(BaseModel):
    """HTTP surface configuration. Secrets come from the environment only."""

    api_key_env: str = "VC_API_KEY"
    allowed_origins: list[str] = Field(default_factory=lambda: ["*"])


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    valuation: ValuationConfig = Field(default_factory=ValuationConfig)
    search: SearchTuning = Field(default_factory=SearchTuning)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    neighborhoods_path: str = "config/neighborhoods.yaml"

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)
