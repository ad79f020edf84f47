"""
Configuration

Loads and manages system configuration from memoria.yaml
"""

import os
from pathlib import Path
from typing import Literal, Optional, Union

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from memoria.errors import ConfigurationError

# Load .env file if it exists
_env_path = Path.cwd() / ".env"
if _env_path.exists():
    load_dotenv(_env_path)


class LLMConfig(BaseModel):
    """LLM collaborator configuration.

    Retries with exponential backoff are handled by the openai client
    itself (``max_retries``); the engines only see success or failure.
    """
    model: str = "gpt-4o-mini"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    timeout_seconds: float = 30.0
    max_concurrency: int = 5
    max_retries: int = 2

    disambiguation_temperature: float = 0.1  # Recognition verdicts
    enrichment_temperature: float = 0.2      # Consolidation


class RecognitionConfig(BaseModel):
    """Recognition defaults.

    Omitted LLM bounds are derived from the threshold:
    lower = max(0, threshold - 0.11), upper = threshold.
    """
    threshold: float = Field(default=0.75, ge=0.0, le=1.0)
    llm_lower_bound: Optional[float] = None
    llm_upper_bound: Optional[float] = None
    limit: int = 50
    similarity_threshold: float = 0.5
    similarity_method: Literal["overlap", "jaccard"] = "overlap"


class EnrichmentConfig(BaseModel):
    """Enrichment defaults."""
    llm_timeout_seconds: Optional[float] = 60.0
    default_dry_run: bool = False


class PipelineConfig(BaseModel):
    """Which pipeline profile to run."""
    profile: str = "basic"
    profile_path: Optional[Path] = None  # YAML profile overrides the built-in name


class StorageConfig(BaseModel):
    """Record store configuration."""
    backend: Literal["memory", "file"] = "memory"
    path: Path = Path("memoria_store.json")


class MonitoringConfig(BaseModel):
    """Pipeline performance monitoring."""
    enabled: bool = False
    log_dir: Path = Path("logs")
    max_recent: int = 100


class MemoryConfig(BaseModel):
    """Main configuration model."""
    llm: LLMConfig = Field(default_factory=LLMConfig)
    recognition: RecognitionConfig = Field(default_factory=RecognitionConfig)
    enrichment: EnrichmentConfig = Field(default_factory=EnrichmentConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)


def load_config(config_path: Optional[Union[str, Path]] = None) -> MemoryConfig:
    """
    Load configuration from YAML file.

    Falls back to environment variables and defaults.

    Raises:
        ConfigurationError: if the file is not a mapping or holds invalid values
    """
    config_path = Path(config_path) if config_path is not None else Path.cwd() / "memoria.yaml"

    config_data = {}

    if config_path.exists():
        with open(config_path) as f:
            config_data = yaml.safe_load(f) or {}
        if not isinstance(config_data, dict):
            raise ConfigurationError(f"{config_path}: expected a mapping at the top level")

    # Override with environment variables
    if os.getenv("OPENAI_API_KEY"):
        config_data.setdefault("llm", {})
        config_data["llm"]["api_key"] = os.getenv("OPENAI_API_KEY")

    if os.getenv("MEMORIA_PROFILE"):
        config_data.setdefault("pipeline", {})
        config_data["pipeline"]["profile"] = os.getenv("MEMORIA_PROFILE")

    try:
        return MemoryConfig(**config_data)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        raise ConfigurationError(f"Invalid configuration in {config_path}", errors=errors) from e
