"""
Memoria - recognition, enrichment and a staged memory lifecycle pipeline.

Records go through a six-stage pipeline on the way in, are recognized
against stored records (deterministic similarity first, LLM second) and
are merged into existing records with an auditable changelog.
"""

from memoria.config import MemoryConfig, load_config
from memoria.engine import MemoryEngine, MemorySystem
from memoria.enrichment import EnrichmentEngine
from memoria.errors import (
    ConfigurationError,
    LLMCallError,
    LLMUnavailableError,
    MemoriaError,
    NotFoundError,
    StorageError,
)
from memoria.models import (
    EnrichmentOptions,
    EnrichmentResult,
    MemoryItem,
    RecognitionOptions,
    RecognitionResult,
)
from memoria.pipeline import MemoryPipeline, ProcessorRegistry, get_profile
from memoria.recognition import RecognitionEngine

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "EnrichmentEngine",
    "EnrichmentOptions",
    "EnrichmentResult",
    "LLMCallError",
    "LLMUnavailableError",
    "MemoriaError",
    "MemoryConfig",
    "MemoryEngine",
    "MemoryItem",
    "MemoryPipeline",
    "MemorySystem",
    "NotFoundError",
    "ProcessorRegistry",
    "RecognitionEngine",
    "RecognitionOptions",
    "RecognitionResult",
    "StorageError",
    "get_profile",
    "load_config",
]
