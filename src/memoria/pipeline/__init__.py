"""Lifecycle stage pipeline."""

from memoria.pipeline.hooks import PipelineHookManager
from memoria.pipeline.orchestrator import MemoryPipeline, PipelineMetrics, StageMetrics
from memoria.pipeline.profiles import (
    BUILTIN_PROFILES,
    PipelineProfile,
    ProcessorSpec,
    StageSettings,
    build_processors,
    get_profile,
    load_profile,
    parse_profile,
    validate_profile,
)
from memoria.pipeline.registry import ProcessorRegistry, default_registry
from memoria.pipeline.stages import (
    STAGE_ORDER,
    STAGE_ROLES,
    ProcessorConfig,
    ProcessorMetrics,
    Stage,
    StageProcessor,
)

__all__ = [
    "BUILTIN_PROFILES",
    "MemoryPipeline",
    "PipelineHookManager",
    "PipelineMetrics",
    "PipelineProfile",
    "ProcessorConfig",
    "ProcessorMetrics",
    "ProcessorRegistry",
    "ProcessorSpec",
    "STAGE_ORDER",
    "STAGE_ROLES",
    "Stage",
    "StageMetrics",
    "StageProcessor",
    "StageSettings",
    "build_processors",
    "default_registry",
    "get_profile",
    "load_profile",
    "parse_profile",
    "validate_profile",
]
