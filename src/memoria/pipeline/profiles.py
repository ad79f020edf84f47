"""
Pipeline Profiles

A profile declares, per stage, whether it is enabled, which processor
fills each component role and that processor's config. Profiles are
validated against a ProcessorRegistry before any item is processed;
every problem found is reported in one ConfigurationError.

YAML form:

    name: custom
    stages:
      acquisition:
        components:
          filter: {processor: TenantAwareFilter, config: {max_input_size: 5000}}
      retrieval:
        requires: [acquisition]
        components:
          indexing: {processor: DirectMemoryIndexer}
"""

from pathlib import Path
from typing import Any, Dict, List, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from memoria.errors import ConfigurationError
from memoria.pipeline.registry import ProcessorRegistry
from memoria.pipeline.stages import STAGE_ORDER, STAGE_ROLES, Stage, StageProcessor


class ProcessorSpec(BaseModel):
    """Chosen processor for one component role."""
    model_config = ConfigDict(extra="forbid")

    processor: str
    config: Dict[str, Any] = Field(default_factory=dict)


class StageSettings(BaseModel):
    """Settings of one stage. Stages missing from a profile are disabled."""
    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    components: Dict[str, ProcessorSpec] = Field(default_factory=dict)
    requires: List[str] = Field(default_factory=list)


class PipelineProfile(BaseModel):
    """Declarative pipeline configuration."""
    model_config = ConfigDict(extra="forbid")

    name: str
    description: str = ""
    stages: Dict[str, StageSettings] = Field(default_factory=dict)

    def is_enabled(self, stage: Union[Stage, str]) -> bool:
        settings = self.stages.get(Stage(stage).value)
        return bool(settings and settings.enabled)


def _format_validation(prefix: str, error: ValidationError) -> List[str]:
    return [
        f"{prefix}: {'.'.join(str(p) for p in e['loc']) or 'config'}: {e['msg']}"
        for e in error.errors()
    ]


def validate_profile(profile: PipelineProfile, registry: ProcessorRegistry) -> List[str]:
    """Return every configuration problem of ``profile`` (empty when valid)."""
    errors: List[str] = []
    stage_names = [stage.value for stage in STAGE_ORDER]

    for stage_name, settings in profile.stages.items():
        if stage_name not in stage_names:
            errors.append(f"Unknown stage: {stage_name}")
            continue
        stage = Stage(stage_name)

        for role, spec in settings.components.items():
            slot = f"{stage_name}.{role}"
            if role not in STAGE_ROLES[stage]:
                errors.append(
                    f"Unknown component '{role}' for stage {stage_name} "
                    f"(expected one of: {', '.join(STAGE_ROLES[stage])})"
                )
                continue
            if spec.processor not in registry:
                errors.append(f"{slot}: unknown processor '{spec.processor}'")
                continue

            processor_cls = registry.get(spec.processor)
            if not processor_cls.accepts(stage, role):
                errors.append(f"{slot}: processor '{spec.processor}' cannot fill this role")
                continue
            try:
                processor_cls.config_model.model_validate(spec.config)
            except ValidationError as e:
                errors.extend(_format_validation(f"{slot} ({spec.processor})", e))

        if not settings.enabled:
            continue
        for required in settings.requires:
            if required not in stage_names:
                errors.append(f"{stage_name}: requires unknown stage '{required}'")
            elif stage_names.index(required) >= stage_names.index(stage_name):
                errors.append(f"{stage_name}: may only require earlier stages, not '{required}'")
            elif not profile.is_enabled(required):
                errors.append(f"{stage_name}: requires stage '{required}', which is disabled")

    return errors


def build_processors(
    profile: PipelineProfile,
    registry: ProcessorRegistry,
) -> Dict[Stage, List[StageProcessor]]:
    """
    Instantiate the processors of every enabled stage, in role order.

    Raises:
        ConfigurationError: listing all problems if the profile is invalid
    """
    errors = validate_profile(profile, registry)
    if errors:
        raise ConfigurationError(f"Invalid pipeline profile '{profile.name}'", errors=errors)

    processors: Dict[Stage, List[StageProcessor]] = {}
    for stage in STAGE_ORDER:
        settings = profile.stages.get(stage.value)
        if not settings or not settings.enabled:
            continue
        processors[stage] = [
            registry.get(settings.components[role].processor)(
                stage, role, settings.components[role].config
            )
            for role in STAGE_ROLES[stage]
            if role in settings.components
        ]
    return processors


def parse_profile(data: Dict[str, Any]) -> PipelineProfile:
    """Validate a raw mapping into a PipelineProfile."""
    try:
        return PipelineProfile.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(
            "Malformed pipeline profile",
            errors=_format_validation("profile", e),
        ) from e


def load_profile(path: Path) -> PipelineProfile:
    """Load a profile from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Profile file not found: {path}")
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    data.setdefault("name", path.stem)
    return parse_profile(data)


BUILTIN_PROFILES: Dict[str, Dict[str, Any]] = {
    "minimal": {
        "name": "minimal",
        "description": "Tenant filtering only",
        "stages": {
            "acquisition": {
                "components": {"filter": {"processor": "TenantAwareFilter"}},
            },
        },
    },
    "basic": {
        "name": "basic",
        "description": "Filter, compress, consolidate, summarize, forget and index",
        "stages": {
            "acquisition": {
                "components": {
                    "filter": {"processor": "TenantAwareFilter"},
                    "compressor": {"processor": "TextTruncationCompressor"},
                    "consolidator": {"processor": "NoveltyConsolidator"},
                },
            },
            "derivation": {
                "requires": ["acquisition"],
                "components": {
                    "summarization": {"processor": "SimpleSummarizer"},
                    "forgetting": {"processor": "TimeDecayForgetter"},
                },
            },
            "retrieval": {
                "requires": ["acquisition"],
                "components": {"indexing": {"processor": "DirectMemoryIndexer"}},
            },
        },
    },
    "conversational": {
        "name": "conversational",
        "description": "Basic profile plus attention scoring for chat turns",
        "stages": {
            "acquisition": {
                "components": {
                    "filter": {"processor": "TenantAwareFilter"},
                    "compressor": {
                        "processor": "TextTruncationCompressor",
                        "config": {"max_length": 2000},
                    },
                    "consolidator": {
                        "processor": "NoveltyConsolidator",
                        "config": {"novelty_threshold": 0.9},
                    },
                },
            },
            "encoding": {
                "requires": ["acquisition"],
                "components": {"attention": {"processor": "ConversationAttention"}},
            },
            "derivation": {
                "requires": ["encoding"],
                "components": {
                    "summarization": {"processor": "SimpleSummarizer"},
                    "forgetting": {"processor": "TimeDecayForgetter"},
                },
            },
            "retrieval": {
                "components": {"indexing": {"processor": "DirectMemoryIndexer"}},
            },
            "utilization": {
                "components": {"rag": {"processor": "PassThrough"}},
            },
        },
    },
}


def get_profile(name: str) -> PipelineProfile:
    """Return a built-in profile by name."""
    if name not in BUILTIN_PROFILES:
        raise ConfigurationError(
            f"Unknown pipeline profile: {name}",
            errors=[f"expected one of: {', '.join(sorted(BUILTIN_PROFILES))}"],
        )
    return parse_profile(BUILTIN_PROFILES[name])
