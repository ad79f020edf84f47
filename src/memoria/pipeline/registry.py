"""
Processor Registry

Maps processor names to StageProcessor classes. A registry is an
ordinary object built at startup and handed to the pipeline; there is no
process-wide instance.
"""

import logging
from typing import Dict, List, Optional, Type

from memoria.errors import ConfigurationError
from memoria.pipeline.stages import Stage, StageProcessor

logger = logging.getLogger("memoria.pipeline")


class ProcessorRegistry:
    """
    Name -> processor class catalog.

    Example:
        >>> registry = ProcessorRegistry()
        >>>
        >>> @registry.processor
        >>> class Shouter(StageProcessor):
        >>>     name = "Shouter"
        >>>     async def _process(self, item):
        >>>         item.data = item.data.upper()
        >>>         return item
    """

    def __init__(self):
        self._processors: Dict[str, Type[StageProcessor]] = {}

    def register(self, processor_cls: Type[StageProcessor], name: Optional[str] = None) -> None:
        """
        Register a processor class.

        Raises:
            ConfigurationError: if the name is empty or already taken
        """
        name = name or processor_cls.name
        if not name:
            raise ConfigurationError(f"{processor_cls.__name__} has no registry name")
        if name in self._processors and self._processors[name] is not processor_cls:
            raise ConfigurationError(f"Processor already registered: {name}")
        self._processors[name] = processor_cls
        logger.debug(f"Registered processor: {name}")

    def processor(self, processor_cls: Type[StageProcessor]) -> Type[StageProcessor]:
        """Class decorator form of ``register``."""
        self.register(processor_cls)
        return processor_cls

    def get(self, name: str) -> Type[StageProcessor]:
        try:
            return self._processors[name]
        except KeyError:
            raise ConfigurationError(f"Unknown processor: {name}") from None

    def __contains__(self, name: str) -> bool:
        return name in self._processors

    def names(self) -> List[str]:
        return sorted(self._processors)

    def for_slot(self, stage: Stage, role: str) -> List[str]:
        """Names of processors that may fill ``stage.role``."""
        return [
            name for name, cls in sorted(self._processors.items())
            if cls.accepts(stage, role)
        ]


def default_registry() -> ProcessorRegistry:
    """A fresh registry holding the built-in processors."""
    from memoria.pipeline.processors import BUILTIN_PROCESSORS

    registry = ProcessorRegistry()
    for processor_cls in BUILTIN_PROCESSORS:
        registry.register(processor_cls)
    return registry
