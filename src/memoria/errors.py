"""
Error Taxonomy

Exceptions raised by the recognition/enrichment engines and the
stage pipeline. Configuration problems fail fast at setup time;
LLM call failures are recovered locally and surface through
``used_llm`` + ``explanation`` on the result models.
"""

from typing import List, Optional


class MemoriaError(Exception):
    """Base class for all memoria errors."""
    pass


class ConfigurationError(MemoriaError):
    """
    Raised for invalid setup: unknown stage/component/processor names,
    invalid processor config, malformed threshold ordering or a stage
    depending on a disabled stage.
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = errors or [message]
        super().__init__(message)


class NotFoundError(MemoriaError):
    """Raised when an enrichment target key has no stored record."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"No record found for key: {key}")


class LLMUnavailableError(ConfigurationError):
    """Raised when LLM consolidation is required but no LLM caller is wired."""
    pass


class LLMCallError(MemoriaError):
    """Raised when an LLM call fails for any reason."""
    pass


class LLMTimeoutError(LLMCallError):
    """The LLM call did not finish within its timeout."""
    pass


class LLMCancelledError(LLMCallError):
    """The LLM call was abandoned because its cancellation token fired."""
    pass


class LLMResponseError(LLMCallError):
    """The LLM returned nothing usable (empty or unparseable content)."""
    pass


class StorageError(MemoriaError):
    """Raised when a store cannot read or write its backing medium."""
    pass


def describe_error(error: BaseException) -> str:
    """Short text for result explanations; foreign errors keep their type name."""
    if isinstance(error, MemoriaError):
        return str(error)
    message = str(error)
    return f"{type(error).__name__}: {message}" if message else type(error).__name__
