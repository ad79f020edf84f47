"""
Memoria Engine - Abstract Base Class

Defines the public interface of the memory system: the write path,
the read path, recognition, enrichment and deletion.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional

from memoria.models.enrichment import EnrichmentOptions, EnrichmentResult
from memoria.models.outcomes import RecallHit, RememberOutcome
from memoria.models.recognition import RecognitionOptions, RecognitionResult


class MemoryEngine(ABC):
    """
    Abstract Base Class for the memory engine.

    Operations:
    1. remember() - pipeline, optional dedupe via recognition, store or merge
    2. recall() - retrieval query through the pipeline, ranked records
    3. recognize() - does this record already exist?
    4. enrich() - merge new information into a stored record
    5. forget() - delete a stored record
    """

    @abstractmethod
    async def remember(
        self,
        data: Any,
        tenant_id: str = "default",
        tags: Optional[List[str]] = None,
        entities: Optional[dict] = None,
    ) -> List[RememberOutcome]:
        """
        Write path: store new information.

        Process:
        1. Wrap ``data`` in a MemoryItem and run it through the pipeline
        2. For each surviving item, recognize it against stored records
           when ``entities`` are given
        3. Merge into the matching record via enrich(), or store it

        Returns:
            One outcome per pipeline output, or a single "dropped" outcome
        """
        pass

    @abstractmethod
    async def recall(
        self,
        query: Any,
        tenant_id: str = "default",
        tags: Optional[List[str]] = None,
        limit: int = 5,
    ) -> List[RecallHit]:
        """Read path: rank stored records against ``query``."""
        pass

    @abstractmethod
    async def recognize(
        self,
        candidate: Any,
        options: Optional[RecognitionOptions] = None,
    ) -> RecognitionResult:
        """Decide whether ``candidate`` denotes an entity already stored."""
        pass

    @abstractmethod
    async def enrich(
        self,
        key: str,
        additional_data: List[Any],
        options: Optional[EnrichmentOptions] = None,
    ) -> EnrichmentResult:
        """Consolidate ``additional_data`` into the record under ``key``."""
        pass

    @abstractmethod
    async def forget(self, key: str, tenant_id: str = "default") -> bool:
        """Delete the record under ``key``. Returns True if one existed."""
        pass
