"""Retrieval processors (stage 4)."""

from memoria.models.memory_item import MemoryItem
from memoria.pipeline.stages import ProcessResult, Stage, StageProcessor
from memoria.recognition.field_paths import flatten_text
from memoria.recognition.text import extract_terms


class DirectMemoryIndexer(StageProcessor):
    """Attaches the item's sorted term set as ``metadata.index_terms``."""

    name = "DirectMemoryIndexer"
    roles = ((Stage.RETRIEVAL, "indexing"),)

    async def _process(self, item: MemoryItem) -> ProcessResult:
        item.metadata.index_terms = sorted(extract_terms(flatten_text(item.data)))
        self.mark(item)
        return item
