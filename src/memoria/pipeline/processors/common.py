"""Processors usable in any stage slot."""

from memoria.models.memory_item import MemoryItem
from memoria.pipeline.stages import ProcessResult, StageProcessor


class PassThrough(StageProcessor):
    """No-op component; records itself in the processing history."""

    name = "PassThrough"

    async def _process(self, item: MemoryItem) -> ProcessResult:
        self.mark(item)
        return item
