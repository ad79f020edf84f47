"""Built-in stage processors."""

from memoria.pipeline.processors.acquisition import (
    NoveltyConsolidator,
    TenantAwareFilter,
    TextTruncationCompressor,
)
from memoria.pipeline.processors.common import PassThrough
from memoria.pipeline.processors.derivation import FieldSplitter, SimpleSummarizer, TimeDecayForgetter
from memoria.pipeline.processors.encoding import ConversationAttention
from memoria.pipeline.processors.retrieval import DirectMemoryIndexer

BUILTIN_PROCESSORS = (
    TenantAwareFilter,
    TextTruncationCompressor,
    NoveltyConsolidator,
    ConversationAttention,
    SimpleSummarizer,
    FieldSplitter,
    TimeDecayForgetter,
    DirectMemoryIndexer,
    PassThrough,
)

__all__ = [
    "BUILTIN_PROCESSORS",
    "ConversationAttention",
    "DirectMemoryIndexer",
    "FieldSplitter",
    "NoveltyConsolidator",
    "PassThrough",
    "SimpleSummarizer",
    "TenantAwareFilter",
    "TextTruncationCompressor",
    "TimeDecayForgetter",
]
