"""Reasoning Memory - retrieval of relevant past traces.

- tokenize: stop-word filtered term sequence
- find_similar / rank_traces: TF-IDF cosine ranking of a trace pool
- ContextAssembler: past-trace blocks for prompt injection
- ComposableMemory: best-effort external memory adapters (Mem0, Zep)
"""

from hippo.memory.adapters import (
    AdapterDispatcher,
    AdapterHit,
    AdapterOutcome,
    ComposableMemory,
    Mem0Adapter,
    MemoryAdapter,
    ZepAdapter,
    configured_adapters,
)
from hippo.memory.context import ContextAssembler, format_trace_block
from hippo.memory.similarity import (
    SimilarityResult,
    cosine_similarity,
    find_similar,
    rank_traces,
    text_similarity,
)
from hippo.memory.tokenizer import STOP_WORDS, tokenize

__all__ = [
    "tokenize",
    "STOP_WORDS",
    "find_similar",
    "rank_traces",
    "cosine_similarity",
    "text_similarity",
    "SimilarityResult",
    "ContextAssembler",
    "format_trace_block",
    "MemoryAdapter",
    "AdapterHit",
    "AdapterOutcome",
    "AdapterDispatcher",
    "ComposableMemory",
    "Mem0Adapter",
    "ZepAdapter",
    "configured_adapters",
]
