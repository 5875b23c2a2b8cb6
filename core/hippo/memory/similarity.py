"""TF-IDF cosine similarity over traces.

For every call a corpus is built from the query plus one document per
trace (query text, tool names, summary), so IDF reflects the current pool:

    idf(t)    = ln(N / (1 + df(t)))      N counts the query as a document
    tf(t, d)  = count(t, d) / |d|
    w(t, d)   = tf(t, d) * idf(t)
    sim(q, d) = (q . d) / (|q| |d|)      0 when either norm is 0

No index is kept between calls; the pools this serves are small (tens to
low thousands of traces).
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict

from hippo.memory.tokenizer import tokenize
from hippo.tracing.schemas import ReasoningTrace

Vector = dict[str, float]


class SimilarityResult(BaseModel):
    """A trace with its similarity to the query."""

    model_config = ConfigDict(frozen=True)

    trace: ReasoningTrace
    score: float
    rank: int


def compute_tf(tokens: Sequence[str]) -> Vector:
    """Term frequency normalized by document length."""
    total = len(tokens) or 1
    return {term: count / total for term, count in Counter(tokens).items()}


def compute_idf(corpus: Sequence[Sequence[str]]) -> Vector:
    n = len(corpus)
    df: Counter[str] = Counter()
    for tokens in corpus:
        df.update(set(tokens))
    return {term: math.log(n / (1 + freq)) for term, freq in df.items()}


def compute_tfidf(tf: Vector, idf: Vector) -> Vector:
    return {term: weight * idf.get(term, 0.0) for term, weight in tf.items()}


def cosine_similarity(a: Vector, b: Vector) -> float:
    """Cosine similarity of two sparse vectors; 0 for a zero-norm vector."""
    dot = sum(weight * b[term] for term, weight in a.items() if term in b)
    norm_a = math.sqrt(sum(w * w for w in a.values()))
    norm_b = math.sqrt(sum(w * w for w in b.values()))
    denominator = norm_a * norm_b
    if denominator == 0:
        return 0.0
    # Float error can push an identical-vector result just past 1.
    return max(0.0, min(1.0, dot / denominator))


def text_similarity(a: str, b: str) -> float:
    """Similarity of two strings treated as a two-document corpus."""
    tokens_a = tokenize(a)
    tokens_b = tokenize(b)
    if not tokens_a or not tokens_b:
        return 0.0

    idf = compute_idf([tokens_a, tokens_b])
    return cosine_similarity(
        compute_tfidf(compute_tf(tokens_a), idf),
        compute_tfidf(compute_tf(tokens_b), idf),
    )


def rank_traces(query: str, pool: Sequence[ReasoningTrace]) -> list[SimilarityResult]:
    """Score every trace in the pool against the query, best first.

    Ties keep pool order. If the query has no usable terms the pool is
    returned in its original order with score 0.
    """
    query_tokens = tokenize(query)
    if not query_tokens or not pool:
        return [SimilarityResult(trace=t, score=0.0, rank=i) for i, t in enumerate(pool)]

    trace_tokens = [tokenize(trace.to_document()) for trace in pool]
    idf = compute_idf([query_tokens, *trace_tokens])
    query_vector = compute_tfidf(compute_tf(query_tokens), idf)

    scored = [
        (trace, cosine_similarity(query_vector, compute_tfidf(compute_tf(tokens), idf)))
        for trace, tokens in zip(pool, trace_tokens)
    ]
    scored.sort(key=lambda pair: pair[1], reverse=True)

    return [
        SimilarityResult(trace=trace, score=score, rank=rank)
        for rank, (trace, score) in enumerate(scored)
    ]


def find_similar(
    query: str,
    pool: Sequence[ReasoningTrace],
    top_k: int = 3,
) -> list[ReasoningTrace]:
    """The ``top_k`` traces most relevant to ``query``."""
    if top_k <= 0:
        return []
    return [result.trace for result in rank_traces(query, pool)[:top_k]]
