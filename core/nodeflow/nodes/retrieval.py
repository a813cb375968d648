"""Document ingest and retrieval QA kinds."""

import json
import logging
import math
import re
from collections.abc import Mapping, Sequence
from typing import Any

from nodeflow.graph.errors import NodeOperationError
from nodeflow.graph.node import DocumentIngestConfig, RetrievalQAConfig
from nodeflow.nodes.base import NodeOperationContext, NodeOutput
from nodeflow.nodes.generation import GENERATION_CANCELLED
from nodeflow.nodes.text import chunk_by_length
from nodeflow.nodes.web import extract_text, fetch_page, normalize_url

logger = logging.getLogger(__name__)

CITATION_SNIPPET_LENGTH = 160

EMBEDDING_CANCELLED = "Embedding cancelled"

_QUERY_TOKEN = re.compile(r"\W+")

QA_PROMPT = (
    "You are a helpful assistant. Use the context to answer the question with citations.\n\n"
    "Context:\n{context}\n\n"
    "Question: {query}\n\n"
    "Answer with citations in the form [n]."
)


async def run_document_ingest(
    ctx: NodeOperationContext, config: DocumentIngestConfig
) -> dict[str, Any]:
    documents: list[str] = []

    if config.source_type == "url":
        url = normalize_url(ctx.resolve(config.url))
        if not url:
            raise NodeOperationError("URL is required")
        response = await fetch_page(ctx, url)
        if config.extract_text:
            _, text = extract_text(response.text)
        else:
            text = response.text
        if text.strip():
            documents = [text.strip()]
    else:
        text = ctx.resolve(config.text_template or "{{input}}")
        if text.strip():
            documents = [text]

    chunks: list[str] | None = None
    if config.split and documents:
        chunks = []
        for document in documents:
            chunks.extend(chunk_by_length(document, config.chunk_size, config.overlap))

    embeddings: list[list[float]] | None = None
    if config.embed:
        texts = chunks or documents
        if texts:
            service = ctx.services.require_operations()
            embeddings = await ctx.cancellable(
                service.embed(texts, model=config.embedding_model), EMBEDDING_CANCELLED
            )

    return {"documents": documents, "chunks": chunks, "embeddings": embeddings}


def _as_passage(item: Any) -> str:
    if isinstance(item, str):
        return item
    if isinstance(item, Mapping) and "text" in item:
        return str(item["text"])
    return json.dumps(item, default=str)


def parse_corpus(source: Any) -> list[str]:
    """Turn an upstream value into a list of passages."""
    if isinstance(source, Sequence) and not isinstance(source, str):
        return [_as_passage(item) for item in source]
    if isinstance(source, str):
        try:
            parsed = json.loads(source)
        except json.JSONDecodeError:
            return [source]
        if isinstance(parsed, list):
            return [_as_passage(item) for item in parsed]
        return [source]
    if source is None:
        return [""]
    return [_as_passage(source)]


def lexical_score(query: str, text: str) -> int:
    """Number of query words that appear in the text."""
    lowered = text.lower()
    return sum(1 for token in _QUERY_TOKEN.split(query.lower()) if token and token in lowered)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    length = min(len(a), len(b))
    dot = sum(a[i] * b[i] for i in range(length))
    norm_a = math.sqrt(sum(a[i] * a[i] for i in range(length)))
    norm_b = math.sqrt(sum(b[i] * b[i] for i in range(length)))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def _corpus_source(ctx: NodeOperationContext) -> tuple[Any, list[list[float]] | None]:
    """Passages and their embeddings from the first upstream node with a result."""
    inputs = ctx.inputs()
    if not inputs:
        return None, None
    first = inputs[0]
    if isinstance(first, Mapping):
        embeddings = first.get("embeddings")
        for key in ("chunks", "documents"):
            if first.get(key):
                return first[key], embeddings
    return first, None


async def run_retrieval_qa(ctx: NodeOperationContext, config: RetrievalQAConfig) -> NodeOutput:
    query = ctx.resolve(config.query_template or "{{input}}")
    source, embeddings = _corpus_source(ctx)
    corpus = parse_corpus(source)
    top_k = max(1, config.top_k)
    service = ctx.services.require_operations()

    scored: list[tuple[float, str]] = []
    if embeddings and len(embeddings) == len(corpus):
        vectors = await ctx.cancellable(
            service.embed([query], model=config.embedding_model), EMBEDDING_CANCELLED
        )
        if vectors:
            scored = [(cosine_similarity(vectors[0], vec), text) for vec, text in zip(embeddings, corpus)]
    if not scored:
        scored = [(float(lexical_score(query, text)), text) for text in corpus]

    # Stable sort keeps corpus order among equal scores
    ranked = sorted(scored, key=lambda pair: pair[0], reverse=True)[:top_k]
    context = "\n\n".join(f"[{i}] {text}" for i, (_, text) in enumerate(ranked, start=1))

    response = await ctx.cancellable(
        service.generate_text(
            QA_PROMPT.format(context=context, query=query),
            model=config.model,
            temperature=config.temperature,
        ),
        GENERATION_CANCELLED,
    )
    citations = [
        {"index": i, "snippet": text[:CITATION_SNIPPET_LENGTH]}
        for i, (_, text) in enumerate(ranked, start=1)
    ]
    contexts = [{"index": i, "text": text, "score": score} for i, (score, text) in enumerate(ranked, start=1)]
    result = {"answer": response.content, "citations": citations, "contexts": contexts}
    return NodeOutput(
        value=result,
        fields={
            "result": result,
            "answer": response.content,
            "citations": citations,
            "usage": response.usage,
        },
    )
