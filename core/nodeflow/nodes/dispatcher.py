"""
Node Operation Dispatcher - Routes a node to the operation for its kind.

The match is over the closed config union, so adding a kind without a
branch here fails type checking at ``assert_never``.
"""

from typing import Any, assert_never

from nodeflow.graph.node import (
    AggregatorConfig,
    CacheConfig,
    ConditionConfig,
    DocumentIngestConfig,
    EntryConfig,
    GenerateConfig,
    GuardrailConfig,
    HttpRequestConfig,
    LoopConfig,
    MergeConfig,
    RetrievalQAConfig,
    SplitterConfig,
    TemplateConfig,
    TerminalConfig,
    TransformConfig,
    WebScrapeConfig,
)
from nodeflow.nodes import basic, cache, generation, guardrail, logic, retrieval, text, web
from nodeflow.nodes.base import NodeOperationContext, NodeOutput


class NodeDispatcher:
    """Executes one node and normalises its outcome to a ``NodeOutput``."""

    async def execute(self, ctx: NodeOperationContext) -> NodeOutput:
        outcome = await self._dispatch(ctx)
        if isinstance(outcome, NodeOutput):
            return outcome
        return NodeOutput(value=outcome, fields={"result": outcome})

    async def _dispatch(self, ctx: NodeOperationContext) -> Any:
        config = ctx.node.config
        match config:
            case EntryConfig():
                return await basic.run_entry(ctx, config)
            case TerminalConfig():
                return await basic.run_terminal(ctx)
            case GenerateConfig():
                return await generation.run_generate(ctx, config)
            case TransformConfig():
                return await basic.run_transform(ctx, config)
            case ConditionConfig():
                return await logic.run_condition(ctx, config)
            case MergeConfig():
                return await basic.run_merge(ctx, config)
            case TemplateConfig():
                return await basic.run_template(ctx, config)
            case HttpRequestConfig():
                return await web.run_http_request(ctx, config)
            case WebScrapeConfig():
                return await web.run_web_scrape(ctx, config)
            case LoopConfig():
                return await logic.run_loop(ctx, config)
            case SplitterConfig():
                return await text.run_splitter(ctx, config)
            case AggregatorConfig():
                return await text.run_aggregator(ctx, config)
            case CacheConfig():
                return await cache.run_cache(ctx, config)
            case GuardrailConfig():
                return await guardrail.run_guardrail(ctx, config)
            case DocumentIngestConfig():
                return await retrieval.run_document_ingest(ctx, config)
            case RetrievalQAConfig():
                return await retrieval.run_retrieval_qa(ctx, config)
            case _:
                assert_never(config)
