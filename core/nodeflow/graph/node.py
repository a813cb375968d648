"""
Node Protocol - The typed units of work in a workflow graph.

A node is an id, a kind tag, two human-readable aliases (name and label) and
a kind-specific config. The config is a closed tagged union: each kind has
exactly one config model, and pydantic selects it from the ``kind`` field.

Kinds:
- start / input: Entry nodes, emit a literal value
- stop / output: Terminal nodes, collect their upstream input
- generate / text-generation / structured-data: Delegate to the operation service
- transform, condition, loop: Run user snippets through the code evaluator
- merge, template, splitter, aggregator: Deterministic data shaping
- http-request, web-scrape: Network calls
- cache, guardrail: Run-scoped storage and content checks
- document-ingest, retrieval-qa: Retrieval pipeline steps
"""

from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class NodeKind(StrEnum):
    """Kind tag selecting a node's config model and execution strategy."""

    START = "start"
    INPUT = "input"
    STOP = "stop"
    OUTPUT = "output"
    GENERATE = "generate"
    TEXT_GENERATION = "text-generation"
    STRUCTURED_DATA = "structured-data"
    TRANSFORM = "transform"
    CONDITION = "condition"
    MERGE = "merge"
    TEMPLATE = "template"
    HTTP_REQUEST = "http-request"
    WEB_SCRAPE = "web-scrape"
    LOOP = "loop"
    SPLITTER = "splitter"
    AGGREGATOR = "aggregator"
    CACHE = "cache"
    GUARDRAIL = "guardrail"
    DOCUMENT_INGEST = "document-ingest"
    RETRIEVAL_QA = "retrieval-qa"


ENTRY_KINDS = frozenset({NodeKind.START, NodeKind.INPUT})
TERMINAL_KINDS = frozenset({NodeKind.STOP, NodeKind.OUTPUT})


class NodeStatus(StrEnum):
    """Observable lifecycle state of a node within a run."""

    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"  # Set post-success by kinds that report soft failures

    @property
    def is_terminal(self) -> bool:
        return self in (NodeStatus.SUCCESS, NodeStatus.ERROR, NodeStatus.WARNING)


class NodeConfigBase(BaseModel):
    """Shared settings for every config model: camelCase aliases, extra keys kept."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


# ---------------------------------------------------------------------------
# Per-kind configs
# ---------------------------------------------------------------------------


class EntryConfig(NodeConfigBase):
    kind: Literal["start", "input"]
    value: Any = None
    value_type: Literal["string", "number", "object", "array"] = "string"


class TerminalConfig(NodeConfigBase):
    kind: Literal["stop", "output"]


class SchemaField(NodeConfigBase):
    name: str
    type: Literal["string", "number", "boolean", "object", "array"] = "string"
    description: str | None = None


class GenerateConfig(NodeConfigBase):
    """Text or structured generation through the node operation service."""

    kind: Literal["generate", "text-generation", "structured-data"]
    mode: Literal["text", "structured"] = "text"
    prompt: str = ""
    system_prompt: str | None = Field(
        default=None, validation_alias=AliasChoices("systemPrompt", "system_prompt", "instructions")
    )
    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    stream: bool = False
    schema_name: str | None = None
    schema_description: str | None = None
    schema_fields: list[SchemaField] = Field(default_factory=list)

    @model_validator(mode="after")
    def _structured_kind_implies_mode(self) -> "GenerateConfig":
        if self.kind == NodeKind.STRUCTURED_DATA:
            self.mode = "structured"
        return self


class TransformConfig(NodeConfigBase):
    kind: Literal["transform"]
    transform_code: str = Field(
        default="", validation_alias=AliasChoices("transformCode", "transform_code", "code")
    )


NumericOperator = Literal[">", ">=", "<", "<=", "==", "!="]


class ConditionConfig(NodeConfigBase):
    kind: Literal["condition"]
    condition_type: Literal["length", "contains", "regex", "numeric", "custom"] = "length"
    input: str = "{{input}}"
    min_length: int | None = None
    max_length: int | None = None
    contains_text: str | None = None
    case_sensitive: bool = False
    regex_pattern: str | None = None
    regex_flags: str | None = None
    numeric_operator: NumericOperator = ">"
    numeric_value: float = 0
    condition_code: str | None = None


class MergeConfig(NodeConfigBase):
    kind: Literal["merge"]
    merge_strategy: Literal["object", "array", "concat"] = "object"


class TemplateConfig(NodeConfigBase):
    kind: Literal["template"]
    template: str = ""


HttpMethod = Literal["GET", "POST", "PUT", "DELETE", "PATCH"]


class HttpRequestConfig(NodeConfigBase):
    kind: Literal["http-request"]
    url: str = ""
    method: HttpMethod = "GET"
    headers: dict[str, str] = Field(default_factory=dict)
    body: str | None = None
    timeout: float | None = None


class WebScrapeConfig(NodeConfigBase):
    kind: Literal["web-scrape"]
    url: str = ""
    extract_text: bool = True
    max_length: int = 50000


class LoopConfig(NodeConfigBase):
    kind: Literal["loop"]
    loop_type: Literal["count", "array", "condition"] = "count"
    count: int = 1
    array: list[Any] | None = None
    condition_code: str | None = None
    body_code: str | None = None


class SplitterConfig(NodeConfigBase):
    kind: Literal["splitter"]
    input: str = "{{input}}"
    strategy: Literal["length", "lines", "sentences", "regex"] = "length"
    chunk_size: int = 1000
    overlap: int = 0
    regex_pattern: str | None = None
    regex_flags: str | None = None


class AggregatorConfig(NodeConfigBase):
    kind: Literal["aggregator"]
    items: str = "{{input}}"
    mode: Literal["concat-text", "flatten-array", "merge-objects"] = "concat-text"
    delimiter: str = "\n"


class CacheConfig(NodeConfigBase):
    kind: Literal["cache"]
    operation: Literal["get", "set"] = "get"
    key_template: str = "{{input}}"
    value_template: str | None = None
    write_if_miss: bool = False


class GuardrailChecks(NodeConfigBase):
    blocklist: bool = False
    regex: bool = False
    pii: bool = False
    toxicity: bool = False


class GuardrailConfig(NodeConfigBase):
    kind: Literal["guardrail"]
    input: str = "{{input}}"
    checks: GuardrailChecks = Field(default_factory=GuardrailChecks)
    blocklist_words: str | list[str] = ""
    regex_patterns: str | list[str] = ""


class DocumentIngestConfig(NodeConfigBase):
    kind: Literal["document-ingest"]
    source_type: Literal["text", "url"] = "text"
    text_template: str = "{{input}}"
    url: str = ""
    extract_text: bool = True
    split: bool = False
    chunk_size: int = 1000
    overlap: int = 0
    embed: bool = False
    embedding_model: str | None = None


class RetrievalQAConfig(NodeConfigBase):
    kind: Literal["retrieval-qa"]
    query_template: str = "{{input}}"
    top_k: int = 3
    model: str | None = None
    temperature: float = 0.3
    embedding_model: str | None = None


NodeConfig = Annotated[
    EntryConfig
    | TerminalConfig
    | GenerateConfig
    | TransformConfig
    | ConditionConfig
    | MergeConfig
    | TemplateConfig
    | HttpRequestConfig
    | WebScrapeConfig
    | LoopConfig
    | SplitterConfig
    | AggregatorConfig
    | CacheConfig
    | GuardrailConfig
    | DocumentIngestConfig
    | RetrievalQAConfig,
    Field(discriminator="kind"),
]


class Node(BaseModel):
    """
    Specification of a single node in a workflow graph.

    Examples:
        Node(id="start-1", kind="start", label="Start", config={"value": "5"})

        Node(
            id="cond-1",
            kind="condition",
            label="Is big?",
            config={"conditionType": "numeric", "numericOperator": ">", "numericValue": 3},
        )
    """

    id: str
    kind: NodeKind = Field(validation_alias=AliasChoices("kind", "type"))
    name: str | None = Field(default=None, description="User alias for variable references")
    label: str = ""
    config: NodeConfig = Field(validation_alias=AliasChoices("config", "data"))

    # Observable state, written by the graph-editing layer from update events
    status: NodeStatus = NodeStatus.IDLE
    error: str | None = None
    execution_time_ms: int | None = None

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @model_validator(mode="before")
    @classmethod
    def _tag_config(cls, data: Any) -> Any:
        """Copy the node's kind into its config so the union can discriminate."""
        if not isinstance(data, dict):
            return data
        kind = data.get("kind", data.get("type"))
        if isinstance(kind, NodeKind):
            kind = kind.value
        config = data.get("config", data.get("data"))
        if config is None:
            config = {}
        if isinstance(config, dict) and kind is not None:
            config = {**config, "kind": kind}
            data = {k: v for k, v in data.items() if k not in ("config", "data")}
            data["config"] = config
        return data

    @model_validator(mode="after")
    def _kind_matches_config(self) -> "Node":
        if self.config.kind != self.kind:
            raise ValueError(
                f"Node '{self.id}' has kind '{self.kind}' but config for '{self.config.kind}'"
            )
        return self

    @property
    def alias(self) -> str:
        """Preferred display alias: name, then label, then id."""
        return self.name or self.label or self.id

    @property
    def is_entry(self) -> bool:
        return self.kind in ENTRY_KINDS

    @property
    def is_terminal(self) -> bool:
        return self.kind in TERMINAL_KINDS
