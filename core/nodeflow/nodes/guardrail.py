"""Guardrail kind: content checks that flag rather than fail."""

import logging
import re
from typing import Any

from nodeflow.graph.node import GuardrailConfig
from nodeflow.nodes.base import NodeOperationContext, NodeOutput

logger = logging.getLogger(__name__)

TOXIC_WORDS = ("hate", "kill", "violence")

EMAIL_PATTERN = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)
PHONE_PATTERN = re.compile(r"(\+?\d[\d\s\-()]{7,}\d)")


def _as_list(value: str | list[str], separator: str) -> list[str]:
    items = value if isinstance(value, list) else re.split(separator, value)
    return [item.strip() for item in items if item and item.strip()]


def check_text(text: str, config: GuardrailConfig) -> list[dict[str, str]]:
    """Run the enabled checks and return every violation found."""
    checks = config.checks
    violations: list[dict[str, str]] = []
    lowered = text.lower()

    if checks.blocklist:
        for word in _as_list(config.blocklist_words, r","):
            if word.lower() in lowered:
                violations.append({"type": "blocklist", "detail": word})

    if checks.regex:
        for pattern in _as_list(config.regex_patterns, r"\r?\n"):
            try:
                compiled = re.compile(pattern, re.IGNORECASE)
            except re.error as e:
                logger.warning("Skipping invalid guardrail pattern %r: %s", pattern, e)
                continue
            if compiled.search(text):
                violations.append({"type": "regex", "detail": pattern})

    if checks.pii:
        if EMAIL_PATTERN.search(text):
            violations.append({"type": "pii", "detail": "email"})
        if PHONE_PATTERN.search(text):
            violations.append({"type": "pii", "detail": "phone"})

    if checks.toxicity:
        for word in TOXIC_WORDS:
            if word in lowered:
                violations.append({"type": "toxicity", "detail": word})

    return violations


async def run_guardrail(ctx: NodeOperationContext, config: GuardrailConfig) -> NodeOutput:
    text = ctx.resolve(config.input)
    violations = check_text(text, config)
    result: dict[str, Any] = {"passed": not violations, "violations": violations}
    return NodeOutput(value=result, fields={"result": result}, warning=bool(violations))
