"""HTTP request and web scrape kinds."""

import json
import logging
from typing import Any

import httpx
from bs4 import BeautifulSoup

from nodeflow.graph.errors import NodeOperationError
from nodeflow.graph.node import HttpRequestConfig, WebScrapeConfig
from nodeflow.nodes.base import NodeOperationContext

logger = logging.getLogger(__name__)

_SCRAPE_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/131.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml",
}

_NOISE_TAGS = ["script", "style", "nav", "footer", "header", "aside", "noscript"]

BODY_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


async def send_request(
    ctx: NodeOperationContext,
    method: str,
    url: str,
    timeout: float | None = None,
    **kwargs: Any,
) -> httpx.Response:
    """Send a request through the injected client, or a short-lived one."""
    timeout = timeout or ctx.config.http_timeout
    try:
        if ctx.services.http_client is not None:
            return await ctx.cancellable(
                ctx.services.http_client.request(method, url, timeout=timeout, **kwargs)
            )
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            return await ctx.cancellable(client.request(method, url, **kwargs))
    except httpx.TimeoutException as e:
        raise NodeOperationError("Request timed out") from e
    except httpx.HTTPError as e:
        raise NodeOperationError(f"Request failed: {e}") from e


def _response_data(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


async def run_http_request(ctx: NodeOperationContext, config: HttpRequestConfig) -> dict[str, Any]:
    url = ctx.resolve(config.url).strip()
    if not url:
        raise NodeOperationError("URL is required")

    headers = {key: ctx.resolve(value) for key, value in config.headers.items()}
    kwargs: dict[str, Any] = {"headers": headers}
    if config.body and config.method in BODY_METHODS:
        body = ctx.resolve(config.body)
        try:
            kwargs["json"] = json.loads(body)
        except json.JSONDecodeError:
            kwargs["content"] = body

    logger.info(f"🌐 {config.method} {url}")
    response = await send_request(ctx, config.method, url, timeout=config.timeout, **kwargs)
    # Non-2xx responses are data for downstream nodes, not failures
    return {
        "status": response.status_code,
        "data": _response_data(response),
        "headers": dict(response.headers),
    }


def extract_text(html: str) -> tuple[str, str]:
    """Return (title, readable text) for an HTML page."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(_NOISE_TAGS):
        tag.decompose()
    title = soup.title.get_text(strip=True) if soup.title else ""
    main = (
        soup.find("article")
        or soup.find("main")
        or soup.find(attrs={"role": "main"})
        or soup.find("body")
        or soup
    )
    text = main.get_text(separator=" ", strip=True)
    return title, " ".join(text.split())


def normalize_url(url: str) -> str:
    url = url.strip()
    if url and not url.startswith(("http://", "https://")):
        url = "https://" + url
    return url


async def fetch_page(ctx: NodeOperationContext, url: str) -> httpx.Response:
    return await send_request(ctx, "GET", url, headers=_SCRAPE_HEADERS)


async def run_web_scrape(ctx: NodeOperationContext, config: WebScrapeConfig) -> dict[str, Any]:
    url = normalize_url(ctx.resolve(config.url))
    if not url:
        raise NodeOperationError("URL is required")

    response = await fetch_page(ctx, url)
    if not config.extract_text:
        return {"status": response.status_code, "html": response.text}

    title, text = extract_text(response.text)
    max_length = max(1, config.max_length)
    if len(text) > max_length:
        text = text[:max_length] + "..."
    return {"status": response.status_code, "title": title, "content": text}
