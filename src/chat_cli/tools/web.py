"""web_fetch: fetch URLs embedded in a prompt.

URLs are fetched concurrently with redirects followed. Local and private
network addresses are allowed. Each URL fails independently; the result is
an error only when every URL failed.
"""

import asyncio
import json
import re
from typing import Any

import httpx

from chat_cli.telemetry import get_logger
from chat_cli.tools.errors import ErrorKind, FetchError, InvalidArgumentError
from chat_cli.tools.schema import object_schema, string
from chat_cli.tools.types import RiskClass, ToolDefinition, ToolResult

log = get_logger(__name__)

MAX_URLS = 20
USER_AGENT = "Mozilla/5.0 (compatible; ChatCLI/1.0)"

_URL_RE = re.compile(r"https?://[^\s<>\"']+")
_TRAILING_PUNCTUATION = ".,;:!?)]}"


def extract_urls(prompt: str) -> list[str]:
    """http(s) URLs in ``prompt``, de-duplicated, in order of appearance."""
    urls: list[str] = []
    for match in _URL_RE.finditer(prompt):
        url = match.group(0).rstrip(_TRAILING_PUNCTUATION)
        if url not in urls:
            urls.append(url)
    return urls


async def _fetch_one(client: httpx.AsyncClient, url: str, max_chars: int) -> dict[str, Any]:
    try:
        response = await client.get(url)
        if response.status_code >= 400:
            raise FetchError(f"HTTP {response.status_code} {response.reason_phrase}")
        content = response.text
    except FetchError as e:
        return {"url": url, "status": "error", "error": e.message}
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        return {"url": url, "status": "error", "error": f"Failed to fetch URL: {e!r}"}

    original_length = len(content)
    if original_length > max_chars:
        content = (
            f"{content[:max_chars]}...\n"
            f"[Content truncated - original length: {original_length} characters]"
        )
    return {
        "url": url,
        "status": "success",
        "final_url": str(response.url),
        "http_status": response.status_code,
        "content_type": response.headers.get("content-type"),
        "content": content,
        "content_length": original_length,
    }


async def web_fetch_executor(
    prompt: str,
    *,
    timeout_seconds: float = 30,
    max_content_chars: int = 50000,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ToolResult:
    """Fetch every URL in ``prompt`` and return the bodies with the instruction.

    Args:
        prompt: Instruction text containing up to 20 URLs.
        timeout_seconds: Per-request timeout.
        max_content_chars: Characters kept per body.
        transport: Optional httpx transport (tests inject a MockTransport).
    """
    urls = extract_urls(prompt)
    if not urls:
        raise InvalidArgumentError(
            "Prompt must contain at least one URL starting with http:// or https://"
        )
    if len(urls) > MAX_URLS:
        raise InvalidArgumentError(f"Maximum {MAX_URLS} URLs allowed, found {len(urls)}")

    async with httpx.AsyncClient(
        timeout=timeout_seconds,
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
        transport=transport,
    ) as client:
        fetched = await asyncio.gather(
            *(_fetch_one(client, url, max_content_chars) for url in urls)
        )

    succeeded = sum(1 for item in fetched if item["status"] == "success")
    failed = len(fetched) - succeeded
    payload = {
        "prompt": prompt,
        "urls_found": urls,
        "successful_fetches": succeeded,
        "failed_fetches": failed,
        "fetched_content": list(fetched),
    }
    display = [f"URLs processed: {len(urls)}", f"Successful: {succeeded}, Failed: {failed}"]
    for item in fetched:
        if item["status"] == "success":
            display.append(f"  OK   {item['url']} ({item['content_length']} characters)")
        else:
            display.append(f"  FAIL {item['url']}: {item['error']}")

    if succeeded == 0:
        log.warning("web_fetch_all_failed", urls=urls)
        result = ToolResult.error(
            "web_fetch", f"All {failed} URL fetch(es) failed", ErrorKind.FETCH_ERROR
        )
        return result.model_copy(
            update={
                "llm_content": f"{result.llm_content}\n{json.dumps(payload, ensure_ascii=False)}",
                "display_content": "\n".join(display),
            }
        )
    return ToolResult.ok("web_fetch", payload, "\n".join(display))


def describe_web_fetch(arguments: dict[str, Any]) -> str:
    return f"Fetch and process {len(extract_urls(str(arguments.get('prompt', ''))))} URL(s)"


web_fetch_tool = ToolDefinition(
    name="web_fetch",
    description=(
        "Processes content from URL(s), including local and private network addresses (e.g., "
        "localhost), embedded in a prompt. Include up to 20 URLs and instructions (e.g., "
        "summarize, extract specific data) directly in the 'prompt' parameter."
    ),
    parameters=object_schema(
        {
            "prompt": string(
                "A comprehensive prompt that includes the URL(s) (up to 20) to fetch and "
                "specific instructions on how to process their content (e.g., \"Summarize "
                "https://example.com/article and extract key points from "
                "https://another.com/data\"). Must contain as least one URL starting with "
                "http:// or https://."
            ),
        },
        required=["prompt"],
    ),
    risk_class=RiskClass.NETWORK,
)
