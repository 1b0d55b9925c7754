"""Confluence tools — search the wiki and read page content (Confluence Cloud REST API)."""
import html
import logging
import re

import httpx

from ...config import Settings
from ...errors import UpstreamHTTPError
from ..http import request_json
from ..registry import register_tool, ToolParam

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")
_BLOCK_END_RE = re.compile(r"</(p|h[1-6]|li|tr|div)>|<br\s*/?>", re.IGNORECASE)
_BLANKS_RE = re.compile(r"\n\s*\n+")


def storage_to_text(markup: str) -> str:
    """Flatten Confluence storage-format XHTML to plain text."""
    text = _BLOCK_END_RE.sub("\n", markup)
    text = _TAG_RE.sub("", text)
    text = html.unescape(text)
    return _BLANKS_RE.sub("\n\n", text).strip()


def _cql_quote(value: str) -> str:
    return '"' + value.replace('\\', '\\\\').replace('"', '\\"') + '"'


def _connection(settings: Settings):
    base_url = settings.require("confluence_base_url").rstrip("/")
    auth = httpx.BasicAuth(settings.require("confluence_email"), settings.require("confluence_api_token"))
    return base_url, auth


def _page_url(base_url: str, links: dict) -> str:
    webui = links.get("webui", "")
    if not webui:
        return ""
    return f"{base_url}/wiki{webui}" if not webui.startswith("http") else webui


@register_tool(
    "search_confluence",
    description="Search Confluence pages by text. Returns titles, IDs and links of matching pages.",
    params=[
        ToolParam("query", description="Text to search for"),
        ToolParam("space", description="Restrict the search to this space key (optional)", required=False),
        ToolParam("limit", type="integer", description="Maximum number of results (1-25)",
                  required=False, minimum=1, maximum=25),
    ],
    category="knowledge",
)
async def search_confluence(query: str, settings: Settings, space: str = "", limit: int = 10, **kwargs) -> str:
    base_url, auth = _connection(settings)
    cql = f"text ~ {_cql_quote(query)} AND type = page"
    if space:
        cql += f" AND space = {_cql_quote(space)}"

    try:
        data = await request_json("Confluence", "GET", f"{base_url}/wiki/rest/api/content/search", settings,
                                  headers={"Accept": "application/json"},
                                  params={"cql": cql, "limit": limit}, auth=auth)
    except UpstreamHTTPError as e:
        return f"Error searching Confluence: {e}"

    results = data.get("results", [])
    if not results:
        return f"No Confluence pages found for '{query}'."

    lines = [f"Found {len(results)} Confluence page(s) for '{query}':"]
    for r in results:
        lines.append(f"- {r.get('title', 'Untitled')} (ID: {r.get('id')}, type: {r.get('type', 'page')})")
        url = _page_url(base_url, r.get("_links") or {})
        if url:
            lines.append(f"  {url}")
    return "\n".join(lines)


@register_tool(
    "get_confluence_page",
    description="Get the content of a Confluence page by its ID.",
    params=[
        ToolParam("page_id", description="The ID of the Confluence page"),
    ],
    category="knowledge",
)
async def get_confluence_page(page_id: str, settings: Settings, **kwargs) -> str:
    base_url, auth = _connection(settings)

    try:
        data = await request_json("Confluence", "GET", f"{base_url}/wiki/rest/api/content/{page_id}", settings,
                                  headers={"Accept": "application/json"},
                                  params={"expand": "body.storage,version,space"}, auth=auth)
    except UpstreamHTTPError as e:
        return f"Error getting Confluence page {page_id}: {e}"

    body = ((data.get("body") or {}).get("storage") or {}).get("value", "")
    space = (data.get("space") or {}).get("name") or (data.get("space") or {}).get("key", "")
    version = (data.get("version") or {}).get("number", "?")
    logger.info(f"Confluence: fetched page {page_id} ({len(body)} chars of markup)")

    text = f"# {data.get('title', 'Untitled')}\n\nSpace: {space}\nVersion: {version}\n"
    url = _page_url(base_url, data.get("_links") or {})
    if url:
        text += f"URL: {url}\n"
    text += f"\n{storage_to_text(body) or 'This page has no content.'}"
    return text
