"""Postman API Platform tools — collections, workspaces, API networks and Postbot tool generation."""
import json
import logging
from typing import Any, Dict, List, Optional

from ...config import Settings
from ...errors import UpstreamHTTPError
from ..http import request_json
from ..registry import register_tool, ToolParam

logger = logging.getLogger(__name__)


async def _postman_request(method: str, path: str, settings: Settings,
                           params: Optional[Dict[str, Any]] = None, json_body: dict = None) -> Any:
    """Make an authenticated Postman API request."""
    headers = {
        "X-API-Key": settings.require("postman_api_key"),
        "Accept": "application/json",
    }
    if json_body is not None:
        headers["Content-Type"] = "application/json"
    return await request_json("Postman API", method, f"{settings.postman_base_url.rstrip('/')}{path}",
                              settings, headers=headers, params=params, json_body=json_body)


def view_url(settings: Settings, kind: str, element_id: Any) -> str:
    return f"https://{settings.postman_team_domain}/{kind}/{element_id}"


# ── Collections ───────────────────────────────────────────────

def _format_items(items: List[dict]) -> str:
    """Recursively list folders and requests with their URLs."""
    parts = []
    for item in items:
        text = f"\n {item.get('name', '')}"
        if item.get("description"):
            text += f"\nDescription: {item['description']}"
        request = item.get("request")
        if request:
            text += "\nRequest:"
            url = request.get("url") if isinstance(request, dict) else None
            raw = url.get("raw") if isinstance(url, dict) else url
            if raw:
                method = request.get("method", "")
                text += f"\n  - URL: {method + ' ' if method else ''}{raw}"
        if item.get("item"):
            text += _format_items(item["item"])
        parts.append(text)
    return "\n---".join(parts)


def _format_root_folders(items: List[dict]) -> str:
    folders = [i for i in items if i.get("item") is not None]
    if not folders:
        return "No top-level folders"
    lines = []
    for folder in folders:
        line = f"- {folder.get('name', '')}"
        if folder.get("description"):
            line += f"\n  Description: {folder['description']}"
        lines.append(line)
    return "\n".join(lines)


def format_collection(data: dict, settings: Settings) -> str:
    collection = data.get("collection", {})
    info = collection.get("info", {})
    items = collection.get("item") or []
    return f"""# Collection: {info.get('name', '')}

## Collection Information
Created: {info.get('createdAt', 'unknown')}
Updated: {info.get('updatedAt', 'unknown')}
Last Updated By: {info.get('lastUpdatedBy', 'unknown')}
ID: {info.get('uid', info.get('_postman_id', ''))}
Postman View URL: {view_url(settings, 'collection', info.get('_postman_id', ''))}

## Description
{info.get('description') or 'No description provided'}

## Top-Level Folders
{_format_root_folders(items) if items else 'No folders in collection'}

## Folders and Requests
{_format_items(items) if items else 'No items in collection'}"""


@register_tool(
    "get_collection",
    description="Get information about a Postman collection.",
    params=[
        ToolParam("collectionId", description="The ID of the collection to retrieve."),
        ToolParam("access_key", description="A collection's read-only access key (optional).", required=False),
        ToolParam("model", description="Return a minimal representation of the collection (optional).",
                  required=False, enum=["minimal"]),
    ],
    category="postman",
)
async def get_collection(collectionId: str, settings: Settings, access_key: str = None,
                         model: str = None, **kwargs) -> str:
    try:
        data = await _postman_request("GET", f"/collections/{collectionId}", settings,
                                      params={"access_key": access_key, "model": model})
    except UpstreamHTTPError as e:
        return f"Error getting collection: {e}"
    return format_collection(data, settings)


@register_tool(
    "get_workspace_collections",
    description="Get all collections that exist inside a given postman workspace.",
    params=[
        ToolParam("workspaceId", description="The mandatory ID / UID of the workspace to retrieve collections from."),
        ToolParam("name", description="Return only collections whose name includes the given value.",
                  required=False),
    ],
    category="postman",
)
async def get_workspace_collections(workspaceId: str, settings: Settings, name: str = None, **kwargs) -> str:
    try:
        data = await _postman_request("GET", "/collections", settings,
                                      params={"workspace": workspaceId, "name": name})
    except UpstreamHTTPError as e:
        return f"Error getting workspace collections: {e}"

    collections = data.get("collections", [])
    if not collections:
        return f"No collections found in workspace {workspaceId}."

    sections = []
    for c in collections:
        sections.append(f"""# Collection: {c.get('name', '')}

## Collection Information
Created: {c.get('createdAt', 'unknown')}
Updated: {c.get('updatedAt', 'unknown')}
ID: {c.get('uid', c.get('id', ''))}""")
    full_spec = json.dumps(data, indent=2)
    return "\n\n".join(sections) + f"\n\nFull List of Workspace Collections Spec:\n{full_spec}"


# ── Private API Network ───────────────────────────────────────

def _format_element(element: dict, settings: Settings) -> str:
    lines = [
        f"## {element.get('name', '')}",
        f"**Type**: {element.get('type', '')}",
        f"**ID**: {element.get('id', '')}",
        f"**Parent Folder**: {element.get('parentFolderId', '')}",
    ]
    if element.get("description"):
        lines.append(f"**Description**: {element['description']}")
    if element.get("summary"):
        lines.append(f"**Summary**: {element['summary']}")
    lines.append(f"[View in Postman]({view_url(settings, element.get('type', ''), element.get('id', ''))})")
    return "\n".join(lines)


def _format_folder(folder: dict) -> str:
    lines = [
        f"## Folder: {folder.get('name', '')}",
        f"**Type**: {folder.get('type', 'folder')}",
        f"**ID**: {folder.get('id', '')}",
        f"**Parent Folder**: {folder.get('parentFolderId', '')}",
    ]
    if folder.get("description"):
        lines.append(f"**Description**: {folder['description']}")
    return "\n".join(lines)


def format_private_network(data: dict, settings: Settings) -> str:
    elements = "\n---\n".join(_format_element(e, settings) for e in data.get("elements", []))
    folders = "\n---\n".join(_format_folder(f) for f in data.get("folders", []))
    total = (data.get("meta") or {}).get("totalCount", len(data.get("elements", [])))
    return f"""# Summary
Total Elements: {total}

# Folders
{folders or 'No folders'}

# Elements
{elements or 'No elements'}"""


@register_tool(
    "get_all_elements_and_folders",
    description="Fetch all elements and folders from the Private API Network.",
    params=[
        ToolParam("since", description="Return only results created since the given time, in ISO 8601 format.",
                  required=False),
        ToolParam("until", description="Return only results created until this given time, in ISO 8601 format.",
                  required=False),
        ToolParam("addedBy", type="integer", description="Return only elements published by the given user ID.",
                  required=False),
        ToolParam("name", description="Return only elements whose name includes the given value.", required=False),
        ToolParam("summary", description="Return only elements whose summary includes the given value.",
                  required=False),
        ToolParam("description", description="Return only elements whose description includes the given value.",
                  required=False),
        ToolParam("sort", description="Sort the results by the given value.", required=False,
                  enum=["createdAt", "updatedAt"]),
        ToolParam("direction", description="Sort in ascending or descending order.", required=False,
                  enum=["asc", "desc"]),
        ToolParam("createdBy", type="integer", description="Return only the elements created by the given user ID.",
                  required=False),
        ToolParam("offset", type="integer", description="The zero-based offset of the first item to return.",
                  required=False, minimum=0),
        ToolParam("limit", type="integer", description="The maximum number of elements to return.",
                  required=False, minimum=1),
        ToolParam("parentFolderId", type="integer", description="Return the folders and elements in a specific folder.",
                  required=False),
        ToolParam("type", description="Filter by the element type.", required=False,
                  enum=["folder", "workspace", "collection", "api"]),
    ],
    category="postman",
)
async def get_all_elements_and_folders(settings: Settings, **filters) -> str:
    try:
        data = await _postman_request("GET", "/network/private", settings, params=filters)
    except UpstreamHTTPError as e:
        return f"Error getting elements and folders: {e}"
    return format_private_network(data, settings)


# ── Public API Network search ─────────────────────────────────

def format_search_results(data: dict) -> str:
    hits = data.get("data", [])
    meta = data.get("meta") or {}
    if not hits:
        return f"No requests found on the Postman API Network for '{meta.get('q', '')}'."

    lines = [f"Found {meta.get('total', len(hits))} request(s) for '{meta.get('q', '')}':"]
    for i, hit in enumerate(hits, 1):
        publisher = hit.get("publisher") or {}
        verified = " (verified)" if publisher.get("isVerified") else ""
        lines.append(f"{i}. {hit.get('name', '')}: {hit.get('method', '')} {hit.get('url', '')}")
        lines.append(f"   Request ID: {hit.get('id', '')}, Collection ID: {(hit.get('collection') or {}).get('id', '')}")
        lines.append(f"   Publisher: {publisher.get('name', 'unknown')}{verified}")
        web = ((hit.get("links") or {}).get("web") or {}).get("href")
        if web:
            lines.append(f"   {web}")
    if meta.get("nextCursor"):
        lines.append(f"Next cursor: {meta['nextCursor']}")
    return "\n".join(lines)


@register_tool(
    "search_postman_network",
    description="Search the Postman API Network for requests based on a query.",
    params=[
        ToolParam("elementType", enum=["requests"],
                  description='The type of Postman element to search for. At this time, this only accepts the "requests" value.'),
        ToolParam("query", description="The search query to find relevant requests."),
        ToolParam("publisherIsVerified", type="boolean", required=False,
                  description="Filter the search results to only return entities from publishers verified by Postman."),
        ToolParam("limit", type="integer", required=False, minimum=1, maximum=10,
                  description="The max number of search results returned in the response. The maximum allowed value is 10."),
        ToolParam("nextCursor", required=False,
                  description="The pagination cursor that points to the next record in the results set."),
    ],
    category="postman",
)
async def search_postman_network(elementType: str, query: str, settings: Settings,
                                 publisherIsVerified: bool = None, limit: int = None,
                                 nextCursor: str = None, **kwargs) -> str:
    params = {"q": query, "limit": limit, "nextCursor": nextCursor}
    if publisherIsVerified is not None:
        params["publisherIsVerified"] = str(publisherIsVerified).lower()
    try:
        data = await _postman_request("GET", f"/search/{elementType}", settings, params=params)
    except UpstreamHTTPError as e:
        return f"Error searching the Postman API Network: {e}"
    return format_search_results(data)


# ── Postbot tool generation ───────────────────────────────────

@register_tool(
    "generate_tool",
    description="Generates code for an AI agent tool using a collection and request from the Public API Network.",
    params=[
        ToolParam("collectionId",
                  description="The Public API Network collection's UID., example format: "
                              "24483689-91984890-1198-4573-8c9f-a66db81927de"),
        ToolParam("requestId",
                  description="The public request UID., example format: "
                              "41094746-ab513ced-796f-4b08-946e-bef868534d10"),
        ToolParam("config", type="object", description="Code generation options.", properties=[
            ToolParam("language", enum=["javascript", "typescript"],
                      description="The programming language to use for the generated request."),
            ToolParam("agentFramework", enum=["openai", "mistral", "gemini", "anthropic", "langchain", "autogen"],
                      description="The AI agent framework to use."),
        ]),
    ],
    category="postman",
)
async def generate_tool(collectionId: str, requestId: str, config: dict, settings: Settings, **kwargs) -> str:
    try:
        data = await _postman_request("POST", "/postbot/generations/tool", settings, json_body={
            "collectionId": collectionId,
            "requestId": requestId,
            "config": config,
        })
    except UpstreamHTTPError as e:
        return f"Error generating tool: {e}"

    text = (data.get("data") or {}).get("text")
    if not text:
        return f"Error generating tool: {data.get('detail', 'empty response from Postbot')}"
    return f"Generated tool code:\n\n{text}"
