#!/usr/bin/env python3
"""
MCP Server for the Personal CRM API.

Exposes the CRM operations as MCP tools over stdio and forwards each tool
call to the HTTP API. The privacy passphrase travels as the
X-CRM-Private-Key header.

Usage:
    python mcp_server.py

Register with an MCP client, e.g.:
    claude mcp add crm -s user -- python /path/to/mcp_server.py
"""
import json
import logging
import re
import sys
from typing import Any, Optional

import httpx

from config.settings import settings

# Configure logging to stderr (stdout is for MCP protocol)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    stream=sys.stderr
)
logger = logging.getLogger(__name__)

PRIVATE_KEY_HEADER = "X-CRM-Private-Key"

_PRIVATE_KEY_PROP = {
    "type": "string",
    "description": "Passphrase to unlock private contacts and interactions",
}

# Curated tools: name -> endpoint, method, query parameter mapping and input schema.
# For GET/DELETE, "query" maps tool argument names to query parameter names.
# POST/PATCH send the remaining arguments as the JSON body.
CURATED_TOOLS = {
    "search_contacts": {
        "path": "/api/crm/contacts",
        "method": "GET",
        "query": {"query": "q", "tag": "tag", "company": "company", "expertise": "expertise", "limit": "limit"},
        "description": "Search contacts by name, company, tag, expertise, or freeform text. Also searches notes. Private contacts are hidden unless privateKey is provided.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Freeform search across name, company, role, howWeMet, tags, expertise, notes"},
                "tag": {"type": "string", "description": "Filter by exact tag"},
                "company": {"type": "string", "description": "Filter by company (partial match)"},
                "expertise": {"type": "string", "description": "Filter by expertise area (partial match)"},
                "limit": {"type": "integer", "description": "Max results", "default": 20},
                "privateKey": _PRIVATE_KEY_PROP,
            },
        },
    },
    "get_contact": {
        "path": "/api/crm/contacts/lookup",
        "method": "GET",
        "query": {"contactId": "contact_id", "name": "name"},
        "description": "Get full contact details and all their interactions. Look up by name or ID. Private contacts require privateKey.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Contact name (partial match)"},
                "contactId": {"type": "string", "description": "Exact contact ID"},
                "privateKey": _PRIVATE_KEY_PROP,
            },
        },
    },
    "add_contact": {
        "path": "/api/crm/contacts",
        "method": "POST",
        "description": "Add a new contact. Requires first and last name. Returns a warning instead of creating when similar contacts exist, unless forceDuplicate is true.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Full name (first and last)"},
                "nickname": {"type": "string"},
                "company": {"type": "string"},
                "role": {"type": "string"},
                "howWeMet": {"type": "string"},
                "tags": {"type": "array", "items": {"type": "string"}},
                "email": {"type": "string"},
                "phone": {"type": "string"},
                "linkedin": {"type": "string"},
                "notes": {"type": "array", "items": {"type": "string"}, "description": "Persistent personal facts about this person"},
                "expertise": {"type": "array", "items": {"type": "string"}},
                "private": {"type": "boolean", "description": "Mark this contact as private (hidden without privateKey)"},
                "forceDuplicate": {"type": "boolean", "description": "Create even if similar contacts exist"},
                "privateKey": _PRIVATE_KEY_PROP,
            },
            "required": ["name"],
        },
    },
    "update_contact": {
        "path": "/api/crm/contacts",
        "method": "PATCH",
        "description": "Update an existing contact. Provide name or contactId and an updates object. Include \"private\" in updates to toggle privacy.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Contact name (partial match)"},
                "contactId": {"type": "string", "description": "Exact contact ID"},
                "updates": {
                    "type": "object",
                    "description": "Fields to update: name, nickname, company, role, howWeMet, tags, notes, expertise, email, phone, linkedin, private",
                },
                "privateKey": _PRIVATE_KEY_PROP,
            },
            "required": ["updates"],
        },
    },
    "log_interaction": {
        "path": "/api/crm/interactions",
        "method": "POST",
        "description": "Log an interaction with one or more contacts. Returns a warning instead of creating when a similar interaction exists within a few days, unless forceCreate is true.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "contactNames": {"type": "array", "items": {"type": "string"}, "description": "Participant names (for groups)"},
                "contactIds": {"type": "array", "items": {"type": "string"}, "description": "Participant IDs (for groups)"},
                "contactName": {"type": "string", "description": "Single participant name"},
                "contactId": {"type": "string", "description": "Single participant ID"},
                "summary": {"type": "string", "description": "What happened"},
                "date": {"type": "string", "description": "YYYY-MM-DD (defaults to today)"},
                "type": {"type": "string", "enum": ["catch-up", "meeting", "call", "message", "event", "other"]},
                "topics": {"type": "array", "items": {"type": "string"}},
                "mentionedNextSteps": {"type": "string"},
                "location": {"type": "string"},
                "private": {"type": "boolean", "description": "Mark this interaction as private (hidden without privateKey)"},
                "forceCreate": {"type": "boolean", "description": "Create even if a similar interaction exists"},
                "privateKey": _PRIVATE_KEY_PROP,
            },
            "required": ["summary"],
        },
    },
    "edit_interaction": {
        "path": "/api/crm/interactions/{interactionId}",
        "method": "PATCH",
        "description": "Edit an existing interaction. Include \"private\" in updates to toggle privacy.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "interactionId": {"type": "string", "description": "The interaction ID to edit"},
                "updates": {
                    "type": "object",
                    "description": "Fields to update: summary, date, type, topics, mentionedNextSteps, location, contactIds, private",
                },
                "privateKey": _PRIVATE_KEY_PROP,
            },
            "required": ["interactionId", "updates"],
        },
    },
    "delete_interaction": {
        "path": "/api/crm/interactions/{interactionId}",
        "method": "DELETE",
        "query": {},
        "description": "Delete an interaction by ID. Private interactions require privateKey.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "interactionId": {"type": "string", "description": "The interaction ID to delete"},
                "privateKey": _PRIVATE_KEY_PROP,
            },
            "required": ["interactionId"],
        },
    },
    "delete_contact": {
        "path": "/api/crm/contacts",
        "method": "DELETE",
        "query": {"contactId": "contact_id", "name": "name", "deleteInteractions": "cascade"},
        "description": "Delete a contact by name or ID. If the contact has interactions, deleteInteractions must be true: solo interactions are deleted, group interactions keep the other participants.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Contact name (partial match)"},
                "contactId": {"type": "string", "description": "Exact contact ID"},
                "deleteInteractions": {"type": "boolean", "description": "Also delete or update this contact's interactions"},
                "privateKey": _PRIVATE_KEY_PROP,
            },
        },
    },
    "get_recent_interactions": {
        "path": "/api/crm/interactions/recent",
        "method": "GET",
        "query": {
            "contactId": "contact_id",
            "contactName": "contact_name",
            "since": "since",
            "type": "type",
            "limit": "limit",
        },
        "description": "Get recent interactions, optionally filtered by contact, date, or type. Private interactions are hidden unless privateKey is provided.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "contactName": {"type": "string"},
                "contactId": {"type": "string"},
                "since": {"type": "string", "description": "YYYY-MM-DD"},
                "type": {"type": "string"},
                "limit": {"type": "integer", "default": 20},
                "privateKey": _PRIVATE_KEY_PROP,
            },
        },
    },
    "get_mentioned_next_steps": {
        "path": "/api/crm/next-steps",
        "method": "GET",
        "query": {"limit": "limit"},
        "description": "Get next steps mentioned in past interactions. Private interactions are excluded unless privateKey is provided.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "limit": {"type": "integer", "default": 50},
                "privateKey": _PRIVATE_KEY_PROP,
            },
        },
    },
    "manage_privacy": {
        "path": "/api/crm/privacy",
        "method": "POST",
        "description": "Manage the privacy passphrase. \"set_key\" sets or changes it (requires currentKey if one exists). \"status\" reports whether a key is set and counts private records.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "operation": {"type": "string", "enum": ["set_key", "status"]},
                "currentKey": {"type": "string", "description": "Current passphrase (required when changing an existing key)"},
                "newKey": {"type": "string", "description": "New passphrase (required for set_key)"},
            },
            "required": ["operation"],
        },
    },
}


class CrmMCPServer:
    """MCP Server that forwards tool calls to the CRM API."""

    def __init__(self, client: Optional[httpx.Client] = None, api_base: Optional[str] = None):
        self.client = client or httpx.Client(base_url=api_base or settings.api_url, timeout=30.0)
        self.tools: list[dict] = [
            {
                "name": name,
                "description": config["description"],
                "inputSchema": config["inputSchema"],
            }
            for name, config in CURATED_TOOLS.items()
        ]

    def _call_api(self, tool_name: str, arguments: dict) -> dict:
        """Call the CRM API based on tool name and arguments."""
        config = CURATED_TOOLS.get(tool_name)
        if not config:
            return {"error": f"Unknown tool: {tool_name}"}

        arguments = dict(arguments)
        headers = {}
        private_key = arguments.pop("privateKey", None)
        if private_key:
            headers[PRIVATE_KEY_HEADER] = private_key

        # Handle path parameters
        path = config["path"]
        for param in re.findall(r"\{(\w+)\}", path):
            if param not in arguments:
                return {"error": f"Missing required argument: {param}"}
            path = path.replace(f"{{{param}}}", str(arguments.pop(param)))

        method = config["method"]
        try:
            if method in ("GET", "DELETE"):
                query_map = config.get("query", {})
                params = {
                    query_map[name]: value
                    for name, value in arguments.items()
                    if name in query_map and value is not None
                }
                resp = self.client.request(method, path, params=params, headers=headers)
            else:  # POST / PATCH
                resp = self.client.request(method, path, json=arguments, headers=headers)

            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as e:
            return {"error": f"API error {e.response.status_code}: {self._error_detail(e.response)}"}
        except httpx.RequestError as e:
            return {"error": f"Request failed: {e}"}

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200]
        detail = body.get("detail", body) if isinstance(body, dict) else body
        if isinstance(detail, dict) and "error" in detail:
            return detail["error"]
        return json.dumps(detail)[:200]

    def _format_response(self, tool_name: str, data: dict) -> str:
        """Format API response for human readability."""
        if "error" in data:
            return f"Error: {data['error']}"

        if "warning" in data:
            details = {k: v for k, v in data.items() if k != "warning"}
            return f"Warning: {data['warning']}\n\n{json.dumps(details, indent=2)}"

        if tool_name == "search_contacts":
            contacts = data.get("contacts", [])
            if not contacts:
                return "No contacts found."
            text = f"Found {len(contacts)} contacts:\n\n"
            for c in contacts:
                text += f"- **{c.get('name', 'Unknown')}** ({c.get('id', '')})"
                extras = [v for v in (c.get("role"), c.get("company")) if v]
                if extras:
                    text += f" - {', '.join(extras)}"
                text += "\n"
            return text

        elif tool_name in ("get_recent_interactions", "get_mentioned_next_steps"):
            items = data.get("interactions", data.get("mentionedNextSteps", []))
            if not items:
                return "No interactions found."
            text = f"Found {len(items)} interactions:\n\n"
            for i in items:
                names = ", ".join(i.get("participantNames", []))
                text += f"- **{i.get('date', '')}** [{i.get('type', '')}] with {names}: {i.get('summary', '')[:150]}\n"
                if tool_name == "get_mentioned_next_steps" and i.get("mentionedNextSteps"):
                    text += f"  Next steps: {i['mentionedNextSteps']}\n"
            return text

        # Default: return formatted JSON
        return json.dumps(data, indent=2)


def send_response(response: dict, request_id: str | int):
    """Send JSON-RPC response to stdout."""
    result = {"jsonrpc": "2.0", "id": request_id, "result": response}
    print(json.dumps(result), flush=True)


def send_error(message: str, request_id: str | int, code: int = -32000):
    """Send JSON-RPC error to stdout."""
    error = {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}
    print(json.dumps(error), flush=True)


def handle_request(server: CrmMCPServer, request: dict[str, Any]) -> None:
    """Dispatch one JSON-RPC request."""
    method = request.get("method")
    request_id = request.get("id")

    if method == "initialize":
        send_response({
            "protocolVersion": "2024-11-05",
            "capabilities": {"tools": {}},
            "serverInfo": {"name": "personal-crm", "version": "0.1.0"}
        }, request_id)

    elif method == "notifications/initialized":
        pass  # No response needed

    elif method == "tools/list":
        send_response({"tools": server.tools}, request_id)

    elif method == "tools/call":
        params = request.get("params", {})
        tool_name = params.get("name")
        arguments = params.get("arguments", {})

        result = server._call_api(tool_name, arguments)
        formatted = server._format_response(tool_name, result)

        send_response({
            "content": [{"type": "text", "text": formatted}],
            "isError": "error" in result,
        }, request_id)

    else:
        if request_id is not None:
            send_error(f"Unknown method: {method}", request_id, code=-32601)


def main():
    """Main MCP server loop."""
    server = CrmMCPServer()

    for line in sys.stdin:
        request_id = None
        try:
            request = json.loads(line.strip())
            request_id = request.get("id")
            handle_request(server, request)
        except json.JSONDecodeError as e:
            logger.error(f"JSON decode error: {e}")
        except Exception as e:
            logger.error(f"Error handling request: {e}")
            if request_id is not None:
                send_error(str(e), request_id)


if __name__ == "__main__":
    main()
