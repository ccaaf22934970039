"""
Clio MCP Server - Session memory for collaborative fiction.

Turns a chat stream into long-term story memory:
- Messages buffer per session until a natural break or a message threshold
- Each break is condensed into an embedded synopsis (a memory chunk)
- Retrieval combines the newest chunks with the most similar ones

MCP Tools:
- create_session: Start a story session, optionally seeded with its setting
- add_message: Ingest one chat message
- retrieve_memory: Assemble memory context for a query
- get_session: Session metadata and counters
- delete_session: Delete a session and all of its chunks
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from loguru import logger
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from clio.core.engine import SessionMemoryEngine, build_engine
from clio.core.models import CreateSessionRequest, PendingMessage

if TYPE_CHECKING:
    from clio.config.settings import Settings


# Global state
engine: Optional[SessionMemoryEngine] = None
_settings: Optional[Settings] = None
server = Server("clio")


def _ensure_initialized() -> None:
    """Ensure server components are initialized."""
    if engine is None:
        raise RuntimeError("Server not initialized")


@server.list_tools()
async def list_tools() -> List[Tool]:
    """List available MCP tools."""
    return [
        Tool(
            name="create_session",
            description="Create a story session. An optional system message seeds the first memory chunk.",
            inputSchema={
                "type": "object",
                "properties": {
                    "title": {"type": "string", "description": "Session title"},
                    "description": {"type": "string", "description": "Story background"},
                    "genre": {"type": "string", "description": "Story genre"},
                    "tags": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Free-form tags",
                    },
                    "system_message": {
                        "type": "string",
                        "description": "Initial story setting, stored as chunk 0",
                    },
                },
                "required": ["title"],
            },
        ),
        Tool(
            name="add_message",
            description="Add a chat message to a session; returns the analysis of the pending buffer",
            inputSchema={
                "type": "object",
                "properties": {
                    "session_id": {"type": "string"},
                    "role": {
                        "type": "string",
                        "enum": ["user", "assistant", "system"],
                        "default": "user",
                    },
                    "content": {"type": "string", "description": "Message text"},
                    "chunk_threshold": {
                        "type": "integer",
                        "description": "Override the pending message count that forces a chunk",
                        "minimum": 1,
                    },
                },
                "required": ["session_id", "content"],
            },
        ),
        Tool(
            name="retrieve_memory",
            description="Retrieve recent and relevant story memory for a query",
            inputSchema={
                "type": "object",
                "properties": {
                    "session_id": {"type": "string"},
                    "query": {"type": "string", "description": "Text to match against memories"},
                    "top_k": {
                        "type": "integer",
                        "description": "Total number of chunks to return",
                        "minimum": 1,
                    },
                    "include_context": {
                        "type": "boolean",
                        "description": "Also return a prompt-ready rendering of the memory",
                        "default": False,
                    },
                },
                "required": ["session_id", "query"],
            },
        ),
        Tool(
            name="get_session",
            description="Get session metadata and counters",
            inputSchema={
                "type": "object",
                "properties": {"session_id": {"type": "string"}},
                "required": ["session_id"],
            },
        ),
        Tool(
            name="delete_session",
            description="Delete a session and all of its memory chunks",
            inputSchema={
                "type": "object",
                "properties": {"session_id": {"type": "string"}},
                "required": ["session_id"],
            },
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
    """Handle tool calls."""
    _ensure_initialized()

    try:
        if name == "create_session":
            result = await _handle_create_session(arguments)
        elif name == "add_message":
            result = await _handle_add_message(arguments)
        elif name == "retrieve_memory":
            result = await _handle_retrieve_memory(arguments)
        elif name == "get_session":
            result = await _handle_get_session(arguments)
        elif name == "delete_session":
            result = await _handle_delete_session(arguments)
        else:
            result = {"error": f"Unknown tool: {name}"}

        return [TextContent(type="text", text=json.dumps(result, indent=2))]

    except Exception as e:
        logger.exception(f"Tool call failed: {name}")
        return [TextContent(type="text", text=json.dumps({"error": str(e)}))]


async def _handle_create_session(args: Dict[str, Any]) -> Dict[str, Any]:
    """Handle create_session tool call."""
    request = CreateSessionRequest(
        title=args["title"],
        description=args.get("description"),
        genre=args.get("genre"),
        tags=args.get("tags", []),
        system_message=args.get("system_message"),
    )
    session = await engine.create_session(request)
    return {"session": session.to_dict()}


async def _handle_add_message(args: Dict[str, Any]) -> Dict[str, Any]:
    """Handle add_message tool call."""
    session_id = args["session_id"]
    message = PendingMessage(role=args.get("role", "user"), content=args["content"])

    analysis = await engine.add_message(
        session_id, message, chunk_threshold=args.get("chunk_threshold")
    )
    session = await engine.get_session(session_id)

    return {
        "analysis": analysis.to_dict(),
        "pending_messages": engine.pending_count(session_id),
        "total_chunks": session.total_chunks if session else 0,
    }


async def _handle_retrieve_memory(args: Dict[str, Any]) -> Dict[str, Any]:
    """Handle retrieve_memory tool call."""
    session_id = args["session_id"]
    context = await engine.retrieve(session_id, args["query"], top_k=args.get("top_k"))
    if context is None:
        return {"error": f"Session not found: {session_id}"}

    result = context.to_dict()
    if args.get("include_context", False):
        result["formatted_context"] = engine.format_context(context)
    return result


async def _handle_get_session(args: Dict[str, Any]) -> Dict[str, Any]:
    """Handle get_session tool call."""
    session_id = args["session_id"]
    session = await engine.get_session(session_id)
    if session is None:
        return {"error": f"Session not found: {session_id}"}

    return {
        "session": session.to_dict(),
        "pending_messages": engine.pending_count(session_id),
        "stored_chunks": await engine.vector_store.count(session_id),
    }


async def _handle_delete_session(args: Dict[str, Any]) -> Dict[str, Any]:
    """Handle delete_session tool call."""
    session_id = args["session_id"]
    deleted = await engine.delete_session(session_id)
    return {"deleted": deleted, "session_id": session_id}


def initialize(
    settings: Optional[Settings] = None,
    memory_engine: Optional[SessionMemoryEngine] = None,
) -> None:
    """Initialize server components.

    Args:
        settings: Clio settings instance (loaded from env if not provided)
        memory_engine: Prebuilt engine (takes precedence over settings)
    """
    global engine, _settings

    # Load settings if not provided
    if settings is None:
        from clio.config.settings import Settings
        settings = Settings()
    _settings = settings

    logger.info("Initializing Clio memory server...")
    engine = memory_engine or build_engine(settings)
    logger.info("Memory engine initialized")


async def run_server() -> None:
    """Run the MCP server."""
    logger.info("Starting Clio MCP server...")

    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )
