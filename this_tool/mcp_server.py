#!/usr/bin/env python3
"""this MCP Server - recent clipboard and file lookup over MCP stdio."""

import asyncio
import json
from typing import Any, Dict, List, Optional

from mcp.server import Server
from mcp.server.lowlevel import NotificationOptions
from mcp.server.models import InitializationOptions
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from this_tool.cli import __version__
from this_tool.core.config import default_config_path, default_data_dir, read_config
from this_tool.core.resolver import DEFAULT_LIST_SIZE, RecencyResolver, ResolutionError
from this_tool.core.scanner import DirectoryScanner
from this_tool.core.storage import HistoryStore
from this_tool.models.schemas import RecentItem

FILTER_PROPERTY = {
    "type": "string",
    "description": "Type keyword (image, text, file, png, jpg, pdf) or free text",
    "default": "",
}


class ThisMCPServer:
    """MCP server exposing the recency resolver as tools."""

    def __init__(self, resolver: Optional[RecencyResolver] = None):
        if resolver is None:
            config = read_config()[0]
            resolver = RecencyResolver(
                HistoryStore(default_data_dir()), DirectoryScanner(config)
            )
        self.resolver = resolver

        self.app = Server("this")
        self._register_handlers()

    def _register_handlers(self):
        """Register MCP protocol handlers."""

        @self.app.list_tools()
        async def list_tools() -> List[Tool]:
            return [
                Tool(
                    name="this_get",
                    description="Most recent clipboard entry or file, optionally filtered",
                    inputSchema={
                        "type": "object",
                        "properties": {"filter": FILTER_PROPERTY},
                    },
                ),
                Tool(
                    name="this_recent",
                    description="Most recently modified file in the watched directories",
                    inputSchema={
                        "type": "object",
                        "properties": {"filter": FILTER_PROPERTY},
                    },
                ),
                Tool(
                    name="this_list",
                    description="Ranked recent clipboard entries and files",
                    inputSchema={
                        "type": "object",
                        "properties": {
                            "filter": FILTER_PROPERTY,
                            "limit": {
                                "type": "integer",
                                "description": "Number of candidates to return",
                                "default": DEFAULT_LIST_SIZE,
                                "minimum": 1,
                                "maximum": 100,
                            },
                        },
                    },
                ),
                Tool(
                    name="this_status",
                    description="Clipboard history and configuration health",
                    inputSchema={"type": "object", "properties": {}},
                ),
            ]

        @self.app.call_tool()
        async def call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
            """Handle MCP tool calls with structured output."""
            try:
                result = await self._dispatch_tool_call(name, arguments or {})
            except Exception as e:
                result = {"error": str(e), "tool": name, "arguments": arguments}
            return [
                TextContent(
                    type="text",
                    text=json.dumps(result, indent=2, ensure_ascii=False),
                )
            ]

    async def _dispatch_tool_call(
        self, name: str, arguments: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Dispatch tool calls to appropriate handlers."""
        handlers = {
            "this_get": self._handle_get,
            "this_recent": self._handle_recent,
            "this_list": self._handle_list,
            "this_status": self._handle_status,
        }

        handler = handlers.get(name)
        if not handler:
            raise ValueError(f"Unknown tool: {name}")

        return await handler(arguments)

    async def _handle_get(self, args: Dict[str, Any]) -> Dict[str, Any]:
        filter_text = args.get("filter", "")
        try:
            item = await asyncio.to_thread(self.resolver.resolve_filtered, filter_text)
        except ResolutionError as e:
            return {"error": str(e), "status": "not_found"}
        return self._serialize(item)

    async def _handle_recent(self, args: Dict[str, Any]) -> Dict[str, Any]:
        filter_text = args.get("filter", "")
        try:
            item = await asyncio.to_thread(self.resolver.resolve_recent_only, filter_text)
        except ResolutionError as e:
            return {"error": str(e), "status": "not_found"}
        return self._serialize(item)

    async def _handle_list(self, args: Dict[str, Any]) -> Dict[str, Any]:
        filter_text = args.get("filter", "")
        limit = max(1, min(int(args.get("limit", DEFAULT_LIST_SIZE)), 100))
        items = await asyncio.to_thread(self.resolver.list_top_n, filter_text, limit)
        return {
            "filter": filter_text,
            "items": [self._serialize(item) for item in items],
            "count": len(items),
            "limit": limit,
        }

    async def _handle_status(self, args: Dict[str, Any]) -> Dict[str, Any]:
        stats = self.resolver.store.get_stats()
        config = self.resolver.scanner.config
        config_path = default_config_path()
        stats.update(
            {
                "config_path": str(config_path),
                "config_exists": config_path.is_file(),
                "max_recent_minutes": config.max_recent_minutes,
                "search_directories": {
                    str(path): path.is_dir() for path in config.expanded_directories()
                },
            }
        )
        return stats

    def _serialize(self, item: RecentItem) -> Dict[str, Any]:
        result = {
            "source": item.source,
            "kind": item.label,
            "timestamp": item.timestamp.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "value": item.render(),
        }
        if item.source == "clipboard":
            result["content"] = item.entry.content
        return result

    async def run(self):
        """Run MCP server over stdio."""
        async with stdio_server() as (read_stream, write_stream):
            await self.app.run(
                read_stream,
                write_stream,
                InitializationOptions(
                    server_name="this",
                    server_version=__version__,
                    capabilities=self.app.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                ),
            )


async def async_main():
    """Main async entry point."""
    server = ThisMCPServer()
    await server.run()


def main():
    """Synchronous entry point for console script."""
    try:
        asyncio.run(async_main())
    except KeyboardInterrupt:
        print("this MCP server stopped")


if __name__ == "__main__":
    main()
