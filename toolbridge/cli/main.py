#!/usr/bin/env python3
"""
toolbridge command line tool.

Inspects and edits the server registry, lists discovered tools, routes
a single invocation and classifies request text.

Usage:
    toolbridge servers
    toolbridge add-server --id pg --command npx --arg -y --arg @modelcontextprotocol/server-postgres
    toolbridge add-server --id search --transport http-stream --url http://localhost:8080/mcp
    toolbridge remove-server pg
    toolbridge tools [--category query] [--server pg]
    toolbridge call run_query --args '{"sql": "select 1"}' [--hint database]
    toolbridge classify "show me the database schemas"
"""

import argparse
import asyncio
import json
import sys
from typing import Any

from toolbridge.application.services.request_classifier import classify
from toolbridge.configuration.config import get_settings
from toolbridge.configuration.factories import create_tool_bridge
from toolbridge.configuration.logging_config import setup_logging
from toolbridge.domain.exceptions.mcp import ServerConfigurationError
from toolbridge.domain.model.mcp.invocation import InvocationRequest


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


async def list_servers(connect: bool) -> int:
    bridge = create_tool_bridge()
    if not connect:
        await bridge.registry.load()
        _print_json([d.to_dict() for d in bridge.registry.list()])
        return 0
    async with bridge:
        _print_json(bridge.status())
    return 0


async def add_server(args: argparse.Namespace) -> int:
    record: dict[str, Any] = {
        "id": args.id,
        "label": args.label or args.id,
        "transport": args.transport,
        "categories": args.category or [],
    }
    if args.command:
        record["command"] = args.command
        record["args"] = args.arg or []
        record["env"] = dict(item.split("=", 1) for item in args.env or [])
    if args.url:
        record["url"] = args.url

    bridge = create_tool_bridge()
    await bridge.registry.load()
    try:
        descriptor = await bridge.registry.add(record)
    except ServerConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"Saved server '{descriptor.id}' to {bridge.registry.user_store.name}")
    return 0


async def remove_server(server_id: str) -> int:
    bridge = create_tool_bridge()
    await bridge.registry.load()
    if not await bridge.registry.remove(server_id):
        print(f"Error: server '{server_id}' is not configured", file=sys.stderr)
        return 1
    print(f"Removed server '{server_id}'")
    return 0


async def list_tools(category: str | None, server_id: str | None, by_domain: bool) -> int:
    async with create_tool_bridge() as bridge:
        if by_domain:
            print(bridge.catalog.describe_tools())
            return 0
        if category:
            tools = bridge.catalog.by_category(category)
        elif server_id:
            tools = bridge.catalog.by_server(server_id)
        else:
            tools = bridge.catalog.list_all()
        _print_json([tool.to_dict() for tool in tools])
    return 0


async def call_tool(args: argparse.Namespace) -> int:
    try:
        arguments = json.loads(args.args) if args.args else {}
    except json.JSONDecodeError as e:
        print(f"Error: --args is not valid JSON: {e}", file=sys.stderr)
        return 1
    if not isinstance(arguments, dict):
        print("Error: --args must be a JSON object", file=sys.stderr)
        return 1

    request = InvocationRequest(
        tool_name=args.tool,
        domain_hint=args.hint,
        server_id=args.server,
        arguments=arguments,
    )
    async with create_tool_bridge() as bridge:
        result = await bridge.route(request)
    _print_json(result.to_dict())
    return 0 if result.ok else 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="toolbridge",
        description="Discover, catalog and call tools on MCP servers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--log-level", help="Override TOOLBRIDGE_LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    servers = sub.add_parser("servers", help="List configured servers")
    servers.add_argument(
        "--connect", action="store_true", help="Connect and show connection state and tool counts"
    )

    add = sub.add_parser("add-server", help="Add or replace a server in the user configuration")
    add.add_argument("--id", required=True, help="Unique server id")
    add.add_argument("--label", help="Display label")
    add.add_argument(
        "--transport",
        default="local-process",
        help="local-process, http-stream or server-push",
    )
    add.add_argument("--command", help="Launch command (local-process)")
    add.add_argument("--arg", action="append", help="Command argument (repeatable)")
    add.add_argument("--env", action="append", help="KEY=VALUE environment entry (repeatable)")
    add.add_argument("--url", help="Endpoint URL (http-stream, server-push)")
    add.add_argument("--category", action="append", help="Category hint (repeatable)")

    remove = sub.add_parser("remove-server", help="Remove a server")
    remove.add_argument("id", help="Server id")

    tools = sub.add_parser("tools", help="Discover and list tools")
    tools.add_argument("--category", help="Only tools of this category")
    tools.add_argument("--server", help="Only tools of this server")
    tools.add_argument("--by-domain", action="store_true", help="Print a per-domain overview")

    call = sub.add_parser("call", help="Route one tool invocation")
    call.add_argument("tool", help="Tool name")
    call.add_argument("--args", help="Tool arguments as a JSON object")
    call.add_argument("--hint", help="Category or domain hint")
    call.add_argument("--server", help="Pin the owning server")

    classify_cmd = sub.add_parser("classify", help="Classify request text into a domain")
    classify_cmd.add_argument("text", nargs="+", help="Request text")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level or get_settings().log_level)

    if args.command == "classify":
        _print_json(classify(" ".join(args.text)).to_dict())
        return 0
    if args.command == "servers":
        return asyncio.run(list_servers(args.connect))
    if args.command == "add-server":
        if args.env and any("=" not in item for item in args.env):
            parser.error("--env entries must look like KEY=VALUE")
        return asyncio.run(add_server(args))
    if args.command == "remove-server":
        return asyncio.run(remove_server(args.id))
    if args.command == "tools":
        return asyncio.run(list_tools(args.category, args.server, args.by_domain))
    if args.command == "call":
        return asyncio.run(call_tool(args))

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
