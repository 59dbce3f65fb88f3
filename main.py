"""
mcplink - MCP client bridge

Main entry point: connect the configured MCP servers and inspect or call
their tools from the command line.
"""

import asyncio
import json
import sys
from pathlib import Path

from loguru import logger


def setup_logging(level: str = "INFO"):
    """Configure logging."""
    log_path = Path("logs")
    log_path.mkdir(exist_ok=True)

    # Remove default handler
    logger.remove()

    # Console handler (stderr: stdout carries command output)
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=level,
        colorize=True,
    )

    # File handler
    logger.add(
        log_path / "mcplink.log",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        level="DEBUG",
        rotation="10 MB",
        retention="7 days",
        compression="zip",
    )


async def run_command(args) -> int:
    """Start the app, run one command, shut down."""
    from mcplink.core.app import MCPLinkApp

    app = MCPLinkApp(args.config)
    await app.startup()
    try:
        if args.command == "status":
            output = app.manager.summary()
        elif args.command == "tools":
            output = app.tools.get_openai_tools()
        else:
            result = await app.tools.execute(args.tool, args.args)
            output = result.to_dict()
        print(json.dumps(output, indent=2, default=str))
        return 1 if args.command == "call" and output["details"].get("error") else 0
    finally:
        await app.shutdown()


def cli():
    """CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="mcplink - connect MCP servers and expose their tools"
    )
    parser.add_argument(
        "--config",
        type=str,
        default="config.yaml",
        help="Path to configuration file"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )
    parser.add_argument(
        "--version",
        action="version",
        version="mcplink 0.1.0"
    )

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("status", help="Connect all servers and print their status")
    sub.add_parser("tools", help="Connect all servers and print tool schemas")
    call = sub.add_parser("call", help="Call one tool")
    call.add_argument("tool", help="Qualified tool name, e.g. mcp_fs_read_file")
    call.add_argument("--args", default="{}", help="JSON object of tool arguments")

    args = parser.parse_args()
    if args.command is None:
        args.command = "status"

    setup_logging("DEBUG" if args.debug else "INFO")

    try:
        sys.exit(asyncio.run(run_command(args)))
    except KeyboardInterrupt:
        logger.info("Shutdown requested via keyboard")
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli()
