#!/usr/bin/env python3
"""
Hive Launcher - Main Entry Point

Run the Hive channel plugin as a standalone MCP server: agent tools over
SSE plus the background event stream.
"""

import argparse
import asyncio
import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import uvicorn
from dotenv import load_dotenv

from hive_channel import Config, ConfigError, register
from hive_channel.mcp_host import McpPluginHost


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "component"):
            log_data["component"] = record.component

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(config: Config, verbose: bool = False) -> None:
    """
    Set up logging configuration.

    Args:
        config: Configuration object
        verbose: Whether to enable verbose logging
    """
    log_level = logging.DEBUG if verbose else getattr(logging, config.get_log_level().upper(), logging.INFO)
    log_format = config.get_log_format()
    log_file = config.get_log_file()

    if log_format.lower() == "json":
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(log_format)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # httpx logs every request at INFO, including the stream URL
    logging.getLogger("httpx").setLevel(logging.WARNING)

    component_levels = config.get("componentLogLevels", {})
    for component, level in component_levels.items():
        comp_logger = logging.getLogger(component)
        comp_logger.setLevel(getattr(logging, level.upper(), logging.INFO))


def parse_arguments(argv: Optional[list] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description="Run the Hive channel as an MCP server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python launchhive.py
  python launchhive.py --config hive.json --port 9000
  python launchhive.py --no-stream --list-tools
        """
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to configuration file (default: config.json)"
    )

    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Override server host address"
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Override server port"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "warning", "error", "critical"],
        default=None,
        help="Override log level"
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )

    parser.add_argument(
        "--no-stream",
        action="store_true",
        help="Do not connect to the Hive event stream"
    )

    parser.add_argument(
        "--list-tools",
        action="store_true",
        help="List the Hive agent tools and exit"
    )

    return parser.parse_args(argv)


def list_tools(host: McpPluginHost) -> None:
    """Print the registered tools."""
    print("Available Hive Tools:")
    print("-" * 60)
    for tool in host.tools.values():
        print(f"Name:        {tool.name}")
        print(f"Description: {tool.description}")
        print("-" * 60)


async def main(argv: Optional[list] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    args = parse_arguments(argv)

    load_dotenv()

    config_path = args.config or str(Path(__file__).parent / "config.json")
    try:
        config = Config(config_path, environ=os.environ)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    if args.host:
        config.config["server"]["host"] = args.host
    if args.port:
        config.config["server"]["port"] = args.port
    if args.log_level:
        config.config["logging"]["level"] = args.log_level
    if args.no_stream:
        config.config["channels"]["hive"]["sseEnabled"] = False

    setup_logging(config, args.verbose)

    logging.info("=" * 60)
    logging.info("Hive Launcher Starting")
    logging.info("=" * 60)

    host = McpPluginHost(config.to_dict())
    plugin = register(host, environ=os.environ)

    if args.list_tools:
        list_tools(host)
        return 0

    if not plugin.config.has_token:
        logging.error("No Hive token configured; set channels.hive.token or HIVE_TOKEN")
        return 1

    server = uvicorn.Server(uvicorn.Config(
        app=host.create_app(debug=args.verbose),
        host=config.get_server_host(),
        port=config.get_server_port(),
        log_level=config.get_server_log_level(),
    ))
    logging.info(f"Hive MCP server on http://{config.get_server_host()}:{config.get_server_port()}/sse")

    # uvicorn handles SIGINT/SIGTERM; services stop in the app lifespan
    try:
        await server.serve()
    except Exception as e:
        logging.exception(f"Server error: {e}")
        return 1

    logging.info(f"Hive Launcher stopped ({host.wake_count} wake requests)")
    return 0


def run() -> None:
    try:
        exit_code = asyncio.run(main())
        sys.exit(exit_code)
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    run()
