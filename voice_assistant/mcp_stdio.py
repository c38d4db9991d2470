"""
STDIO entrypoint for running the MCP server locally.

Logging goes to stderr so stdout carries only JSON-RPC messages.
"""

import asyncio
import logging
import sys

logging.basicConfig(
    stream=sys.stderr,
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    force=True,
)

from voice_assistant.dependencies import get_assistant  # noqa: E402
from voice_assistant.mcp_server import mcp  # noqa: E402

logger = logging.getLogger(__name__)


def main() -> None:
    try:
        asyncio.run(run_mcp_stdio())
    except KeyboardInterrupt:
        logger.info("Voice assistant MCP server stopped by user")


async def run_mcp_stdio() -> None:
    logger.info("Starting the voice assistant MCP server")
    try:
        await mcp.run_async(show_banner=False)
    finally:
        await get_assistant().history.flush()
        logger.info("Voice assistant MCP server stopped")


if __name__ == "__main__":
    main()
