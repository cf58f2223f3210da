"""
MCP server entry point for cidery operations.

Run with: python -m mcp_cidery
"""

import logging
import sys
import warnings

# Suppress deprecation warnings that can interfere with MCP protocol
warnings.filterwarnings("ignore", category=DeprecationWarning)

from cidery_common.exceptions import CideryCommonError

from mcp_cidery.config import get_config
from mcp_cidery.logging_config import setup_logging
from mcp_cidery.server import create_server

logger = logging.getLogger("mcp_cidery")


def main() -> None:
    try:
        config = get_config()
    except CideryCommonError as e:
        print(f"Fatal error starting cidery MCP: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.log_level)
    try:
        mcp = create_server(config)
    except CideryCommonError as e:
        logger.critical("Could not load cidery data: %s", e)
        sys.exit(1)

    logger.info("Starting MCP server")
    # Let FastMCP auto-detect transport
    mcp.run(show_banner=False)
    logger.info("Server exited normally")


if __name__ == "__main__":
    main()
