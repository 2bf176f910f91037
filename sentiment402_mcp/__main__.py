"""Run the sentiment402 MCP server over stdio."""

import logging
import os
import sys

from .config import load_config
from .server import create_server
from .types.errors import ConfigError


logger = logging.getLogger("sentiment402_mcp")


def main() -> None:
    # stdout carries the MCP protocol; logs go to stderr.
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr
    )

    try:
        config = load_config()
    except ConfigError as e:
        logger.error(str(e))
        sys.exit(1)

    server = create_server(config)
    server.run(transport="stdio")


if __name__ == "__main__":
    main()
