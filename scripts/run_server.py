#!/usr/bin/env python3
"""Launch the EchoRun persona API via uvicorn.

Usage:
    # From the repo root with the venv activated:
    python scripts/run_server.py

Host, port and log level come from SERVER_HOST / SERVER_PORT / LOG_LEVEL.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Ensure the repo root is on sys.path so `from echorun.…` imports work
_root_dir = Path(__file__).resolve().parent.parent
if str(_root_dir) not in sys.path:
    sys.path.insert(0, str(_root_dir))

from echorun.config.settings import LOG_LEVEL, SERVER_HOST, SERVER_PORT  # noqa: E402

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s  %(levelname)-7s  %(name)-22s  %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("run_server")


def main() -> None:
    import uvicorn

    logger.info("Starting EchoRun persona API on %s:%d", SERVER_HOST, SERVER_PORT)
    uvicorn.run(
        "echorun.server:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
        log_level=LOG_LEVEL.lower(),
        reload=False,
    )


if __name__ == "__main__":
    main()
