"""
Server entry point for the BranchGuard API.
"""

import os

import structlog
import uvicorn

from branchguard.app.main import app  # noqa: F401  (loads .env and configures logging)

logger = structlog.get_logger(__name__)


def run() -> None:
    host = os.getenv("BG_HOST", "0.0.0.0")
    port = int(os.getenv("BG_PORT", "8000"))
    debug = os.getenv("BG_DEBUG", "false").lower() == "true"

    logger.info("Starting BranchGuard API server", host=host, port=port, debug=debug)

    uvicorn.run(
        "branchguard.app.main:app",
        host=host,
        port=port,
        reload=debug,
        log_level="info"
    )


if __name__ == "__main__":
    run()
