"""Application entry point for the superlatives server."""

from __future__ import annotations

import socket
import sys

from superlatives.config import AppConfig
from superlatives.core.superlative_importer import (
    SuperlativeImportError,
    load_superlatives_from_file,
)
from superlatives.core.superlatives_manager import SuperlativesManager
from superlatives.server.api_server import serve_api
from superlatives.utils.logging_config import configure_logging


def _determine_join_url(port: int) -> str:
    """Best-effort determination of the local IP for the participant-facing URL."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            ip_address = sock.getsockname()[0]
    except OSError:
        ip_address = "127.0.0.1"
    return f"http://{ip_address}:{port}/"


def main() -> None:
    """Initialize logging, load the superlatives and serve the API."""
    config = AppConfig.from_env()
    logger = configure_logging(config.log_level)
    logger.info("Starting superlatives server")

    try:
        imported = load_superlatives_from_file(config.questions_file)
    except (OSError, SuperlativeImportError) as exc:
        logger.error("Could not load superlatives from %s: %s", config.questions_file, exc)
        sys.exit(1)
    logger.info("Read %d superlatives from %s", len(imported.questions), imported.source_path)

    join_url = config.join_url or _determine_join_url(config.port)
    serve_api(
        SuperlativesManager(),
        questions=imported.questions,
        join_url=join_url,
        host=config.host,
        port=config.port,
    )


if __name__ == "__main__":
    main()
