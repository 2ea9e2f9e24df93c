"""Application entry point for the MCQ practice server."""

from __future__ import annotations

import socket

from mcq_app.config import load_settings
from mcq_app.constants.storage_constants import HISTORY_FILE_NAME
from mcq_app.core.practice_scheduler import PracticeScheduler
from mcq_app.core.services.content_store import ContentStore
from mcq_app.core.services.history_store import HistoryStore
from mcq_app.core.storage import JsonFileStore
from mcq_app.server.api_server import run_api_server
from mcq_app.utils.logging_config import configure_logging


def _determine_public_url(host: str, port: int) -> str:
    """Best-effort determination of the local IP for the browser URL."""
    if host not in ("0.0.0.0", ""):
        return f"http://{host}:{port}/"
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            ip_address = sock.getsockname()[0]
    except OSError:
        ip_address = "127.0.0.1"
    return f"http://{ip_address}:{port}/"


def main() -> None:
    """Load settings, wire the services and serve until interrupted."""
    settings = load_settings()
    logger = configure_logging(settings.log_level)
    logger.info("Starting MCQ practice server…")

    content = ContentStore(settings.data_dir)
    history = HistoryStore(JsonFileStore(settings.data_dir / HISTORY_FILE_NAME))
    scheduler = PracticeScheduler(content, history, admin_token=settings.admin_token)

    logger.info("Quiz directory: %s", content.root)
    if settings.admin_token is None:
        logger.info("MCQ_ADMIN_TOKEN is not set; admin endpoints are disabled.")
    logger.info("Practice page available at %s", _determine_public_url(settings.host, settings.port))

    run_api_server(scheduler, host=settings.host, port=settings.port, log_level=settings.log_level)


if __name__ == "__main__":
    main()
