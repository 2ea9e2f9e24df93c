"""Runtime settings loaded from the environment (and an optional ``.env`` file)."""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from dotenv import load_dotenv

from mcq_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from mcq_app.constants.storage_constants import DEFAULT_DATA_DIR


@dataclass(frozen=True, slots=True)
class Settings:
    """Server and storage settings."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    data_dir: Path = Path(DEFAULT_DATA_DIR)
    admin_token: str | None = None
    log_level: str = "INFO"


def load_settings(env_file: str | Path | None = None) -> Settings:
    """Read ``MCQ_*`` variables, after loading ``.env`` if present."""
    load_dotenv(dotenv_path=env_file)

    raw_port = os.environ.get("MCQ_PORT", str(DEFAULT_PORT))
    try:
        port = int(raw_port)
    except ValueError as exc:
        raise ValueError(f"MCQ_PORT must be an integer, got {raw_port!r}.") from exc
    if not 0 < port < 65536:
        raise ValueError(f"MCQ_PORT must be between 1 and 65535, got {port}.")

    admin_token = os.environ.get("MCQ_ADMIN_TOKEN", "").strip() or None

    return Settings(
        host=os.environ.get("MCQ_HOST", DEFAULT_HOST),
        port=port,
        data_dir=Path(os.environ.get("MCQ_DATA_DIR", DEFAULT_DATA_DIR)).expanduser(),
        admin_token=admin_token,
        log_level=os.environ.get("MCQ_LOG_LEVEL", "INFO").upper(),
    )
