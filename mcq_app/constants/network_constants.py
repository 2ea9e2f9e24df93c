"""Network configuration constants for the practice server."""

DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 3001
ADMIN_TOKEN_HEADER: str = "X-Admin-Token"
