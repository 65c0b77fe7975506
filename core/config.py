import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# PocketBase serve address
BASE_URL = os.getenv("TRACKER_PB_URL", "http://127.0.0.1:8090")
IDENTITY = os.getenv("TRACKER_IDENTITY", "")
PASSWORD = os.getenv("TRACKER_PASSWORD", "")
REQUEST_TIMEOUT = float(os.getenv("TRACKER_REQUEST_TIMEOUT", "10"))

# endpoint that turns an objective prompt into suggested tasks; empty disables it
SUGGEST_URL = os.getenv("TRACKER_SUGGEST_URL", "")

SYNC_INTERVAL_MS = int(os.getenv("TRACKER_SYNC_INTERVAL_MS", "60000"))
TOPMOST = _env_bool("TRACKER_TOPMOST", False)
WINDOW_GEOMETRY = os.getenv("TRACKER_WINDOW_GEOMETRY", "1180x760")

LOG_LEVEL = os.getenv("TRACKER_LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("TRACKER_LOG_FILE", "")

DEFAULT_WORKSPACE_NAME = "My First Workspace"
MIN_PASSWORD_LENGTH = 6
