import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

# Upper bound for square exports (the RGBA canvas is size * size * 4 bytes).
MAX_OUTPUT_SIZE = 4096


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    return int(raw)


@dataclass(frozen=True)
class Settings:
    """Runtime settings, read once at process start."""
    database_url: Optional[str] = None
    database_auth_token: Optional[str] = None

    output_size: int = 512
    editor_max_width: int = 600
    editor_max_height: int = 400
    snap_to_edges: bool = False

    export_basename: str = "cropped-image"
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000


def load_settings() -> Settings:
    load_dotenv()
    return Settings(
        database_url=os.environ.get("SHAPECROP_DATABASE_URL") or None,
        database_auth_token=os.environ.get("SHAPECROP_DATABASE_AUTH_TOKEN") or None,
        output_size=min(max(_env_int("SHAPECROP_OUTPUT_SIZE", 512), 1), MAX_OUTPUT_SIZE),
        editor_max_width=_env_int("SHAPECROP_EDITOR_MAX_WIDTH", 600),
        editor_max_height=_env_int("SHAPECROP_EDITOR_MAX_HEIGHT", 400),
        snap_to_edges=_env_bool("SHAPECROP_SNAP_TO_EDGES", False),
        export_basename=os.environ.get("SHAPECROP_EXPORT_BASENAME", "cropped-image"),
        log_level=os.environ.get("SHAPECROP_LOG_LEVEL", "INFO"),
        host=os.environ.get("SHAPECROP_HOST", "127.0.0.1"),
        port=_env_int("SHAPECROP_PORT", 8000),
    )
