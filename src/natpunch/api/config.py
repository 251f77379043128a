import os
from dataclasses import dataclass

DEFAULT_PORT = 21200


@dataclass(frozen=True)
class ApiConfig:
    mode: str  # "prod" | "dev"
    host: str
    port: int


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return int(default)
    try:
        return int(raw.strip())
    except ValueError:
        return int(default)


def load_api_config() -> ApiConfig:
    mode = os.getenv("NATPUNCH_MODE", "prod").strip().lower()
    host = os.getenv("NATPUNCH_API_HOST", "0.0.0.0").strip() or "0.0.0.0"
    port = _env_int("NATPUNCH_API_PORT", DEFAULT_PORT)
    if not (0 < port < 65536):
        port = DEFAULT_PORT
    return ApiConfig(mode=mode, host=host, port=port)
