from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import re
from typing import Mapping


_SIZE_PATTERN = re.compile(r"^(\d+)\s*([kmgt]b)$", re.IGNORECASE)
_SIZE_UNITS = {
    "kb": 1024,
    "mb": 1024**2,
    "gb": 1024**3,
    "tb": 1024**4,
}
MIN_TOKEN_LENGTH = 4


@dataclass(frozen=True, slots=True)
class AppConfig:
    storage_root: Path
    auth_token: str | None
    git_base_url: str
    raw_content_base_url: str
    git_executable: str
    git_timeout_seconds: float
    download_timeout_seconds: float
    server_host: str
    server_port: int
    max_connections: int
    max_payload_size: int
    cors_origins: tuple[str, ...]
    ssl_key_file: Path | None
    ssl_cert_file: Path | None
    utc_logging: bool
    log_level: str

    @property
    def tls_enabled(self) -> bool:
        return bool(
            self.ssl_key_file
            and self.ssl_cert_file
            and self.ssl_key_file.is_file()
            and self.ssl_cert_file.is_file()
        )


def load_config(args, env: Mapping[str, str], *, require_token: bool = False) -> AppConfig:
    storage_root_raw = _normalize_empty(getattr(args, "storage_root", None)) or _normalize_empty(
        env.get("MIRROR_STORAGE_ROOT")
    )
    if not storage_root_raw:
        raise ValueError("Missing storage root. Use --storage-root or set MIRROR_STORAGE_ROOT")

    storage_root = Path(storage_root_raw).expanduser()
    if not storage_root.is_dir():
        raise ValueError(f"MIRROR_STORAGE_ROOT/--storage-root is not a valid directory: {storage_root}")

    auth_token = _normalize_empty(env.get("MIRROR_AUTH_TOKEN"))
    if require_token:
        if not auth_token:
            raise ValueError("Missing authorization token. Set MIRROR_AUTH_TOKEN")
        if len(auth_token) < MIN_TOKEN_LENGTH:
            raise ValueError(f"MIRROR_AUTH_TOKEN should be at least {MIN_TOKEN_LENGTH} characters")

    raw_host = _normalize_empty(getattr(args, "host", None)) or _normalize_empty(env.get("MIRROR_SERVER_HOST"))
    raw_port = getattr(args, "port", None)
    if raw_port is None:
        raw_port = _normalize_empty(env.get("MIRROR_SERVER_PORT"))
    server_port = _parse_int(raw_port, "MIRROR_SERVER_PORT/--port", default=8000, minimum=1)
    if server_port > 65535:
        raise ValueError("MIRROR_SERVER_PORT/--port must be <= 65535")

    raw_payload_size = _normalize_empty(env.get("MIRROR_MAX_PAYLOAD_SIZE"))
    max_payload_size = parse_size(raw_payload_size, "MIRROR_MAX_PAYLOAD_SIZE") if raw_payload_size else 100 * 1024**2

    raw_origins = env.get("MIRROR_CORS_ORIGINS") or ""
    cors_origins = tuple(item.strip() for item in raw_origins.split(",") if item.strip())

    ssl_key_raw = _normalize_empty(env.get("MIRROR_SSL_KEY_FILE"))
    ssl_cert_raw = _normalize_empty(env.get("MIRROR_SSL_CERT_FILE"))

    return AppConfig(
        storage_root=storage_root,
        auth_token=auth_token,
        git_base_url=_normalize_empty(env.get("MIRROR_GIT_BASE_URL")) or "https://github.com",
        raw_content_base_url=_normalize_empty(env.get("MIRROR_RAW_BASE_URL")) or "https://raw.githubusercontent.com",
        git_executable=_normalize_empty(env.get("MIRROR_GIT_EXECUTABLE")) or "git",
        git_timeout_seconds=_parse_float(env.get("MIRROR_GIT_TIMEOUT_SECONDS"), "MIRROR_GIT_TIMEOUT_SECONDS", default=600.0),
        download_timeout_seconds=_parse_float(
            env.get("MIRROR_DOWNLOAD_TIMEOUT_SECONDS"), "MIRROR_DOWNLOAD_TIMEOUT_SECONDS", default=60.0
        ),
        server_host=raw_host or "127.0.0.1",
        server_port=server_port,
        max_connections=_parse_int(
            _normalize_empty(env.get("MIRROR_MAX_CONNECTIONS")), "MIRROR_MAX_CONNECTIONS", default=3, minimum=1
        ),
        max_payload_size=max_payload_size,
        cors_origins=cors_origins,
        ssl_key_file=Path(ssl_key_raw).expanduser() if ssl_key_raw else None,
        ssl_cert_file=Path(ssl_cert_raw).expanduser() if ssl_cert_raw else None,
        utc_logging=parse_bool(env.get("MIRROR_UTC_LOGGING", "true"), "MIRROR_UTC_LOGGING"),
        log_level=(_normalize_empty(env.get("LOG_LEVEL")) or "INFO").upper(),
    )


def parse_size(value: str, name: str) -> int:
    """Parse a human readable size such as ``100 MB`` into bytes."""
    match = _SIZE_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"{name} expected format like '100 MB', received '{value}'")
    return int(match.group(1)) * _SIZE_UNITS[match.group(2).lower()]


def parse_bool(value: str, name: str) -> bool:
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"{name} must be a boolean (true/false)")


def _parse_int(value: str | int | None, name: str, *, default: int, minimum: int) -> int:
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError as error:
        raise ValueError(f"{name} must be an integer") from error
    if parsed < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return parsed


def _parse_float(value: str | None, name: str, *, default: float) -> float:
    raw = _normalize_empty(value)
    if raw is None:
        return default
    try:
        parsed = float(raw)
    except ValueError as error:
        raise ValueError(f"{name} must be a number") from error
    if parsed <= 0:
        raise ValueError(f"{name} must be greater than 0")
    return parsed


def _normalize_empty(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None
