import math
import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from services.errors import ConfigError
from services.source.response_parser import DEFAULT_URL_TEMPLATE

DEFAULT_LISTEN_ADDR = "127.0.0.1:8000"
TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}
LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


@dataclass(frozen=True)
class WallConfig:
    """
    Static configuration for the relay, read once at process start.

    - `poll_interval` is the relay period in seconds.
    - `recent_capacity` is how many image ids are remembered for dedup.
    - `queue_capacity` is the per-viewer outbound queue depth; a viewer
      that falls this far behind is disconnected.
    """

    upstream_url: str
    host: str = "127.0.0.1"
    port: int = 8000
    upstream_auth: Optional[str] = None
    upstream_timeout: float = 10.0
    url_template: str = DEFAULT_URL_TEMPLATE
    poll_interval: float = 5.0
    recent_capacity: int = 500
    queue_capacity: int = 32
    announce_viewers: bool = True
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not self.upstream_url.strip():
            raise ConfigError("Upstream URL must not be empty.")
        if not 0 <= self.port <= 65535:
            raise ConfigError(f"Port {self.port} is out of range.")
        if not math.isfinite(self.poll_interval) or self.poll_interval <= 0:
            raise ConfigError("Poll interval must be a positive finite number.")
        if not math.isfinite(self.upstream_timeout) or self.upstream_timeout <= 0:
            raise ConfigError("Upstream timeout must be a positive finite number.")
        if self.recent_capacity < 1:
            raise ConfigError("Recent-set capacity must be at least 1.")
        if self.queue_capacity < 1:
            raise ConfigError("Viewer queue capacity must be at least 1.")
        if "{id}" not in self.url_template:
            raise ConfigError("Image URL template must contain '{id}'.")
        try:
            self.url_template.format(id="x")
        except (AttributeError, KeyError, IndexError, ValueError) as exc:
            raise ConfigError(f"Image URL template {self.url_template!r} cannot be rendered: {exc!r}") from exc
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f"Unknown log level {self.log_level!r}.")


def parse_listen_addr(value: str) -> Tuple[str, int]:
    """Split `host:port` (or `[v6-host]:port`) into its parts."""
    host, sep, port_text = value.strip().rpartition(":")
    if not sep or not host:
        raise ConfigError(f"Listen address {value!r} must look like host:port.")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port = int(port_text)
    except ValueError as exc:
        raise ConfigError(f"Listen address {value!r} has a non-numeric port.") from exc
    return host, port


def _number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError as exc:
        raise ConfigError(f"{name}={raw!r} is not a valid {cast.__name__}.") from exc


def _flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    lowered = raw.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ConfigError(f"{name}={raw!r} is not a boolean.")


def load_config(env: Optional[Mapping[str, str]] = None) -> WallConfig:
    """Build a `WallConfig` from WALL_* environment variables.

    Raises:
        ConfigError: When a value is missing or invalid.
    """
    env = os.environ if env is None else env

    upstream_url = (env.get("WALL_UPSTREAM_URL") or "").strip()
    if not upstream_url:
        raise ConfigError(
            "WALL_UPSTREAM_URL environment variable must be set to the upstream image API endpoint."
        )

    host, port = parse_listen_addr(env.get("WALL_LISTEN_ADDR") or DEFAULT_LISTEN_ADDR)

    return WallConfig(
        upstream_url=upstream_url,
        host=host,
        port=port,
        upstream_auth=(env.get("WALL_UPSTREAM_AUTH") or "").strip() or None,
        upstream_timeout=_number(env, "WALL_UPSTREAM_TIMEOUT", 10.0, float),
        url_template=(env.get("WALL_IMAGE_URL_TEMPLATE") or "").strip() or DEFAULT_URL_TEMPLATE,
        poll_interval=_number(env, "WALL_POLL_INTERVAL", 5.0, float),
        recent_capacity=_number(env, "WALL_RECENT_CAPACITY", 500, int),
        queue_capacity=_number(env, "WALL_QUEUE_CAPACITY", 32, int),
        announce_viewers=_flag(env, "WALL_ANNOUNCE_VIEWERS", True),
        log_level=(env.get("WALL_LOG_LEVEL") or "INFO").strip().upper(),
    )
