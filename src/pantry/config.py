"""TOML-based configuration for the pantry server.

Provides ``load_config`` / ``discover_config`` for loading ``pantry.toml``
and a hierarchy of frozen dataclasses for the bind address, limits,
liveness, images, logging and the recipe table.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from pantry.logger import FORMATTERS, LEVELS
from pantry.quota import QUOTA_WINDOWS, QuotaWindow


__all__ = [
    "CONFIG_FILENAME",
    "ImagesConfig",
    "LimitsConfig",
    "LivenessConfig",
    "LoggingConfig",
    "PantryConfig",
    "ServerConfig",
    "discover_config",
    "load_config",
]

CONFIG_FILENAME = "pantry.toml"


@dataclass(frozen=True)
class ServerConfig:
    """Bind address.

    Parameters
    ----------
    host : str
        Interface to bind.
    port : int
        UDP port; ``0`` picks a free one.

    Examples
    --------
    >>> ServerConfig(host="0.0.0.0", port=11000)
    ServerConfig(host='0.0.0.0', port=11000)
    """

    host: str = "127.0.0.1"
    port: int = 11000

    def __post_init__(self) -> None:
        if not 0 <= self.port <= 65535:
            msg = f"port must be in 0..65535, got {self.port}"
            raise ValueError(msg)


@dataclass(frozen=True)
class LimitsConfig:
    """Admission and quota limits.

    Parameters
    ----------
    max_clients : int
        Maximum peers tracked at once.
    max_requests_per_hour : int
        Requests allowed per peer per quota window.
    quota_window : QuotaWindow
        ``"lifetime"`` (reset only on idle eviction) or ``"hourly"``.
    window_seconds : float
        Length of the ``"hourly"`` window.

    Examples
    --------
    >>> LimitsConfig(max_clients=10, quota_window="hourly")
    LimitsConfig(max_clients=10, max_requests_per_hour=10, quota_window='hourly', window_seconds=3600.0)
    """

    max_clients: int = 100
    max_requests_per_hour: int = 10
    quota_window: QuotaWindow = "lifetime"
    window_seconds: float = 3600.0

    def __post_init__(self) -> None:
        if self.max_clients <= 0:
            msg = f"max_clients must be positive, got {self.max_clients}"
            raise ValueError(msg)
        if self.max_requests_per_hour <= 0:
            msg = f"max_requests_per_hour must be positive, got {self.max_requests_per_hour}"
            raise ValueError(msg)
        if self.quota_window not in QUOTA_WINDOWS:
            msg = f"quota_window must be 'lifetime' or 'hourly', got {self.quota_window!r}"
            raise ValueError(msg)
        if self.window_seconds <= 0:
            msg = f"window_seconds must be positive, got {self.window_seconds}"
            raise ValueError(msg)


@dataclass(frozen=True)
class LivenessConfig:
    """Idle eviction tuning.

    Parameters
    ----------
    idle_timeout : float
        Seconds without a datagram before a peer is evicted.
    sweep_interval : float
        Seconds between sweeps.
    """

    idle_timeout: float = 600.0
    sweep_interval: float = 60.0

    def __post_init__(self) -> None:
        if self.idle_timeout <= 0 or self.sweep_interval <= 0:
            msg = "idle_timeout and sweep_interval must be positive"
            raise ValueError(msg)


@dataclass(frozen=True)
class ImagesConfig:
    """Where recipe images live. ``directory=None`` disables images."""

    directory: Path | None = None
    default: str | None = "default"


@dataclass(frozen=True)
class LoggingConfig:
    """Log level, console format and optional event log file.

    ``colors=None`` colours console output only when stderr is a TTY.
    """

    level: str = "INFO"
    format: str = "verbose"
    file: Path | None = None
    colors: bool | None = None

    def __post_init__(self) -> None:
        if self.level.upper() not in LEVELS:
            msg = f"level must be one of {', '.join(LEVELS)}, got {self.level!r}"
            raise ValueError(msg)
        if self.format not in FORMATTERS:
            msg = f"format must be one of {', '.join(FORMATTERS)}, got {self.format!r}"
            raise ValueError(msg)


@dataclass(frozen=True)
class PantryConfig:
    """Top-level configuration container.

    Typically created via ``load_config()`` but can be constructed manually.

    Examples
    --------
    >>> config = PantryConfig(server=ServerConfig(port=0))
    >>> config.limits.max_clients
    100
    """

    server: ServerConfig = field(default_factory=ServerConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    liveness: LivenessConfig = field(default_factory=LivenessConfig)
    images: ImagesConfig = field(default_factory=ImagesConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    recipes: tuple[tuple[str, str], ...] = ()

    def with_server(self, *, host: str | None = None, port: int | None = None) -> PantryConfig:
        """Return a copy with the bind address overridden where given."""
        server = replace(
            self.server,
            host=self.server.host if host is None else host,
            port=self.server.port if port is None else port,
        )
        return replace(self, server=server)


def discover_config(start: Path | None = None) -> Path | None:
    """Walk up from *start* (default: cwd) looking for ``pantry.toml``.

    Parameters
    ----------
    start : Path | None
        Directory to start searching from.

    Returns
    -------
    Path | None
        Path to the discovered config file, or ``None`` if not found.
    """
    current = start or Path.cwd()
    current = current.resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def _resolve_path(raw: str | None, base: Path) -> Path | None:
    if raw is None:
        return None
    path = Path(raw)
    return path if path.is_absolute() else base / path


_NUMBER = (int, float)

_SCHEMA: dict[str, dict[str, tuple[type, ...]]] = {
    "server": {"host": (str,), "port": (int,)},
    "limits": {
        "max_clients": (int,),
        "max_requests_per_hour": (int,),
        "quota_window": (str,),
        "window_seconds": _NUMBER,
    },
    "liveness": {"idle_timeout": _NUMBER, "sweep_interval": _NUMBER},
    "images": {"directory": (str,), "default": (str,)},
    "logging": {"level": (str,), "format": (str,), "file": (str,), "colors": (bool,)},
}


def _table(raw: dict[str, Any], name: str) -> dict[str, Any]:
    """Return the ``[name]`` table, rejecting unknown keys and wrong types."""
    table = raw.get(name, {})
    if not isinstance(table, dict):
        msg = f"[{name}] must be a table, got {type(table).__name__}"
        raise ValueError(msg)
    schema = _SCHEMA[name]
    unknown = sorted(set(table) - set(schema))
    if unknown:
        msg = f"Unknown key(s) in [{name}]: {', '.join(unknown)}"
        raise ValueError(msg)
    for key, value in table.items():
        expected = schema[key]
        # bool is an int subclass
        if isinstance(value, bool) and bool not in expected or not isinstance(value, expected):
            names = " or ".join(t.__name__ for t in expected)
            msg = f"[{name}] {key} must be {names}, got {value!r}"
            raise ValueError(msg)
    return table


def load_config(path: Path | None = None) -> PantryConfig:
    """Load a ``PantryConfig`` from a TOML file.

    If *path* is ``None``, auto-discovers ``pantry.toml`` by walking up from
    the current working directory. Returns the default config if no file is
    found. Relative paths in the file resolve against the file's directory.

    Raises
    ------
    FileNotFoundError
        If an explicit *path* is given but does not exist.
    ValueError
        If a section or key is unknown, a value has the wrong type, or a
        value is out of range.
    """
    if path is None:
        discovered = discover_config()
        if discovered is None:
            return PantryConfig()
        path = discovered

    if not path.exists():
        msg = f"Config file not found: {path}"
        raise FileNotFoundError(msg)

    with path.open("rb") as f:
        raw = tomllib.load(f)

    unknown = sorted(set(raw) - set(_SCHEMA) - {"recipes"})
    if unknown:
        msg = f"Unknown section(s): {', '.join(unknown)}"
        raise ValueError(msg)

    base = path.parent.resolve()

    server = ServerConfig(**_table(raw, "server"))
    limits = LimitsConfig(**_table(raw, "limits"))
    liveness = LivenessConfig(**_table(raw, "liveness"))

    images_raw = _table(raw, "images")
    images = ImagesConfig(
        directory=_resolve_path(images_raw.get("directory"), base),
        default=images_raw.get("default", "default"),
    )

    logging_raw = _table(raw, "logging")
    logging = LoggingConfig(
        level=logging_raw.get("level", "INFO"),
        format=logging_raw.get("format", "verbose"),
        file=_resolve_path(logging_raw.get("file"), base),
        colors=logging_raw.get("colors"),
    )

    recipes_raw = raw.get("recipes", {})
    if not isinstance(recipes_raw, dict) or not all(
        isinstance(v, str) for v in recipes_raw.values()
    ):
        msg = "[recipes] must map keywords to recipe strings"
        raise ValueError(msg)
    recipes = tuple((str(k), v) for k, v in recipes_raw.items())

    return PantryConfig(
        server=server,
        limits=limits,
        liveness=liveness,
        images=images,
        logging=logging,
        recipes=recipes,
    )
