from __future__ import annotations

from pathlib import Path

import pytest

from pantry.config import (
    ImagesConfig,
    LimitsConfig,
    LivenessConfig,
    LoggingConfig,
    PantryConfig,
    ServerConfig,
    discover_config,
    load_config,
)


# ---------------------------------------------------------------------------
# Config dataclass defaults
# ---------------------------------------------------------------------------


class TestServerConfig:
    def test_defaults(self) -> None:
        cfg = ServerConfig()
        assert cfg.host == "127.0.0.1"
        assert cfg.port == 11000

    def test_port_zero_is_allowed(self) -> None:
        assert ServerConfig(port=0).port == 0

    @pytest.mark.parametrize("port", [-1, 65536])
    def test_port_out_of_range(self, port: int) -> None:
        with pytest.raises(ValueError):
            ServerConfig(port=port)

    def test_frozen(self) -> None:
        cfg = ServerConfig()
        with pytest.raises(AttributeError):
            cfg.port = 42  # type: ignore[misc]


class TestLimitsConfig:
    def test_defaults(self) -> None:
        cfg = LimitsConfig()
        assert cfg.max_clients == 100
        assert cfg.max_requests_per_hour == 10
        assert cfg.quota_window == "lifetime"
        assert cfg.window_seconds == 3600.0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_clients": 0},
            {"max_requests_per_hour": 0},
            {"quota_window": "daily"},
            {"window_seconds": 0},
        ],
    )
    def test_rejects_invalid(self, kwargs: dict[str, object]) -> None:
        with pytest.raises(ValueError):
            LimitsConfig(**kwargs)  # type: ignore[arg-type]


class TestLivenessConfig:
    def test_defaults(self) -> None:
        cfg = LivenessConfig()
        assert cfg.idle_timeout == 600.0
        assert cfg.sweep_interval == 60.0

    def test_rejects_non_positive(self) -> None:
        with pytest.raises(ValueError):
            LivenessConfig(idle_timeout=0)
        with pytest.raises(ValueError):
            LivenessConfig(sweep_interval=-1)


class TestLoggingConfig:
    def test_defaults(self) -> None:
        cfg = LoggingConfig()
        assert (cfg.level, cfg.format, cfg.file, cfg.colors) == ("INFO", "verbose", None, None)

    def test_level_is_case_insensitive(self) -> None:
        assert LoggingConfig(level="warn").level == "warn"

    @pytest.mark.parametrize("kwargs", [{"level": "chatty"}, {"format": "fancy"}])
    def test_rejects_unknown_choice(self, kwargs: dict[str, str]) -> None:
        with pytest.raises(ValueError):
            LoggingConfig(**kwargs)


class TestPantryConfig:
    def test_all_defaults(self) -> None:
        cfg = PantryConfig()
        assert cfg.server == ServerConfig()
        assert cfg.limits == LimitsConfig()
        assert cfg.liveness == LivenessConfig()
        assert cfg.images == ImagesConfig()
        assert cfg.logging == LoggingConfig()
        assert cfg.recipes == ()

    def test_with_server_overrides_only_given_fields(self) -> None:
        cfg = PantryConfig(server=ServerConfig(host="0.0.0.0", port=9000))

        assert cfg.with_server(port=0).server == ServerConfig(host="0.0.0.0", port=0)
        assert cfg.with_server(host="::1").server == ServerConfig(host="::1", port=9000)
        assert cfg.with_server() == cfg


# ---------------------------------------------------------------------------
# TOML parsing - load_config(path)
# ---------------------------------------------------------------------------


class TestLoadConfig:
    def test_full_config(self, tmp_path: Path) -> None:
        toml_file = tmp_path / "pantry.toml"
        toml_file.write_text("""\
[server]
host = "0.0.0.0"
port = 12000

[limits]
max_clients = 5
max_requests_per_hour = 20
quota_window = "hourly"
window_seconds = 1800

[liveness]
idle_timeout = 300
sweep_interval = 15

[images]
directory = "images"
default = "plate.png"

[logging]
level = "DEBUG"
format = "compact"
file = "logs/pantry.log"
colors = false

[recipes]
basil = "Pesto: basil, pine nuts, garlic."
egg = "Omelette: eggs, butter."
""")
        cfg = load_config(toml_file)
        base = tmp_path.resolve()

        assert cfg.server == ServerConfig(host="0.0.0.0", port=12000)
        assert cfg.limits == LimitsConfig(
            max_clients=5,
            max_requests_per_hour=20,
            quota_window="hourly",
            window_seconds=1800,
        )
        assert cfg.liveness == LivenessConfig(idle_timeout=300, sweep_interval=15)
        assert cfg.images == ImagesConfig(directory=base / "images", default="plate.png")
        assert cfg.logging == LoggingConfig(
            level="DEBUG",
            format="compact",
            file=base / "logs" / "pantry.log",
            colors=False,
        )
        assert cfg.recipes == (
            ("basil", "Pesto: basil, pine nuts, garlic."),
            ("egg", "Omelette: eggs, butter."),
        )

    def test_minimal_config(self, tmp_path: Path) -> None:
        toml_file = tmp_path / "pantry.toml"
        toml_file.write_text("")
        assert load_config(toml_file) == PantryConfig()

    def test_absolute_paths_are_kept(self, tmp_path: Path) -> None:
        images = tmp_path / "elsewhere"
        toml_file = tmp_path / "pantry.toml"
        toml_file.write_text(f'[images]\ndirectory = "{images.as_posix()}"\n')

        assert load_config(toml_file).images.directory == images

    def test_file_not_found_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nonexistent.toml")

    def test_invalid_value_raises(self, tmp_path: Path) -> None:
        toml_file = tmp_path / "pantry.toml"
        toml_file.write_text("[limits]\nmax_clients = 0\n")
        with pytest.raises(ValueError):
            load_config(toml_file)

    def test_unknown_key_raises(self, tmp_path: Path) -> None:
        toml_file = tmp_path / "pantry.toml"
        toml_file.write_text("[server]\nhostname = \"x\"\n")
        with pytest.raises(ValueError, match="hostname"):
            load_config(toml_file)

    @pytest.mark.parametrize(
        "text",
        [
            '[server]\nport = "11000"\n',
            "[limits]\nmax_clients = true\n",
            '[liveness]\nidle_timeout = "10m"\n',
            "[logging]\ncolors = 1\n",
            'server = "127.0.0.1"\n',
        ],
    )
    def test_wrong_type_raises_value_error(self, tmp_path: Path, text: str) -> None:
        toml_file = tmp_path / "pantry.toml"
        toml_file.write_text(text)
        with pytest.raises(ValueError):
            load_config(toml_file)

    def test_unknown_section_raises(self, tmp_path: Path) -> None:
        toml_file = tmp_path / "pantry.toml"
        toml_file.write_text("[cluster]\nseeds = []\n")
        with pytest.raises(ValueError, match="cluster"):
            load_config(toml_file)

    def test_recipes_must_be_strings(self, tmp_path: Path) -> None:
        toml_file = tmp_path / "pantry.toml"
        toml_file.write_text("[recipes]\nbasil = 3\n")
        with pytest.raises(ValueError, match="recipes"):
            load_config(toml_file)

    def test_float_accepted_for_seconds(self, tmp_path: Path) -> None:
        toml_file = tmp_path / "pantry.toml"
        toml_file.write_text("[liveness]\nidle_timeout = 0.5\nsweep_interval = 1\n")
        assert load_config(toml_file).liveness == LivenessConfig(0.5, 1)

    @pytest.mark.parametrize("text", ['level = "chatty"\n', 'format = "fancy"\n'])
    def test_unknown_logging_choice_raises(self, tmp_path: Path, text: str) -> None:
        toml_file = tmp_path / "pantry.toml"
        toml_file.write_text("[logging]\n" + text)
        with pytest.raises(ValueError):
            load_config(toml_file)


# ---------------------------------------------------------------------------
# Auto-discovery
# ---------------------------------------------------------------------------


class TestDiscoverConfig:
    def test_finds_in_cwd(self, tmp_path: Path) -> None:
        toml_file = tmp_path / "pantry.toml"
        toml_file.write_text("[server]\nport = 1\n")
        assert discover_config(tmp_path) == toml_file.resolve()

    def test_walks_up(self, tmp_path: Path) -> None:
        toml_file = tmp_path / "pantry.toml"
        toml_file.write_text("[server]\nport = 2\n")
        child = tmp_path / "a" / "b" / "c"
        child.mkdir(parents=True)
        assert discover_config(child) == toml_file.resolve()

    def test_load_config_no_args_auto_discovery(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (tmp_path / "pantry.toml").write_text("[server]\nport = 12345\n")
        monkeypatch.chdir(tmp_path)
        assert load_config().server.port == 12345
