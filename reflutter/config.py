"""Configuration handling and a small console/file logger."""

from __future__ import annotations

import json
from dataclasses import MISSING, asdict, dataclass, field, fields
from datetime import datetime
from pathlib import Path
from typing import Any

VERSION = "0.8.4"

DEFAULT_HASH_URL = "https://engines.example.com/enginehash.csv"
DEFAULT_RELEASE_BASE_URL = "https://engines.example.com/releases/download"


@dataclass
class EngineConfig:
    """Where engine metadata comes from and which targets are supported."""

    hash_url: str = ""
    release_base_url: str = ""
    architectures: list[str] = field(default_factory=list)
    platforms: list[str] = field(default_factory=list)
    modes: list[str] = field(default_factory=list)
    custom_engines: dict[str, str] = field(default_factory=dict)


@dataclass
class ProxyConfig:
    """Interception proxy settings."""

    default_ip: str = ""
    default_port: int = 0
    enable_ssl: bool = False
    cert_path: str = ""
    key_path: str = ""
    log_traffic: bool = False
    traffic_log_dir: str = ""


@dataclass
class OutputConfig:
    """How output packages are produced."""

    default_suffix: str = ""
    backup_original: bool = False
    sign_apk: bool = False
    signer_path: str = ""
    align_apk: bool = False
    aligner_path: str = ""


@dataclass
class LogConfig:
    """Logging settings."""

    level: str = ""
    output_file: str = ""
    enable_file: bool = False
    max_size: int = 0
    max_backups: int = 0


@dataclass
class PatchConfig:
    """Which patches are enabled."""

    enable_socket: bool = False
    enable_dart: bool = False
    enable_ssl: bool = False
    enable_http: bool = False
    custom_patches: list[str] = field(default_factory=list)
    patches_directory: str = ""


def _zero_value(f) -> Any:
    if f.default is not MISSING:
        return f.default
    return f.default_factory()


def _checked(value: Any, zero: Any, where: str) -> Any:
    if value is None:
        return type(zero)()
    if isinstance(zero, bool):
        if isinstance(value, bool):
            return value
    elif isinstance(zero, int):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    elif isinstance(zero, str):
        if isinstance(value, str):
            return value
    elif isinstance(zero, list):
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            return list(value)
    elif isinstance(zero, dict):
        if isinstance(value, dict) and all(isinstance(item, str) for item in value.values()):
            return dict(value)
    raise ValueError(f"invalid value for {where}: {value!r}")


def _section_from_dict(cls, data: Any, section: str):
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ValueError(f"invalid value for {section}: {data!r}")
    kwargs = {
        f.name: _checked(data[f.name], _zero_value(f), f"{section}.{f.name}")
        for f in fields(cls)
        if f.name in data
    }
    return cls(**kwargs)


_SECTIONS = {
    "engine": EngineConfig,
    "proxy": ProxyConfig,
    "output": OutputConfig,
    "logging": LogConfig,
    "patches": PatchConfig,
}


@dataclass
class Config:
    """The whole configuration file."""

    version: str = ""
    engine: EngineConfig = field(default_factory=EngineConfig)
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LogConfig = field(default_factory=LogConfig)
    patches: PatchConfig = field(default_factory=PatchConfig)

    def to_dict(self) -> dict[str, Any]:
        """Return the configuration as JSON-ready nested dictionaries."""
        data = asdict(self)
        engines = data["engine"]["custom_engines"]
        data["engine"]["custom_engines"] = dict(sorted(engines.items()))
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "Config":
        """Build a configuration; missing fields take their zero values."""
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError(f"invalid configuration document: {data!r}")
        kwargs: dict[str, Any] = {}
        if "version" in data:
            kwargs["version"] = _checked(data["version"], "", "version")
        for name, section_cls in _SECTIONS.items():
            if name in data:
                kwargs[name] = _section_from_dict(section_cls, data[name], name)
        return cls(**kwargs)


def default_config() -> Config:
    """Return the built-in default configuration."""
    return Config(
        version=VERSION,
        engine=EngineConfig(
            hash_url=DEFAULT_HASH_URL,
            release_base_url=DEFAULT_RELEASE_BASE_URL,
            architectures=["arm64", "arm32", "x64"],
            platforms=["android", "ios"],
            modes=["release", "debug"],
            custom_engines={},
        ),
        proxy=ProxyConfig(
            default_ip="127.0.0.1",
            default_port=8083,
            enable_ssl=False,
            log_traffic=True,
            traffic_log_dir="./traffic_logs",
        ),
        output=OutputConfig(
            default_suffix=".RE",
            backup_original=True,
            sign_apk=False,
            align_apk=False,
        ),
        logging=LogConfig(
            level="info",
            output_file="reflutter.log",
            enable_file=True,
            max_size=10,
            max_backups=3,
        ),
        patches=PatchConfig(
            enable_socket=True,
            enable_dart=True,
            enable_ssl=True,
            enable_http=True,
            custom_patches=[],
            patches_directory="./patches",
        ),
    )


def save_config(config: Config, config_path) -> None:
    """Write the configuration as indented JSON, creating parent directories."""
    path = Path(config_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(config.to_dict(), indent=2, ensure_ascii=False)
    path.write_text(text, encoding="utf-8")


def load_config(config_path) -> Config:
    """Load the configuration, writing the defaults first if the file is missing."""
    path = Path(config_path)
    if not path.exists():
        config = default_config()
        save_config(config, path)
        return config

    text = path.read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"failed to parse config file: {exc}") from exc
    try:
        return Config.from_dict(data)
    except ValueError as exc:
        raise ValueError(f"failed to parse config file: {exc}") from exc


def get_config_path() -> str:
    """Return the default location of the configuration file."""
    try:
        home = Path.home()
    except (RuntimeError, KeyError, OSError):
        return "./reflutter.json"
    return str(home / ".reflutter" / "config.json")


class Logger:
    """Prints timestamped messages and optionally appends them to a file."""

    def __init__(self, config: LogConfig):
        self.level = config.level
        self.output_file = config.output_file
        self.enable_file = config.enable_file

    def log(self, level: str, message: str) -> None:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        line = f"[{timestamp}] [{level}] {message}"
        print(line)
        if self.enable_file:
            self._write_to_file(line)

    def info(self, message: str) -> None:
        self.log("INFO", message)

    def warn(self, message: str) -> None:
        self.log("WARN", message)

    def error(self, message: str) -> None:
        self.log("ERROR", message)

    def debug(self, message: str) -> None:
        if self.level == "debug":
            self.log("DEBUG", message)

    def _write_to_file(self, line: str) -> None:
        try:
            with open(self.output_file, "a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        except OSError:
            return