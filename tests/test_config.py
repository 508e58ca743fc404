import json
import re
from pathlib import Path

import pytest

from reflutter.config import (
    VERSION,
    Config,
    EngineConfig,
    LogConfig,
    Logger,
    ProxyConfig,
    default_config,
    get_config_path,
    load_config,
    save_config,
)


def test_default_config_values():
    config = default_config()
    assert config.version == VERSION == "0.8.4"
    assert config.proxy.default_ip == "127.0.0.1"
    assert config.proxy.default_port == 8083
    assert config.output.default_suffix == ".RE"
    assert config.engine.architectures == ["arm64", "arm32", "x64"]
    assert config.logging.output_file == "reflutter.log"
    assert config.patches.patches_directory == "./patches"


def test_dict_round_trip():
    config = default_config()
    config.engine.custom_engines = {"b": "2", "a": "1"}
    restored = Config.from_dict(config.to_dict())
    assert restored == config


def test_to_dict_sorts_custom_engines():
    config = Config(engine=EngineConfig(custom_engines={"z": "1", "a": "2"}))
    assert list(config.to_dict()["engine"]["custom_engines"]) == ["a", "z"]


def test_from_dict_missing_fields_take_zero_values():
    config = Config.from_dict({"version": "1", "proxy": {"default_port": 9000}})
    assert config.version == "1"
    assert config.proxy == ProxyConfig(default_port=9000)
    assert config.engine == EngineConfig()
    assert config.logging.enable_file is False


def test_from_dict_null_list_becomes_empty():
    config = Config.from_dict({"engine": {"architectures": None}})
    assert config.engine.architectures == []


@pytest.mark.parametrize(
    "data",
    [
        {"proxy": {"default_port": "8083"}},
        {"proxy": {"enable_ssl": 1}},
        {"version": 3},
        {"engine": {"architectures": [1, 2]}},
        {"logging": []},
        [],
    ],
)
def test_from_dict_rejects_wrong_types(data):
    with pytest.raises(ValueError):
        Config.from_dict(data)


def test_load_config_creates_default_when_missing(tmp_path):
    path = tmp_path / "nested" / "config.json"
    config = load_config(path)
    assert config == default_config()
    assert path.exists()
    assert json.loads(path.read_text(encoding="utf-8")) == default_config().to_dict()


def test_load_config_reads_existing(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"version": "x", "logging": {"level": "debug"}}), encoding="utf-8")
    config = load_config(path)
    assert config.version == "x"
    assert config.logging.level == "debug"
    assert config.proxy.default_port == 0


def test_load_config_invalid_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError, match="failed to parse config file"):
        load_config(path)


def test_save_config_is_indented_and_round_trips(tmp_path):
    path = tmp_path / "a" / "b" / "config.json"
    config = default_config()
    config.proxy.default_port = 9999
    save_config(config, path)
    text = path.read_text(encoding="utf-8")
    assert '\n  "version": "0.8.4"' in text
    assert load_config(path) == config


def test_get_config_path_uses_home(monkeypatch, tmp_path):
    monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
    assert get_config_path() == str(tmp_path / ".reflutter" / "config.json")


def test_get_config_path_falls_back(monkeypatch):
    def broken(cls):
        raise RuntimeError("no home")

    monkeypatch.setattr(Path, "home", classmethod(broken))
    assert get_config_path() == "./reflutter.json"


def test_logger_prints_and_writes(tmp_path, capsys):
    log_file = tmp_path / "out.log"
    logger = Logger(LogConfig(level="info", output_file=str(log_file), enable_file=True))
    logger.info("hello")
    logger.warn("careful")
    printed = capsys.readouterr().out.splitlines()
    assert re.fullmatch(r"\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\] \[INFO\] hello", printed[0])
    assert printed[1].endswith("[WARN] careful")
    assert log_file.read_text(encoding="utf-8").splitlines() == printed


def test_logger_debug_only_at_debug_level(tmp_path, capsys):
    quiet = Logger(LogConfig(level="info", enable_file=False))
    quiet.debug("hidden")
    assert capsys.readouterr().out == ""
    loud = Logger(LogConfig(level="debug", enable_file=False))
    loud.debug("shown")
    assert capsys.readouterr().out.rstrip().endswith("[DEBUG] shown")


def test_logger_without_file(tmp_path, capsys):
    log_file = tmp_path / "none.log"
    logger = Logger(LogConfig(output_file=str(log_file), enable_file=False))
    logger.error("boom")
    assert "[ERROR] boom" in capsys.readouterr().out
    assert not log_file.exists()


def test_logger_ignores_unwritable_file(tmp_path, capsys):
    logger = Logger(LogConfig(output_file=str(tmp_path / "missing" / "x.log"), enable_file=True))
    logger.info("still printed")
    assert "[INFO] still printed" in capsys.readouterr().out