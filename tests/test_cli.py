import io
import sys
import zipfile

import pytest
import requests
import responses

from reflutter.cli import build_config, get_user_input, main, show_usage
from reflutter.config import DEFAULT_HASH_URL, DEFAULT_RELEASE_BASE_URL, VERSION
from reflutter.engine import ReFlutterError

EMPTY_MD5 = "d41d8cd98f00b204e9800998ecf8427e"
MANIFEST = b"<manifest>\n<application>\n</application>\n</manifest>\n"


def _make_apk(path):
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr("AndroidManifest.xml", MANIFEST)
        archive.writestr("lib/arm64-v8a/libapp.so", b"")
    return path


def test_build_config_apk_defaults():
    config = build_config(["app.apk"])
    assert config.input_file == "app.apk"
    assert config.output_file == "app.RE.apk"
    assert config.platform == "android"
    assert config.proxy_port == 8083
    assert config.proxy_ip == ""
    assert config.mode == "release"


def test_build_config_ipa():
    config = build_config(["path/app.ipa"])
    assert config.output_file == "path/app.RE.ipa"
    assert config.platform == "ios"


def test_build_config_short_options():
    config = build_config(["app.apk", "-o", "out.apk", "-p", "10.0.0.2", "--port", "8080"])
    assert (config.output_file, config.proxy_ip, config.proxy_port) == (
        "out.apk",
        "10.0.0.2",
        8080,
    )


def test_build_config_long_options_and_unknown_ignored():
    config = build_config(["app.ipa", "--verbose", "--output", "x.ipa", "--proxy", "10.0.0.9"])
    assert config.output_file == "x.ipa"
    assert config.proxy_ip == "10.0.0.9"


def test_build_config_option_without_value_ignored():
    config = build_config(["app.apk", "--port"])
    assert config.proxy_port == 8083


def test_build_config_invalid_port():
    with pytest.raises(ReFlutterError, match="Invalid port number"):
        build_config(["app.apk", "--port", "eighty"])


def test_build_config_bad_extension():
    with pytest.raises(ReFlutterError, match="must be .apk or .ipa"):
        build_config(["app.zip"])


def test_show_usage(capsys):
    show_usage()
    out = capsys.readouterr().out
    assert f"reFlutter v{VERSION}" in out
    assert "Usage: reflutter <input_file> [options]" in out


def test_main_without_arguments(capsys):
    assert main([]) == 1
    assert "Usage: reflutter" in capsys.readouterr().out


def test_main_help(capsys):
    assert main(["--help"]) == 0
    assert "Options:" in capsys.readouterr().out


def test_main_bad_extension(capsys):
    assert main(["app.txt"]) == 1
    assert "Error: Input file must be .apk or .ipa" in capsys.readouterr().out


def test_main_missing_input(tmp_path, capsys):
    missing = str(tmp_path / "missing.apk")
    assert main([missing, "-p", "10.0.0.1"]) == 1
    assert f"Error: Input file '{missing}' does not exist" in capsys.readouterr().out


def test_get_user_input(monkeypatch, capsys):
    monkeypatch.setattr(sys, "stdin", io.StringIO("hello\r\n"))
    assert get_user_input("Say: ") == "hello"
    assert "Say: " in capsys.readouterr().out


def test_main_prompts_until_valid_ip(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(sys, "stdin", io.StringIO("bad\n10.0.0.3\n"))
    assert main([str(tmp_path / "missing.apk")]) == 1
    out = capsys.readouterr().out
    assert out.count("Invalid IP address format. Please try again.") == 1
    assert "does not exist" in out


def test_main_prompt_end_of_input(tmp_path, monkeypatch):
    monkeypatch.setattr(sys, "stdin", io.StringIO(""))
    assert main([str(tmp_path / "app.apk")]) == 1


def test_main_full_run(tmp_path, capsys):
    apk = _make_apk(tmp_path / "app.apk")
    csv = f"hash,commit,version,platform,arch,mode\n{EMPTY_MD5},c,3.0,android,arm64,release\n"
    with responses.RequestsMock() as mock:
        mock.add(responses.GET, DEFAULT_HASH_URL, body=csv)
        mock.add(
            responses.GET,
            f"{DEFAULT_RELEASE_BASE_URL}/engine-{EMPTY_MD5}/libapp.so",
            body=b"PATCHED",
        )
        assert main([str(apk), "-p", "10.0.0.1"]) == 0

    output = tmp_path / "app.RE.apk"
    with zipfile.ZipFile(output) as archive:
        assert archive.read("lib/arm64-v8a/libapp.so") == b"PATCHED"
    assert "Processing completed successfully!" in capsys.readouterr().out


def test_main_hash_download_failure(tmp_path, capsys):
    apk = _make_apk(tmp_path / "app.apk")
    with responses.RequestsMock() as mock:
        mock.add(responses.GET, DEFAULT_HASH_URL, body=requests.ConnectionError("down"))
        assert main([str(apk), "-p", "10.0.0.1"]) == 1
    assert "Failed to load engine hashes" in capsys.readouterr().err


def test_main_unknown_engine(tmp_path, capsys):
    apk = _make_apk(tmp_path / "app.apk")
    with responses.RequestsMock() as mock:
        mock.add(responses.GET, DEFAULT_HASH_URL, body="hash,commit,version,platform,arch,mode\n")
        assert main([str(apk), "-p", "10.0.0.1"]) == 1
    err = capsys.readouterr().err
    assert "Failed to process file" in err
    assert "engine not found" in err