"""Command-line entry point."""

from __future__ import annotations

import os
import re
import sys

from reflutter.config import VERSION
from reflutter.engine import (
    DEFAULT_PROXY_PORT,
    ReFlutter,
    ReFlutterConfig,
    ReFlutterError,
    validate_ip,
)

_INTEGER = re.compile(r"[+-]?[0-9]+")

_OPTIONS = (
    ("-o, --output <file>", "Output file path"),
    ("-p, --proxy <ip>", "Proxy IP address"),
    ("--port <port>", f"Proxy port (default: {DEFAULT_PROXY_PORT})"),
    ("-h, --help", "Show this help message"),
)

_EXAMPLES = (
    "reflutter app.apk",
    "reflutter app.ipa -o patched_app.ipa",
    "reflutter app.apk --proxy 192.168.1.100 --port 8080",
)

_OPTION_WIDTH = 23

_PACKAGE_KINDS = ((".apk", "android"), (".ipa", "ios"))


def show_usage() -> None:
    """Print the usage text, listing the options and some examples."""
    lines = [
        f"reFlutter v{VERSION} - Flutter Reverse Engineering Framework",
        "Usage: reflutter <input_file> [options]",
        "",
        "Options:",
    ]
    lines.extend(f"  {flag:<{_OPTION_WIDTH}}{text}" for flag, text in _OPTIONS)
    lines.extend(["", "Examples:"])
    lines.extend(f"  {example}" for example in _EXAMPLES)
    print("\n".join(lines))


def get_user_input(prompt: str) -> str:
    """Prompt on stdout and return one line from stdin; EOFError at end of input."""
    line = input(prompt)
    return line[:-1] if line.endswith("\r") else line


def build_config(argv) -> ReFlutterConfig:
    """Build the run configuration from the input file and its options."""
    args = list(argv)
    if not args:
        raise ReFlutterError("missing input file")
    input_file, *options = args

    config = ReFlutterConfig(
        input_file=input_file,
        proxy_port=DEFAULT_PROXY_PORT,
        platform="android",
        mode="release",
    )
    for suffix, platform in _PACKAGE_KINDS:
        if input_file.endswith(suffix):
            config.output_file = input_file[: -len(suffix)] + ".RE" + suffix
            config.platform = platform
            break
    else:
        raise ReFlutterError("Input file must be .apk or .ipa")

    remaining = iter(options)
    for arg in remaining:
        if arg not in ("-o", "--output", "-p", "--proxy", "--port"):
            continue
        value = next(remaining, None)
        if value is None:
            break
        if arg in ("-o", "--output"):
            config.output_file = value
        elif arg in ("-p", "--proxy"):
            config.proxy_ip = value
        else:
            if not _INTEGER.fullmatch(value):
                raise ReFlutterError("Invalid port number")
            config.proxy_port = int(value)
    return config


def _prompt_proxy_ip() -> str:
    while True:
        proxy_ip = get_user_input("Please enter your Burp Suite IP: ")
        if validate_ip(proxy_ip):
            return proxy_ip
        print("Invalid IP address format. Please try again.")


def main(argv=None) -> int:
    """Run the command and return its exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        show_usage()
        return 1
    if args[0] in ("-h", "--help"):
        show_usage()
        return 0

    try:
        config = build_config(args)
    except ReFlutterError as exc:
        print(f"Error: {exc}")
        return 1

    if not config.proxy_ip:
        try:
            config.proxy_ip = _prompt_proxy_ip()
        except EOFError:
            print()
            print("Error: no proxy IP address given")
            return 1

    if not os.path.exists(config.input_file):
        print(f"Error: Input file '{config.input_file}' does not exist")
        return 1

    reflutter = ReFlutter(config)

    print("Loading engine hash information...")
    try:
        reflutter.load_engine_hashes()
    except ReFlutterError as exc:
        print(f"Failed to load engine hashes: {exc}", file=sys.stderr)
        return 1

    try:
        if config.platform == "android":
            reflutter.process_apk(config.input_file)
        else:
            reflutter.process_ipa(config.input_file)
    except (ReFlutterError, OSError) as exc:
        print(f"Failed to process file: {exc}", file=sys.stderr)
        return 1

    print("Processing completed successfully!")
    return 0


if __name__ == "__main__":
    sys.exit(main())