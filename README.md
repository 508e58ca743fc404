# reflutter

Tools for inspecting and repackaging Flutter applications so that their
network traffic can be routed through an intercepting proxy.

Given an Android `.apk` or an iOS `.ipa`, `reflutter` unpacks it, finds the
compiled Dart snapshot (`libapp.so`, or the `App` binary inside
`App.framework`), takes its MD5 hash, looks that hash up in an engine hash
table, downloads the patched engine for it, writes it over the original and
zips the tree back up. For APKs it also adds a `flutter.proxy` meta-data
entry holding `<ip>:<port>` to `AndroidManifest.xml`, before the first
`</application>`.

## Installation

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

## Command line

```
reflutter <input_file> [options]

Options:
  -o, --output <file>    Output file path
  -p, --proxy <ip>       Proxy IP address
  --port <port>          Proxy port (default: 8083)
  -h, --help             Show this help message
```

Examples:

```
reflutter app.apk
reflutter app.ipa -o patched_app.ipa
reflutter app.apk --proxy 192.168.1.100 --port 8080
```

- The input must end in `.apk` or `.ipa`. By default the output is written
  next to it as `<name>.RE.apk` or `<name>.RE.ipa`.
- Without `-p`/`--proxy` you are asked for an address until a valid IPv4
  address (four dot-separated numbers 0–255) is entered; end of input stops
  the command.
- Unknown options are ignored. A non-numeric `--port` value is an error.
- The command exits with status 0 on success and 1 on any error; processing
  errors are printed to standard error.

## Library use

```python
from reflutter.engine import ReFlutter, ReFlutterConfig

config = ReFlutterConfig(
    input_file="app.apk",
    output_file="app.RE.apk",
    proxy_ip="192.168.1.100",
    proxy_port=8083,
)
tool = ReFlutter(
    config,
    hash_url="https://engines.example.com/enginehash.csv",
    release_base_url="https://engines.example.com/releases/download",
)
tool.load_engine_hashes()
tool.process_apk("app.apk")
```

`ReFlutter` also accepts a `session` (a `requests.Session`). The engine hash
table is CSV with a header line; each further row is
`hash,commit,version,platform,arch,mode` (rows with fewer fields are
skipped, see `parse_engine_hashes`). The patched engine is fetched from
`<release_base_url>/engine-<hash>/libapp.so`. The individual steps are
public too: `extract_archive`, `find_libapp`, `calculate_snapshot_hash`,
`find_engine_info`, `download_patched_engine`, `patch_apk`,
`inject_proxy_config`, `repack_archive`, `process_ipa`. `extract_archive`
refuses entries whose path leads outside the target directory.

Failures are raised as `reflutter.engine.ReFlutterError`. `validate_ip` is
the address check used by the command.

## Other modules

- `reflutter.config` – the JSON settings file: `Config` (with `to_dict` and
  `from_dict`) and its sections `EngineConfig`, `ProxyConfig`,
  `OutputConfig`, `LogConfig`, `PatchConfig`; `default_config`,
  `load_config` (writes the defaults first if the file is missing),
  `save_config` and `get_config_path` (`~/.reflutter/config.json`). `Logger`
  prints timestamped lines and, when `enable_file` is set, appends them to
  `output_file`; `debug` messages appear only at level `debug`.
- `reflutter.snapshot` – `parse_snapshot` reads the 20-byte little-endian
  header into a `DartSnapshot`; `SnapshotAnalyzer.from_file(...)` and
  `extract_symbols()` collect library, class and function names matched in
  the snapshot text as `Symbol`s; `find_elf_symbols` returns the dynamic
  then regular symbols of a 32- or 64-bit ELF file.
- `reflutter.patching` – `PatchManager` with `add_socket_patch`,
  `add_dart_patch` and `apply_patches`, which replaces the first occurrence
  of each `Patch` pattern and rewrites the file only if something changed;
  `generate_network_security_config`; `AndroidManifestPatcher`
  (`add_network_security_config`, `add_proxy_permissions`) and
  `IOSInfoPlistPatcher` (`add_networking_permissions`), which edit text
  manifests and plists in place.
- `reflutter.frida` – `FridaScriptGenerator(platform, arch)` and
  `generate_base_script(base_address)`, which returns a hook script for
  Dart initialisation, sockets, `SSL_write` and `HttpURLConnection`.
- `reflutter.fileutils` – `create_directory_structure`,
  `cleanup_temp_files`, `backup_file` and `restore_file`
  (`<file>.backup`).

## What it does not do

- The built-in engine table and download addresses in `reflutter.config`
  (`engines.example.com`) are placeholders; no engine table or patched
  engines ship with the package. The command line has no option to change
  them, so real use goes through the library with `hash_url` and
  `release_base_url`.
- The command line does not read the settings file from `reflutter.config`;
  its settings (signing, alignment, traffic logging, patch switches) are
  stored but not acted on anywhere.
- Nothing signs or aligns the repacked APK; sign it yourself before
  installing. Manifests are edited as plain text, so binary (compiled)
  `AndroidManifest.xml` files are not handled.
- No proxy server is included; point the app at one you run yourself.