"""Engine lookup and patching of Flutter application packages."""

from __future__ import annotations

import hashlib
import os
import re
import shutil
import tempfile
import zipfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Iterator

import requests

from reflutter.config import DEFAULT_HASH_URL, DEFAULT_RELEASE_BASE_URL

TIMEOUT = 30.0
DEFAULT_PROXY_PORT = 8083

_DECIMAL = re.compile(r"[+-]?[0-9]+")
_CHUNK_SIZE = 64 * 1024

_PROXY_META = (
    "\n\t\t<meta-data\n"
    '\t\t\tandroid:name="flutter.proxy"\n'
    '\t\t\tandroid:value="{ip}:{port}" />\n'
    "\t"
)
_APPLICATION_END = b"</application>"


class ReFlutterError(Exception):
    """Raised when a package cannot be analysed or patched."""


@dataclass
class EngineInfo:
    """One row of the engine hash table."""

    hash: str
    commit: str
    version: str
    platform: str
    arch: str
    mode: str


@dataclass
class ReFlutterConfig:
    """Settings for a single patching run."""

    input_file: str = ""
    output_file: str = ""
    proxy_ip: str = ""
    proxy_port: int = DEFAULT_PROXY_PORT
    platform: str = "android"
    architecture: str = ""
    mode: str = "release"


def parse_engine_hashes(lines: Iterable[str]) -> list[EngineInfo]:
    """Parse CSV lines after the header; rows with fewer than six fields are skipped."""
    rows = iter(lines)
    next(rows, None)
    engines = []
    for line in rows:
        if line.endswith("\n"):
            line = line[:-1]
        if line.endswith("\r"):
            line = line[:-1]
        parts = line.split(",")
        if len(parts) >= 6:
            engines.append(EngineInfo(*parts[:6]))
    return engines


def validate_ip(ip: str) -> bool:
    """Return True for four dot-separated decimal numbers in 0..255."""
    parts = ip.split(".")
    if len(parts) != 4:
        return False
    return all(_DECIMAL.fullmatch(part) and 0 <= int(part) <= 255 for part in parts)


@contextmanager
def _step(what: str) -> Iterator[None]:
    try:
        yield
    except (ReFlutterError, OSError) as exc:
        raise ReFlutterError(f"{what}: {exc}") from exc


def _is_dir(path: str) -> bool:
    return os.path.isdir(path) and not os.path.islink(path)


def _scan_last(directory: str, predicate: Callable[[str], bool]) -> str | None:
    found = None
    for name in sorted(os.listdir(directory)):
        path = os.path.join(directory, name)
        is_dir = _is_dir(path)
        if predicate(path):
            found = path
            if is_dir:
                continue
            # a matching file ends the scan of its directory
            break
        if is_dir:
            found = _scan_last(path, predicate) or found
    return found


def _walk_last_match(root, predicate: Callable[[str], bool]) -> str | None:
    """Walk in lexical order, keeping the last match; a match ends its directory."""
    root = str(root)
    os.lstat(root)
    if predicate(root):
        return root
    if not _is_dir(root):
        return None
    return _scan_last(root, predicate)


def _iter_files(root: Path) -> Iterator[Path]:
    entries = sorted(os.scandir(root), key=lambda entry: entry.name)
    for entry in entries:
        if entry.is_dir(follow_symlinks=False):
            yield from _iter_files(Path(entry.path))
        else:
            yield Path(entry.path)


def _is_libapp(path: str) -> bool:
    return os.path.basename(path).endswith("libapp.so")


def _is_app_framework_binary(path: str) -> bool:
    return "App.framework" in path and path.endswith("App")


class ReFlutter:
    """Finds the engine of a Flutter app and swaps in a patched one."""

    def __init__(
        self,
        config: ReFlutterConfig,
        session: requests.Session | None = None,
        hash_url: str = DEFAULT_HASH_URL,
        release_base_url: str = DEFAULT_RELEASE_BASE_URL,
    ):
        self.config = config
        self.engine_hashes: list[EngineInfo] = []
        self.session = session if session is not None else requests.Session()
        self.hash_url = hash_url
        self.release_base_url = release_base_url

    def load_engine_hashes(self) -> list[EngineInfo]:
        """Fetch the engine hash table and add its rows to ``engine_hashes``."""
        try:
            response = self.session.get(self.hash_url, timeout=TIMEOUT)
            text = response.text
        except requests.RequestException as exc:
            raise ReFlutterError(f"failed to fetch engine hashes: {exc}") from exc
        self.engine_hashes.extend(parse_engine_hashes(text.split("\n")))
        return self.engine_hashes

    def extract_archive(self, archive_path, extract_dir) -> None:
        """Unpack a ZIP-based package (APK or IPA) into ``extract_dir``."""
        try:
            archive = zipfile.ZipFile(archive_path)
        except (OSError, zipfile.BadZipFile) as exc:
            raise ReFlutterError(f"failed to open APK: {exc}") from exc

        root = Path(extract_dir)
        with archive:
            root.mkdir(parents=True, exist_ok=True)
            base = root.resolve()
            try:
                for info in archive.infolist():
                    target = root / info.filename
                    if not target.resolve().is_relative_to(base):
                        raise ReFlutterError(f"illegal entry path: {info.filename}")
                    if info.is_dir():
                        target.mkdir(parents=True, exist_ok=True)
                        continue
                    target.parent.mkdir(parents=True, exist_ok=True)
                    with archive.open(info) as source, open(target, "wb") as destination:
                        shutil.copyfileobj(source, destination)
                    mode = (info.external_attr >> 16) & 0o777
                    if mode:
                        target.chmod(mode)
            except zipfile.BadZipFile as exc:
                raise ReFlutterError(f"corrupt archive entry: {exc}") from exc

    def find_libapp(self, extract_dir) -> Path:
        """Locate libapp.so in an unpacked APK."""
        try:
            found = _walk_last_match(extract_dir, _is_libapp)
        except OSError as exc:
            raise ReFlutterError(str(exc)) from exc
        if found is None:
            raise ReFlutterError("libapp.so not found in APK")
        return Path(found)

    def calculate_snapshot_hash(self, path) -> str:
        """Return the hex MD5 digest of a file."""
        digest = hashlib.md5()
        try:
            with open(path, "rb") as handle:
                for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
                    digest.update(chunk)
        except OSError as exc:
            raise ReFlutterError(f"failed to open libapp.so: {exc}") from exc
        return digest.hexdigest()

    def find_engine_info(self, hash_value: str) -> EngineInfo:
        """Return the first engine whose hash matches."""
        for engine in self.engine_hashes:
            if engine.hash == hash_value:
                return engine
        raise ReFlutterError(f"engine not found for hash: {hash_value}")

    def download_patched_engine(self, engine_info: EngineInfo) -> bytes:
        """Download the patched engine binary for an engine."""
        url = f"{self.release_base_url}/engine-{engine_info.hash}/libapp.so"
        try:
            response = self.session.get(url, timeout=TIMEOUT)
        except requests.RequestException as exc:
            raise ReFlutterError(f"failed to download patched engine: {exc}") from exc
        if response.status_code != 200:
            raise ReFlutterError(
                f"failed to download patched engine: status {response.status_code}"
            )
        return response.content

    def patch_apk(self, extract_dir, libapp_path, patched_engine: bytes) -> None:
        """Replace libapp.so and add the proxy setting to the manifest."""
        try:
            Path(libapp_path).write_bytes(patched_engine)
        except OSError as exc:
            raise ReFlutterError(f"failed to write patched engine: {exc}") from exc
        with _step("failed to inject proxy config"):
            self.inject_proxy_config(extract_dir)

    def inject_proxy_config(self, extract_dir) -> None:
        """Insert a flutter.proxy meta-data entry before the first </application>."""
        manifest = Path(extract_dir) / "AndroidManifest.xml"
        try:
            data = manifest.read_bytes()
        except OSError as exc:
            raise ReFlutterError(f"failed to read AndroidManifest.xml: {exc}") from exc

        block = _PROXY_META.format(ip=self.config.proxy_ip, port=self.config.proxy_port)
        modified = data.replace(_APPLICATION_END, block.encode("utf-8") + _APPLICATION_END, 1)

        try:
            manifest.write_bytes(modified)
        except OSError as exc:
            raise ReFlutterError(f"failed to write modified manifest: {exc}") from exc

    def repack_archive(self, extract_dir, output_path) -> None:
        """Zip every file under ``extract_dir`` into ``output_path``."""
        root = Path(extract_dir)
        try:
            archive = zipfile.ZipFile(
                output_path, "w", compression=zipfile.ZIP_DEFLATED, strict_timestamps=False
            )
        except OSError as exc:
            raise ReFlutterError(f"failed to create output APK: {exc}") from exc
        with archive:
            for path in _iter_files(root):
                archive.write(path, path.relative_to(root).as_posix())

    def process_apk(self, apk_path) -> None:
        """Patch an Android package and write the result to the configured output."""
        print(f"Processing APK: {apk_path}")
        with tempfile.TemporaryDirectory(prefix="reflutter_") as tmp_dir:
            print("Extracting APK...")
            with _step("failed to extract APK"):
                self.extract_archive(apk_path, tmp_dir)

            print("Finding libapp.so...")
            with _step("failed to find libapp.so"):
                libapp_path = self.find_libapp(tmp_dir)

            print("Calculating snapshot hash...")
            with _step("failed to calculate snapshot hash"):
                snapshot_hash = self.calculate_snapshot_hash(libapp_path)
            print(f"SnapshotHash: {snapshot_hash}")

            print("Finding engine information...")
            with _step("failed to find engine info"):
                engine_info = self.find_engine_info(snapshot_hash)

            print("Downloading patched engine...")
            with _step("failed to download patched engine"):
                patched_engine = self.download_patched_engine(engine_info)

            print("Patching APK...")
            with _step("failed to patch APK"):
                self.patch_apk(tmp_dir, libapp_path, patched_engine)

            print("Repacking APK...")
            with _step("failed to repack APK"):
                self.repack_archive(tmp_dir, self.config.output_file)

        print(f"The resulting apk file: {self.config.output_file}")
        print("Please sign the apk file")
        print(f"Configure Burp Suite proxy server to listen on *:{self.config.proxy_port}")
        print("Proxy Tab -> Options -> Proxy Listeners -> Edit -> Binding Tab")
        print("Then enable invisible proxying in Request Handling Tab")
        print("Support Invisible Proxying -> true")

    def process_ipa(self, ipa_path) -> None:
        """Patch an iOS package and write the result to the configured output."""
        print(f"Processing IPA: {ipa_path}")
        with tempfile.TemporaryDirectory(prefix="reflutter_ios_") as tmp_dir:
            print("Extracting IPA...")
            with _step("failed to extract IPA"):
                self.extract_archive(ipa_path, tmp_dir)

            print("Finding App.framework...")
            try:
                framework_path = _walk_last_match(tmp_dir, _is_app_framework_binary)
            except OSError:
                framework_path = None
            if framework_path is None:
                raise ReFlutterError("App.framework not found in IPA")

            print("Calculating snapshot hash...")
            with _step("failed to calculate snapshot hash"):
                snapshot_hash = self.calculate_snapshot_hash(framework_path)
            print(f"SnapshotHash: {snapshot_hash}")

            print("Finding engine information...")
            with _step("failed to find engine info"):
                engine_info = self.find_engine_info(snapshot_hash)

            print("Downloading patched engine...")
            with _step("failed to download patched engine"):
                patched_engine = self.download_patched_engine(engine_info)

            try:
                Path(framework_path).write_bytes(patched_engine)
            except OSError as exc:
                raise ReFlutterError(f"failed to write patched engine: {exc}") from exc

            print("Repacking IPA...")
            with _step("failed to repack IPA"):
                self.repack_archive(tmp_dir, self.config.output_file)

        print(f"The resulting ipa file: {self.config.output_file}")
        print("Configure Burp Suite proxy server settings as described in the documentation")