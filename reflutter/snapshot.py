"""Dart snapshot parsing and symbol discovery in snapshots and ELF files."""

from __future__ import annotations

import re
import struct
from dataclasses import dataclass, field
from pathlib import Path

_HEADER = struct.Struct("<IIQI")

_SYMBOL_PATTERNS = [
    re.compile(r"Library:'package:([^']+)'"),
    re.compile(r"Class: ([A-Za-z_][A-Za-z0-9_]*) extends ([A-Za-z_][A-Za-z0-9_]*)"),
    re.compile(r"Function '([^']+)':"),
    re.compile(r"Code Offset: _kDartIsolateSnapshotInstructions \+ (0x[0-9a-fA-F]+)"),
]

_HEX_PREFIX = re.compile(r"0x([0-9a-fA-F]+)")


@dataclass
class DartSnapshot:
    """The fixed header of a Dart snapshot and the bytes that follow it."""

    magic: int
    version: int
    features: int
    length: int
    data: bytes


@dataclass
class Symbol:
    """A named address found in a snapshot or binary."""

    name: str
    address: int = 0
    size: int = 0
    kind: str = ""


def parse_snapshot(data: bytes) -> DartSnapshot:
    """Parse the 20-byte little-endian header and keep the rest as data."""
    if len(data) < _HEADER.size:
        raise ValueError("snapshot too small")
    magic, version, features, length = _HEADER.unpack_from(data)
    return DartSnapshot(magic, version, features, length, bytes(data[_HEADER.size:]))


def _hex_prefix_value(text: str) -> int:
    match = _HEX_PREFIX.match(text)
    return int(match.group(1), 16) if match else 0


@dataclass
class SnapshotAnalyzer:
    """Finds Dart library, class and function names in snapshot data."""

    snapshot: DartSnapshot
    symbols: list[Symbol] = field(default_factory=list)

    @classmethod
    def from_file(cls, snapshot_path) -> "SnapshotAnalyzer":
        data = Path(snapshot_path).read_bytes()
        try:
            snapshot = parse_snapshot(data)
        except ValueError as exc:
            raise ValueError(f"failed to parse snapshot: {exc}") from exc
        return cls(snapshot)

    def extract_symbols(self) -> list[Symbol]:
        """Append every pattern match to ``symbols`` and return the list."""
        text = self.snapshot.data.decode("utf-8", errors="replace")
        for pattern in _SYMBOL_PATTERNS:
            for match in pattern.finditer(text):
                groups = match.groups()
                symbol = Symbol(name=groups[0], kind="function")
                if len(groups) > 1 and groups[1].startswith("0x"):
                    symbol.address = _hex_prefix_value(groups[1])
                self.symbols.append(symbol)
        return self.symbols


_SHT_SYMTAB = 2
_SHT_DYNSYM = 11


@dataclass
class _Section:
    kind: int
    offset: int
    size: int
    link: int
    entsize: int


class _ElfReader:
    def __init__(self, data: bytes):
        if len(data) < 16 or data[:4] != b"\x7fELF":
            raise ValueError("bad magic number")
        elf_class, elf_data = data[4], data[5]
        if elf_class not in (1, 2):
            raise ValueError(f"unknown ELF class {elf_class}")
        if elf_data not in (1, 2):
            raise ValueError(f"unknown ELF data encoding {elf_data}")
        self.data = data
        self.is64 = elf_class == 2
        self.order = "<" if elf_data == 1 else ">"
        self.sections = self._read_sections()

    def _unpack(self, fmt: str, offset: int) -> tuple:
        layout = struct.Struct(self.order + fmt)
        if offset < 0 or offset + layout.size > len(self.data):
            raise ValueError("unexpected end of ELF data")
        return layout.unpack_from(self.data, offset)

    def _read_sections(self) -> list[_Section]:
        if self.is64:
            header = self._unpack("HHIQQQIHHHHHH", 16)
        else:
            header = self._unpack("HHIIIIIHHHHHH", 16)
        shoff, shentsize, shnum = header[5], header[10], header[11]
        if shnum == 0 or shoff == 0:
            return []
        section_fmt = "IIQQQQIIQQ" if self.is64 else "IIIIIIIIII"
        sections = []
        for index in range(shnum):
            values = self._unpack(section_fmt, shoff + index * shentsize)
            sections.append(
                _Section(kind=values[1], offset=values[4], size=values[5],
                         link=values[6], entsize=values[9])
            )
        return sections

    def _string_at(self, table: _Section, offset: int) -> str:
        start = table.offset + offset
        end = self.data.find(b"\0", start, table.offset + table.size)
        if end == -1:
            end = table.offset + table.size
        return self.data[start:end].decode("utf-8", errors="replace")

    def symbols(self, section_kind: int, kind: str) -> list[Symbol]:
        table = next((s for s in self.sections if s.kind == section_kind), None)
        if table is None or table.link >= len(self.sections):
            return []
        strings = self.sections[table.link]
        entry_size = 24 if self.is64 else 16
        fmt = "IBBHQQ" if self.is64 else "IIIBBH"
        found = []
        for offset in range(table.offset + entry_size, table.offset + table.size, entry_size):
            values = self._unpack(fmt, offset)
            if self.is64:
                name_offset, value, size = values[0], values[4], values[5]
            else:
                name_offset, value, size = values[0], values[1], values[2]
            found.append(Symbol(self._string_at(strings, name_offset), value, size, kind))
        return found


def find_elf_symbols(file_path) -> list[Symbol]:
    """Return the dynamic symbols followed by the regular symbols of an ELF file."""
    data = Path(file_path).read_bytes()
    try:
        reader = _ElfReader(data)
    except (ValueError, struct.error) as exc:
        raise ValueError(f"failed to open ELF file: {exc}") from exc

    symbols: list[Symbol] = []
    for section_kind, kind in ((_SHT_DYNSYM, "dynamic"), (_SHT_SYMTAB, "regular")):
        try:
            symbols.extend(reader.symbols(section_kind, kind))
        except (ValueError, struct.error):
            continue
    return symbols