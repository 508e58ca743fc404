"""Binary patches and manifest/plist edits that route app traffic to a proxy."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

_APPLICATION_TAG = "<application"
_APPLICATION_RE = re.compile(r"<application([^>]*)>")
_NETWORK_SECURITY_ATTR = 'android:networkSecurityConfig="@xml/network_security_config"'
_INTERNET_PERMISSION = "android.permission.INTERNET"

_PROXY_PERMISSIONS = (
    "android.permission.INTERNET",
    "android.permission.ACCESS_NETWORK_STATE",
    "android.permission.ACCESS_WIFI_STATE",
    "android.permission.WRITE_EXTERNAL_STORAGE",
    "android.permission.READ_EXTERNAL_STORAGE",
)

_ATS_SETTINGS = """
\t<key>NSAppTransportSecurity</key>
\t<dict>
\t\t<key>NSAllowsArbitraryLoads</key>
\t\t<true/>
\t\t<key>NSAllowsArbitraryLoadsInWebContent</key>
\t\t<true/>
\t\t<key>NSAllowsArbitraryLoadsForMedia</key>
\t\t<true/>
\t</dict>"""

_NETWORK_SECURITY_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<network-security-config>
    <domain-config cleartextTrafficPermitted="true">
        <domain includeSubdomains="true">{proxy_ip}</domain>
        <domain includeSubdomains="true">localhost</domain>
        <domain includeSubdomains="true">127.0.0.1</domain>
        <domain includeSubdomains="true">10.0.0.0/8</domain>
        <domain includeSubdomains="true">172.16.0.0/12</domain>
        <domain includeSubdomains="true">192.168.0.0/16</domain>
    </domain-config>
    <base-config cleartextTrafficPermitted="true">
        <trust-anchors>
            <certificates src="system"/>
            <certificates src="user"/>
        </trust-anchors>
    </base-config>
</network-security-config>"""


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="surrogateescape")


def _encode(text: str) -> bytes:
    return text.encode("utf-8", errors="surrogateescape")


def _insert_after_first_line(text: str, new_line: str) -> str:
    lines = text.split("\n")
    if len(lines) > 1:
        lines.insert(1, new_line)
        return "\n".join(lines)
    return text


def _permission_tag(permission: str) -> str:
    return f'<uses-permission android:name="{permission}" />'


@dataclass
class Patch:
    """A byte pattern to find in a binary and the bytes that replace it."""

    name: str
    description: str
    original: bytes
    replacement: bytes
    offset: int = 0
    applied: bool = False


@dataclass
class PatchManager:
    """Collects patches for a platform/architecture and applies them to files."""

    platform: str
    arch: str
    patches: list[Patch] = field(default_factory=list)

    def add_socket_patch(self) -> None:
        """Add the socket interception patch."""
        self.patches.append(
            Patch(
                name="socket_intercept",
                description="Intercepts socket connections for traffic monitoring",
                original=bytes([0x40, 0x00, 0x80, 0xD2]),
                replacement=bytes([0x40, 0x00, 0x80, 0xD2]),
            )
        )

    def add_dart_patch(self) -> None:
        """Add the Dart debugging patch."""
        self.patches.append(
            Patch(
                name="dart_debug",
                description="Enables Dart debugging and class/function printing",
                original=bytes([0x1F, 0x20, 0x03, 0xD5]),
                replacement=bytes([0x00, 0x00, 0x80, 0xD2]),
            )
        )

    def apply_patches(self, binary_path) -> list[Patch]:
        """Patch the first occurrence of each pattern; write the file if anything changed."""
        path = Path(binary_path)
        data = bytearray(path.read_bytes())

        modified = False
        for patch in self.patches:
            offset = data.find(patch.original)
            if offset == -1:
                print(f"Warning: Pattern not found for patch {patch.name}")
                continue
            count = min(len(data) - offset, len(patch.replacement))
            data[offset:offset + count] = patch.replacement[:count]
            patch.applied = True
            patch.offset = offset
            modified = True
            print(f"Applied patch: {patch.name} at offset 0x{offset:x}")

        if modified:
            path.write_bytes(bytes(data))
        return self.patches


@dataclass
class NetworkSecurityConfig:
    """An Android network security configuration document."""

    xml_content: str


def generate_network_security_config(proxy_ip: str, proxy_port: int) -> NetworkSecurityConfig:
    """Build a config that allows cleartext traffic and trusts user certificates."""
    return NetworkSecurityConfig(_NETWORK_SECURITY_TEMPLATE.format(proxy_ip=proxy_ip))


class AndroidManifestPatcher:
    """Edits a text AndroidManifest.xml; every edit starts from the file as first read."""

    def __init__(self, manifest_path):
        self.manifest_path = Path(manifest_path)
        self.original_data = self.manifest_path.read_bytes()

    def add_network_security_config(self, config_path) -> None:
        """Reference the network security config and make sure INTERNET is requested."""
        manifest = _decode(self.original_data)

        if _APPLICATION_TAG in manifest:
            def add_attribute(match: re.Match) -> str:
                tag = match.group(0)
                if "networkSecurityConfig" in tag:
                    return tag
                return tag.replace(">", " " + _NETWORK_SECURITY_ATTR + ">", 1)

            manifest = _APPLICATION_RE.sub(add_attribute, manifest)

        if _INTERNET_PERMISSION not in manifest:
            manifest = _insert_after_first_line(manifest, _permission_tag(_INTERNET_PERMISSION))

        self.manifest_path.write_bytes(_encode(manifest))

    def add_proxy_permissions(self) -> None:
        """Add each networking/storage permission that is not mentioned yet."""
        manifest = _decode(self.original_data)
        for permission in _PROXY_PERMISSIONS:
            if permission not in manifest:
                manifest = _insert_after_first_line(manifest, _permission_tag(permission))
        self.manifest_path.write_bytes(_encode(manifest))


class IOSInfoPlistPatcher:
    """Edits a text Info.plist."""

    def __init__(self, plist_path):
        self.plist_path = Path(plist_path)
        self.original_data = self.plist_path.read_bytes()

    def add_networking_permissions(self) -> None:
        """Insert App Transport Security exceptions before the last closing dict."""
        plist = _decode(self.original_data)
        if "</dict>" in plist and "NSAppTransportSecurity" not in plist:
            index = plist.rindex("</dict>")
            plist = plist[:index] + _ATS_SETTINGS + "\n" + plist[index:]
        self.plist_path.write_bytes(_encode(plist))