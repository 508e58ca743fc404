"""Generation of Frida instrumentation scripts for Flutter apps."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

_UINT64_LIMIT = 1 << 64


def _indent(lines: Iterable[str], width: int) -> list[str]:
    pad = " " * width
    return [pad + line if line else "" for line in lines]


def _hook(
    comment: str,
    var: str,
    export: str,
    on_enter: Sequence[str],
    on_leave: Sequence[str] = (),
) -> list[str]:
    """Lines attaching an interceptor to an exported symbol of libapp."""
    handlers = [("onEnter: function(args) {", on_enter)]
    if on_leave:
        handlers.append(("onLeave: function(retval) {", on_leave))

    attach: list[str] = []
    for position, (head, body) in enumerate(handlers, start=1):
        attach.append(head)
        attach.extend(_indent(body, 4))
        attach.append("}," if position < len(handlers) else "}")

    return [
        f"// {comment}",
        f'var {var} = libapp.getExportByName("{export}");',
        f"if ({var}) {{",
        f"    Interceptor.attach({var}, {{",
        *_indent(attach, 8),
        "    });",
        "}",
    ]


def _dart_hook() -> list[str]:
    return _hook(
        "Hook Dart_Initialize",
        "dart_init",
        "Dart_Initialize",
        ['console.log("[+] Dart_Initialize called");'],
        ['console.log("[+] Dart_Initialize finished");'],
    )


def _socket_hook() -> list[str]:
    return _hook(
        "Hook socket operations",
        "socket_func",
        "socket",
        [
            'console.log("[+] Socket called with domain: " + args[0] +',
            '          ", type: " + args[1] + ", protocol: " + args[2]);',
        ],
        ['console.log("[+] Socket returned: " + retval);'],
    )


def _args(names: Sequence[str]) -> list[str]:
    return [f"var {name} = args[{index}];" for index, name in enumerate(names)]


def _connect_hook() -> list[str]:
    octets = [f'((ip >> {shift}) & 0xFF) + "." +' for shift in (24, 16, 8)]
    octets.append('(ip & 0xFF) + ":" +')
    octets.append("((port >> 8) | (port << 8)) & 0xFFFF);")
    inet = [
        "var port = Memory.readU16(addr.add(2));",
        "var ip = Memory.readU32(addr.add(4));",
        'console.log("[+] Connecting to: " +',
        *_indent(octets, 10),
    ]
    body = [
        *_args(["sockfd", "addr"]),
        'console.log("[+] Connect called on socket: " + sockfd);',
        "",
        "// Parse sockaddr structure",
        "var family = Memory.readU16(addr);",
        "if (family == 2) { // AF_INET",
        *_indent(inet, 4),
        "}",
    ]
    return _hook("Hook connect operations", "connect_func", "connect", body)


def _ssl_hook() -> list[str]:
    body = [
        *_args(["ssl", "buf", "len"]),
        'console.log("[+] SSL_write called with " + len + " bytes");',
        "console.log(hexdump(buf, { length: len.toInt32() }));",
    ]
    return _hook("Hook SSL/TLS functions", "ssl_write", "SSL_write", body)


def _http_hooks() -> list[str]:
    overrides = (
        ("getRequestMethod", "method", "HTTP Request Method"),
        ("getURL", "url", "HTTP Request URL"),
    )
    inner = ['var http_client = Java.use("java.net.HttpURLConnection");']
    for position, (java_method, var, label) in enumerate(overrides):
        if position:
            inner.append("")
        inner.extend(
            [
                f"http_client.{java_method}.implementation = function() {{",
                f"    var {var} = this.{java_method}();",
                f'    console.log("[+] {label}: " + {var});',
                f"    return {var};",
                "};",
            ]
        )
    return [
        "// Hook HTTP operations",
        "try {",
        *_indent(inner, 4),
        "} catch (e) {",
        '    console.log("[-] HTTP hooking failed: " + e);',
        "}",
    ]


def _helpers() -> list[str]:
    dump = [
        "// Function to dump memory region",
        "function dumpMemory(address, size) {",
        '    console.log("[+] Dumping memory at 0x" + address.toString(16)'
        ' + " (size: " + size + ")");',
        "    console.log(hexdump(address, { length: size }));",
        "}",
    ]
    scan_body = [
        "var addr = base.add(i);",
        "try {",
        "    var data = Memory.readByteArray(addr, pattern.length);",
        "    if (data && Memory.readByteArray(addr, pattern.length)"
        ".equals(pattern)) {",
        "        results.push(addr);",
        "    }",
        "} catch (e) {",
        "    // Skip invalid memory",
        "}",
    ]
    find = [
        "// Function to find pattern in memory",
        "function findPattern(pattern, base, size) {",
        "    var results = [];",
        "    for (var i = 0; i < size; i += 4) {",
        *_indent(scan_body, 8),
        "    }",
        "    return results;",
        "}",
    ]
    return [*dump, "", *find]


@dataclass
class FridaScriptGenerator:
    """Builds Frida scripts for a given platform and architecture."""

    platform: str
    arch: str

    def generate_base_script(self, base_address: int) -> str:
        """Return a script hooking Dart init, sockets, TLS writes and HTTP calls."""
        if not 0 <= base_address < _UINT64_LIMIT:
            raise ValueError(f"base address out of range: {base_address}")

        sections = [_dart_hook(), _socket_hook(), _connect_hook(), _ssl_hook(), _http_hooks()]
        perform: list[str] = [
            'console.log("[+] reFlutter Frida script loaded");',
            "",
            "// Hook Flutter engine functions",
            'var libapp = Module.load("libapp.so");',
            f'var base_addr = ptr("0x{base_address:x}");',
        ]
        for section in sections:
            perform.append("")
            perform.extend(section)
        perform.extend(["", 'console.log("[+] All hooks installed successfully");'])

        lines = [
            "",
            f"// reFlutter Frida Script - Generated for {self.platform}/{self.arch}",
            f"// Base address: 0x{base_address:x}",
            "",
            "Java.perform(function() {",
            *_indent(perform, 4),
            "});",
            "",
            *_helpers(),
            "",
            'console.log("[+] reFlutter Frida script ready");',
        ]
        return "\n".join(lines) + "\n"