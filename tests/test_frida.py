import pytest

from reflutter.frida import FridaScriptGenerator


def test_script_names_target():
    script = FridaScriptGenerator("android", "arm64").generate_base_script(0x1000)
    assert "Generated for android/arm64" in script
    assert "// Base address: 0x1000" in script


def test_base_address_appears_twice_in_hex():
    script = FridaScriptGenerator("ios", "x64").generate_base_script(0xDEADBEEF)
    assert script.count("0xdeadbeef") == 2
    assert 'ptr("0xdeadbeef")' in script


def test_script_contains_hooks():
    script = FridaScriptGenerator("android", "arm32").generate_base_script(0)
    for name in ("Dart_Initialize", "SSL_write", "connect", "java.net.HttpURLConnection"):
        assert name in script
    assert script.rstrip().endswith('console.log("[+] reFlutter Frida script ready");')


def test_scripts_differ_only_by_parameters():
    first = FridaScriptGenerator("android", "arm64").generate_base_script(16)
    second = FridaScriptGenerator("android", "arm64").generate_base_script(16)
    assert first == second


@pytest.mark.parametrize("address", [-1, 1 << 64])
def test_out_of_range_address(address):
    with pytest.raises(ValueError):
        FridaScriptGenerator("android", "arm64").generate_base_script(address)