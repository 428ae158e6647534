import pytest

from conftest import obfuscate
from mangadl.plugins.sojson import deobfuscate, FormatError, extract_key_material
from mangadl.plugins.sojson.deobfuscate import HEADER_LENGTH, FOOTER_LENGTH, SOJSON_V4_MARKER

SCRIPT = """var key = CryptoJS.enc.Hex.parse("00112233445566778899aabbccddeeff");
var iv  = CryptoJS.enc.Hex.parse("0f0e0d0c0b0a09080706050403020100");
var widthnum = heightnum = 4;
function x(a) { return a + 1; }"""

def wrap(payload):
    header = SOJSON_V4_MARKER.ljust(HEADER_LENGTH, "#")
    return header + payload + "#" * FOOTER_LENGTH

@pytest.mark.parametrize("text", [SCRIPT, "a", "\t\n !~", "".join(chr(c) for c in range(32, 127))])
def test_round_trip(text):
    for seed in range(3):
        assert deobfuscate(obfuscate(text, seed)) == text

def test_non_ascii_round_trip():
    text = "var s = 'ページ';"
    assert deobfuscate(obfuscate(text)) == text

def test_key_extraction_scenario():
    script = deobfuscate(obfuscate("var key=CryptoJS.enc.Hex.parse(\"00112233445566778899aabbccddeeff\");"
        "var iv=CryptoJS.enc.Hex.parse(\"00000000000000000000000000000000\");"))
    material = extract_key_material(script)
    assert material.key == bytes([0x00, 0x11, 0x22, 0x33, 0x44, 0x55, 0x66, 0x77,
                                  0x88, 0x99, 0xaa, 0xbb, 0xcc, 0xdd, 0xee, 0xff])
    assert material.grid_size is None

def test_wrong_marker():
    with pytest.raises(FormatError):
        deobfuscate("['sojson.v5']" + obfuscate("abc")[13:])

def test_too_short():
    with pytest.raises(FormatError):
        deobfuscate(SOJSON_V4_MARKER)

def test_non_numeric_token():
    with pytest.raises(FormatError):
        deobfuscate(wrap("118ab97x1$4"))

def test_code_point_out_of_range():
    with pytest.raises(FormatError):
        deobfuscate(wrap("118a99999999"))

def test_separator_at_edges_is_ignored():
    assert deobfuscate(wrap("ab118cd97ef")) == "va"
