import base64
import random

import PIL.Image
import pytest

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives import padding

from mangadl.plugins.sojson.deobfuscate import SOJSON_V4_MARKER, HEADER_LENGTH, FOOTER_LENGTH

KEYS = [
    (bytes(range(16)), bytes(range(16, 32))),
    (b"\xe1" * 16, b"\x00" * 16),
    (bytes.fromhex("e11adc3949ba59abbe56e057f20f883e" "0123456789abcdef0123456789abcdef"), b"ivivivivivivivIV"),
]

def obfuscate(text, seed=0):
    """Wraps text the way sojson.v4 does, with random letter runs between the character codes."""
    rng = random.Random(seed)
    letters = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
    body = ""
    for i, c in enumerate(text):
        if i:
            body += "".join(rng.choice(letters) for _ in range(rng.randint(1, 3)))
        body += str(ord(c))

    header = SOJSON_V4_MARKER + "['\\x" + "7" * (HEADER_LENGTH - len(SOJSON_V4_MARKER) - 4)
    footer = "'].filter(function(x){return x})"
    footer += ";" * (FOOTER_LENGTH - len(footer))
    assert len(header) == HEADER_LENGTH and len(footer) == FOOTER_LENGTH
    return header + body + footer

def encrypt(plaintext, key, iv, pad="zero"):
    data = plaintext.encode("utf-8")
    if pad == "pkcs7":
        padder = padding.PKCS7(128).padder()
        data = padder.update(data) + padder.finalize()
    else:
        data += b"\x00" * (-len(data) % 16)

    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return base64.b64encode(encryptor.update(data) + encryptor.finalize()).decode("ascii")

def scramble_list(text, keys, locations):
    """Inverse of unscramble(): swaps characters forward, then hides the key digits at the locations."""
    chars = list(text)
    for key in keys:
        for i in range(key, len(chars)):
            if i % 2 != 0:
                chars[i], chars[i - key] = chars[i - key], chars[i]
    for loc, key in zip(sorted(locations), keys):
        chars.insert(loc, str(key))

    return "".join(chars)

def scramble_tiles(image, key, grid_size):
    """Inverse of reassemble() for a key that is a permutation of the tiles."""
    slots = [int(s) for s in key.split("a")]
    width, height = image.size
    tw, th = width // grid_size, height // grid_size
    result = image.copy()
    for idx, dst in enumerate(slots):
        sx, sy = (idx % grid_size) * tw, (idx // grid_size) * th
        dx, dy = (dst % grid_size) * tw, (dst // grid_size) * th
        result.paste(image.crop((sx, sy, sx + tw, sy + th)), (dx, dy))

    return result

def noise_image(width, height, seed=0):
    rng = random.Random(seed)
    return PIL.Image.frombytes("RGB", (width, height), bytes(rng.randrange(256) for _ in range(width * height * 3)))

def chapter_script(key_hex, iv_hex, grid_size=4, locations=(), with_renimg=True):
    """A deobfuscated chapter.js with just enough in it for the whole pipeline."""
    lines = [
        "var key = CryptoJS.enc.Hex.parse(\"{}\");".format(key_hex),
        "var iv  = CryptoJS.enc.Hex.parse(\"{}\");".format(iv_hex),
    ]
    if grid_size is not None:
        lines.append("var widthnum = heightnum = {};".format(grid_size))
    for loc in locations:
        lines.append("var k{0} = str.charAt({0});".format(loc))
    if with_renimg:
        lines.append(renimg(grid_size or 1))
    return "\n".join(lines)

# The key for an image is the tile order reversed, rotated by the number of
# characters in the URL modulo the tile count.
RENIMG_TEMPLATE = """var renImg = function(img,width,height,id){
    var canvas = document.createElement('canvas');
    var ctx = canvas.getContext('2d');
    var url = img.src;
    var count = {count};
    var key = "";
    var shift = url.length % count;
    for (var i = 0; i < count; i++) {
        var n = (count - 1 - i + shift) % count;
        key += (i > 0 ? "a" : "") + n;
    }
    canvas.width = width;
    key = key.split("a");
};"""

def expected_renimg_key(url, grid_size):
    count = grid_size * grid_size
    shift = len(url) % count
    return "a".join(str((count - 1 - i + shift) % count) for i in range(count))

@pytest.fixture
def image():
    return noise_image(64, 48)

def renimg(grid_size):
    return RENIMG_TEMPLATE.replace("{count}", str(grid_size * grid_size))
