# mangadl - A plugin-based manga downloading tool.
# Copyright (C) 2016 Mino <mino@minomino.org>

# This file is part of mangadl.

# mangadl is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

# mangadl is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.

# You should have received a copy of the GNU General Public License
# along with mangadl. If not, see <http://www.gnu.org/licenses/>.

import binascii
import base64

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives import padding

from .errors import DecryptionError

BLOCK_SIZE = 16

def decode_payload(payload):
    # The blob sometimes comes wrapped over several lines.
    payload = "".join(payload.split())
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecryptionError("Malformed Base64 payload: {}".format(e)) from e

def strip_padding(data):
    """
    Removes the padding from raw AES output. Some deployments pad with PKCS#7, but the
    usual one pads with NUL bytes, so we only trust PKCS#7 if it unpads cleanly.

    """
    unpadder = padding.PKCS7(BLOCK_SIZE * 8).unpadder()
    try:
        return unpadder.update(data) + unpadder.finalize()
    except ValueError:
        return data.rstrip(b"\x00")

def decrypt_bytes(data, key, iv):
    if len(iv) != BLOCK_SIZE:
        raise DecryptionError("IV must be {} bytes long, got {}.".format(BLOCK_SIZE, len(iv)))
    if len(data) % BLOCK_SIZE != 0:
        raise DecryptionError("Ciphertext length {} is not a multiple of the block size.".format(len(data)))
    try:
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        return decryptor.update(data) + decryptor.finalize()
    except ValueError as e:
        raise DecryptionError("AES decryption failed: {}".format(e)) from e

def decrypt(payload, key_material):
    """Decrypts the Base64 imgsrcs blob into the (possibly still scrambled) comma-separated URL list."""
    plain = strip_padding(decrypt_bytes(decode_payload(payload), key_material.key, key_material.iv))
    try:
        return plain.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptionError("Decrypted data is not UTF-8 text. Wrong key or IV?") from e
