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

import re

from collections import namedtuple

from .errors import FormatError, KeyNotFoundError

# Key material needed to decrypt imgsrcs. grid_size is None when the script
# doesn't tell us how the images are tiled.
KeyMaterial = namedtuple("KeyMaterial", ["key", "iv", "grid_size"])

RE_HEX_VARIABLE = r"(?<![\w$.]){}\s*=\s*CryptoJS\.enc\.Hex\.parse\(\s*[\"']([0-9a-zA-Z]*)[\"']\s*\)"
RE_GRID_SIZE = re.compile(r"var\s*widthnum\s*=\s*heightnum\s*=\s*(\d+)\s*;")

def find_hex_variable(script, variable):
    res = re.search(RE_HEX_VARIABLE.format(re.escape(variable)), script)
    if res is None:
        raise KeyNotFoundError(variable)

    return res.group(1)

def decode_hex(text):
    if len(text) % 2 != 0:
        raise FormatError("Hex string must have an even length, got {}.".format(len(text)))
    try:
        return bytes.fromhex(text)
    except ValueError:
        raise FormatError("Invalid hex string: {!r}".format(text)) from None

def find_grid_size(script):
    """Returns the number of tiles per row/column, or None if it can't be determined."""
    res = RE_GRID_SIZE.search(script)
    if res is None:
        return None

    size = int(res.group(1))
    return size if size >= 1 else None

def extract_key_material(script, key_variable="key", iv_variable="iv"):
    key = decode_hex(find_hex_variable(script, key_variable))
    iv = decode_hex(find_hex_variable(script, iv_variable))

    return KeyMaterial(key=key, iv=iv, grid_size=find_grid_size(script))
