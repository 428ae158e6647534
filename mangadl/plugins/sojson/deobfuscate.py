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

import sys
import re

from .errors import FormatError

"""
Reverses the sojson.v4 wrapper that chapter.js is served with.

The wrapper is a fixed blob of JS that feeds String.fromCharCode with a long
string of decimal character codes, each separated by a random run of letters.
Everything between the fixed-length header and footer is that string.

"""

SOJSON_V4_MARKER = "['sojson.v4']"
HEADER_LENGTH = 240
FOOTER_LENGTH = 59

RE_SEPARATOR = re.compile(r"[a-zA-Z]+")
RE_CODE_POINT = re.compile(r"[0-9]+")

def deobfuscate(source):
    if not source.startswith(SOJSON_V4_MARKER):
        raise FormatError("Obfuscated code header mismatch. Expected sojson.v4.")
    if len(source) <= HEADER_LENGTH + FOOTER_LENGTH:
        raise FormatError("Obfuscated code is too short to contain a sojson.v4 payload.")

    tokens = RE_SEPARATOR.split(source[HEADER_LENGTH:len(source) - FOOTER_LENGTH])
    # A separator at either edge of the payload leaves an empty token behind.
    if tokens and not tokens[0]:
        tokens.pop(0)
    if tokens and not tokens[-1]:
        tokens.pop()

    chars = []
    for i, token in enumerate(tokens):
        if not RE_CODE_POINT.fullmatch(token):
            raise FormatError("Unexpected token {!r} at position {} of the sojson.v4 payload."
                .format(token[:20], i))
        code = int(token)
        if code > sys.maxunicode:
            raise FormatError("Character code {} is out of range.".format(code))
        chars.append(chr(code))

    return "".join(chars)
