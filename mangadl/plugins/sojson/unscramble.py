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

import string
import re

"""
The decrypted image list is scrambled one more time before it's used. The site hides
a handful of single digit keys inside the list itself, at positions that chapter.js
reads with str.charAt(N), then swaps characters around using those keys.

Lists that were never scrambled are common, so nothing in here raises. If the
positions don't hold digits, the list is returned as is.

"""

RE_KEY_LOCATION = re.compile(r"str\.charAt\(\s*(\d+)\s*\)")

def find_key_locations(script):
    return sorted(set(int(n) for n in RE_KEY_LOCATION.findall(script)))

def read_unscramble_key(text, locations):
    """Returns the key digits at the given positions, or None if they aren't all digits."""
    keys = []
    for loc in locations:
        if loc >= len(text) or text[loc] not in string.digits:
            return None
        keys.append(int(text[loc]))

    return keys

def remove_key_characters(text, locations):
    chars = list(text)
    # Each removal shifts everything after it one step to the left.
    for removed, loc in enumerate(sorted(locations)):
        del chars[loc - removed]

    return "".join(chars)

def unscramble_string(text, keys):
    chars = list(text)
    for key in reversed(keys):
        for i in range(len(chars) - 1, key - 1, -1):
            if i % 2 != 0 and i - key >= 0:
                chars[i], chars[i - key] = chars[i - key], chars[i]

    return "".join(chars)

def unscramble(decrypted, script):
    locations = find_key_locations(script)
    if not locations:
        return decrypted

    keys = read_unscramble_key(decrypted, locations)
    if keys is None:
        return decrypted

    return unscramble_string(remove_key_characters(decrypted, locations), keys)

def split_url_list(text):
    return [url.strip() for url in text.split(",") if url.strip()]
