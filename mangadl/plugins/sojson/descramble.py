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

import PIL.Image
import io

"""
Puts the tiles of a scrambled image back in order.

The image is cut into a grid_size x grid_size grid. The key has one slot per tile,
separated by KEY_DELIMITER, and slot N tells which source tile belongs at position N.
Tiles are numbered row by row. Bad keys never raise: an unusable slot just points
at tile 0, so a broken key gives a garbled page instead of no page.

"""

KEY_DELIMITER = "a"

def parse_key(key, grid_size):
    """Returns exactly grid_size**2 source tile indices, with unusable slots set to 0."""
    count = grid_size * grid_size
    slots = []
    for slot in key.split(KEY_DELIMITER)[:count]:
        slot = slot.strip()
        value = int(slot) if slot.isascii() and slot.isdigit() else 0
        slots.append(value if value < count else 0)
    slots.extend([0] * (count - len(slots)))

    return slots

def reassemble(image, key, grid_size):
    if grid_size is None or grid_size < 1:
        return image

    width, height = image.size
    tile_width = width // grid_size
    tile_height = height // grid_size
    # Starting from a copy keeps the right and bottom remainder strips, which no tile covers.
    result = image.copy()

    for idx, src in enumerate(parse_key(key, grid_size)):
        dx = (idx % grid_size) * tile_width
        dy = (idx // grid_size) * tile_height
        sx = (src % grid_size) * tile_width
        sy = (src // grid_size) * tile_height
        w = min(tile_width, width - dx)
        h = min(tile_height, height - dy)
        if w <= 0 or h <= 0:
            continue
        result.paste(image.crop((sx, sy, sx + w, sy + h)), (dx, dy))

    return result

def descramble(data, key, grid_size, format=None, **kwargs):
    """
    Bytes in, bytes out version of reassemble(). The image is saved in its original
    format unless told otherwise. JPEG output defaults to quality 95 with optimization.

    """
    img = PIL.Image.open(io.BytesIO(data))
    format = format or img.format or "PNG"
    new = reassemble(img, key, grid_size)

    if format == "JPEG":
        if "quality" not in kwargs:
            kwargs["quality"] = 95
        if "optimize" not in kwargs:
            kwargs["optimize"] = True
        if new.mode not in ("RGB", "L", "CMYK"):
            new = new.convert("RGB")

    image_data = io.BytesIO()
    new.save(image_data, format=format, **kwargs)

    return image_data.getvalue()
