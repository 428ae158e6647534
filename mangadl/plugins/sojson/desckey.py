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

import logging

from .errors import KeyResolutionError
from .jsmini import JSEvaluator

"""
Scrambled images get their tile order from a key computed in the browser by the
renImg function of chapter.js. We cut the key computation out of that function,
drop everything that needs a DOM and run what's left on the image URL.

"""

RENIMG_START = "var renImg = function(img,width,height,id){"
RENIMG_END = "key = key.split("
# Lines containing any of these need a browser and don't contribute to the key.
JS_FILTERS = ("jQuery", "document", "getContext", "toDataURL", "getImageData", "width", "height")

SNIPPET_TEMPLATE = """
function replacePos(strObj, pos, replacetext) {{
    var str = strObj.substr(0, pos) + replacetext + strObj.substring(pos + 1, strObj.length);
    return str;
}}
(function (url) {{ {routine}; return key; }})
"""

def extract_key_routine(script):
    start = script.find(RENIMG_START)
    if start == -1:
        return ""
    body = script[start + len(RENIMG_START):]
    end = body.find(RENIMG_END)
    if end == -1:
        return ""

    lines = [line for line in body[:end].split("\n") if not any(f in line for f in JS_FILTERS)]
    return "\n".join(lines).replace("img.src", "url")

def build_snippet(routine):
    return SNIPPET_TEMPLATE.format(routine=routine)

class DescramblingKeyResolver:
    """
    Computes descrambling keys for the images of one chapter script.
    The routine is isolated once, and resolve() can then be called from several threads.

    """
    def __init__(self, script, evaluator=None, logger=None):
        self._logger = logger or logging.getLogger("mangadl")
        self.evaluator = evaluator or JSEvaluator()

        routine = extract_key_routine(script)
        if not routine.strip():
            raise KeyResolutionError("Failed to extract the image key routine from chapter.js.")
        self.snippet = build_snippet(routine)

    def resolve(self, url):
        key = self.evaluator.evaluate(self.snippet, url)
        if not key:
            raise KeyResolutionError("Failed to evaluate the descrambling key for: {}".format(url))

        self._logger.debug("Descrambling key for {}: {}".format(url, key))
        return key

def resolve_key(script, url, evaluator=None):
    return DescramblingKeyResolver(script, evaluator).resolve(url)
