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

from collections import namedtuple
from concurrent.futures import ThreadPoolExecutor
from urllib.parse import urljoin

from .keys import extract_key_material
from .decrypt import decrypt
from .unscramble import unscramble, split_url_list
from .desckey import DescramblingKeyResolver
from .errors import KeyResolutionError

"""
Turns a deobfuscated chapter.js and an imgsrcs blob into the ordered list of pages
for a chapter, with descrambling keys for the pages that need them.

"""

# A page of a chapter. descrambling_key is None for pages that aren't scrambled,
# and error holds the KeyResolutionError of a page whose key couldn't be computed.
Page = namedtuple("Page", ["index", "url", "descrambling_key", "error"])

# Images with this in their URL have their tiles shuffled.
SCRAMBLED_MARKER = "cspiclink"

def normalize_url(url, base_url=None):
    if base_url:
        url = urljoin(base_url, url)
    # TLS hostname checks choke on hosts with underscores, e.g. iweb_5.mangapicgallery.com.
    if url.startswith("https://") and "/_" in url or "https://iweb_" in url:
        url = url.replace("https://", "http://", 1)

    return url

class ChapterPipeline:
    def __init__(self, script, evaluator=None, logger=None):
        self._logger = logger or logging.getLogger("mangadl")
        self.script = script
        self.evaluator = evaluator
        self.key_material = extract_key_material(script)
        self._resolver = None

    @property
    def grid_size(self):
        return self.key_material.grid_size

    @property
    def resolver(self):
        if self._resolver is None:
            self._resolver = DescramblingKeyResolver(self.script, self.evaluator, self._logger)
        return self._resolver

    def image_urls(self, payload, base_url=None):
        """Decrypts and unscrambles the imgsrcs blob into absolute image URLs."""
        text = unscramble(decrypt(payload, self.key_material), self.script)
        urls = [normalize_url(url, base_url) for url in split_url_list(text)]
        self._logger.debug("Decrypted {} image URLs.".format(len(urls)))

        return urls

    def pages(self, payload, base_url=None, workers=4, stop_event=None):
        """
        Returns the pages of the chapter in order. Keys for scrambled pages are resolved
        concurrently on up to `workers` threads. If stop_event gets set, pages whose keys
        weren't resolved yet are left out of the result.

        """
        pages = [Page(i, url, None, None) for i, url in enumerate(self.image_urls(payload, base_url))]
        scrambled = [page for page in pages if SCRAMBLED_MARKER in page.url]
        if not scrambled:
            return pages
        if self.grid_size is None:
            self._logger.warning("Could not determine the tile grid size. "
                "{} scrambled pages will be saved as they are.".format(len(scrambled)))
            return pages

        try:
            resolver = self.resolver
        except KeyResolutionError as e:
            self._logger.error(str(e))
            for page in scrambled:
                pages[page.index] = page._replace(error=e)
            return pages

        def resolve(page):
            if stop_event is not None and stop_event.is_set():
                return None
            try:
                return page._replace(descrambling_key=resolver.resolve(page.url))
            except KeyResolutionError as e:
                self._logger.warning(str(e))
                return page._replace(error=e)

        with ThreadPoolExecutor(max_workers=workers) as executor:
            for page, result in zip(scrambled, executor.map(resolve, scrambled)):
                pages[page.index] = result

        return [page for page in pages if page is not None]
