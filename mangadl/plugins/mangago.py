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

import os.path
import logging
import requests
import html
import sys
import re

from urllib.parse import urljoin, urlparse

from mangadl.plugins.utils.threaded_downloader import ThreadedDownloaderPlugin
from mangadl.plugins.sojson import (deobfuscate, descramble, ChapterPipeline, JSEvaluator,
    ScriptCache, FormatError)

__version__ = "0.1"

URL_BASE = "https://www.mangago.me/"

RE_CHAPTER = re.compile(r"^https?://(?:www\.)?mangago\.(?:me|zone)/read-manga/(?P<manga>[^/]+)/(?P<chapter>.+?)/?$", flags=re.ASCII)
RE_IMGSRCS = re.compile(r"var imgsrcs\s*=\s*['\"]([a-zA-Z0-9+=/]+)['\"]")
RE_CHAPTER_JS = re.compile(r"<script[^>]+src=[\"']([^\"']*chapter\.js[^\"']*)[\"']")
RE_PAGE_DROPDOWN = re.compile(r"<ul[^>]+id=[\"']dropdown-menu-page[\"']")

HEADERS = {
    "User-Agent": "Mozilla/5.0 (X11; Linux x86_64; rv:109.0) Gecko/20100101 Firefox/115.0",
    "Referer": URL_BASE,
}

class mangago(ThreadedDownloaderPlugin):
    name = "Mangago"
    options = [ ("threads", "4"),
                ("lossless", "0"),
                ("descramble", "1"),
                ("eval_timeout", "10"),
                ("script_ttl", "300") ]

    # Shared by every chapter downloaded in this process.
    script_cache = ScriptCache()

    def __init__(self, url, session=None):
        self._url = url
        if session is None:
            session = requests.Session()
            session.headers.update(HEADERS)
        self.session = session

        try:
            threads = int(self["threads"])
            self._eval_timeout = float(self["eval_timeout"])
        except ValueError:
            self.logger.critical("Unintelligible number in the options. Please use numbers for "
                "threads and eval_timeout.")
            sys.exit(1)

        super().__init__(threads)

        regex = RE_CHAPTER.match(url)
        self._directory = "{} {}".format(regex.group("manga"), regex.group("chapter").replace("/", " "))
        self.pipeline = None
        self.pages = []

    @classmethod
    def input_options(cls, options, defaults=False):
        super().input_options(options, defaults)

        # Shared by every instance, so it is set once here rather than in __init__.
        ttl = next(opt.value for opt in cls.options if opt.key == "script_ttl")
        try:
            cls.script_cache.ttl = int(ttl)
        except ValueError:
            logging.getLogger("mangadl").critical("Unintelligible number in the options. "
                "Please use a number for script_ttl.")
            sys.exit(1)

    @staticmethod
    def can_handle(url):
        return RE_CHAPTER.match(url) is not None

    def progress(self):
        return self.download_counter, len(self.pages)

    def _get(self, url):
        r = self.session.get(url, headers={"Referer": self._url})
        r.raise_for_status()
        return r

    def fetch_script(self, url):
        self.logger.debug("Fetching '{}'...".format(url))
        return self._get(url).text

    def fetch_encrypted_blob(self, chapter_url):
        """Returns the URL of chapter.js and the encrypted image list from a chapter page."""
        text = self._get(chapter_url).text

        blob = RE_IMGSRCS.search(text)
        if blob is None:
            raise FormatError("Could not find imgsrcs in the chapter page.")
        script = RE_CHAPTER_JS.search(text)
        if script is None:
            raise FormatError("Could not find chapter.js in the chapter page.")
        if RE_PAGE_DROPDOWN.search(text):
            self.logger.warning("This chapter is served a few pages at a time, which isn't supported. "
                "Only the pages on '{}' will be downloaded.".format(chapter_url))

        return urljoin(chapter_url, html.unescape(script.group(1))), blob.group(1)

    def fetch_bitmap(self, url):
        return self._get(url).content

    def load_script(self, url):
        return self.script_cache.get_or_compute(url, lambda u: deobfuscate(self.fetch_script(u)))

    def downloader(self):
        script_url, payload = self.fetch_encrypted_blob(self._url)
        script = self.load_script(script_url)

        evaluator = JSEvaluator(timeout=self._eval_timeout, logger=self.logger)
        self.pipeline = ChapterPipeline(script, evaluator, logger=self.logger)
        self.pages = self.pipeline.pages(payload, base_url=self._url,
            workers=self._thread_count, stop_event=self.stop_event)
        self.logger.info("Found {} pages.".format(len(self.pages)))

        self.distribute_items(self.pages, expected_downloads=len(self.pages))
        dler = super().downloader()
        for dl in dler:
            yield dl

    def download_one(self, page):
        label = "page {}".format(page.index + 1)
        if page.error is not None:
            self.skip(label, page.error)
            return

        try:
            data = self.fetch_bitmap(page.url)
        except requests.RequestException as e:
            self.skip(label, e)
            return

        ext = os.path.splitext(urlparse(page.url).path)[1].lstrip(".").lower() or "jpg"
        if page.descrambling_key is not None and bool(int(self["descramble"])):
            keywords = {"format":"PNG", "optimize":True} if bool(int(self["lossless"])) else {"format":"JPEG", "quality":95, "optimize":True}
            data = descramble(data, page.descrambling_key, self.pipeline.grid_size, **keywords)
            ext = "jpg" if keywords["format"] == "JPEG" else "png"

        self.got_download(("{:04d}.{}".format(page.index + 1, ext), data))
