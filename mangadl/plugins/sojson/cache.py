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

import threading
import time

class ScriptCache:
    """
    Thread-safe map of script URL -> deobfuscated script with a time to live.
    Expired entries are only dropped when they're looked up again.

    The lock is held while computing a missing entry, so two chapters of the same
    series downloading at once won't both fetch and deobfuscate the same script.

    """
    def __init__(self, ttl=300, clock=time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries = {}
        self._lock = threading.Lock()

    def get(self, url):
        with self._lock:
            return self._lookup(url)

    def put(self, url, value):
        with self._lock:
            self._entries[url] = (value, self._clock())

    def get_or_compute(self, url, compute):
        with self._lock:
            value = self._lookup(url)
            if value is None:
                value = compute(url)
                self._entries[url] = (value, self._clock())
            return value

    def clear(self):
        with self._lock:
            self._entries.clear()

    def _lookup(self, url):
        entry = self._entries.get(url)
        if entry is None:
            return None
        value, stored = entry
        if self._clock() - stored >= self.ttl:
            del self._entries[url]
            return None
        return value

    def __len__(self):
        with self._lock:
            return len(self._entries)
