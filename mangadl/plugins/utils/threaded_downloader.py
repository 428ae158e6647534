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
import queue
import time

from mangadl import BasePlugin

class ThreadedDownloaderPlugin(BasePlugin):
    """
    Base for plugins that download many files at once. Subclasses queue up work with
    distribute_items() and implement download_one(), which either hands a file over
    with got_download() or gives up on the item with skip().

    """
    def __init__(self, thread_count=10):
        self._thread_count = thread_count
        self._threads = []
        self.stop_event = threading.Event()
        self._items = queue.Queue()
        self._downloads = queue.Queue()
        self._expected = -1
        self.download_counter = 0
        self.skip_counter = 0
        self._skip_lock = threading.Lock()

    def got_download(self, item):
        self._downloads.put(item)

    def skip(self, item, reason=None):
        """Marks an item as done without a download, so the downloader doesn't wait for it."""
        with self._skip_lock:
            self.skip_counter += 1
        if reason:
            self.logger.warning("Skipping {}: {}".format(item, reason))

    def download_one(self, item):
        raise NotImplementedError("The downloader itself needs to be implemented.")

    def distribute_items(self, items, expected_downloads=-1):
        self._expected = expected_downloads
        for item in items:
            self._items.put(item)

    def downloader(self):
        # Start all the threads and start downloading immediately.
        self._start_threads()

        try:
            while not self._done():
                # Try until we either get a download or threads are dead.
                try:
                    filename, data = self._downloads.get(timeout=0.25)
                except queue.Empty:
                    if self._are_threads_alive():
                        continue
                    # Threads are all dead. Assert we have all downloads we should have.
                    if self._expected != -1 and not self.stop_event.is_set() and not self._done():
                        raise RuntimeError("All downloader threads are dead, but not all downloads have finished.")
                    break

                self.download_counter += 1
                yield filename, data
        except KeyboardInterrupt:
            self.logger.info("Download interrupted! Please wait for threads to stop...")
            self.stop_event.set()
            while self._are_threads_alive():
                time.sleep(0.1)
        finally:
            # Also reached when the consumer stops iterating early.
            self.stop_event.set()

    def _work(self):
        """The thread target. Takes items off the queue until it's empty or we're told to stop."""
        while not self.stop_event.is_set():
            try:
                item = self._items.get_nowait()
            except queue.Empty:
                return

            try:
                self.download_one(item)
            except Exception:
                self.logger.exception("Unexpected error while downloading {}.".format(item))
                self.skip(item)

    def _start_threads(self):
        for i in range(self._thread_count):
            thread = threading.Thread(target=self._work, daemon=True)
            self._threads.append(thread)
            thread.start()

    def _done(self):
        processed = self.download_counter + self.skip_counter
        if self._expected == -1:
            # expected_downloads not set, so we're not done until threads die.
            return False
        elif processed > self._expected:
            raise RuntimeError("Got more downloads than expected.")
        else:
            return processed == self._expected

    def _are_threads_alive(self):
        return any(thread.is_alive() for thread in self._threads)
