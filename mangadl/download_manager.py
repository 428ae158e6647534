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
import os.path
import sys
import os

from .base_plugin import BasePlugin

class DownloadManager():
    base_directory = "downloads"

    def __init__(self, plugin):
        self.logger = logging.getLogger("mangadl")
        self._plugin = plugin
        self._count = 0

    @property
    def count(self):
        return self._count

    def start_download(self):
        if not self._plugin.has_valid_options():
            self.logger.critical("A download started with invalid options!")
            sys.exit(1)

        self.logger.info("Starting download...")
        try:
            for filename, data in self._plugin.downloader():
                # The directory is only decided once the plugin has yielded its first file,
                # and it may change between files.
                path = os.path.join(self.base_directory, self._plugin.directory())

                if not os.path.isdir(path):
                    self.logger.info("Creating non-existent directory '{}'.".format(path))
                    os.makedirs(path)

                with open(os.path.join(path, filename), "wb") as f:
                    f.write(data)

                self._count += 1
                self._log_progress(filename)
        except Exception as e:
            self.logger.critical("An uncaught exception was raised while downloading: {}".format(e))
            if self._plugin.handle_exception(e) is not True:
                raise

    def _log_progress(self, filename):
        progress = self._plugin.progress()
        if progress:
            current, total = progress
            self.logger.info("[{}/{}] {}".format(current, total, filename))
        else:
            self.logger.info("[{}] {}".format(self._count, filename))

    def finalize(self):
        if self._count:
            self.logger.info("Done! A total of {} files were downloaded.".format(self._count))

            # Only call finalize() if the plugin overrides it.
            if type(self._plugin).finalize is not BasePlugin.finalize:
                self.logger.info("Finalizing...")
                self._plugin.finalize()
        else:
            self.logger.info("No files were downloaded.")
