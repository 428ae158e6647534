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

__version__ = "0.1.0"

from .base_plugin import BasePlugin
from .download_manager import DownloadManager
from .plugin_manager import PluginManager

def download_directory():
    return DownloadManager.base_directory
