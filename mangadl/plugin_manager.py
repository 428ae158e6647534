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

from .base_plugin import BasePlugin

import importlib
import pkgutil
import logging
import sys

class PluginManager():
    """
    Finds plugins in mangadl.plugins. A plugin is a module holding a BasePlugin
    subclass with the same name as the module, e.g. mangadl.plugins.mangago.mangago.
    Anything else in there (helper packages and such) is ignored.

    """
    def __init__(self, package_name="mangadl.plugins"):
        self.plugins = {}
        self.logger = logging.getLogger("mangadl")

        try:
            package = importlib.import_module(package_name)
        except ImportError:
            self.logger.exception("Make sure 'plugins' is a submodule of mangadl.")
            sys.exit(1)

        prefix = package.__name__ + "."
        for importer, modname, ispkg in pkgutil.iter_modules(package.__path__, prefix):
            try:
                module = importlib.import_module(modname)
            except ImportError as e:
                self.logger.warning("Plugin '{}' could not be loaded: {}".format(modname.split(".")[-1], e))
                continue

            classname = modname.split(".")[-1]
            cls = getattr(module, classname, None)
            if isinstance(cls, type) and issubclass(cls, BasePlugin):
                self.logger.debug("Loading plugin '{}'...".format(classname))
                self.plugins[cls] = getattr(module, "__version__", None)

    def find_handlers(self, url):
        self.logger.debug("Finding handlers for '{}'".format(url))
        # A list of plugin classes that will handle the URL.
        handlers = []
        # A list of strings with plugin name and version for debug purposes.
        out = []
        for plugin, version in self.plugins.items():
            if plugin.can_handle(url):
                handlers.append((plugin, version))
                out.append("{} v{}".format(plugin.name, version) if version else plugin.name)

        if not handlers:
            self.logger.debug("Found no handlers.")
            return None

        self.logger.debug("Found the following handlers: {}".format(", ".join(out)))
        return handlers

    def select_plugin(self, url, plugins):
        self.logger.info("Found multiple plugins that can handle '{}'.".format(url))
        self.logger.info("Please select one of the following plugins:")

        for i, (plugin, version) in enumerate(plugins, 1):
            if version is None:
                print("  {:2d}) {}".format(i, plugin.name))
            else:
                print("  {:2d}) {} v{}".format(i, plugin.name, version))

        while True:
            try:
                got = int(input("Desired plugin: ").strip())
            except ValueError:
                self.logger.error("Unintelligible number. Please try again...")
                continue

            if 0 < got <= len(plugins):
                return plugins[got - 1]
            self.logger.error("The number does not match any plugin. Please try again...")
