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

class SoJsonError(Exception):
    """
    Base class for everything that can go wrong while undoing the chapter.js
    protection. These mean the site changed its scheme, so retrying is pointless.

    """
    pass

class FormatError(SoJsonError):
    """The obfuscated script or one of its hex strings is not in the expected format."""
    pass

class KeyNotFoundError(SoJsonError):
    """A variable holding key material is missing from the deobfuscated script."""
    def __init__(self, variable):
        self.variable = variable
        super().__init__("Could not find variable: {}".format(variable))

class DecryptionError(SoJsonError):
    pass

class KeyResolutionError(SoJsonError):
    """The descrambling key for a single image could not be computed."""
    pass
