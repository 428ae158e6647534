#!/usr/bin/env python

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
import re

from setuptools import setup, find_packages

here = os.path.dirname(os.path.abspath(__file__))

def read_requirements(filename):
    with open(os.path.join(here, filename), encoding="utf-8") as f:
        return [line.strip() for line in f if line.strip() and not line.startswith("#")]

# Importing the package would need its dependencies, so read the version directly.
with open(os.path.join(here, "mangadl", "__init__.py"), encoding="utf-8") as f:
    version = re.search(r"^__version__ = \"(.+)\"$", f.read(), re.M).group(1)

setup(
    name="mangadl",
    version=version,
    description="A plugin-based manga downloading tool.",
    author="Mino",
    author_email="mino@minomino.org",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=read_requirements("requirements.txt"),
    extras_require={"test": ["pytest"]},
    python_requires=">=3.7",
    entry_points={
        "console_scripts": ["mangadl = mangadl.__main__:run"],
    },
    classifiers = [
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Operating System :: Microsoft :: Windows",
        "Operating System :: POSIX",
        "Topic :: Multimedia :: Graphics",
        "Topic :: Utilities",
        "Topic :: Internet :: WWW/HTTP",
    ]
)
