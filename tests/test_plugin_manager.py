import argparse
import os

import pytest

from mangadl import BasePlugin, DownloadManager, PluginManager, download_directory
from mangadl.__main__ import configure_parser, key_value_parse, ArgumentOption
from mangadl.plugins.mangago import mangago

CHAPTER_URL = "https://www.mangago.me/read-manga/some_manga/mf/v01/c001/"

class FilesPlugin(BasePlugin):
    name = "Files"
    options = (("@required", ""), ("count", "2"))

    def __init__(self, url):
        self._directory = "files"

    @staticmethod
    def can_handle(url):
        return url.startswith("files://")

    def downloader(self):
        for i in range(int(self["count"])):
            yield "{}.txt".format(i), b"data"

    def finalize(self):
        self.finalized = True

def test_finds_mangago():
    pm = PluginManager()
    assert mangago in pm.plugins
    assert pm.find_handlers(CHAPTER_URL) == [(mangago, "0.1")]

def test_only_plugin_classes_are_loaded():
    pm = PluginManager()
    assert all(issubclass(p, BasePlugin) for p in pm.plugins)
    assert pm.find_handlers("https://example.com/") is None

def test_options():
    FilesPlugin.process_options()
    assert not FilesPlugin.process_options()
    FilesPlugin.input_options({"REQUIRED": "yes", "count": "2"}, defaults=True)
    plugin = FilesPlugin("files://x")
    assert "required" in plugin and "missing" not in plugin
    assert plugin["required"] == "yes"
    assert plugin["count"] == "2"
    assert plugin.has_valid_options()
    with pytest.raises(KeyError):
        plugin["missing"]

def test_download_manager_writes_files(tmp_path, monkeypatch):
    monkeypatch.setattr(DownloadManager, "base_directory", str(tmp_path))
    FilesPlugin.process_options()
    FilesPlugin.input_options({"required": "yes", "count": "3"}, defaults=True)
    plugin = FilesPlugin("files://x")

    dm = DownloadManager(plugin)
    dm.start_download()
    dm.finalize()

    assert download_directory() == str(tmp_path)
    assert sorted(os.listdir(os.path.join(str(tmp_path), "files"))) == ["0.txt", "1.txt", "2.txt"]
    assert dm.count == 3
    assert plugin.finalized

def test_key_value_parse():
    assert key_value_parse("threads=2") == ArgumentOption(None, "threads", "2")
    assert key_value_parse("mangago:lossless=1") == ArgumentOption("mangago", "lossless", "1")
    assert key_value_parse("a=b=c") == ArgumentOption(None, "a", "b=c")
    with pytest.raises(argparse.ArgumentTypeError):
        key_value_parse("nope")

def test_parser():
    args = configure_parser().parse_args(["-v", "-d", "-o", "threads=2", "-D", "out", CHAPTER_URL])
    assert args.verbose and args.defaults
    assert args.directory == "out"
    assert args.url == [CHAPTER_URL]
    assert args.options == [ArgumentOption(None, "threads", "2")]
