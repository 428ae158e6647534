import pytest

from mangadl.plugins.utils.threaded_downloader import ThreadedDownloaderPlugin

class NumberPlugin(ThreadedDownloaderPlugin):
    name = "Numbers"

    def __init__(self, count, threads=3):
        super().__init__(threads)
        self.distribute_items(range(count), expected_downloads=count)

    def download_one(self, n):
        if n % 3 == 0:
            self.skip(n, "divisible by three")
        elif n == 7:
            raise ValueError("unlucky")
        else:
            self.got_download(("{}.txt".format(n), str(n).encode()))

def test_downloads_and_skips_add_up():
    plugin = NumberPlugin(10)
    files = dict(plugin.downloader())
    assert sorted(files) == ["1.txt", "2.txt", "4.txt", "5.txt", "8.txt"]
    assert files["5.txt"] == b"5"
    # 0, 3, 6 and 9 are skipped, 7 raised.
    assert plugin.skip_counter == 5
    assert plugin.download_counter == 5

def test_nothing_to_do():
    assert list(NumberPlugin(0).downloader()) == []

def test_stopping_early_stops_workers():
    plugin = NumberPlugin(100, threads=1)
    gen = plugin.downloader()
    next(gen)
    gen.close()
    assert plugin.stop_event.is_set()

def test_download_one_must_be_implemented():
    plugin = ThreadedDownloaderPlugin(1)
    with pytest.raises(NotImplementedError):
        plugin.download_one(1)
