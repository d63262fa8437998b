import pytest  # noqa
import patchhub
import os

EMPTY_FEED = 'feed-empty.xml'


@pytest.fixture(scope="function", autouse=True)
def settestdefaults(tmp_path):
    patchhub.can_network = False
    patchhub.MAIN_CONFIG = dict(patchhub.DEFAULT_CONFIG)
    patchhub.USER_CONFIG = {
        'name': 'Test Override',
        'email': 'test-override@example.com',
    }
    os.environ['XDG_DATA_HOME'] = str(tmp_path)
    os.environ['XDG_CACHE_HOME'] = str(tmp_path)


@pytest.fixture(scope="function")
def sampledir(request):
    return os.path.join(request.fspath.dirname, 'samples')


class FakeLoreClient:
    """Serves sample files instead of talking to lore."""
    def __init__(self, sampledir, feed_pages=(), list_pages=(), patch_html=None):
        self.sampledir = sampledir
        self.feed_pages = list(feed_pages)
        self.list_pages = list(list_pages)
        self.patch_html = patch_html
        self.feed_requests = list()
        self.list_requests = list()
        self.html_requests = list()

    def _read(self, name):
        with open(os.path.join(self.sampledir, name), 'r') as fh:
            return fh.read()

    def request_patch_feed(self, target_list, min_index):
        self.feed_requests.append((target_list, min_index))
        at = min_index // 200
        if at < len(self.feed_pages):
            return self._read(self.feed_pages[at])
        return self._read(EMPTY_FEED)

    def request_available_lists(self, min_index):
        self.list_requests.append(min_index)
        return self._read(self.list_pages[min_index // 200])

    def request_patch_html(self, target_list, message_id):
        self.html_requests.append((target_list, message_id))
        return self._read(self.patch_html)


@pytest.fixture(scope="function")
def fakeclient(sampledir):
    def _make(**kwargs):
        return FakeLoreClient(sampledir, **kwargs)
    return _make
