import asyncio
import json

import pytest

from streamcap.config import Config
from streamcap.sites.base import Model, SiteAdapter, StatefulSiteAdapter
from streamcap.state import RuntimeState
from streamcap.watchlist import Reconciler, UpdateMailbox, WatchList


class FakeStream:
    """Async-iterable stand-in for a subprocess pipe."""

    def __init__(self, lines=()):
        self._lines = [line if isinstance(line, bytes) else line.encode() for line in lines]

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._lines:
            raise StopAsyncIteration
        return self._lines.pop(0)


class FakeProcess:
    """Subprocess that stays alive until ``finish`` is called."""

    _next_pid = 900000

    def __init__(self, stdout=(), stderr=(), returncode=0, on_exit=None):
        FakeProcess._next_pid += 1
        self.pid = FakeProcess._next_pid
        self.stdout = FakeStream(stdout)
        self.stderr = FakeStream(stderr)
        self.returncode = None
        self._code = returncode
        self._exited = asyncio.Event()
        self._on_exit = on_exit

    def finish(self):
        if self._on_exit:
            self._on_exit()
        self.returncode = self._code
        self._exited.set()

    async def wait(self):
        await self._exited.wait()
        return self.returncode


class FakeSite(SiteAdapter):
    """Name-identity site with a scripted online list."""

    name = 'fake'
    label = 'Fake'

    def __init__(self, config, online=None):
        super().__init__(config)
        self.online = online
        self.halted = []
        self.online_error = None

    async def get_online_models(self):
        if self.online_error:
            raise self.online_error
        return None if self.online is None else list(self.online)

    def build_capture_command(self, model, output_path):
        return ['recorder', model, output_path]

    def halt_capture(self, identity):
        self.halted.append(identity)
        return identity in self._captures


class FakeStatefulSite(StatefulSiteAdapter):
    """ID-identity site: models are looked up by name and checked by uid."""

    name = 'stateful'
    label = 'Stateful'
    requires_disconnect = True

    def __init__(self, config, directory, live_uids=()):
        super().__init__(config)
        self.directory = {m.name: m for m in directory}
        self.by_uid = {m.uid: m for m in directory}
        self.live_uids = set(live_uids)
        self.halted = []
        self.checked = []
        self.disconnected = False

    async def query_user(self, identifier):
        await asyncio.sleep(0)
        if isinstance(identifier, int):
            return self.by_uid.get(identifier)
        return self.directory.get(identifier)

    async def check_model_state(self, uid):
        self.checked.append(uid)
        if uid in self.live_uids:
            self.mark_for_capture(self.by_uid[uid])

    async def get_online_models(self):
        return [self.by_uid[uid] for uid in self.live_uids]

    def build_capture_command(self, model, output_path):
        return ['recorder', str(model.uid), output_path]

    def halt_capture(self, identity):
        self.halted.append(identity)
        return False

    async def disconnect(self):
        self.disconnected = True


@pytest.fixture
def config(tmp_path):
    cfg = Config(str(tmp_path / 'config.ini'))
    capture_dir = tmp_path / 'captures'
    complete_dir = tmp_path / 'complete'
    capture_dir.mkdir()
    complete_dir.mkdir()
    cfg.set('Paths', 'capture_dir', capture_dir)
    cfg.set('Paths', 'complete_dir', complete_dir)
    cfg.set('Paths', 'watchlist_file', tmp_path / 'watchlist.json')
    cfg.set('Paths', 'updates_file', tmp_path / 'updates.json')
    cfg.set('Recording', 'filename_pattern', '{username}')
    cfg.set('Timeouts', 'model_scan_interval', '0.01')
    cfg.set('Timeouts', 'shutdown_poll_interval', '0.01')
    return cfg


@pytest.fixture
def state():
    return RuntimeState()


@pytest.fixture
def watch_list(config):
    wl = WatchList(config.watchlist_file)
    wl.load()
    return wl


@pytest.fixture
def mailbox(config):
    return UpdateMailbox(config.updates_file)


@pytest.fixture
def reconciler(watch_list, mailbox):
    return Reconciler(watch_list, mailbox)


@pytest.fixture
def write_updates(config):
    def _write(data):
        with open(config.updates_file, 'w') as f:
            json.dump(data, f)
    return _write


@pytest.fixture
def read_json():
    def _read(path):
        with open(path) as f:
            return json.load(f)
    return _read


@pytest.fixture
def models():
    return [Model(101, 'alice'), Model(202, 'bob'), Model(303, 'carol')]
