"""Site adapter interface and the capture bookkeeping every site shares."""

import asyncio
import os
import signal
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from streamcap.log import get_site_logger
from streamcap.process import signal_process_tree
from streamcap.utils import build_filename


@dataclass(frozen=True)
class Model:
    """A model on a site whose identity is a stable numeric ID."""

    uid: int
    name: str


@dataclass
class CaptureJob:
    """One external process to launch for a model.

    An empty ``args`` list means there is nothing to launch.
    """

    model: object
    filename: str
    args: list = field(default_factory=list)


@dataclass
class CaptureRecord:
    filename: str
    pid: Optional[int]


class SiteAdapter(ABC):
    """Base class for sites where a model's display name is its identity.

    Subclasses set ``name`` (watch-list key) and ``label`` (log tag) and
    implement ``get_online_models`` and ``build_capture_command``.
    """

    name = None
    label = None
    requires_disconnect = False

    def __init__(self, config):
        self.config = config
        self.log = get_site_logger(self.label or self.name)
        self._captures = {}

    def __repr__(self):
        return f"<{type(self).__name__} {self.name}>"

    async def connect(self):
        pass

    async def disconnect(self):
        pass

    @abstractmethod
    async def get_online_models(self):
        """Return the models online right now, or None if the site could not be read."""

    @abstractmethod
    def build_capture_command(self, model, output_path):
        """Return the argv that records ``model`` into ``output_path``."""

    # ── Identity ──

    async def resolve_model(self, identifier):
        """Turn a watch-list request into a model, or None if it does not exist."""
        return identifier

    def identity(self, model):
        return model

    def display_name(self, model):
        return str(model)

    async def select_models_to_capture(self, watched, online_models):
        online = set(online_models)
        return [model for model in watched if model in online]

    # ── Capture setup ──

    async def setup_capture(self, model, is_exiting):
        """Return the capture jobs for a model that should be recording."""
        nm = self.display_name(model)
        if is_exiting:
            return []
        if self.identity(model) in self._captures:
            self.log.debug(f"{nm} is already capturing")
            return [CaptureJob(model, '')]

        pattern = self.config.get('Recording', 'filename_pattern')
        filename = build_filename(pattern, nm, self.name)
        output_path = os.path.join(self.config.capture_dir, filename + '.ts')
        self.log.info(f"{nm} is now online, starting capture")
        return [CaptureJob(model, filename, self.build_capture_command(model, output_path))]

    # ── Capture records ──

    def add_model_to_cap_list(self, identity, filename, pid):
        self._captures[identity] = CaptureRecord(filename, pid)

    def remove_model_from_cap_list(self, identity):
        self._captures.pop(identity, None)

    def get_num_caps_in_progress(self):
        return len(self._captures)

    def get_capture(self, identity):
        return self._captures.get(identity)

    def capture_pids(self):
        return [rec.pid for rec in self._captures.values() if rec.pid]

    def halt_capture(self, identity):
        """Ask a running capture to stop.  Returns False if none is running."""
        record = self._captures.get(identity)
        if record is None or not record.pid:
            return False
        self.log.debug(f"Interrupting capture of {identity} (PID {record.pid})")
        return signal_process_tree(record.pid, signal.SIGINT, self.log)


class StatefulSiteAdapter(SiteAdapter):
    """Base class for sites where identity is a numeric ID.

    Being in the online list is not enough on these sites: every watched ID
    gets a live state check, and the checks decide what to capture.
    """

    def __init__(self, config):
        super().__init__(config)
        self._models_to_cap = []

    @abstractmethod
    async def query_user(self, identifier):
        """Look a model up by name or ID.  Returns a Model or None."""

    @abstractmethod
    async def check_model_state(self, uid):
        """Refresh one watched model; call ``mark_for_capture`` if it should record."""

    async def resolve_model(self, identifier):
        return await self.query_user(identifier)

    def identity(self, model):
        return model.uid

    def display_name(self, model):
        return model.name

    def mark_for_capture(self, model):
        if model not in self._models_to_cap:
            self._models_to_cap.append(model)

    def clear_my_models(self):
        self._models_to_cap = []

    def get_models_to_cap(self):
        return list(self._models_to_cap)

    async def select_models_to_capture(self, watched, online_models):
        self.clear_my_models()
        results = await asyncio.gather(
            *(self.check_model_state(uid) for uid in watched),
            return_exceptions=True,
        )
        for uid, result in zip(watched, results):
            if isinstance(result, Exception):
                self.log.error(f"State check failed for {uid}: {result}")
        return self.get_models_to_cap()
