"""Wires config, sites and the engine components together."""

import asyncio
import logging
import os
import signal

from streamcap.dispatcher import Dispatcher
from streamcap.postprocess import PostProcessor
from streamcap.scheduler import main_site_loop
from streamcap.shutdown import ShutdownCoordinator
from streamcap.sites import build_sites
from streamcap.state import RuntimeState
from streamcap.supervisor import ProcessSupervisor
from streamcap.watchlist import Reconciler, UpdateMailbox, WatchList


class CaptureOrchestrator:
    """Runs one scan loop per enabled site until SIGINT drains everything."""

    def __init__(self, config, sites=None):
        self.config = config
        self.state = RuntimeState()

        self.watch_list = WatchList(config.watchlist_file)
        self.watch_list.load()
        self.mailbox = UpdateMailbox(config.updates_file)
        self.reconciler = Reconciler(self.watch_list, self.mailbox)
        self.dispatcher = Dispatcher(self.reconciler, self.watch_list)

        self.post_processor = PostProcessor(config, self.state)
        self.supervisor = ProcessSupervisor(config, self.state, self.post_processor)

        self.sites = sites if sites is not None else build_sites(config, self.watch_list)
        self.scan_interval = config.getfloat('Timeouts', 'model_scan_interval')
        self.coordinator = ShutdownCoordinator(
            self.sites,
            self.state,
            poll_interval=config.getfloat('Timeouts', 'shutdown_poll_interval'),
            kill_timeout=config.getfloat('Timeouts', 'shutdown_kill_timeout'),
        )

    def prepare_directories(self):
        """Create the capture and complete directories.  Raises OSError on failure."""
        for path in (self.config.capture_dir, self.config.complete_dir):
            os.makedirs(path, exist_ok=True)

    async def _run_site(self, site):
        try:
            await site.connect()
        except Exception as e:
            site.log.error(f"Connect failed: {e}")
            return
        await main_site_loop(site, self.dispatcher, self.supervisor, self.state, self.scan_interval)

    async def run(self):
        """Run until shutdown has drained.  Returns the process exit status."""
        loop = asyncio.get_running_loop()
        loop.add_signal_handler(signal.SIGINT, self.coordinator.request_shutdown)

        logging.info(f"Launching scan loops for {len(self.sites)} site(s)")
        tasks = [loop.create_task(self._run_site(site), name=f"scan-{site.name}") for site in self.sites]
        try:
            await self.coordinator.wait()
        finally:
            loop.remove_signal_handler(signal.SIGINT)
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        return 0
