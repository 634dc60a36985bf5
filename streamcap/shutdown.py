"""Graceful shutdown: stop scanning, wait for captures and remuxes to drain."""

import asyncio
import logging

from streamcap.log import raw_write
from streamcap.process import kill_process_tree

logger = logging.getLogger(__name__)


class ShutdownCoordinator:
    """Single-shot SIGINT handler.

    SIGINT also reaches every capture process in the foreground process
    group, so the coordinator only has to watch the busy counters drop to
    zero.  With ``kill_timeout`` > 0, captures still running after that
    many seconds are killed.
    """

    def __init__(self, sites, state, poll_interval=1.0, kill_timeout=0):
        self.sites = sites
        self.state = state
        self.poll_interval = poll_interval
        self.kill_timeout = kill_timeout
        self.finished = asyncio.Event()
        self._task = None

    def busy_counts(self):
        """Returns (live or launching captures across all sites, pending post-processing jobs)."""
        caps = sum(site.get_num_caps_in_progress() for site in self.sites)
        return caps + self.state.spawning.value, self.state.post_processing.value

    def request_shutdown(self):
        # Repeated Ctrl+C must not disturb the captures already tearing down
        if not self.state.begin_exit():
            return

        caps, pending = self.busy_counts()
        if caps or pending:
            # extra newline to avoid ^C
            raw_write('\n')
            logger.info(f"Waiting for {caps} capture stream(s) to end.")
        self._task = asyncio.get_running_loop().create_task(self._drain())

    async def _kill_remaining(self):
        for site in self.sites:
            for pid in site.capture_pids():
                logger.warning(f"[{site.label}] Killing capture PID {pid} after {self.kill_timeout:g}s")
                await asyncio.to_thread(kill_process_tree, pid, logger)

    async def _drain(self):
        loop = asyncio.get_running_loop()
        started = loop.time()
        killed = False
        try:
            while True:
                caps, pending = self.busy_counts()
                if caps == 0 and pending == 0:
                    break
                if self.kill_timeout > 0 and not killed and loop.time() - started >= self.kill_timeout:
                    killed = True
                    await self._kill_remaining()
                await asyncio.sleep(self.poll_interval)
                # periodically print something so it is obvious we are not hung
                raw_write('.')

            raw_write('\n')
            for site in self.sites:
                if site.requires_disconnect:
                    try:
                        await site.disconnect()
                    except Exception as e:
                        logger.error(f"[{site.label}] Disconnect failed: {e}")
        finally:
            self.finished.set()

    async def wait(self):
        await self.finished.wait()
