"""Launches capture processes and handles their termination."""

import asyncio
import logging
import os

from streamcap.log import raw_write, report, timestamp_prefix
from streamcap.process import forward_output
from streamcap.utils import human_size


class ProcessSupervisor:
    """Owns one external process per active capture.

    The site's capture record is created as soon as a process is spawned
    and removed only after the output file has been classified (deleted,
    reported missing, or handed to post-processing).
    """

    def __init__(self, config, state, post_processor):
        self.capture_dir = config.capture_dir
        self.convert_type = config.auto_convert_type
        self.state = state
        self.post_processor = post_processor
        self._watchers = set()

    async def start_capture(self, site, args, filename, model):
        """Spawn one capture.  Returns the process, or None if it could not be launched.

        ``state.spawning`` is held until the capture record exists, so a
        shutdown that starts mid-spawn still waits for the new process.
        """
        nm = site.display_name(model)
        site.log.debug(f"Launching {' '.join(args)}")
        self.state.spawning.acquire()
        try:
            try:
                proc = await asyncio.create_subprocess_exec(
                    *args,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as e:
                report(site.log, logging.ERROR, f"{nm}: failed to launch {args[0]}: {e}",
                       self.state.exiting, site.label)
                return None

            identity = site.identity(model)
            if proc.pid:
                site.add_model_to_cap_list(identity, filename, proc.pid)

            task = asyncio.get_running_loop().create_task(self._watch(site, proc, filename, model))
            self._watchers.add(task)
            task.add_done_callback(self._watchers.discard)

            # may have started after Ctrl+C and missed the SIGINT
            if self.state.exiting:
                site.halt_capture(identity)
            return proc
        finally:
            self.state.spawning.release()

    async def _watch(self, site, proc, filename, model):
        nm = site.display_name(model)
        try:
            await asyncio.gather(
                forward_output(proc.stdout, site.log),
                forward_output(proc.stderr, site.log),
            )
            await proc.wait()

            if self.state.exiting:
                raw_write(f"{timestamp_prefix()}[{site.label}] {nm} capture interrupted\n")
            else:
                site.log.info(f"{nm} stopped streaming")

            self.classify_output(site, nm, filename)
        except Exception as e:
            report(site.log, logging.ERROR, f"{nm}: {e}", self.state.exiting, site.label)
        finally:
            site.remove_model_from_cap_list(site.identity(model))

    def classify_output(self, site, nm, filename):
        path = os.path.join(self.capture_dir, filename + '.ts')
        try:
            size = os.stat(path).st_size
        except FileNotFoundError:
            report(site.log, logging.ERROR,
                   f"{nm}: {filename}.ts not found in capturing directory, "
                   f"cannot convert to {self.convert_type}",
                   self.state.exiting, site.label)
            return
        except OSError as e:
            report(site.log, logging.ERROR, f"{nm}: {e}", self.state.exiting, site.label)
            return

        if size == 0:
            try:
                os.remove(path)
            except OSError as e:
                report(site.log, logging.ERROR, f"{nm}: {e}", self.state.exiting, site.label)
            return

        site.log.debug(f"{nm}: recorded {human_size(size)}")
        self.post_processor.post_process(filename)

    def num_watchers(self):
        return len(self._watchers)

    async def wait_idle(self):
        """Wait for every capture launched so far to finish."""
        while self._watchers:
            await asyncio.gather(*list(self._watchers), return_exceptions=True)
