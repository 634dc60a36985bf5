"""Remux finished captures from MPEG-TS into the configured container."""

import asyncio
import logging
import os
import shutil

from streamcap.config import REMUX_TYPES
from streamcap.log import report
from streamcap.process import forward_output

logger = logging.getLogger(__name__)


def build_remux_command(ffmpeg_path, input_path, output_path, convert_type):
    """Build the ffmpeg argv for a stream-copy remux.

    mp4 needs the ADTS to ASC bitstream filter on AAC audio; mkv does not.
    """
    cmd = [
        ffmpeg_path,
        '-hide_banner',
        '-v', 'fatal',
        '-i', input_path,
        '-c', 'copy',
    ]
    if convert_type == 'mp4':
        cmd += ['-bsf:a', 'aac_adtstoasc']
    cmd += ['-copyts', output_path]
    return cmd


class PostProcessor:
    """Moves or remuxes completed recordings.

    Every remux holds ``state.post_processing`` from before ffmpeg is
    spawned until the raw file (and, with auto_delete, the output) has been
    removed, so shutdown can wait on it.
    """

    def __init__(self, config, state):
        self.capture_dir = config.capture_dir
        self.complete_dir = config.complete_dir
        self.convert_type = config.auto_convert_type
        self.ffmpeg_path = config.get('Advanced', 'ffmpeg_path')
        self.auto_delete = config.getboolean('Recording', 'auto_delete', fallback=False)
        self.state = state
        self._tasks = set()

    def raw_path(self, filename):
        return os.path.join(self.capture_dir, filename + '.ts')

    def output_path(self, filename, ext):
        return os.path.join(self.complete_dir, f"{filename}.{ext}")

    def post_process(self, filename):
        """Hand off a finished capture.  Returns the remux task, or None for a plain move."""
        if self.convert_type not in REMUX_TYPES:
            self._move(filename)
            return None

        self.state.post_processing.acquire()
        report(logger, logging.DEBUG,
               f"Converting {filename}.ts to {filename}.{self.convert_type}", self.state.exiting)
        task = asyncio.get_running_loop().create_task(self._remux(filename))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _move(self, filename):
        src = self.raw_path(filename)
        dst = self.output_path(filename, 'ts')
        logger.debug(f"Moving {src} to {dst}")
        try:
            shutil.move(src, dst)
        except OSError as e:
            report(logger, logging.ERROR, f"{filename}: {e}", self.state.exiting)

    def _remove(self, path):
        try:
            os.remove(path)
        except OSError as e:
            report(logger, logging.ERROR, f"Failed to delete {path}: {e}", self.state.exiting)

    async def _remux(self, filename):
        raw_file = self.raw_path(filename)
        out_file = self.output_path(filename, self.convert_type)
        cmd = build_remux_command(self.ffmpeg_path, raw_file, out_file, self.convert_type)
        try:
            try:
                proc = await asyncio.create_subprocess_exec(
                    *cmd,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as e:
                report(logger, logging.ERROR, f"Failed to launch ffmpeg for {filename}: {e}",
                       self.state.exiting)
                return

            await asyncio.gather(
                forward_output(proc.stdout, logger),
                forward_output(proc.stderr, logger),
            )
            returncode = await proc.wait()
            if returncode != 0:
                report(logger, logging.ERROR, f"ffmpeg exited with code {returncode} for {filename}",
                       self.state.exiting)

            self._remove(raw_file)
            # Keeps the disk from filling during testing
            if self.auto_delete:
                report(logger, logging.ERROR, f"Deleting {filename}.{self.convert_type}",
                       self.state.exiting)
                self._remove(out_file)
        except Exception as e:
            report(logger, logging.ERROR, f"Post-processing {filename} failed: {e}", self.state.exiting)
        finally:
            self.state.post_processing.release()

    async def wait_idle(self):
        """Wait for every remux started so far (and any started meanwhile)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
