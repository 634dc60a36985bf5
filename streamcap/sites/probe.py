"""Sites whose online state is found by probing each watched channel with a CLI tool."""

import asyncio
from abc import abstractmethod

from streamcap.errors import ToolMissingError
from streamcap.sites.base import SiteAdapter


class ProbeSite(SiteAdapter):
    """Name-identity site backed by a command-line stream tool.

    The "online list" is built by running the tool's metadata probe against
    every channel in this site's watch list.
    """

    def __init__(self, config, watch_list):
        super().__init__(config)
        self.watch_list = watch_list
        self.check_timeout = config.getint('Timeouts', 'stream_check_timeout')
        self.max_concurrent = config.getint('Timeouts', 'max_concurrent_checks')
        self.url_template = config.get('Sites', f'{self.name}_url_template')
        self.quality = config.get('Recording', 'quality')
        self.titles = {}

    def channel_url(self, channel):
        if channel.startswith('http://') or channel.startswith('https://'):
            return channel
        return self.url_template.format(name=channel)

    @abstractmethod
    def build_check_command(self, url):
        pass

    @abstractmethod
    def parse_check_output(self, returncode, stdout, stderr):
        """Returns (is_live: bool, stream_title: str | None, error: str | None)."""

    async def check_channel(self, channel):
        """Probe one channel.

        Returns (is_live: bool, stream_title: str | None, error: str | None).
        Raises ToolMissingError if the tool cannot be started.
        """
        check_cmd = self.build_check_command(self.channel_url(channel))
        self.log.debug(f"Check cmd: {' '.join(check_cmd)}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *check_cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise ToolMissingError(f"{check_cmd[0]} not found")

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.check_timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            return False, None, "timeout"

        return self.parse_check_output(
            proc.returncode,
            stdout.decode('utf-8', errors='replace'),
            stderr.decode('utf-8', errors='replace'),
        )

    async def get_online_models(self):
        """Probe every watched channel.

        A channel whose check fails counts as offline.  Returns None only
        when the tool itself cannot be run, since nothing was learned about
        any channel.
        """
        channels = list(self.watch_list.models(self.name))
        if not channels:
            return []

        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def _check(channel):
            async with semaphore:
                return await self.check_channel(channel)

        results = await asyncio.gather(*(_check(ch) for ch in channels), return_exceptions=True)

        online = []
        for channel, result in zip(channels, results):
            if isinstance(result, ToolMissingError):
                self.log.error(f"Cannot check channels: {result}")
                return None
            if isinstance(result, Exception):
                self.log.error(f"{channel}: stream check failed: {result}")
                continue
            is_live, title, error = result
            if error:
                self.log.warning(f"{channel}: {error}")
                continue
            if is_live:
                online.append(channel)
                self.titles[channel] = title
        return online
