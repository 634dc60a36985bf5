"""Twitch-style channels checked and recorded with streamlink."""

import json

from streamcap.sites.probe import ProbeSite

USER_AGENT = "User-Agent=Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


class StreamlinkSite(ProbeSite):
    name = 'streamlink'
    label = 'Streamlink'

    def __init__(self, config, watch_list):
        super().__init__(config, watch_list)
        self.streamlink_path = config.get('Advanced', 'streamlink_path')

    def build_check_command(self, url):
        return [self.streamlink_path, "--json", url]

    def parse_check_output(self, returncode, stdout, stderr):
        if not stdout:
            if returncode != 0:
                return False, None, (stderr.strip() or f"exit code {returncode}")[:200]
            return False, None, None
        try:
            data = json.loads(stdout)
        except json.JSONDecodeError as e:
            return False, None, f"JSON parse error: {e}"

        # Offline channels come back as {"error": "No playable streams found ..."}
        error = data.get("error")
        if error:
            if "no plugin can handle url" in error.lower():
                return False, None, error
            return False, None, None

        # streamlink --json returns metadata.title for some plugins
        metadata = data.get("metadata") or {}
        title = metadata.get("title") or metadata.get("author")
        return bool(data.get("streams")), title, None

    def build_capture_command(self, model, output_path):
        url = self.channel_url(model)
        cmd = [self.streamlink_path]
        if "twitch.tv" in url:
            cmd.extend([
                "--twitch-disable-ads",
                "--twitch-low-latency",
            ])
        cmd.extend([
            "--http-header", USER_AGENT,
            url, self.quality,
            "--retry-streams", "30",
            "--retry-max", "10",
            "--retry-open", "3",
            "--stream-segment-threads", "3",
            "--stream-segment-timeout", "60",
            "-o", output_path,
        ])
        cmd += ["--loglevel", "debug" if self.config.debug else "info"]
        return cmd
