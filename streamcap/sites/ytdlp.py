"""Channels on any yt-dlp supported site (Kick, YouTube, ...)."""

import json

from streamcap.sites.probe import ProbeSite


class YtDlpSite(ProbeSite):
    name = 'ytdlp'
    label = 'yt-dlp'

    def __init__(self, config, watch_list):
        super().__init__(config, watch_list)
        self.ytdlp_path = config.get('Advanced', 'ytdlp_path')

    def build_check_command(self, url):
        return [self.ytdlp_path, "--dump-json", "--playlist-items", "1", url]

    def parse_check_output(self, returncode, stdout, stderr):
        if returncode == 0 and stdout:
            try:
                data = json.loads(stdout)
            except json.JSONDecodeError as e:
                return False, None, f"JSON parse error: {e}"
            is_live = bool(data.get("is_live")) or data.get("live_status") == "is_live"
            title = data.get("title") or data.get("fulltitle")
            return is_live, title, None

        # Parse common conditions from stderr.  Offline channels land here too.
        stderr_lower = stderr.lower()
        if "http error 403" in stderr_lower or "http error 503" in stderr_lower:
            return False, None, "403/503 (cookies expired?)"
        if "sign in" in stderr_lower or "login required" in stderr_lower:
            return False, None, "login required"
        return False, None, None

    def build_capture_command(self, model, output_path):
        # ffmpeg as external downloader with --hls-use-mpegts writes a
        # continuous MPEG-TS file instead of buffering fragments in memory.
        cmd = [
            self.ytdlp_path,
            self.channel_url(model),
            "-f", "b",
            "-o", output_path,
            "--no-part",
            "--no-mtime",
            "--retries", "10",
            "--fragment-retries", "10",
            "--downloader", "ffmpeg",
            "--hls-use-mpegts",
        ]
        if self.config.debug:
            cmd.append("--verbose")
        return cmd
