"""Configuration management backed by config.ini."""

import configparser
import logging
import os

from streamcap.errors import ConfigError

REMUX_TYPES = ('mp4', 'mkv')


class Config:
    """Manages application configuration from config.ini"""

    DEFAULT_CONFIG = {
        'Paths': {
            'capture_dir': 'captures',
            'complete_dir': 'complete',
            'watchlist_file': 'watchlist.json',
            'updates_file': 'updates.json',
            'log_dir': '.',
        },
        'Recording': {
            # mp4 / mkv remux with ffmpeg, anything else just moves the .ts
            'auto_convert_type': 'mp4',
            'auto_delete': 'false',
            # Pattern tokens: {username}, {site}, {date}, {time}, {timestamp}
            'filename_pattern': '{username}_{timestamp}',
            'quality': 'best',
        },
        'Timeouts': {
            'model_scan_interval': '30',
            'shutdown_poll_interval': '1',
            'shutdown_kill_timeout': '0',     # 0 = wait for captures forever
            'stream_check_timeout': '30',
            'max_concurrent_checks': '4',
        },
        'Sites': {
            'enable_streamlink': 'true',
            'enable_ytdlp': 'false',
            'streamlink_url_template': 'https://twitch.tv/{name}',
            'ytdlp_url_template': 'https://kick.com/{name}',
        },
        'Advanced': {
            'debug': 'false',
            'ffmpeg_path': 'ffmpeg',
            'streamlink_path': 'streamlink',
            'ytdlp_path': 'yt-dlp',
        },
    }

    def __init__(self, config_file='config.ini'):
        self.config_file = config_file
        self.config = configparser.ConfigParser(interpolation=None)
        self._load_or_create()

    def _load_or_create(self):
        if os.path.exists(self.config_file):
            try:
                self.config.read(self.config_file)
            except configparser.Error as e:
                raise ConfigError(f"Cannot parse {self.config_file}: {e}") from e
            updated = False
            for section, options in self.DEFAULT_CONFIG.items():
                if not self.config.has_section(section):
                    self.config.add_section(section)
                    updated = True
                for key, value in options.items():
                    if not self.config.has_option(section, key):
                        self.config.set(section, key, value)
                        updated = True
            if updated:
                self.save()
        else:
            for section, options in self.DEFAULT_CONFIG.items():
                self.config.add_section(section)
                for key, value in options.items():
                    self.config.set(section, key, value)
            self.save()
            logging.info(f"Created default config file: {self.config_file}")

    def save(self):
        with open(self.config_file, 'w') as f:
            self.config.write(f)

    # Convenience accessors
    def get(self, section, key, fallback=None):
        return self.config.get(section, key, fallback=fallback)

    def getfloat(self, section, key, fallback=None):
        return self.config.getfloat(section, key, fallback=fallback)

    def getint(self, section, key, fallback=None):
        return self.config.getint(section, key, fallback=fallback)

    def getboolean(self, section, key, fallback=None):
        return self.config.getboolean(section, key, fallback=fallback)

    def set(self, section, key, value):
        if not self.config.has_section(section):
            self.config.add_section(section)
        self.config.set(section, key, str(value))

    # Resolved paths.  Relative entries are taken from the working directory.
    @property
    def capture_dir(self):
        return os.path.abspath(self.get('Paths', 'capture_dir'))

    @property
    def complete_dir(self):
        return os.path.abspath(self.get('Paths', 'complete_dir'))

    @property
    def watchlist_file(self):
        return os.path.abspath(self.get('Paths', 'watchlist_file'))

    @property
    def updates_file(self):
        return os.path.abspath(self.get('Paths', 'updates_file'))

    @property
    def auto_convert_type(self):
        return self.get('Recording', 'auto_convert_type').strip().lower()

    @property
    def debug(self):
        return self.getboolean('Advanced', 'debug', fallback=False)

    def validate(self):
        """Check numeric settings.

        Returns (errors: list[str], warnings: list[str]).
        """
        errors = []
        warnings = []

        for key in ('model_scan_interval', 'shutdown_poll_interval'):
            try:
                if self.getfloat('Timeouts', key) <= 0:
                    errors.append(f"{key} must be greater than 0")
            except ValueError:
                errors.append(f"{key} is not a valid number")

        try:
            if self.getfloat('Timeouts', 'shutdown_kill_timeout') < 0:
                warnings.append("shutdown_kill_timeout is negative, captures will never be force-killed")
        except ValueError:
            errors.append("shutdown_kill_timeout is not a valid number")

        try:
            if self.getint('Timeouts', 'max_concurrent_checks') < 1:
                errors.append("max_concurrent_checks must be at least 1")
        except ValueError:
            errors.append("max_concurrent_checks is not a valid integer")

        if self.auto_convert_type not in REMUX_TYPES:
            warnings.append(
                f"auto_convert_type '{self.auto_convert_type}' is not mp4 or mkv, "
                "recordings will be moved without remuxing"
            )

        for key in ('auto_delete',):
            try:
                self.getboolean('Recording', key)
            except ValueError:
                errors.append(f"{key} must be true or false")

        return errors, warnings
