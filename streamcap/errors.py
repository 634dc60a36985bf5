"""Exception types raised by streamcap."""


class StreamcapError(Exception):
    """Base class for all streamcap errors."""


class ConfigError(StreamcapError):
    """The configuration file is missing required values or is malformed."""


class WatchListError(StreamcapError):
    """The persisted watch list could not be read or written."""


class UpdateMailboxError(StreamcapError):
    """The pending-update file exists but does not hold a JSON object."""


class ToolMissingError(StreamcapError):
    """An external command-line tool a site depends on could not be started."""
