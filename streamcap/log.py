"""Logging setup: timestamped file + coloured console output."""

import datetime
import logging
import os
import sys

from colorama import Fore, Style, init as colorama_init

LOG_FILENAME = "streamcap.log"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LEVEL_COLORS = {
    logging.DEBUG: Fore.MAGENTA,
    logging.WARNING: Fore.YELLOW,
    logging.ERROR: Fore.RED,
    logging.CRITICAL: Fore.RED + Style.BRIGHT,
}


class SiteFormatter(logging.Formatter):
    """Formatter that prefixes records carrying a ``site`` extra with ``[site]``."""

    def __init__(self, fmt, datefmt=DATE_FORMAT, color=False):
        super().__init__(fmt, datefmt=datefmt)
        self.color = color

    def format(self, record):
        site = getattr(record, 'site', None)
        level_tag = ''
        if record.levelno == logging.DEBUG:
            level_tag = '[DEBUG] '
        elif record.levelno >= logging.ERROR:
            level_tag = '[ERROR] '

        if self.color:
            record.site_tag = f"{Fore.GREEN}[{site}]{Style.RESET_ALL} " if site else ''
            if level_tag:
                level_tag = f"{LEVEL_COLORS.get(record.levelno, Fore.RED)}{level_tag}{Style.RESET_ALL}"
        else:
            record.site_tag = f"[{site}] " if site else ''
        record.level_tag = level_tag
        return super().format(record)


def setup_logging(log_dir, debug=False):
    """Setup logging for the main process."""
    colorama_init()
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, LOG_FILENAME)
    level = logging.DEBUG if debug else logging.INFO

    file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
    file_handler.setLevel(level)
    file_handler.setFormatter(SiteFormatter(
        "%(asctime)s [PID %(process)d] %(level_tag)s%(site_tag)s%(message)s"
    ))

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(SiteFormatter(
        f"{Fore.CYAN}[%(asctime)s]{Style.RESET_ALL} %(level_tag)s%(site_tag)s%(message)s",
        color=True,
    ))

    logging.root.setLevel(level)
    logging.root.addHandler(file_handler)
    logging.root.addHandler(console_handler)


def get_site_logger(site_label):
    """Return a logger whose records are tagged with the site label."""
    return logging.LoggerAdapter(logging.getLogger("streamcap.sites"), {'site': site_label})


def raw_write(text):
    """Write straight to stdout, bypassing logging.

    Used once shutdown has begun so messages do not interleave with the
    drain loop's progress markers.
    """
    sys.stdout.write(text)
    sys.stdout.flush()


def timestamp_prefix():
    now = datetime.datetime.now().strftime(DATE_FORMAT)
    return f"{Fore.CYAN}[{now}]{Style.RESET_ALL} "


def report(logger, level, message, exiting, site_label=None):
    """Log ``message``, or print it raw when the process is shutting down."""
    if not exiting:
        logger.log(level, message)
        return
    if level < logging.root.getEffectiveLevel():
        return
    tag = f"{Fore.GREEN}[{site_label}]{Style.RESET_ALL} " if site_label else ''
    if level >= logging.ERROR:
        tag += f"{Fore.RED}[ERROR]{Style.RESET_ALL} "
    elif level == logging.DEBUG:
        tag += f"{Fore.MAGENTA}[DEBUG]{Style.RESET_ALL} "
    raw_write(f"{timestamp_prefix()}{tag}{message}\n")
