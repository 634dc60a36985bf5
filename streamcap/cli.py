"""Command-line entry point."""

import argparse
import asyncio
import logging
import sys

from streamcap import __version__
from streamcap.config import REMUX_TYPES, Config
from streamcap.errors import StreamcapError
from streamcap.log import setup_logging
from streamcap.process import check_ffmpeg, check_streamlink, check_ytdlp
from streamcap.recorder import CaptureOrchestrator


def validate_startup(config):
    """Validate dependencies and config at startup.

    Returns (errors: list[str], warnings: list[str]).
    Errors are fatal.  Warnings are non-fatal but the user should be aware.
    """
    errors, warnings = config.validate()

    ffmpeg_path = config.get('Advanced', 'ffmpeg_path')
    ffmpeg_version = check_ffmpeg(ffmpeg_path)
    logging.info(f"ffmpeg available: {ffmpeg_version is not None} (version: {ffmpeg_version})")
    if ffmpeg_version is None:
        msg = (f"ffmpeg not found ({ffmpeg_path}).  ffmpeg is required for remuxing recordings.\n"
               "  Install: https://ffmpeg.org/download.html")
        if config.auto_convert_type in REMUX_TYPES:
            errors.append(msg)
        else:
            warnings.append(msg)

    enabled = []
    if config.getboolean('Sites', 'enable_streamlink', fallback=False):
        enabled.append('streamlink')
        path = config.get('Advanced', 'streamlink_path')
        version = check_streamlink(path)
        logging.info(f"streamlink available: {version is not None} (version: {version})")
        if version is None:
            errors.append(f"streamlink not found ({path}).\n  Install: pip install streamlink")

    if config.getboolean('Sites', 'enable_ytdlp', fallback=False):
        enabled.append('ytdlp')
        path = config.get('Advanced', 'ytdlp_path')
        version = check_ytdlp(path)
        logging.info(f"yt-dlp available: {version is not None} (version: {version})")
        if version is None:
            errors.append(f"yt-dlp not found ({path}).\n  Install: pip install yt-dlp")

    if not enabled:
        errors.append("No sites enabled.  Set enable_streamlink or enable_ytdlp in [Sites].")

    return errors, warnings


def main(argv=None):
    """Parse arguments and start the orchestrator."""
    parser = argparse.ArgumentParser(
        prog='streamcap',
        description=f"streamcap v{__version__}: capture live streams from your watch list",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
examples:
  %(prog)s                     Use config.ini in the current directory
  %(prog)s --config my.ini     Use a custom config file
  %(prog)s --debug             Enable debug output

Add or remove models while running by editing updates.json, e.g.
  {"include_streamlink": ["somechannel"], "exclude_streamlink": ["other"]}
        """,
    )
    parser.add_argument('--config', default='config.ini',
                        help='Path to config file (default: config.ini)')
    parser.add_argument('--debug', action='store_true',
                        help='Enable debug output (overrides config)')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    args = parser.parse_args(argv)

    try:
        config = Config(args.config)
    except StreamcapError as e:
        print(f"FATAL: {e}")
        sys.exit(1)
    if args.debug:
        config.set('Advanced', 'debug', 'true')

    setup_logging(config.get('Paths', 'log_dir'), config.debug)
    logging.info(f"streamcap v{__version__} starting...")
    logging.info(f"Capture directory: {config.capture_dir}")
    logging.info(f"Complete directory: {config.complete_dir}")

    # ── Startup validation ──
    errors, warnings = validate_startup(config)
    for w in warnings:
        logging.warning(f"STARTUP WARNING: {w.splitlines()[0]}")
    if errors:
        print("\nFATAL: Cannot start:")
        for e in errors:
            print(f"  ✗ {e}")
        sys.exit(1)

    try:
        orchestrator = CaptureOrchestrator(config)
        orchestrator.prepare_directories()
    except (StreamcapError, OSError) as e:
        logging.error(f"STARTUP ERROR: {e}")
        sys.exit(1)

    print("\n" + "=" * 80)
    print(f"streamcap v{__version__}")
    for site in orchestrator.sites:
        watched = orchestrator.watch_list.models(site.name)
        print(f"  • {site.label}: {len(watched)} model(s) in watch list")
    print("Press Ctrl+C to stop (captures in progress are allowed to finish).")
    print("=" * 80 + "\n")

    sys.exit(asyncio.run(orchestrator.run()))


if __name__ == "__main__":
    main()
