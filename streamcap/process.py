"""External process helpers: tool checks, output forwarding, process-tree signals."""

import logging
import signal
import subprocess

import psutil

# ============ DEPENDENCY AVAILABILITY CHECKS ============

def _tool_version(cmd):
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=5)
    except (OSError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip()


def check_ffmpeg(ffmpeg_path='ffmpeg'):
    """Return the ffmpeg version string or None."""
    out = _tool_version([ffmpeg_path, "-version"])
    if not out:
        return None
    # First line like "ffmpeg version N-113753-..."
    first_line = out.split('\n')[0]
    return first_line.replace("ffmpeg version ", "").split(" ")[0]


def check_streamlink(streamlink_path='streamlink'):
    """Return the streamlink version string or None."""
    out = _tool_version([streamlink_path, "--version"])
    if not out:
        return None
    # Output is like "streamlink 6.11.0"
    return out.replace("streamlink ", "")


def check_ytdlp(ytdlp_path='yt-dlp'):
    """Return the yt-dlp version string or None."""
    return _tool_version([ytdlp_path, "--version"]) or None


# ============ OUTPUT FORWARDING ============

NOISY_PATTERNS = (
    # HLS fragment-level noise
    '[hls @', "opening 'http", '[tcp @', '[https @', '[tls @',
    # ffmpeg stream info and progress
    'input #', 'output #', 'stream #', 'stream mapping', 'metadata:',
    'size=', 'bitrate=', 'speed=', 'press [q]', 'last message repeated',
)

ERROR_KEYWORDS = ('error', 'fail', 'unable', 'denied', 'forbidden')


async def forward_output(stream, logger):
    """Log every line of a subprocess pipe until EOF.

    Lines that look like errors are logged as warnings, known noise at
    debug level, everything else at info.
    """
    if stream is None:
        return
    async for raw in stream:
        line = raw.decode('utf-8', errors='replace').rstrip()
        if not line:
            continue
        lower = line.lower()
        if any(kw in lower for kw in ERROR_KEYWORDS):
            logger.warning(line)
        elif any(pat in lower for pat in NOISY_PATTERNS):
            logger.debug(line)
        else:
            logger.info(line)


# ============ PROCESS TREE SIGNALS ============

def signal_process_tree(pid, sig=signal.SIGINT, logger=None):
    """Send ``sig`` to a process and all of its children.

    Returns False if the process no longer exists.
    """
    try:
        parent = psutil.Process(pid)
        children = parent.children(recursive=True)
    except psutil.NoSuchProcess:
        return False

    for proc in children + [parent]:
        try:
            proc.send_signal(sig)
        except psutil.NoSuchProcess:
            pass
        except psutil.AccessDenied as e:
            if logger:
                logger.warning(f"Cannot signal PID {proc.pid}: {e}")
    return True


def kill_process_tree(pid, logger=None):
    """Kill a process and all its children."""
    try:
        parent = psutil.Process(pid)
        children = parent.children(recursive=True)
    except psutil.NoSuchProcess:
        return  # already gone

    # Kill children first, then parent
    for child in children:
        try:
            child.kill()
        except psutil.NoSuchProcess:
            pass
    try:
        parent.kill()
    except psutil.NoSuchProcess:
        pass

    gone, alive = psutil.wait_procs(children + [parent], timeout=5)
    if logger is None:
        logger = logging.getLogger(__name__)
    if alive:
        logger.warning(f"Some processes still alive after kill: {[p.pid for p in alive]}")
    else:
        logger.info(f"Killed process tree for PID {pid} ({len(children)} children)")
