"""Small formatting helpers."""

import datetime


def human_size(size_bytes):
    """Convert bytes to human-readable format."""
    for unit in ['B', 'KiB', 'MiB', 'GiB']:
        if size_bytes < 1024:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024
    return f"{size_bytes:.1f} TiB"


def build_filename(pattern, username, site):
    """Build an output filename (without extension) from pattern and metadata."""
    now = datetime.datetime.now()
    replacements = {
        '{username}': str(username),
        '{site}': site,
        '{date}': now.strftime('%Y%m%d'),
        '{time}': now.strftime('%H%M%S'),
        '{timestamp}': now.strftime('%Y%m%d_%H%M%S'),
    }
    result = pattern
    for token, value in replacements.items():
        result = result.replace(token, value)
    return _sanitize_filename(result)


def _sanitize_filename(name):
    """Remove characters that are invalid in filenames."""
    if not name:
        return 'untitled'
    for ch in r'<>:"/\|?*':
        name = name.replace(ch, '_')
    while '__' in name:
        name = name.replace('__', '_')
    return name.strip('. _')[:200] or 'untitled'
