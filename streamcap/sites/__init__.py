from streamcap.sites.base import (
    CaptureJob,
    CaptureRecord,
    Model,
    SiteAdapter,
    StatefulSiteAdapter,
)
from streamcap.sites.streamlink import StreamlinkSite
from streamcap.sites.ytdlp import YtDlpSite

SITE_CLASSES = (StreamlinkSite, YtDlpSite)


def build_sites(config, watch_list):
    """Instantiate every site enabled in the [Sites] config section."""
    sites = []
    for cls in SITE_CLASSES:
        if config.getboolean('Sites', f'enable_{cls.name}', fallback=False):
            sites.append(cls(config, watch_list))
    return sites


__all__ = [
    'CaptureJob',
    'CaptureRecord',
    'Model',
    'SiteAdapter',
    'StatefulSiteAdapter',
    'StreamlinkSite',
    'YtDlpSite',
    'SITE_CLASSES',
    'build_sites',
]
