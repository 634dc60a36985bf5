"""
streamcap
=========

Capture orchestration for live-stream sites.

Scans each enabled site on a fixed interval, reconciles what is online
against the watch list, launches one capture process per live model and
remuxes finished recordings with ffmpeg.  Ctrl+C drains every in-flight
capture and remux before exiting.
"""

__version__ = "1.0"
