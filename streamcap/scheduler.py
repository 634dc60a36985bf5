"""Per-site scan loop."""

import asyncio
import logging

from streamcap.log import report


async def launch_captures(site, model, supervisor, state):
    jobs = await site.setup_capture(model, state.exiting)
    for job in jobs:
        if job.args:
            await supervisor.start_capture(site, job.args, job.filename, job.model)


async def scan_once(site, dispatcher, supervisor, state):
    """One pass: fetch online models, reconcile, launch captures.

    Never raises; any failure is logged against the site.
    """
    site.log.debug("Start searching for new models")
    try:
        online_models = await site.get_online_models()
        if online_models is None:
            return

        site.log.info(f"{len(online_models)} model(s) online")
        models_to_cap = await dispatcher.get_models_to_cap(site, online_models)
        if not models_to_cap:
            return

        site.log.debug(f"{len(models_to_cap)} model(s) to capture")
        results = await asyncio.gather(
            *(launch_captures(site, model, supervisor, state) for model in models_to_cap),
            return_exceptions=True,
        )
        for model, result in zip(models_to_cap, results):
            if isinstance(result, Exception):
                site.log.error(f"{site.display_name(model)}: capture setup failed: {result}")
    except Exception as e:
        site.log.error(f"Scan failed: {e}")


async def main_site_loop(site, dispatcher, supervisor, state, scan_interval):
    """Scan ``site`` every ``scan_interval`` seconds until the task is cancelled.

    Passes keep running during shutdown so mailbox excludes still halt
    captures; ``setup_capture`` refuses new jobs once exiting.
    """
    while True:
        await scan_once(site, dispatcher, supervisor, state)
        report(site.log, logging.INFO,
               f"Done, will search for new models in {scan_interval:g} second(s).",
               state.exiting, site.label)
        await asyncio.sleep(scan_interval)
