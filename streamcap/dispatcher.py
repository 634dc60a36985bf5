"""Decides which models each site should be capturing this pass."""


class Dispatcher:

    def __init__(self, reconciler, watch_list):
        self.reconciler = reconciler
        self.watch_list = watch_list

    def write_watch_list(self, site, dirty):
        if dirty:
            site.log.debug("Rewriting watch list")
            self.watch_list.save()

    async def get_models_to_cap(self, site, online_models):
        """Reconcile the site's watch list, then intersect it with ``online_models``.

        Returns None when ``online_models`` is None (the site could not be
        read this pass): nothing is reconciled or persisted in that case.
        Any failure is logged against the site and yields an empty list.
        """
        if online_models is None:
            return None
        try:
            bundle = await self.reconciler.reconcile(site)
            self.write_watch_list(site, bundle.dirty)
            watched = list(self.watch_list.models(site.name))
            return await site.select_models_to_capture(watched, online_models)
        except Exception as e:
            site.log.error(f"Failed to determine models to capture: {e}")
            return []
