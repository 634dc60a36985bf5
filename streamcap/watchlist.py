"""Watch list persistence and reconciliation with the pending-update mailbox.

The watch list is a JSON object with one ordered list per site::

    {"streamlink": ["somechannel", "other"], "mfc": [1234567]}

The mailbox (``updates.json``) holds requests to add or remove models::

    {"include_streamlink": ["newchannel"], "exclude_mfc": ["SomeModel"]}

Each site consumes only its own two fields, once per scan pass.
"""

import asyncio
import json
import logging
import os
from dataclasses import dataclass, field

from streamcap.errors import UpdateMailboxError, WatchListError

logger = logging.getLogger(__name__)


class WatchList:
    """Per-site ordered lists of model identities, persisted as JSON."""

    def __init__(self, path):
        self.path = path
        self._lists = {}

    def load(self):
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.info(f"No watch list found at {self.path}, starting empty")
            self._lists = {}
            return
        except json.JSONDecodeError as e:
            raise WatchListError(f"{self.path} contains invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise WatchListError(f"{self.path} should contain a JSON object of lists")

        self._lists = {}
        for site_name, models in data.items():
            if not isinstance(models, list):
                logger.warning(f"Ignoring watch list entry '{site_name}': not a list")
                continue
            unique = []
            for model in models:
                if model not in unique:
                    unique.append(model)
            self._lists[site_name] = unique

    def save(self):
        try:
            with open(self.path, 'w', encoding='utf-8') as f:
                json.dump(self._lists, f, indent=2)
        except OSError as e:
            raise WatchListError(f"Failed to save watch list: {e}") from e

    def models(self, site_name):
        return self._lists.setdefault(site_name, [])

    def contains(self, site_name, identity):
        return identity in self.models(site_name)

    def add(self, site_name, identity):
        """Append ``identity``.  Returns False if it was already present."""
        models = self.models(site_name)
        if identity in models:
            return False
        models.append(identity)
        return True

    def remove(self, site_name, identity):
        """Remove ``identity``.  Returns False if it was not present."""
        models = self.models(site_name)
        if identity not in models:
            return False
        models.remove(identity)
        return True


class UpdateMailbox:
    """Side-channel file of pending include/exclude requests."""

    def __init__(self, path):
        self.path = path

    @staticmethod
    def include_field(site_name):
        return f"include_{site_name}"

    @staticmethod
    def exclude_field(site_name):
        return f"exclude_{site_name}"

    def read(self):
        """Return the mailbox document, or None if there is no mailbox file."""
        if not os.path.isfile(self.path):
            return None
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                text = f.read()
        except OSError as e:
            raise UpdateMailboxError(f"Cannot read {self.path}: {e}") from e
        if not text.strip():
            return {}
        try:
            updates = json.loads(text)
        except json.JSONDecodeError as e:
            raise UpdateMailboxError(f"{self.path} contains invalid JSON: {e}") from e
        if not isinstance(updates, dict):
            raise UpdateMailboxError(f"{self.path} should contain a JSON object")
        return updates

    def write(self, updates):
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(updates, f, indent=2)

    def take(self, site_name):
        """Consume the site's pending requests.

        Returns (include: list, exclude: list).  The file is rewritten with
        this site's two fields emptied, and only when there was something
        to consume; other sites' fields are left untouched.
        """
        updates = self.read()
        if updates is None:
            return [], []

        inc_key = self.include_field(site_name)
        exc_key = self.exclude_field(site_name)
        include = updates.get(inc_key) or []
        exclude = updates.get(exc_key) or []
        if not isinstance(include, list) or not isinstance(exclude, list):
            raise UpdateMailboxError(f"{inc_key} and {exc_key} must be lists")

        if include or exclude:
            updates[inc_key] = []
            updates[exc_key] = []
            self.write(updates)
        return include, exclude


@dataclass
class UpdateBundle:
    include_models: list = field(default_factory=list)
    exclude_models: list = field(default_factory=list)
    dirty: bool = False


class Reconciler:
    """Merges pending mailbox requests into the watch list."""

    def __init__(self, watch_list, mailbox):
        self.watch_list = watch_list
        self.mailbox = mailbox

    def process_updates(self, site):
        site.log.debug(f"{len(self.watch_list.models(site.name))} model(s) in watch list")
        include, exclude = self.mailbox.take(site.name)
        if include:
            site.log.info(f"{len(include)} model(s) to include")
        if exclude:
            site.log.info(f"{len(exclude)} model(s) to exclude")
        return UpdateBundle(include_models=list(include), exclude_models=list(exclude))

    async def _resolve_all(self, site, identifiers):
        """Resolve every identifier concurrently.  Unknown or failed lookups are dropped."""
        results = await asyncio.gather(
            *(site.resolve_model(identifier) for identifier in identifiers),
            return_exceptions=True,
        )
        models = []
        for identifier, result in zip(identifiers, results):
            if isinstance(result, Exception):
                site.log.error(f"Lookup of {identifier} failed: {result}")
            elif result is not None:
                models.append(result)
        return models

    def add_model(self, site, model):
        nm = site.display_name(model)
        if self.watch_list.add(site.name, site.identity(model)):
            site.log.info(f"{nm} added to capture list")
            return True
        site.log.info(f"{nm} is already in the capture list")
        return False

    def remove_model(self, site, model):
        identity = site.identity(model)
        if not self.watch_list.contains(site.name, identity):
            site.log.debug(f"{site.display_name(model)} is not in the capture list")
            return False
        site.log.info(f"{site.display_name(model)} removed from capture list")
        site.halt_capture(identity)
        self.watch_list.remove(site.name, identity)
        return True

    async def add_models(self, site, bundle):
        dirty = False
        for model in await self._resolve_all(site, bundle.include_models):
            dirty |= self.add_model(site, model)
        return dirty

    async def remove_models(self, site, bundle):
        dirty = False
        for model in await self._resolve_all(site, bundle.exclude_models):
            dirty |= self.remove_model(site, model)
        return dirty

    async def reconcile(self, site):
        bundle = self.process_updates(site)
        added = await self.add_models(site, bundle)
        removed = await self.remove_models(site, bundle)
        bundle.dirty = added | removed
        return bundle
