from __future__ import annotations

import logging

from visit_notifications import __version__
from visit_notifications.settings import normalize_target_options
from visit_notifications.store import Store

logger = logging.getLogger(__name__)

VERSION_OPTION = "visitnotifications_version"


def check_versions(store: Store) -> str | None:
    """Record the running version, returning the previously stored one.

    On a version change, per-target options are rewritten in canonical form.
    """
    previous = store.get_option(VERSION_OPTION)
    if previous != __version__:
        normalize_target_options(store)
        store.set_option(VERSION_OPTION, __version__)
        logger.info("Stored data version %s -> %s", previous or "none", __version__)
    return previous
